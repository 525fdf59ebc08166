"""
envv -- team secrets, encrypted before they leave the machine.

Per-environment configuration secrets are encrypted client-side with
SOPS + age for every current team member holding a public key, then
stored as immutable, versioned ciphertext on the envv service.
Rotation re-addresses existing secrets to the current roster.
"""

import os

__version__ = "0.1.0"
__author__ = "envv"

ENVV_HOME = os.environ.get("ENVV_HOME", "~/.envv")
DEFAULT_API_URL = "https://api.envv.sh"
