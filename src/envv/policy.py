"""
Encryption policy builder.

Turns a recipient list into the creation rules the engine encrypts
against. Pure and deterministic: keys are de-duplicated and sorted so
the rendered ``.sops.yaml`` diffs cleanly.
"""

from __future__ import annotations

from typing import Iterable

from .errors import NoRecipientsError
from .models import EncryptionPolicy, PolicyRule, Recipient

DEFAULT_PATH_REGEX = ".*"


def recipient_keys(recipients: Iterable[Recipient]) -> list[str]:
    """Sorted unique public keys of the recipients that have one."""
    return sorted({r.public_key.strip() for r in recipients if r.has_key})


def build_policy(
    recipients: Iterable[Recipient], path_regex: str = DEFAULT_PATH_REGEX
) -> EncryptionPolicy:
    """Build an encryption policy for the keyed recipients.

    Raises:
        NoRecipientsError: If no recipient holds a public key. Encrypting
            to nobody would produce secrets no one could ever read.
    """
    recipients = list(recipients)
    keys = recipient_keys(recipients)
    if not keys:
        if recipients:
            raise NoRecipientsError(
                f"None of the {len(recipients)} project member(s) has a public key."
            )
        raise NoRecipientsError("The project has no members.")
    return EncryptionPolicy(rules=[PolicyRule(path_regex=path_regex, recipients=keys)])
