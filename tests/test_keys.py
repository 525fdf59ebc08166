"""Tests for age keypair generation and the local key file."""

from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest

from envv.errors import ConfigError, EngineError, EngineUnavailableError
from envv.keys import (
    AgeKeypair,
    generate_keypair,
    parse_keygen_output,
    public_key_from_file,
    save_private_key,
)

PUBLIC = "age1ql3z7hjy54pw3hyww5ayyfg7zqgvc7w3j2elw8zmrj2kg5sfn9aqmcac8p"
PRIVATE = "AGE-SECRET-KEY-1GFPYYSJZGFPYYSJZGFPYYSJZGFPYYSJZGFPYYSJZGFPYYSJZGFPQ4EGAEX"
KEYGEN_OUTPUT = f"# created: 2026-01-01T00:00:00Z\n# public key: {PUBLIC}\n{PRIVATE}\n"


class TestParse:

    def test_parses_file_format(self):
        pair = parse_keygen_output(KEYGEN_OUTPUT)
        assert pair.public_key == PUBLIC
        assert pair.private_key == PRIVATE

    def test_parses_stderr_variant(self):
        pair = parse_keygen_output(f"{PRIVATE}\nPublic key: {PUBLIC}\n")
        assert pair.public_key == PUBLIC

    def test_missing_secret(self):
        with pytest.raises(EngineError):
            parse_keygen_output(f"# public key: {PUBLIC}\n")

    def test_repr_hides_private_key(self):
        assert PRIVATE not in repr(AgeKeypair(PUBLIC, PRIVATE))


class TestGenerate:

    def test_missing_binary(self):
        with patch("envv.keys.shutil.which", return_value=None):
            with pytest.raises(EngineUnavailableError, match="age-keygen"):
                generate_keypair()

    def test_runs_age_keygen(self):
        completed = subprocess.CompletedProcess(
            ["age-keygen"], 0, f"{PRIVATE}\n", f"Public key: {PUBLIC}\n"
        )
        with patch("envv.keys.shutil.which", return_value="/usr/bin/age-keygen"), \
                patch("envv.keys.subprocess.run", return_value=completed) as run:
            pair = generate_keypair()
        assert run.call_args.args[0] == ["age-keygen"]
        assert pair == AgeKeypair(PUBLIC, PRIVATE)

    def test_failure(self):
        completed = subprocess.CompletedProcess(["age-keygen"], 1, "", "boom")
        with patch("envv.keys.shutil.which", return_value="/usr/bin/age-keygen"), \
                patch("envv.keys.subprocess.run", return_value=completed):
            with pytest.raises(EngineError, match="boom"):
                generate_keypair()


class TestKeyFile:

    def test_save_is_owner_only(self, tmp_path):
        path = save_private_key(AgeKeypair(PUBLIC, PRIVATE), tmp_path / "age" / "keys.txt")
        assert path.stat().st_mode & 0o777 == 0o600
        assert PRIVATE in path.read_text()
        assert public_key_from_file(path) == PUBLIC

    def test_save_appends(self, tmp_path):
        path = tmp_path / "keys.txt"
        save_private_key(AgeKeypair(PUBLIC, PRIVATE), path)
        save_private_key(AgeKeypair("age1second", "AGE-SECRET-KEY-1SECOND"), path)
        content = path.read_text()
        assert PRIVATE in content
        assert "AGE-SECRET-KEY-1SECOND" in content
        assert public_key_from_file(path) == PUBLIC

    def test_existing_key_file_is_tightened(self, tmp_path):
        path = tmp_path / "keys.txt"
        path.write_text("")
        path.chmod(0o644)
        save_private_key(AgeKeypair(PUBLIC, PRIVATE), path)
        assert path.stat().st_mode & 0o777 == 0o600

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            public_key_from_file(tmp_path / "nope.txt")

    def test_file_without_public_key(self, tmp_path):
        path = tmp_path / "keys.txt"
        path.write_text(f"{PRIVATE}\n")
        with pytest.raises(ConfigError, match="No public key"):
            public_key_from_file(path)
