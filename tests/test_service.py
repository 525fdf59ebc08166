"""
Tests for SecretsService: push, pull, sync, history and rotation
wired over the in-process fakes.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from fakes import ALICE_KEY, BOB_KEY, FakeEngine, recipient
from envv.engine import metadata_recipients
from envv.errors import (
    AuthzError,
    EngineUnavailableError,
    NoRecipientsError,
    NotFoundError,
    PermissionDeniedError,
    UsageError,
)
from envv.models import Environment, SecretFormat
from envv.service import (
    SecretsService,
    default_secrets_path,
    parse_environment,
    parse_format,
)


@pytest.fixture
def service(binding, directory, engine, store) -> SecretsService:
    return SecretsService(binding, directory, engine, store)


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def env_file(workdir: Path) -> Path:
    path = workdir / ".env.production"
    path.write_text("DB_URL=x\n")
    return path


class TestParsing:

    def test_environment_default(self):
        assert parse_environment(None, Environment.STAGING) == Environment.STAGING

    def test_environment_required(self):
        with pytest.raises(UsageError):
            parse_environment("")

    def test_invalid_environment(self):
        with pytest.raises(UsageError, match="env must be one of: development, staging, production"):
            parse_environment("qa")

    def test_invalid_format(self):
        with pytest.raises(UsageError, match="format must be one of"):
            parse_format("toml")

    def test_format_default(self):
        assert parse_format(None) == SecretFormat.DOTENV

    def test_default_path(self):
        assert default_secrets_path(Environment.STAGING) == Path(".env.staging")


class TestPush:

    def test_first_push_is_version_one(self, service, env_file, store):
        version = service.push(env_file, "production")

        assert version.version == 1
        assert version.format == SecretFormat.DOTENV
        assert version.size_bytes > 0
        assert metadata_recipients(version.metadata) == sorted([ALICE_KEY, BOB_KEY])
        assert store.push_count == 1

    def test_versions_increase(self, service, env_file):
        first = service.push(env_file, "production")
        second = service.push(env_file, "production")
        assert second.version == first.version + 1

    def test_uses_binding_default_environment(self, service, env_file, store):
        version = service.push(env_file)
        assert version.environment == Environment.DEVELOPMENT

    def test_missing_file(self, service, workdir, store):
        with pytest.raises(UsageError, match="file not found"):
            service.push(workdir / "absent.env", "production")
        assert store.push_count == 0

    def test_invalid_environment_never_touches_store(self, service, env_file, events):
        with pytest.raises(UsageError):
            service.push(env_file, "qa")
        assert events == []

    def test_engine_unavailable(self, service, env_file, engine, events):
        engine.available = False
        with pytest.raises(EngineUnavailableError):
            service.push(env_file, "production")
        assert events == []

    def test_no_keyed_members(self, service, env_file, directory, store):
        directory.recipients = [recipient("dave@example.com", None)]
        with pytest.raises(NoRecipientsError):
            service.push(env_file, "production")
        assert store.push_count == 0

    def test_keyless_member_excluded(self, service, env_file, directory):
        directory.recipients.append(recipient("dave@example.com", None))
        version = service.push(env_file, "production")
        assert len(metadata_recipients(version.metadata)) == 2


class TestPull:

    def test_pull_recovers_plaintext(self, service, env_file, workdir):
        service.push(env_file, "production")
        env_file.unlink()

        result = service.pull("production")

        assert result.output_path == Path(".env.production")
        assert (workdir / ".env.production").read_bytes() == b"DB_URL=x\n"
        assert result.version.version == 1

    def test_pull_file_is_owner_only(self, service, env_file, workdir):
        service.push(env_file, "production")
        out = workdir / "out" / "prod.env"
        service.pull("production", out)
        assert os.stat(out).st_mode & 0o777 == 0o600

    def test_pull_tightens_existing_file(self, service, env_file, workdir):
        service.push(env_file, "production")
        os.chmod(env_file, 0o644)

        service.pull("production", env_file)

        assert os.stat(env_file).st_mode & 0o777 == 0o600
        assert env_file.read_text() == "DB_URL=x\n"

    def test_nothing_pushed(self, service, workdir):
        with pytest.raises(NotFoundError):
            service.pull("staging")

    def test_removed_member_cannot_pull_after_rotation(
        self, binding, directory, store, env_file, workdir
    ):
        alice = SecretsService(binding, directory, FakeEngine(ALICE_KEY), store)
        bob = SecretsService(binding, directory, FakeEngine(BOB_KEY), store)
        alice.push(env_file, "production")
        assert bob.pull("production", workdir / "bob.env").version.version == 1

        directory.recipients = [r for r in directory.recipients if r.public_key != BOB_KEY]
        result = alice.rotate("production")

        assert result.current.version == 2
        with pytest.raises(PermissionDeniedError):
            bob.pull("production", workdir / "bob.env")


class TestSync:

    def test_first_sync_creates_version(self, service, env_file):
        result = service.sync("production")
        assert result.first_sync
        assert result.pushed.version == 1

    def test_sync_pulls_then_pushes(self, service, env_file, events):
        service.push(env_file, "production")
        events.clear()

        result = service.sync("production")

        assert not result.first_sync
        assert result.pulled.version.version == 1
        assert result.pushed.version == 2
        assert events == ["pull", "decrypt", "recipients", "encrypt", "push"]

    def test_sync_keeps_remote_format(self, service, workdir):
        path = workdir / "app.json"
        path.write_text('{"DB_URL": "x"}')
        service.push(path, "staging", "json")
        assert service.sync("staging", path).pushed.format == SecretFormat.JSON

    def test_authorization_failure_is_not_first_sync(self, service, env_file, store):
        store.fail_pull = AuthzError("forbidden")
        with pytest.raises(AuthzError):
            service.sync("production")
        assert store.push_count == 0

    def test_first_sync_without_local_file(self, service, workdir):
        with pytest.raises(UsageError, match="Create it first"):
            service.sync("staging")


class TestHistory:

    def test_list_versions_newest_first(self, service, env_file):
        service.push(env_file, "production")
        service.push(env_file, "production")
        assert [v.version for v in service.list_versions("production")] == [2, 1]

    def test_list_versions_empty(self, service):
        assert service.list_versions("staging") == []

    def test_rollback_creates_new_version(self, service, env_file, workdir):
        v1 = service.push(env_file, "production")
        env_file.write_text("DB_URL=y\n")
        service.push(env_file, "production")

        restored = service.rollback(v1.version_id)

        assert restored.version == 3
        service.pull("production", workdir / "restored.env")
        assert (workdir / "restored.env").read_text() == "DB_URL=x\n"

    def test_rollback_requires_id(self, service):
        with pytest.raises(UsageError):
            service.rollback("")

    def test_rotate_without_versions_is_noop(self, service):
        assert not service.rotate("staging").rotated
