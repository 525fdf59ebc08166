"""Shared test fixtures for envv."""

from __future__ import annotations

from pathlib import Path

import pytest

from fakes import ALICE_KEY, BOB_KEY, FakeEngine, InMemoryStore, StaticDirectory, recipient
from envv.models import Environment, ProjectBinding, Recipient


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def team() -> list[Recipient]:
    return [
        recipient("alice@example.com", ALICE_KEY, permission="admin"),
        recipient("bob@example.com", BOB_KEY, permission="write"),
    ]


@pytest.fixture
def engine(events) -> FakeEngine:
    return FakeEngine(events=events)


@pytest.fixture
def store(events) -> InMemoryStore:
    return InMemoryStore(events=events)


@pytest.fixture
def directory(team, events) -> StaticDirectory:
    return StaticDirectory(team, events=events)


@pytest.fixture
def binding() -> ProjectBinding:
    return ProjectBinding(
        organization_id="org-1",
        organization_name="Acme",
        project_id="proj-1",
        project_name="api",
        default_environment=Environment.DEVELOPMENT,
    )


@pytest.fixture
def envv_home(tmp_path: Path) -> Path:
    home = tmp_path / ".envv"
    home.mkdir()
    return home
