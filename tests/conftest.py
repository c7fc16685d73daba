"""
Shared pytest fixtures for knotsync tests.

This module provides:
- An in-memory document store and scope paths bound to a test app id
- A Sync Engine, auditor and view composer over that store
- Acting sessions for three users (ana, ben, cleo) with seeded profiles
- Settings cache isolation
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from knotsync.core.settings import clear_settings_cache
from knotsync.models.base import EntityKind
from knotsync.session import ActingSession, SessionBinding
from knotsync.store.memory import InMemoryDocumentStore
from knotsync.store.paths import PROFILE_DOC_ID, ScopePaths
from knotsync.sync.audit import IntegrityAuditor
from knotsync.sync.engine import SyncEngine
from knotsync.views.composer import LiveViewComposer

APP_ID = "test-app"


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch):
    """Keep KNOTSYNC_* from the developer's environment out of tests."""
    import os

    for key in list(os.environ):
        if key.startswith("KNOTSYNC_"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def paths() -> ScopePaths:
    return ScopePaths(APP_ID)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def engine(store, paths) -> SyncEngine:
    return SyncEngine(store, paths)


@pytest.fixture
def auditor(store, paths) -> IntegrityAuditor:
    return IntegrityAuditor(store, paths)


@pytest.fixture
def composer(store) -> LiveViewComposer:
    return LiveViewComposer(store)


async def _seed_profile(store: InMemoryDocumentStore, paths: ScopePaths, session: ActingSession) -> None:
    await store.set(
        paths.profile(session.user_id),
        PROFILE_DOC_ID,
        {
            "type": EntityKind.USER.value,
            "username": session.username,
            "profileTag": session.profile_tag,
            "followers": [],
            "following": [],
        },
    )


@pytest_asyncio.fixture
async def ana(store, paths) -> ActingSession:
    session = SessionBinding().bind("ana", profile_tag="@ana", username="ana")
    await _seed_profile(store, paths, session)
    return session


@pytest_asyncio.fixture
async def ben(store, paths) -> ActingSession:
    session = SessionBinding().bind("ben", profile_tag="@ben", username="ben")
    await _seed_profile(store, paths, session)
    return session


@pytest_asyncio.fixture
async def cleo(store, paths) -> ActingSession:
    session = SessionBinding().bind("cleo", profile_tag="@cleo", username="cleo")
    await _seed_profile(store, paths, session)
    return session
