"""knotsync: client-side multi-scope consistency for Spots, Knots and Groups.

Architecture::

    core/       errors, Result envelope, logging, settings, ids
    models/     entities and operation inputs (pydantic)
    store/      DocumentStore protocol, in-memory and Firestore backends
    sync/       placement, references, cascade, engine, audit
    views/      Live View Composer
    session.py  acting session lifecycle
    cli/        ``knotsync`` operator CLI

Usage::

    from knotsync import SyncEngine, ScopePaths, InMemoryDocumentStore, SessionBinding

    engine = SyncEngine(InMemoryDocumentStore(), ScopePaths("my-app"))
    session = SessionBinding().bind("u1", profile_tag="@ana", username="ana")
    result = await engine.create_spot(session, SpotDraft(tag="beach", date="2024-06-01", time="10:00"))
"""

__version__ = "0.1.0"

from knotsync.core.result import Err, Ok, Result
from knotsync.session import ActingSession, SessionBinding
from knotsync.store import InMemoryDocumentStore, ScopePaths, create_store
from knotsync.sync import IntegrityAuditor, SyncEngine
from knotsync.views import LiveViewComposer

__all__ = [
    "__version__",
    "Err",
    "Ok",
    "Result",
    "ActingSession",
    "SessionBinding",
    "InMemoryDocumentStore",
    "ScopePaths",
    "create_store",
    "IntegrityAuditor",
    "SyncEngine",
    "LiveViewComposer",
]
