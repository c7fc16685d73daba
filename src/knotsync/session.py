"""
Acting session.

The identity of the user performing an operation is an explicit, read-only
value passed into every Sync Engine call rather than ambient global state.
A session is bound when the auth collaborator signs a user in and
invalidated at sign-out; operations holding a stale reference fail with
``NotAuthenticatedError`` before any read.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from knotsync.core.errors import NotAuthenticatedError
from knotsync.core.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ActingSession:
    user_id: str
    profile_tag: str = ""
    username: str = ""
    profile_image: str = ""
    _state: dict[str, bool] = field(default_factory=lambda: {"active": True}, repr=False, compare=False)

    @property
    def active(self) -> bool:
        return self._state["active"] and bool(self.user_id)

    def invalidate(self) -> None:
        self._state["active"] = False


def require_active(session: ActingSession | None) -> ActingSession:
    """Return ``session`` if usable, else raise ``NotAuthenticatedError``."""
    if session is None or not session.active:
        raise NotAuthenticatedError()
    return session


class SessionBinding:
    """Holds the currently signed-in session for one client.

    Example::

        binding = SessionBinding()
        session = binding.bind(user_id="u1", profile_tag="@ana", username="ana")
        await engine.create_spot(binding.current, draft)
        binding.sign_out()   # session.active is now False
    """

    def __init__(self) -> None:
        self._current: ActingSession | None = None

    def bind(self, user_id: str, *, profile_tag: str = "", username: str = "", profile_image: str = "") -> ActingSession:
        if self._current is not None:
            self._current.invalidate()
        self._current = ActingSession(user_id, profile_tag, username, profile_image)
        log.info("session_bound", user_id=user_id)
        return self._current

    def sign_out(self) -> None:
        if self._current is not None:
            log.info("session_invalidated", user_id=self._current.user_id)
            self._current.invalidate()
        self._current = None

    @property
    def current(self) -> ActingSession | None:
        return self._current

    def require(self) -> ActingSession:
        return require_active(self._current)


__all__ = ["ActingSession", "SessionBinding", "require_active"]
