"""Session keys, reference collaborators and per-session locking."""

from __future__ import annotations

import asyncio
import threading
import uuid
import weakref
from contextlib import asynccontextmanager
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping


class SessionKey(StrEnum):
    """Session fields owned by the token lifecycle manager."""

    ACCESS_TOKEN = "oidc_access_token"
    REFRESH_TOKEN = "oidc_refresh_token"
    ACCESS_TOKEN_EXPIRES_AT = "oidc_access_token_expires_at"
    LOGOUT_URL = "oidc_logout_url"
    ID_TOKEN = "oidc_id_token"


class InMemorySessionStore:
    """Dict-backed session store."""

    def __init__(
        self,
        initial: Mapping[str, Any] | None = None,
        *,
        session_id: str | None = None,
    ) -> None:
        self._session_id = session_id or uuid.uuid4().hex
        self._data: dict[str, Any] = dict(initial or {})

    @property
    def session_id(self) -> str:
        return self._session_id

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def snapshot(self) -> dict[str, Any]:
        """Copy of the current session contents."""
        return dict(self._data)


class DictConfigProvider:
    """Config provider reading from a plain mapping."""

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values = dict(values or {})

    def get_system_value(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)


class SessionLock:
    """Mutex of one session, shared by every thread and event loop.

    Uncontended acquisition is immediate. A contended one waits in a
    worker thread so the event loop keeps running. A waiter cancelled
    before it gets the lock gives it back as soon as the worker obtains it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def locked(self) -> bool:
        return self._lock.locked()

    async def acquire(self) -> None:
        if self._lock.acquire(blocking=False):
            return

        handoff = threading.Lock()
        state = {"acquired": False, "abandoned": False}

        def wait() -> None:
            self._lock.acquire()
            with handoff:
                if state["abandoned"]:
                    self._lock.release()
                else:
                    state["acquired"] = True

        try:
            await asyncio.to_thread(wait)
        except BaseException:
            with handoff:
                state["abandoned"] = True
                if state["acquired"]:
                    self._lock.release()
            raise

    def release(self) -> None:
        self._lock.release()


class SessionLockRegistry:
    """Hands out one ``SessionLock`` per session id.

    Locks are held weakly: an entry disappears once no request is waiting
    on or holding it, so the registry does not grow with the number of
    sessions ever seen. One registry may be shared by requests served on
    different threads, each running its own event loop.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, SessionLock] = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()

    def lock_for(self, session_id: str) -> SessionLock:
        """Return the lock of ``session_id``, creating it if needed."""
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = SessionLock()
                self._locks[session_id] = lock
            return lock

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        """Hold the lock of ``session_id`` for the duration of the block."""
        lock = self.lock_for(session_id)
        await lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


default_lock_registry = SessionLockRegistry()
