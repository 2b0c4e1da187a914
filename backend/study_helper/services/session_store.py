"""
Session store — durable per-session state with one writer at a time per session.

Each session owns four slots (metadata, content, progress, history) kept as
JSON columns on a single ``study_sessions`` row. Every operation:

  1. acquires the session's asyncio.Lock (FIFO, so callers run in arrival order)
  2. runs one database transaction in a worker thread
  3. releases the lock once the transaction has finished, even if the caller
     was cancelled while waiting on it

Different sessions never share a lock, so they proceed in parallel. Across
processes, history appends read the row with SELECT ... FOR UPDATE, and SQLite
file databases open every transaction with BEGIN IMMEDIATE.
"""

import asyncio
import json
import logging
import weakref
from enum import Enum
from typing import Any, Callable, Protocol, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from study_helper.exceptions import StoreError
from study_helper.models.study_session import StudySession

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Slot(str, Enum):
    METADATA = "metadata"
    CONTENT = "content"
    PROGRESS = "progress"
    HISTORY = "history"


_COLUMNS = {
    Slot.METADATA: "metadata_json",
    Slot.CONTENT: "content_json",
    Slot.PROGRESS: "progress_json",
    Slot.HISTORY: "history_json",
}


def slot_default(slot: Slot) -> Any:
    """Value returned for a slot that has never been written."""
    if slot in (Slot.METADATA, Slot.PROGRESS):
        return {}
    if slot is Slot.HISTORY:
        return []
    return None


def trim_history(history: list, limit: int) -> list:
    """Keep the ``limit`` most recent entries, oldest first."""
    if limit <= 0:
        return []
    return history[-limit:]


class SessionStore(Protocol):
    """Interface the orchestrator depends on."""

    async def get(self, session_id: str, slot: Slot) -> Any: ...

    async def put(self, session_id: str, slot: Slot, value: Any) -> None: ...

    async def append_history(self, session_id: str, user_turn: dict, assistant_turn: dict) -> None: ...

    async def clear(self, session_id: str) -> None: ...


class SessionLocks:
    """Registry of per-session locks.

    Locks are held weakly: once no coroutine references a session's lock it is
    dropped, and the next access creates a fresh one.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


class SqlSessionStore:
    """SessionStore backed by a SQLAlchemy database."""

    def __init__(self, session_factory: sessionmaker, history_limit: int = 20):
        self._session_factory = session_factory
        self._history_limit = history_limit
        self._locks = SessionLocks()

    # ── Public operations ────────────────────────────────────────────────────

    async def get(self, session_id: str, slot: Slot) -> Any:
        slot = Slot(slot)
        return await self._run(session_id, lambda db: self._read(db, session_id, slot))

    async def put(self, session_id: str, slot: Slot, value: Any) -> None:
        slot = Slot(slot)
        if slot is Slot.HISTORY:
            value = trim_history(list(value or []), self._history_limit)
        await self._run(session_id, lambda db: self._write(db, session_id, slot, value))

    async def append_history(self, session_id: str, user_turn: dict, assistant_turn: dict) -> None:
        def _append(db: Session) -> None:
            history = self._read(db, session_id, Slot.HISTORY, for_update=True)
            history.extend([user_turn, assistant_turn])
            self._write(db, session_id, Slot.HISTORY, trim_history(history, self._history_limit))

        await self._run(session_id, _append)

    async def clear(self, session_id: str) -> None:
        def _clear(db: Session) -> None:
            db.query(StudySession).filter(StudySession.session_id == session_id).delete()

        await self._run(session_id, _clear)

    # ── Internals ────────────────────────────────────────────────────────────

    async def _run(self, session_id: str, work: Callable[[Session], T]) -> T:
        lock = self._locks.get(session_id)
        async with lock:
            job = asyncio.ensure_future(asyncio.to_thread(self._transaction, work))
            try:
                return await asyncio.shield(job)
            except asyncio.CancelledError:
                # A worker thread cannot be interrupted; keep the session locked until it ends
                while not job.done():
                    try:
                        await asyncio.wait({job})
                    except asyncio.CancelledError:
                        continue
                if not job.cancelled():
                    job.exception()
                raise

    def _transaction(self, work: Callable[[Session], T], attempts: int = 2) -> T:
        for attempt in range(1, attempts + 1):
            db = self._session_factory()
            try:
                result = work(db)
                db.commit()
                return result
            except IntegrityError as e:
                db.rollback()
                if attempt < attempts:
                    # Another writer inserted the session row first; the retry finds it
                    logger.info("Session row created concurrently, retrying")
                    continue
                logger.exception("Session store transaction failed")
                raise StoreError(f"Session store failure: {e}") from e
            except (SQLAlchemyError, ValueError) as e:
                # ValueError: a stored slot that is no longer valid JSON
                db.rollback()
                logger.exception("Session store transaction failed")
                raise StoreError(f"Session store failure: {e}") from e
            finally:
                db.close()
        raise StoreError("Session store failure: no attempts made")

    def _get_or_create(self, db: Session, session_id: str, for_update: bool = False) -> StudySession:
        """Load the session row, inserting it on first use.

        ``for_update`` row-locks it (SELECT ... FOR UPDATE) for the rest of the
        transaction on databases that support it. SQLite engines lock the whole
        file instead, see ``database.build_engine``.
        """
        query = db.query(StudySession).filter(StudySession.session_id == session_id)
        if for_update:
            query = query.with_for_update()
        state = query.one_or_none()
        if state is None:
            state = StudySession(session_id=session_id)
            db.add(state)
            db.flush()
        return state

    def _read(self, db: Session, session_id: str, slot: Slot, for_update: bool = False) -> Any:
        state = self._get_or_create(db, session_id, for_update)
        raw = getattr(state, _COLUMNS[slot])
        if raw is None:
            return slot_default(slot)
        value = json.loads(raw)
        if value is None:
            return slot_default(slot)
        return value

    def _write(self, db: Session, session_id: str, slot: Slot, value: Any) -> None:
        state = self._get_or_create(db, session_id)
        setattr(state, _COLUMNS[slot], json.dumps(value))
