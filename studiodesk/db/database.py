"""
StudioDesk Storage

Flat JSON collections: each collection is one file holding a JSON array of
records, read fully and rewritten fully on every mutation. Uses the
Protocol pattern to define the task store contract so services can be
handed any backend.
"""

import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Protocol as TypingProtocol

from studiodesk.errors import NotFoundError, PersistenceError, ValidationError
from studiodesk.logging import get_logger
from studiodesk.models.domain import (
    DesignStatus,
    Protocol,
    ProtocolSession,
    ProtocolStatus,
    Task,
)

logger = get_logger(__name__)


# One lock per data directory so separate Database instances created per
# request still serialize their read-modify-write cycles.
_LOCKS: Dict[str, threading.RLock] = {}
_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    key = str(Path(path).expanduser().resolve())
    with _LOCKS_GUARD:
        lock = _LOCKS.get(key)
        if lock is None:
            lock = threading.RLock()
            _LOCKS[key] = lock
        return lock


class JsonCollection:
    """
    A JSON array of records stored in a single file.

    Reads are lenient: a missing, unreadable or malformed file is treated as
    an empty collection. Writes replace the whole file atomically.
    """

    def __init__(self, path: Path, *, lock: Optional[threading.RLock] = None) -> None:
        self.path = Path(path)
        self.lock = lock or _lock_for(self.path.parent)

    def read(self) -> List[Dict[str, Any]]:
        with self.lock:
            try:
                text = self.path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return []
            except OSError as exc:
                logger.warning(
                    "collection_read_failed",
                    extra={"path": str(self.path), "error": str(exc)},
                )
                return []
            try:
                data = json.loads(text)
            except json.JSONDecodeError as exc:
                logger.warning(
                    "collection_corrupt",
                    extra={"path": str(self.path), "error": str(exc)},
                )
                return []
            if not isinstance(data, list):
                logger.warning(
                    "collection_not_a_list",
                    extra={"path": str(self.path), "found": type(data).__name__},
                )
                return []
            return [item for item in data if isinstance(item, dict)]

    def write(self, records: List[Dict[str, Any]]) -> None:
        with self.lock:
            tmp_name: Optional[str] = None
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
                )
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(records, handle, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self.path)
                tmp_name = None
            except (OSError, TypeError, ValueError) as exc:
                logger.error(
                    "collection_write_failed",
                    extra={"path": str(self.path), "error": str(exc)},
                )
                raise PersistenceError(
                    f"Failed to write {self.path.name}: {exc}",
                    metadata={"path": str(self.path)},
                ) from exc
            finally:
                if tmp_name is not None:
                    try:
                        os.unlink(tmp_name)
                    except OSError:
                        pass

    @contextmanager
    def transaction(self) -> Generator[List[Dict[str, Any]], None, None]:
        """Yield the current records; write them back if the block succeeds."""
        with self.lock:
            records = self.read()
            yield records
            self.write(records)


class Database:
    """
    JSON-file persistence for protocols and their session log.

    Files:
        protocols.json          - array of protocol records
        protocol_sessions.json  - append-only array of session records
    """

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self._lock = _lock_for(self.data_dir)
        self.protocols = JsonCollection(self.data_dir / "protocols.json", lock=self._lock)
        self.sessions = JsonCollection(self.data_dir / "protocol_sessions.json", lock=self._lock)

    @contextmanager
    def batch(self) -> Generator[None, None, None]:
        """Hold the data-directory lock across several reads and writes."""
        with self._lock:
            yield

    # Protocols
    def list_protocols(self) -> List[Protocol]:
        return [Protocol.from_dict(row) for row in self.protocols.read()]

    def get_protocol(self, protocol_id: int) -> Protocol:
        for row in self.protocols.read():
            if row.get("id") == protocol_id:
                return Protocol.from_dict(row)
        raise NotFoundError(f"Protocol {protocol_id} not found", metadata={"protocol_id": protocol_id})

    def update_protocol(self, protocol: Protocol) -> Protocol:
        with self.protocols.transaction() as rows:
            for index, row in enumerate(rows):
                if row.get("id") == protocol.id:
                    rows[index] = protocol.to_dict()
                    break
            else:
                raise NotFoundError(
                    f"Protocol {protocol.id} not found", metadata={"protocol_id": protocol.id}
                )
        return protocol

    def update_protocols(self, protocols: List[Protocol]) -> List[Protocol]:
        """Rewrite several protocols in one pass; unknown ids are ignored."""
        by_id = {p.id: p for p in protocols}
        with self.protocols.transaction() as rows:
            for index, row in enumerate(rows):
                replacement = by_id.get(row.get("id"))
                if replacement is not None:
                    rows[index] = replacement.to_dict()
        return self.list_protocols()

    def create_protocol(
        self,
        name: str,
        *,
        status: str = ProtocolStatus.NOT_STARTED,
        progress: float = 0.0,
        notes: str = "",
        next_focus: str = "",
        design_status: str = DesignStatus.DRAFT,
        is_active_for_practice: bool = True,
        admin_notes: str = "",
        protocol_id: Optional[int] = None,
    ) -> Protocol:
        with self.protocols.transaction() as rows:
            existing = {row.get("id") for row in rows}
            if protocol_id is None:
                protocol_id = max((i for i in existing if isinstance(i, int)), default=0) + 1
            elif protocol_id in existing:
                raise ValidationError(f"Protocol {protocol_id} already exists", metadata={"protocol_id": protocol_id})
            protocol = Protocol(
                id=protocol_id,
                name=name,
                status=status,
                progress=progress,
                notes=notes,
                next_focus=next_focus,
                design_status=design_status,
                is_active_for_practice=is_active_for_practice,
                admin_notes=admin_notes,
            )
            rows.append(protocol.to_dict())
        return protocol

    # Sessions
    def append_session(self, session: ProtocolSession) -> ProtocolSession:
        with self.sessions.transaction() as rows:
            rows.append(session.to_dict())
        return session

    def list_sessions(self, protocol_id: Optional[int] = None) -> List[ProtocolSession]:
        """Sessions in insertion order, optionally filtered by protocol."""
        sessions = [ProtocolSession.from_dict(row) for row in self.sessions.read()]
        if protocol_id is None:
            return sessions
        return [s for s in sessions if s.protocol_id == protocol_id]


class TaskStore(TypingProtocol):
    """Protocol defining the task table interface."""

    def get(self, task_id: str) -> Task: ...
    def list(self) -> List[Task]: ...
    def insert(self, task: Task) -> Task: ...
    def update(self, task: Task) -> Task: ...
    def delete(self, task_id: str) -> Task: ...


class InMemoryTaskStore:
    """Process-local task table, kept in insertion order."""

    def __init__(self) -> None:
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.Lock()

    def get(self, task_id: str) -> Task:
        with self._lock:
            task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", metadata={"task_id": task_id})
        return task

    def list(self) -> List[Task]:
        with self._lock:
            return list(self._tasks.values())

    def insert(self, task: Task) -> Task:
        with self._lock:
            if task.id in self._tasks:
                raise ValueError(f"Task {task.id} already exists")
            self._tasks[task.id] = task
        return task

    def update(self, task: Task) -> Task:
        with self._lock:
            if task.id not in self._tasks:
                raise NotFoundError(f"Task {task.id} not found", metadata={"task_id": task.id})
            self._tasks[task.id] = task
        return task

    def delete(self, task_id: str) -> Task:
        with self._lock:
            task = self._tasks.pop(task_id, None)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", metadata={"task_id": task_id})
        return task


class JsonTaskStore:
    """Task table persisted as tasks.json next to the protocol collections."""

    def __init__(self, path: Path) -> None:
        self.collection = JsonCollection(path)

    def get(self, task_id: str) -> Task:
        for row in self.collection.read():
            if row.get("id") == task_id:
                return Task.from_dict(row)
        raise NotFoundError(f"Task {task_id} not found", metadata={"task_id": task_id})

    def list(self) -> List[Task]:
        return [Task.from_dict(row) for row in self.collection.read()]

    def insert(self, task: Task) -> Task:
        with self.collection.transaction() as rows:
            if any(row.get("id") == task.id for row in rows):
                raise ValueError(f"Task {task.id} already exists")
            rows.append(task.to_dict())
        return task

    def update(self, task: Task) -> Task:
        with self.collection.transaction() as rows:
            for index, row in enumerate(rows):
                if row.get("id") == task.id:
                    rows[index] = task.to_dict()
                    break
            else:
                raise NotFoundError(f"Task {task.id} not found", metadata={"task_id": task.id})
        return task

    def delete(self, task_id: str) -> Task:
        with self.collection.transaction() as rows:
            for index, row in enumerate(rows):
                if row.get("id") == task_id:
                    removed = rows.pop(index)
                    break
            else:
                raise NotFoundError(f"Task {task_id} not found", metadata={"task_id": task_id})
        return Task.from_dict(removed)


def create_task_store(backend: str, data_dir: Path) -> TaskStore:
    """Build the task store selected by STUDIODESK_TASK_STORE."""
    if backend == "json":
        return JsonTaskStore(Path(data_dir) / "tasks.json")
    return InMemoryTaskStore()
