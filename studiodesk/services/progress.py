"""
StudioDesk Progress Engine

Records practice sessions against protocols and keeps each protocol's
status/progress projection in step with its session log.

Two entry paths share the same session log and protocol record:

- scored sessions derive progress from the mean subjective score of every
  scored session the protocol has, with a completion override;
- basic sessions carry no score; the caller picks the resulting status and
  progress is nudged heuristically.
"""

import uuid
from dataclasses import replace
from datetime import date as date_type
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from studiodesk.db.database import Database
from studiodesk.errors import NotFoundError, ValidationError
from studiodesk.models.domain import (
    DesignStatus,
    Protocol,
    ProtocolSession,
    ProtocolStatus,
    ProtocolSummary,
    SessionKind,
    clamp_progress,
)
from studiodesk.services.base import Service, ServiceContext

MIN_SCORE = 1
MAX_SCORE = 5
GOOD_SCORE = 4
COMPLETION_PROGRESS = 0.9
COMPLETION_GOOD_SESSIONS = 5
BASIC_START_PROGRESS = 0.1


def compute_progress(scores: Iterable[int]) -> float:
    """
    Map the mean score onto [0, 1]: 1 -> 0.0, 3 -> 0.5, 5 -> 1.0.

    An empty history has no progress.
    """
    values = list(scores)
    if not values:
        return 0.0
    avg = sum(values) / len(values)
    return clamp_progress((avg - MIN_SCORE) / (MAX_SCORE - MIN_SCORE))


def project_protocol(
    protocol: Protocol,
    sessions: Sequence[ProtocolSession],
    *,
    last_session: Optional[str] = None,
) -> Protocol:
    """
    Recompute status and progress from the protocol's scored sessions.

    Pure: the same protocol and session list always give the same result.
    Basic (unscored) sessions and sessions owned by other protocols are
    ignored. The completion override wins over the linear formula; otherwise
    the protocol is in progress, including one that had been completed but
    whose history no longer qualifies.

    The result replaces the stored status unconditionally: a completion set
    by a basic session or a manual status update is demoted to in_progress
    the next time a scored session is logged, unless the scored history
    itself qualifies.
    """
    scores = [
        s.subjective_progress_score
        for s in sessions
        if s.protocol_id == protocol.id and s.is_scored
    ]
    progress = compute_progress(scores)
    good_sessions = sum(1 for score in scores if score >= GOOD_SCORE)

    if progress >= COMPLETION_PROGRESS and good_sessions >= COMPLETION_GOOD_SESSIONS:
        status, progress = ProtocolStatus.COMPLETED, 1.0
    else:
        status = ProtocolStatus.IN_PROGRESS

    return replace(
        protocol,
        status=status,
        progress=progress,
        last_session=last_session if last_session is not None else protocol.last_session,
    )


def apply_basic_session(protocol: Protocol, status_after_session: str, session_date: str) -> Protocol:
    """Status chosen by the caller; progress only nudged."""
    progress = protocol.progress
    if status_after_session == ProtocolStatus.COMPLETED:
        progress = 1.0
    elif status_after_session == ProtocolStatus.IN_PROGRESS and protocol.progress == 0:
        progress = BASIC_START_PROGRESS
    return replace(
        protocol,
        status=status_after_session,
        progress=progress,
        last_session=session_date,
    )


# Input validation

def _required_text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing required field: {key}", metadata={"field": key})
    return value.strip()


def _optional_text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string", metadata={"field": key})
    return value


def _session_date(data: Mapping[str, Any]) -> str:
    value = _required_text(data, "date")
    try:
        date_type.fromisoformat(value[:10])
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {value!r}", metadata={"field": "date"}) from exc
    return value


def _duration(data: Mapping[str, Any]) -> int:
    value = data.get("duration_minutes")
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("duration_minutes must be a number", metadata={"field": "duration_minutes"})
    if value < 0:
        raise ValidationError("duration_minutes must be >= 0", metadata={"field": "duration_minutes"})
    return int(value)


def _score(data: Mapping[str, Any]) -> int:
    value = data.get("subjective_progress_score")
    if value is None:
        raise ValidationError(
            "Missing required field: subjective_progress_score",
            metadata={"field": "subjective_progress_score"},
        )
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Score must be an integer", metadata={"field": "subjective_progress_score"})
    if value < MIN_SCORE or value > MAX_SCORE:
        raise ValidationError(
            f"Score must be between {MIN_SCORE} and {MAX_SCORE}",
            metadata={"field": "subjective_progress_score", "value": value},
        )
    return value


def _protocol_status(value: Any, field: str) -> str:
    if value not in ProtocolStatus.ALL:
        raise ValidationError(
            f"{field} must be one of {', '.join(ProtocolStatus.ALL)}",
            metadata={"field": field, "value": value},
        )
    return value


class ProgressEngine(Service):
    """
    Service for protocol tracking.

    Owns the session log and the protocol projection; also serves the
    read and administration views of the protocol collection.

    Example:
        engine = ProgressEngine(context, db)
        session, protocol = engine.record_session(7, {
            "date": "2026-03-01", "piece_title": "Etude", "composer": "Sor",
            "subjective_progress_score": 4,
        })
    """

    def __init__(self, context: ServiceContext, db: Database) -> None:
        super().__init__(context)
        self.db = db

    # Reads
    def list_protocols(self) -> List[Protocol]:
        return self.db.list_protocols()

    def get_protocol(self, protocol_id: int) -> Protocol:
        return self.db.get_protocol(protocol_id)

    def summary(self) -> ProtocolSummary:
        protocols = self.db.list_protocols()
        total = len(protocols)
        return ProtocolSummary(
            total=total,
            not_started=sum(1 for p in protocols if p.status == ProtocolStatus.NOT_STARTED),
            in_progress=sum(1 for p in protocols if p.status == ProtocolStatus.IN_PROGRESS),
            completed=sum(1 for p in protocols if p.status == ProtocolStatus.COMPLETED),
            average_progress=(sum(p.progress for p in protocols) / total) if total else 0.0,
        )

    def list_sessions(self, protocol_id: int) -> List[ProtocolSession]:
        """Sessions of one protocol, newest date first (ties: newest insert first)."""
        sessions = list(reversed(self.db.list_sessions(protocol_id)))
        return sorted(sessions, key=lambda s: s.date, reverse=True)

    # Session recording
    def record_session(
        self, protocol_id: int, data: Mapping[str, Any]
    ) -> Tuple[ProtocolSession, Protocol]:
        """
        Append a scored session and recompute the protocol projection.

        Raises:
            ValidationError: missing date/piece_title/composer or bad score
            NotFoundError: unknown protocol; the session is still kept
        """
        session = ProtocolSession(
            id=str(uuid.uuid4()),
            protocol_id=protocol_id,
            date=_session_date(data),
            piece_title=_required_text(data, "piece_title"),
            composer=_required_text(data, "composer"),
            duration_minutes=_duration(data),
            subjective_progress_score=_score(data),
            notes=_optional_text(data, "notes"),
            next_time_hint=_optional_text(data, "next_time_hint"),
            kind=SessionKind.SCORED,
        )

        with self.db.batch():
            self.db.append_session(session)
            protocol = self._protocol_or_orphan(session)
            updated = project_protocol(
                protocol,
                self.db.list_sessions(protocol_id),
                last_session=session.date,
            )
            self.db.update_protocol(updated)

        self.logger.info(
            "session_recorded",
            extra=self.log_extra(
                protocol_id=protocol_id,
                session_id=session.id,
                score=session.subjective_progress_score,
                status=updated.status,
                progress=updated.progress,
            ),
        )
        if protocol.status != updated.status:
            self.logger.info(
                "protocol_status_changed",
                extra=self.log_extra(
                    protocol_id=protocol_id, old_status=protocol.status, new_status=updated.status
                ),
            )
        return session, updated

    def record_basic_session(
        self, protocol_id: int, data: Mapping[str, Any]
    ) -> Tuple[ProtocolSession, Protocol]:
        """
        Append an unscored session and set the caller-chosen status.

        Raises:
            ValidationError: missing date/piece_title or bad status_after_session
            NotFoundError: unknown protocol; the session is still kept
        """
        status_after = _protocol_status(data.get("status_after_session"), "status_after_session")
        session = ProtocolSession(
            id=str(uuid.uuid4()),
            protocol_id=protocol_id,
            date=_session_date(data),
            piece_title=_required_text(data, "piece_title"),
            duration_minutes=_duration(data),
            notes=_optional_text(data, "notes"),
            kind=SessionKind.BASIC,
            status_after_session=status_after,
        )

        with self.db.batch():
            self.db.append_session(session)
            protocol = self._protocol_or_orphan(session)
            updated = apply_basic_session(protocol, status_after, session.date)
            self.db.update_protocol(updated)

        self.logger.info(
            "basic_session_recorded",
            extra=self.log_extra(
                protocol_id=protocol_id,
                session_id=session.id,
                status=updated.status,
                progress=updated.progress,
            ),
        )
        return session, updated

    def _protocol_or_orphan(self, session: ProtocolSession) -> Protocol:
        try:
            return self.db.get_protocol(session.protocol_id)
        except NotFoundError as exc:
            self.logger.warning(
                "session_orphaned",
                extra=self.log_extra(protocol_id=session.protocol_id, session_id=session.id),
            )
            exc.metadata["session_id"] = session.id
            raise

    # Administration
    def update_status(self, protocol_id: int, patch: Mapping[str, Any]) -> Protocol:
        """Apply a manual status/progress/notes/next_focus edit."""
        with self.db.batch():
            protocol = self.db.get_protocol(protocol_id)
            changes: Dict[str, Any] = {}
            if patch.get("status") is not None:
                changes["status"] = _protocol_status(patch["status"], "status")
            if patch.get("progress") is not None:
                value = patch["progress"]
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ValidationError("progress must be a number", metadata={"field": "progress"})
                changes["progress"] = clamp_progress(value)
            if patch.get("notes") is not None:
                changes["notes"] = _optional_text(patch, "notes")
            if patch.get("next_focus") is not None:
                changes["next_focus"] = _optional_text(patch, "next_focus")

            # Protocol enforces completed => progress 1.
            updated = replace(protocol, **changes)
            self.db.update_protocol(updated)

        self.logger.info(
            "protocol_status_updated",
            extra=self.log_extra(protocol_id=protocol_id, fields=sorted(changes)),
        )
        return updated

    def list_meta(self) -> List[Dict[str, Any]]:
        return [p.meta() for p in self.db.list_protocols()]

    def update_meta(self, items: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """
        Apply admin fields (name, design_status, is_active_for_practice,
        admin_notes) to the protocols whose ids match. Unknown ids are skipped.
        """
        with self.db.batch():
            current = {p.id: p for p in self.db.list_protocols()}
            changed: List[Protocol] = []
            for item in items:
                protocol_id = item.get("id")
                protocol = current.get(protocol_id)
                if protocol is None:
                    self.logger.warning(
                        "protocol_meta_unknown_id",
                        extra=self.log_extra(protocol_id=protocol_id if isinstance(protocol_id, int) else None),
                    )
                    continue
                changes: Dict[str, Any] = {}
                if item.get("name") is not None:
                    changes["name"] = _required_text(item, "name")
                if item.get("design_status") is not None:
                    if item["design_status"] not in DesignStatus.ALL:
                        raise ValidationError(
                            f"design_status must be one of {', '.join(DesignStatus.ALL)}",
                            metadata={"field": "design_status", "protocol_id": protocol_id},
                        )
                    changes["design_status"] = item["design_status"]
                if item.get("is_active_for_practice") is not None:
                    changes["is_active_for_practice"] = bool(item["is_active_for_practice"])
                if item.get("admin_notes") is not None:
                    changes["admin_notes"] = _optional_text(item, "admin_notes")
                changed.append(replace(protocol, **changes))
            self.db.update_protocols(changed)

        self.logger.info("protocol_meta_updated", extra=self.log_extra(count=len(changed)))
        return self.list_meta()

    def create_protocol(self, name: str, **fields: Any) -> Protocol:
        if not name or not name.strip():
            raise ValidationError("Missing required field: name", metadata={"field": "name"})
        protocol = self.db.create_protocol(name.strip(), **fields)
        self.logger.info("protocol_created", extra=self.log_extra(protocol_id=protocol.id))
        return protocol

    def import_protocols(self, records: Sequence[Mapping[str, Any]]) -> List[Protocol]:
        """Seed the collection: existing ids are overwritten, new ones appended."""
        with self.db.batch():
            existing = {p.id for p in self.db.list_protocols()}
            replacements: List[Protocol] = []
            for record in records:
                name = _required_text(record, "name")
                protocol_id = record.get("id")
                if protocol_id is not None and not isinstance(protocol_id, int):
                    raise ValidationError("id must be an integer", metadata={"field": "id"})
                if protocol_id in existing:
                    replacements.append(Protocol.from_dict(dict(record)))
                    continue
                protocol = self.db.create_protocol(
                    name,
                    protocol_id=protocol_id,
                    status=_protocol_status(record.get("status", ProtocolStatus.NOT_STARTED), "status"),
                    progress=clamp_progress(record.get("progress") or 0.0),
                    notes=_optional_text(record, "notes"),
                    next_focus=_optional_text(record, "next_focus"),
                    design_status=record.get("design_status") or DesignStatus.DRAFT,
                    is_active_for_practice=bool(record.get("is_active_for_practice", True)),
                    admin_notes=_optional_text(record, "admin_notes"),
                )
                existing.add(protocol.id)
            self.db.update_protocols(replacements)
            protocols = self.db.list_protocols()

        self.logger.info("protocols_imported", extra=self.log_extra(count=len(records)))
        return protocols
