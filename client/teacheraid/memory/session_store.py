from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import ValidationError

from teacheraid.core.errors import ImportRejected
from teacheraid.core.event_bus import EventBus
from teacheraid.core.logging import DOMAIN_SESSION, get_domain_logger
from teacheraid.memory.store import KeyValueStore
from teacheraid.schemas.session import LegacyProfile, Session, Subject

logger = get_domain_logger(__name__, DOMAIN_SESSION)

STORAGE_KEY_DATA = "teacher_aid_data_v1"
STORAGE_KEY_LEGACY = "teacher_aid_profile"
MIGRATED_SUBJECT_ID = "migrated_student"


@dataclass(frozen=True)
class LoadResult:
    session: Session
    needs_setup: bool
    source: str  # "snapshot" | "legacy" | "empty"


def migrate_legacy(profile: LegacyProfile) -> Session:
    subject = Subject(
        id=MIGRATED_SUBJECT_ID,
        name=profile.child_name,
        language=profile.child_language,
        age=profile.child_age,
        sensitivities=profile.sensitivities,
    )
    return Session(
        teacher_name=profile.teacher_name,
        preferred_voice=profile.preferred_voice,
        students=[subject],
        current_student_id=MIGRATED_SUBJECT_ID,
        chats={MIGRATED_SUBJECT_ID: []},
    )


def parse_session_document(raw: str) -> Session:
    """Parse a snapshot or backup document; raises ImportRejected when it is not one."""
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ImportRejected("Backup is not valid JSON") from exc
    if not isinstance(payload, dict) or "students" not in payload or "chats" not in payload:
        raise ImportRejected("Backup must contain 'students' and 'chats'")
    try:
        session = Session.model_validate(payload)
    except ValidationError as exc:
        raise ImportRejected(f"Backup does not match the session format: {exc.error_count()} error(s)") from exc
    # Every subject owns a (possibly empty) chat list and nothing else does.
    subject_ids = [s.id for s in session.students]
    if len(set(subject_ids)) != len(subject_ids):
        raise ImportRejected("Backup contains duplicate student ids")
    chats = {sid: list(session.chats.get(sid, [])) for sid in subject_ids}
    current = session.current_student_id if session.current_student_id in chats else ""
    return session.model_copy(update={"chats": chats, "current_student_id": current})


class SessionStore:
    """Owns the in-memory session snapshot and writes it through to storage on every change."""

    def __init__(self, storage: KeyValueStore, bus: EventBus | None = None):
        self._storage = storage
        self._bus = bus or EventBus()
        self._session = Session()

    @property
    def session(self) -> Session:
        return self._session

    def load(self) -> LoadResult:
        raw = self._storage.get(STORAGE_KEY_DATA)
        if raw is not None:
            try:
                self._session = parse_session_document(raw)
                logger.info("Loaded session snapshot with %s student(s)", len(self._session.students))
                return LoadResult(self._session, needs_setup=False, source="snapshot")
            except ImportRejected as exc:
                logger.error("Failed to parse session snapshot, trying legacy profile: %s", exc)

        legacy_raw = self._storage.get(STORAGE_KEY_LEGACY)
        if legacy_raw is not None:
            try:
                profile = LegacyProfile.model_validate_json(legacy_raw)
            except ValidationError as exc:
                logger.error("Failed to migrate legacy profile: %s error(s)", exc.error_count())
                self._session = Session()
                return LoadResult(self._session, needs_setup=True, source="empty")
            self._session = migrate_legacy(profile)
            self.save(self._session)
            logger.info("Migrated legacy single-student profile to %s", STORAGE_KEY_DATA)
            return LoadResult(self._session, needs_setup=False, source="legacy")

        self._session = Session()
        return LoadResult(self._session, needs_setup=True, source="empty")

    def save(self, session: Session) -> None:
        self._storage.set(STORAGE_KEY_DATA, json.dumps(session.to_document(), indent=2))

    def apply(self, mutation: Callable[..., Session], *args: Any, **kwargs: Any) -> Session:
        """Run a pure mutation against the latest snapshot, install the result, persist it."""
        updated = mutation(self._session, *args, **kwargs)
        if updated is self._session:
            return updated
        self._session = updated
        self.save(updated)
        return updated

    def replace(self, session: Session) -> Session:
        self._session = session
        self.save(session)
        return session

    def export_document(self) -> str:
        return json.dumps(self._session.to_document(), indent=2)

    def import_document(self, raw: str) -> Session:
        session = parse_session_document(raw)
        self.replace(session)
        self._bus.publish("session_imported", "session_store", {"students": len(session.students)})
        return session
