"""Pure session transformations.

Every helper takes a Session and returns a new one; inputs are never modified. The
SessionStore applies them one at a time against the latest snapshot, so two helpers can
never interleave on the same field. Message updates are keyed by id, never by position,
which keeps a late pipeline result correct after other messages were appended.
"""
from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from teacheraid.core.errors import SessionError
from teacheraid.schemas.session import Message, Session, Subject, VoiceMode

ModelT = TypeVar("ModelT", bound=BaseModel)


def _require_subject(session: Session, subject_id: str) -> Subject:
    subject = session.find_subject(subject_id)
    if subject is None:
        raise SessionError(f"Unknown subject {subject_id!r}")
    return subject


def _revalidated(current: ModelT, changes: dict[str, Any]) -> ModelT:
    # Full validation: the result is persisted and must reload.
    try:
        return type(current).model_validate({**current.model_dump(), **changes})
    except ValidationError as exc:
        fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
        raise SessionError(f"Invalid {type(current).__name__.lower()} update: {fields or exc}") from exc


def add_subject(session: Session, subject: Subject) -> Session:
    if session.find_subject(subject.id) is not None:
        raise SessionError(f"Subject {subject.id!r} already exists")
    chats = dict(session.chats)
    chats[subject.id] = list(chats.get(subject.id, []))
    return session.model_copy(
        update={
            "students": [*session.students, subject],
            "chats": chats,
            "current_student_id": session.current_student_id or subject.id,
        }
    )


def update_subject(session: Session, subject_id: str, **changes: Any) -> Session:
    current = _require_subject(session, subject_id)
    changes.pop("id", None)
    updated = _revalidated(current, changes)
    return session.model_copy(
        update={"students": [updated if s.id == subject_id else s for s in session.students]}
    )


def delete_subject(session: Session, subject_id: str) -> Session:
    _require_subject(session, subject_id)
    remaining = [s for s in session.students if s.id != subject_id]
    chats = {key: value for key, value in session.chats.items() if key != subject_id}
    current = session.current_student_id
    if current == subject_id:
        current = remaining[0].id if remaining else ""
    return session.model_copy(update={"students": remaining, "chats": chats, "current_student_id": current})


def append_message(session: Session, subject_id: str, message: Message) -> Session:
    _require_subject(session, subject_id)
    existing = session.chats.get(subject_id, [])
    if any(m.id == message.id for m in existing):
        raise SessionError(f"Message {message.id!r} already exists for subject {subject_id!r}")
    chats = dict(session.chats)
    chats[subject_id] = [*existing, message]
    return session.model_copy(update={"chats": chats})


def patch_message(session: Session, subject_id: str, message_id: str, **changes: Any) -> Session:
    existing = session.chats.get(subject_id)
    if existing is None or not any(m.id == message_id for m in existing):
        # The subject (or message) was deleted while the caller was waiting.
        return session
    changes.pop("id", None)
    chats = dict(session.chats)
    chats[subject_id] = [_revalidated(m, changes) if m.id == message_id else m for m in existing]
    return session.model_copy(update={"chats": chats})


def switch_subject(session: Session, subject_id: str) -> Session:
    if subject_id:
        _require_subject(session, subject_id)
    return session.model_copy(update={"current_student_id": subject_id})


def set_teacher(
    session: Session,
    *,
    teacher_name: str | None = None,
    preferred_voice: VoiceMode | str | None = None,
) -> Session:
    update: dict[str, Any] = {}
    if teacher_name is not None:
        if not isinstance(teacher_name, str):
            raise SessionError("Teacher name must be text")
        update["teacher_name"] = teacher_name
    if preferred_voice is not None:
        try:
            update["preferred_voice"] = VoiceMode(preferred_voice)
        except ValueError as exc:
            raise SessionError(f"Unknown voice mode {preferred_voice!r}") from exc
    return session.model_copy(update=update)


def merge_profile_analysis(
    session: Session,
    subject_id: str,
    *,
    guide: str,
    sensitivities: str,
    analyzed_count: int | None,
) -> Session:
    """Fold an analysis result into a subject; a no-op if the subject was deleted meanwhile."""
    if session.find_subject(subject_id) is None:
        return session
    changes: dict[str, Any] = {"guide_book": guide, "sensitivities": sensitivities}
    if analyzed_count is not None:
        changes["last_analyzed_index"] = analyzed_count
    return update_subject(session, subject_id, **changes)


def merge_demo(session: Session, subject: Subject, messages: list[Message], teacher_name: str) -> Session:
    chats = dict(session.chats)
    chats[subject.id] = list(messages)
    return session.model_copy(
        update={
            "students": [*[s for s in session.students if s.id != subject.id], subject],
            "chats": chats,
            "current_student_id": subject.id,
            "teacher_name": teacher_name,
        }
    )
