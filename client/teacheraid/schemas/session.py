from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

PENDING_TEXT = "Adapting..."
FAILED_TEXT = "Sorry, I couldn't process that."


class VoiceMode(str, Enum):
    AI = "AI"
    LOCAL = "LOCAL"


class SenderRole(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"


class MessageStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


class _SnapshotModel(BaseModel):
    # Persisted documents use the camelCase keys of the original backup format.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Subject(_SnapshotModel):
    id: str
    name: str
    language: str
    age: int = 7
    sensitivities: str = ""
    guide_book: str | None = None
    last_analyzed_index: int | None = None

    @property
    def analyzed_count(self) -> int:
        return self.last_analyzed_index or 0


class Message(_SnapshotModel):
    id: str
    original_text: str
    translated_text: str
    cultural_note: str | None = None
    sender: SenderRole
    timestamp: int
    is_loading_audio: bool = False
    strategy: str | None = None
    reasoning: str | None = None
    status: MessageStatus = MessageStatus.RESOLVED


class Session(_SnapshotModel):
    teacher_name: str = "Teacher"
    preferred_voice: VoiceMode = VoiceMode.AI
    students: list[Subject] = Field(default_factory=list)
    current_student_id: str = ""
    chats: dict[str, list[Message]] = Field(default_factory=dict)

    def find_subject(self, subject_id: str) -> Subject | None:
        for subject in self.students:
            if subject.id == subject_id:
                return subject
        return None

    def messages_for(self, subject_id: str) -> list[Message]:
        return list(self.chats.get(subject_id, []))

    @property
    def current_subject(self) -> Subject | None:
        if not self.current_student_id:
            return None
        return self.find_subject(self.current_student_id)

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class LegacyProfile(_SnapshotModel):
    """Single-student document written by the first release, read once for migration."""

    teacher_name: str = "Teacher"
    preferred_voice: VoiceMode = VoiceMode.AI
    child_name: str = "Student"
    child_language: str = "Spanish"
    child_age: int = 7
    sensitivities: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        # Missing, null, empty and zero values all fall back to the first-release defaults.
        if not value:
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("preferred_voice", mode="before")
    @classmethod
    def _known_voice(cls, value: Any) -> Any:
        if isinstance(value, str) and value not in VoiceMode.__members__:
            return VoiceMode.AI
        return value


class StrategyOption(_SnapshotModel):
    id: str
    strategy: str
    english_text: str
    translated_text: str
    reasoning: str = ""
