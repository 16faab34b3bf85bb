from __future__ import annotations

import time
import uuid

from teacheraid.agents.adaptation_client import AdaptationClient
from teacheraid.core.errors import SessionError
from teacheraid.core.event_bus import EventBus
from teacheraid.core.logging import DOMAIN_ADAPTATION, get_domain_logger
from teacheraid.memory import mutations
from teacheraid.memory.session_store import SessionStore
from teacheraid.schemas.session import FAILED_TEXT, PENDING_TEXT, Message, MessageStatus, SenderRole

logger = get_domain_logger(__name__, DOMAIN_ADAPTATION)


def new_message_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


class TranslationPipeline:
    """Optimistic insert of a pending message, then a keyed patch once the service answers."""

    def __init__(self, store: SessionStore, client: AdaptationClient, bus: EventBus | None = None):
        self.store = store
        self.client = client
        self.bus = bus or EventBus()

    async def run(self, text: str, sender: SenderRole, subject_id: str) -> Message:
        session = self.store.session
        subject = session.find_subject(subject_id)
        if subject is None:
            raise SessionError(f"Unknown subject {subject_id!r}")
        teacher_name = session.teacher_name

        pending = Message(
            id=new_message_id(),
            original_text=text,
            translated_text=PENDING_TEXT,
            sender=SenderRole(sender),
            timestamp=now_ms(),
            status=MessageStatus.PENDING,
        )
        self.store.apply(mutations.append_message, subject_id, pending)
        self.bus.publish("message_appended", "translation", {"subject_id": subject_id, "message_id": pending.id})

        try:
            result = await self.client.adapt(text, pending.sender, subject, teacher_name)
        except Exception as exc:  # noqa: BLE001
            logger.error("Translation failed for message %s: %s", pending.id, exc)
            self.store.apply(
                mutations.patch_message,
                subject_id,
                pending.id,
                translated_text=FAILED_TEXT,
                cultural_note=None,
                status=MessageStatus.FAILED,
            )
            self.bus.publish("message_failed", "translation", {"subject_id": subject_id, "message_id": pending.id})
        else:
            self.store.apply(
                mutations.patch_message,
                subject_id,
                pending.id,
                translated_text=result.translation,
                cultural_note=result.cultural_note or None,
                status=MessageStatus.RESOLVED,
            )
            self.bus.publish("message_resolved", "translation", {"subject_id": subject_id, "message_id": pending.id})

        return self._current(subject_id, pending)

    def _current(self, subject_id: str, fallback: Message) -> Message:
        for message in self.store.session.chats.get(subject_id, []):
            if message.id == fallback.id:
                return message
        return fallback
