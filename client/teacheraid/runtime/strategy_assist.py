from __future__ import annotations

from dataclasses import dataclass

from teacheraid.agents.adaptation_client import AdaptationClient
from teacheraid.core.errors import SessionError, StrategyError
from teacheraid.core.event_bus import EventBus
from teacheraid.core.logging import DOMAIN_ADAPTATION, get_domain_logger
from teacheraid.core.settings import settings
from teacheraid.memory import mutations
from teacheraid.memory.session_store import SessionStore
from teacheraid.runtime.translation import TranslationPipeline, new_message_id, now_ms
from teacheraid.schemas.session import Message, MessageStatus, SenderRole, StrategyOption

logger = get_domain_logger(__name__, DOMAIN_ADAPTATION)

OPTIONS_PER_REQUEST = 3


@dataclass(frozen=True)
class OptionSet:
    subject_id: str
    intent: str
    options: tuple[StrategyOption, ...]


class StrategyAssistPipeline:
    """Turns a teacher's intent into three phrasings and commits at most one of them."""

    def __init__(
        self,
        store: SessionStore,
        client: AdaptationClient,
        translation: TranslationPipeline,
        bus: EventBus | None = None,
    ):
        self.store = store
        self.client = client
        self.translation = translation
        self.bus = bus or EventBus()
        self._pending: OptionSet | None = None

    @property
    def pending(self) -> OptionSet | None:
        return self._pending

    async def propose(self, intent: str, subject_id: str) -> OptionSet | None:
        """Return the option set, or None after falling back to a direct translation."""
        session = self.store.session
        subject = session.find_subject(subject_id)
        if subject is None:
            raise SessionError(f"Unknown subject {subject_id!r}")
        recent = session.messages_for(subject_id)[-settings.strategy_context_messages:]

        try:
            options = await self.client.generate_options(intent, subject, recent, session.teacher_name)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Option generation failed, switching to direct translation: %s", exc)
            options = []

        if len(options) != OPTIONS_PER_REQUEST:
            if options:
                logger.warning("Expected %s options, got %s; using direct translation", OPTIONS_PER_REQUEST, len(options))
            self.bus.publish("options_failed", "strategy_assist", {"subject_id": subject_id})
            await self.translation.run(intent, SenderRole.TEACHER, subject_id)
            return None

        self._pending = OptionSet(subject_id=subject_id, intent=intent, options=tuple(options))
        self.bus.publish(
            "options_ready",
            "strategy_assist",
            {"subject_id": subject_id, "strategies": [o.strategy for o in options]},
        )
        return self._pending

    def select(self, option_id: str) -> Message:
        pending = self._pending
        if pending is None:
            raise StrategyError("No options are waiting for a choice")
        if self.store.session.find_subject(pending.subject_id) is None:
            self.cancel()
            raise StrategyError(f"Student {pending.subject_id!r} was removed; the options were discarded")
        chosen = next((o for o in pending.options if o.id == option_id), None)
        if chosen is None:
            raise StrategyError(f"Option {option_id!r} is not part of the pending set")

        message = Message(
            id=new_message_id(),
            original_text=chosen.english_text,
            translated_text=chosen.translated_text,
            cultural_note=f"{chosen.strategy} approach.",
            sender=SenderRole.TEACHER,
            timestamp=now_ms(),
            strategy=chosen.strategy,
            reasoning=chosen.reasoning,
            status=MessageStatus.RESOLVED,
        )
        # Append first so a failed commit leaves the set pending.
        self.store.apply(mutations.append_message, pending.subject_id, message)
        self._pending = None
        self.bus.publish(
            "options_cleared",
            "strategy_assist",
            {"subject_id": pending.subject_id, "selected": chosen.id, "message_id": message.id},
        )
        return message

    def cancel(self) -> None:
        if self._pending is None:
            return
        subject_id = self._pending.subject_id
        self._pending = None
        self.bus.publish("options_cleared", "strategy_assist", {"subject_id": subject_id, "selected": None})
