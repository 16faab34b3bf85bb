from __future__ import annotations

import uuid
from typing import Any

from teacheraid.agents.adaptation_client import AdaptationClient
from teacheraid.audio.local_tts import LocalSpeechEngine
from teacheraid.audio.output import AudioOutput
from teacheraid.audio.pipeline import AudioPipeline, PlaybackResult
from teacheraid.autonomy.scheduler import ProfileAnalysisScheduler
from teacheraid.core.errors import SessionError
from teacheraid.core.event_bus import EventBus
from teacheraid.core.logging import DOMAIN_SESSION, get_domain_logger
from teacheraid.data.demo_profiles import DEMO_TEACHER_NAME, build_demo
from teacheraid.memory import mutations
from teacheraid.memory.session_store import LoadResult, SessionStore
from teacheraid.memory.store import build_key_value_store
from teacheraid.runtime.strategy_assist import OptionSet, StrategyAssistPipeline
from teacheraid.runtime.translation import TranslationPipeline, now_ms
from teacheraid.schemas.adaptation import GuideBookResult
from teacheraid.schemas.session import Message, SenderRole, Session, Subject, VoiceMode

logger = get_domain_logger(__name__, DOMAIN_SESSION)


class SessionController:
    """Entry point for user actions; wires the store, pipelines, scheduler and audio together."""

    def __init__(
        self,
        store: SessionStore,
        client: AdaptationClient | None = None,
        bus: EventBus | None = None,
        audio_output: AudioOutput | None = None,
        local_engine: LocalSpeechEngine | None = None,
    ):
        self.bus = bus or EventBus()
        self.store = store
        self.client = client or AdaptationClient()
        self.translation = TranslationPipeline(store, self.client, self.bus)
        self.strategy = StrategyAssistPipeline(store, self.client, self.translation, self.bus)
        self.scheduler = ProfileAnalysisScheduler(store, self.client, self.bus)
        self.audio = AudioPipeline(store, self.client, audio_output, local_engine, self.bus)
        self.needs_setup = False

    @classmethod
    def from_settings(cls) -> "SessionController":
        bus = EventBus()
        return cls(SessionStore(build_key_value_store(), bus), bus=bus)

    @property
    def session(self) -> Session:
        return self.store.session

    def start(self) -> LoadResult:
        result = self.store.load()
        self.needs_setup = result.needs_setup
        if result.needs_setup:
            logger.info("No usable saved session; first-run setup required")
        return result

    def _current_subject(self) -> Subject:
        subject = self.session.current_subject
        if subject is None:
            raise SessionError("Select or create a student profile first")
        return subject

    # Messaging

    async def send_message(
        self,
        text: str,
        sender: SenderRole = SenderRole.TEACHER,
        use_assist: bool = False,
    ) -> Message | OptionSet | None:
        """Direct translation returns the resolved Message; assist mode returns the options to choose from
        (or None when it fell back to direct translation)."""
        text = (text or "").strip()
        if not text:
            raise SessionError("Cannot send an empty message")
        subject = self._current_subject()
        sender = SenderRole(sender)
        if sender == SenderRole.TEACHER and use_assist:
            return await self.strategy.propose(text, subject.id)
        return await self.translation.run(text, sender, subject.id)

    def select_option(self, option_id: str) -> Message:
        return self.strategy.select(option_id)

    def cancel_options(self) -> None:
        self.strategy.cancel()

    async def play_audio(self, message_id: str, subject_id: str | None = None) -> PlaybackResult:
        return await self.audio.play(subject_id or self._current_subject().id, message_id)

    # Subjects and settings

    def switch_subject(self, subject_id: str) -> Session:
        previous = self.session.current_student_id
        updated = self.store.apply(mutations.switch_subject, subject_id)
        self.scheduler.on_subject_switch(previous, subject_id)
        return updated

    def create_subject(self, name: str, language: str, age: int = 6, sensitivities: str = "") -> Subject:
        if not name.strip() or not language.strip():
            raise SessionError("A student needs a name and a language")
        subject = Subject(
            id=uuid.uuid4().hex[:9],
            name=name.strip(),
            language=language.strip(),
            age=age,
            sensitivities=sensitivities,
        )
        self.store.apply(mutations.add_subject, subject)
        self.needs_setup = False
        return subject

    def update_subject(self, subject_id: str, **changes: Any) -> Subject:
        session = self.store.apply(mutations.update_subject, subject_id, **changes)
        return session.find_subject(subject_id)

    def delete_subject(self, subject_id: str) -> Session:
        session = self.store.apply(mutations.delete_subject, subject_id)
        pending = self.strategy.pending
        if pending is not None and pending.subject_id == subject_id:
            self.strategy.cancel()
        return session

    def update_teacher(self, teacher_name: str | None = None, preferred_voice: VoiceMode | str | None = None) -> Session:
        return self.store.apply(mutations.set_teacher, teacher_name=teacher_name, preferred_voice=preferred_voice)

    async def generate_guide(self, subject_id: str | None = None) -> GuideBookResult:
        return await self.scheduler.analyze_now(subject_id or self._current_subject().id)

    def load_demo(self, kind: str) -> Subject:
        subject, messages = build_demo(kind, now_ms())
        self.store.apply(mutations.merge_demo, subject, messages, DEMO_TEACHER_NAME)
        self.needs_setup = False
        return subject

    # Backup

    def export_session(self) -> str:
        return self.store.export_document()

    def import_session(self, raw: str) -> Session:
        session = self.store.import_document(raw)
        self.strategy.cancel()
        self.needs_setup = False
        return session

    async def shutdown(self) -> None:
        await self.scheduler.wait_idle()
