from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass

from teacheraid.agents.adaptation_client import AdaptationClient
from teacheraid.audio.decode import decode_pcm16
from teacheraid.audio.local_tts import LocalSpeechEngine
from teacheraid.audio.output import AudioOutput, build_audio_output
from teacheraid.core.errors import AudioDecodeError, SessionError
from teacheraid.core.event_bus import EventBus
from teacheraid.core.languages import REFERENCE_LANGUAGE, is_passthrough_language, resolve_locale
from teacheraid.core.logging import DOMAIN_AUDIO, get_domain_logger
from teacheraid.core.settings import settings
from teacheraid.memory import mutations
from teacheraid.memory.session_store import SessionStore
from teacheraid.schemas.session import Message, SenderRole, VoiceMode

logger = get_domain_logger(__name__, DOMAIN_AUDIO)


class PlaybackSlot:
    """Single-owner advisory lock: at most one message is being spoken at a time."""

    def __init__(self):
        self._owner: str | None = None

    @property
    def owner(self) -> str | None:
        return self._owner

    def try_acquire(self, message_id: str) -> bool:
        if self._owner is not None:
            return False
        self._owner = message_id
        return True

    def release(self, message_id: str) -> None:
        if self._owner == message_id:
            self._owner = None


@dataclass(frozen=True)
class PlaybackResult:
    message_id: str
    outcome: str  # "remote" | "local" | "rejected" | "failed"


class AudioPipeline:
    def __init__(
        self,
        store: SessionStore,
        client: AdaptationClient,
        output: AudioOutput | None = None,
        local_engine: LocalSpeechEngine | None = None,
        bus: EventBus | None = None,
    ):
        self.store = store
        self.client = client
        self.bus = bus or EventBus()
        self._output = output
        self.local_engine = local_engine or LocalSpeechEngine(bus=self.bus)
        self.slot = PlaybackSlot()

    @property
    def output(self) -> AudioOutput:
        if self._output is None:
            self._output = build_audio_output()
        return self._output

    @contextmanager
    def _loading(self, subject_id: str, message_id: str):
        self.store.apply(mutations.patch_message, subject_id, message_id, is_loading_audio=True)
        try:
            yield
        finally:
            self.store.apply(mutations.patch_message, subject_id, message_id, is_loading_audio=False)

    async def play(self, subject_id: str, message_id: str) -> PlaybackResult:
        if not self.slot.try_acquire(message_id):
            logger.info("Playback of %s rejected; %s is still playing", message_id, self.slot.owner)
            return PlaybackResult(message_id, "rejected")
        self.bus.publish("playback_started", "audio", {"subject_id": subject_id, "message_id": message_id})
        outcome = "local"
        try:
            session = self.store.session
            subject = session.find_subject(subject_id)
            message = next((m for m in session.chats.get(subject_id, []) if m.id == message_id), None)
            if subject is None or message is None:
                raise SessionError(f"No message {message_id!r} for subject {subject_id!r}")

            if message.sender == SenderRole.STUDENT:
                # Replies are read back to the teacher for comprehension only.
                await self._speak_local(message, REFERENCE_LANGUAGE)
                return PlaybackResult(message_id, outcome)

            use_remote = session.preferred_voice == VoiceMode.AI and not is_passthrough_language(subject.language)
            if use_remote and await self._play_remote(subject_id, message):
                outcome = "remote"
                return PlaybackResult(message_id, outcome)

            await self._speak_local(message, subject.language)
            return PlaybackResult(message_id, outcome)
        except Exception as exc:  # noqa: BLE001
            logger.error("Audio playback error for %s: %s", message_id, exc)
            outcome = "failed"
            return PlaybackResult(message_id, outcome)
        finally:
            self.slot.release(message_id)
            self.bus.publish(
                "playback_finished",
                "audio",
                {"subject_id": subject_id, "message_id": message_id, "outcome": outcome},
            )

    async def _play_remote(self, subject_id: str, message: Message) -> bool:
        with self._loading(subject_id, message.id):
            payload = await self.client.synthesize_speech(message.translated_text)
        if payload is None:
            logger.info("Remote speech unavailable for %s; using local voice", message.id)
            return False
        try:
            buffer = decode_pcm16(payload, settings.audio_sample_rate, settings.audio_channels)
        except AudioDecodeError as exc:
            logger.warning("Could not decode synthesized audio for %s: %s", message.id, exc)
            return False
        try:
            await self.output.play(buffer)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Audio output failed for %s; using local voice: %s", message.id, exc)
            return False
        return True

    async def _speak_local(self, message: Message, language: str) -> None:
        await self.local_engine.speak(message.translated_text, resolve_locale(language))
