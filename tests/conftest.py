from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
CLIENT_DIR = ROOT / "client"
if str(CLIENT_DIR) not in sys.path:
    sys.path.insert(0, str(CLIENT_DIR))

# Test-mode runtime guards:
# - no external adaptation/speech traffic
# - no sound device access
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LLM_PROVIDER", "none")
os.environ.setdefault("GEMINI_API_KEY", "")
os.environ.setdefault("AUDIO_OUTPUT_ENABLED", "false")

from teacheraid.agents.adaptation_client import AdaptationClient  # noqa: E402
from teacheraid.audio.decode import AudioBuffer  # noqa: E402
from teacheraid.audio.output import AudioOutput  # noqa: E402
from teacheraid.core.event_bus import EventBus  # noqa: E402
from teacheraid.core.llm_provider import NullLLMProvider  # noqa: E402
from teacheraid.memory.session_store import SessionStore  # noqa: E402
from teacheraid.memory.store import MemoryKeyValueStore  # noqa: E402
from teacheraid.schemas.adaptation import AdaptResult, GuideBookResult  # noqa: E402
from teacheraid.schemas.session import Session, StrategyOption, Subject  # noqa: E402


class FakeAdaptationClient(AdaptationClient):
    """Scriptable stand-in for the adaptation service; gates let tests hold a call mid-flight."""

    def __init__(self):
        super().__init__(provider=NullLLMProvider())
        self.adapt_calls: list[tuple] = []
        self.adapt_result = AdaptResult(translation="Hola, siéntate por favor.", cultural_note="Friendly tone.")
        self.adapt_error: Exception | None = None
        self.adapt_gate: asyncio.Event | None = None

        self.speech_calls: list[str] = []
        self.speech_payload: bytes | None = None

        self.option_calls: list[tuple] = []
        self.options: list[StrategyOption] = make_options()
        self.options_error: Exception | None = None

        self.analysis_calls: list[tuple] = []
        self.analysis_result = GuideBookResult(guide="## Guide", updated_sensitivities="Prefers visual cues.")
        self.analysis_error: Exception | None = None
        self.analysis_gate: asyncio.Event | None = None

    async def adapt(self, text, sender, subject, teacher_name):
        self.adapt_calls.append((text, sender, subject, teacher_name))
        if self.adapt_gate is not None:
            await self.adapt_gate.wait()
        if self.adapt_error is not None:
            raise self.adapt_error
        return self.adapt_result

    async def synthesize_speech(self, text):
        self.speech_calls.append(text)
        return self.speech_payload

    async def generate_options(self, intent, subject, recent_context, teacher_name):
        self.option_calls.append((intent, subject, list(recent_context), teacher_name))
        if self.options_error is not None:
            raise self.options_error
        return list(self.options)

    async def analyze_profile(self, subject, history):
        self.analysis_calls.append((subject, list(history)))
        if self.analysis_gate is not None:
            await self.analysis_gate.wait()
        if self.analysis_error is not None:
            raise self.analysis_error
        return self.analysis_result


class FakeSpeechEngine:
    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None

    async def speak(self, text: str, locale: str) -> bool:
        self.calls.append((text, locale))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return True


class RecordingOutput(AudioOutput):
    def __init__(self):
        self.buffers: list[AudioBuffer] = []

    async def play(self, buffer: AudioBuffer) -> None:
        self.buffers.append(buffer)


def make_options() -> list[StrategyOption]:
    return [
        StrategyOption(
            id="1",
            strategy="Direct & Gentle",
            english_text="Please sit with us now.",
            translated_text="Por favor, siéntate con nosotros.",
            reasoning="Clear and kind.",
        ),
        StrategyOption(
            id="2",
            strategy="Collaborative",
            english_text="Shall we sit down together?",
            translated_text="¿Nos sentamos juntos?",
            reasoning="Invites participation.",
        ),
        StrategyOption(
            id="3",
            strategy="Metaphorical",
            english_text="Time to land the plane in your seat.",
            translated_text="Es hora de aterrizar el avión en tu silla.",
            reasoning="Playful framing.",
        ),
    ]


def seeded_session() -> Session:
    maria = Subject(id="s1", name="Maria", language="Spanish", age=7, sensitivities="Shy in groups.")
    sam = Subject(id="s2", name="Sam", language="English", age=10, sensitivities="Literal thinker.")
    return Session(
        teacher_name="Ms. Lee",
        students=[maria, sam],
        current_student_id="s1",
        chats={"s1": [], "s2": []},
    )


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def storage() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def store(storage, bus) -> SessionStore:
    session_store = SessionStore(storage, bus)
    session_store.replace(seeded_session())
    return session_store


@pytest.fixture
def fake_client() -> FakeAdaptationClient:
    return FakeAdaptationClient()


@pytest.fixture
def speech_engine() -> FakeSpeechEngine:
    return FakeSpeechEngine()


@pytest.fixture
def audio_output() -> RecordingOutput:
    return RecordingOutput()
