from __future__ import annotations

import asyncio

import numpy as np
import pytest

from teacheraid.audio.decode import decode_pcm16
from teacheraid.audio.local_tts import LocalSpeechEngine, espeak_voice
from teacheraid.audio.output import AudioOutput
from teacheraid.audio.pipeline import AudioPipeline, PlaybackSlot
from teacheraid.core.errors import AudioDecodeError
from teacheraid.memory import mutations
from teacheraid.schemas.session import Message, SenderRole, VoiceMode


def _pcm(values) -> bytes:
    return np.array(values, dtype="<i2").tobytes()


def _add(store, subject_id: str, message_id: str, sender: SenderRole = SenderRole.TEACHER) -> Message:
    message = Message(
        id=message_id,
        original_text="Please sit down",
        translated_text="Siéntate por favor" if sender == SenderRole.TEACHER else "I am tired",
        sender=sender,
        timestamp=1,
    )
    store.apply(mutations.append_message, subject_id, message)
    return message


@pytest.fixture
def pipeline(store, fake_client, audio_output, speech_engine, bus) -> AudioPipeline:
    return AudioPipeline(store, fake_client, audio_output, speech_engine, bus)


def test_decode_scales_samples_to_unit_range():
    buffer = decode_pcm16(_pcm([0, 16384, -16384, 32767]), sample_rate=24000, channels=1)
    assert buffer.sample_rate == 24000
    assert buffer.channels == 1
    assert buffer.frames == 4
    assert buffer.samples.dtype == np.float32
    np.testing.assert_allclose(buffer.samples[:, 0], [0.0, 0.5, -0.5, 32767 / 32768], rtol=1e-6)
    assert buffer.duration_seconds == pytest.approx(4 / 24000)


def test_decode_interleaved_stereo_frames():
    buffer = decode_pcm16(_pcm([16384, -16384, 0, 32767]), channels=2)
    assert buffer.frames == 2
    np.testing.assert_allclose(buffer.samples[0], [0.5, -0.5], rtol=1e-6)


@pytest.mark.parametrize("payload", [b"", b"\x01\x02\x03"])
def test_decode_rejects_partial_or_empty_payloads(payload):
    with pytest.raises(AudioDecodeError):
        decode_pcm16(payload)


def test_playback_slot_has_single_owner():
    slot = PlaybackSlot()
    assert slot.try_acquire("a")
    assert not slot.try_acquire("b")
    slot.release("b")
    assert slot.owner == "a"
    slot.release("a")
    assert slot.try_acquire("b")


def test_espeak_voice_selection():
    assert espeak_voice("es-ES") == "es"
    assert espeak_voice("en-US") == "en-us"
    assert espeak_voice("pt-BR") == "pt-br"
    assert espeak_voice("zh-CN") == "cmn"
    assert espeak_voice("Klingon") == "klingon"


@pytest.mark.asyncio
async def test_remote_speech_is_decoded_and_played(store, fake_client, audio_output, speech_engine, pipeline, bus):
    _add(store, "s1", "m1")
    fake_client.speech_payload = _pcm([0, 16384, -16384, 32767])

    result = await pipeline.play("s1", "m1")

    assert result.outcome == "remote"
    assert fake_client.speech_calls == ["Siéntate por favor"]
    assert len(audio_output.buffers) == 1
    assert audio_output.buffers[0].frames == 4
    assert speech_engine.calls == []
    assert store.session.messages_for("s1")[0].is_loading_audio is False
    assert [e["data"].get("outcome") for e in bus.history("playback_finished")] == ["remote"]


@pytest.mark.asyncio
async def test_loading_flag_set_only_while_remote_request_is_outstanding(store, fake_client, pipeline):
    _add(store, "s1", "m1")
    seen: list[bool] = []

    async def capture(text):
        seen.append(store.session.messages_for("s1")[0].is_loading_audio)
        return None

    fake_client.synthesize_speech = capture
    await pipeline.play("s1", "m1")

    assert seen == [True]
    assert store.session.messages_for("s1")[0].is_loading_audio is False


@pytest.mark.asyncio
async def test_missing_remote_audio_falls_back_to_local_once(store, fake_client, audio_output, speech_engine, pipeline):
    _add(store, "s1", "m1")
    fake_client.speech_payload = None

    result = await pipeline.play("s1", "m1")

    assert result.outcome == "local"
    assert speech_engine.calls == [("Siéntate por favor", "es-ES")]
    assert audio_output.buffers == []


@pytest.mark.asyncio
async def test_undecodable_remote_audio_falls_back_to_local(store, fake_client, speech_engine, pipeline):
    _add(store, "s1", "m1")
    fake_client.speech_payload = b"\x01"

    assert (await pipeline.play("s1", "m1")).outcome == "local"
    assert speech_engine.calls == [("Siéntate por favor", "es-ES")]


@pytest.mark.asyncio
async def test_student_reply_is_read_locally_in_english(store, fake_client, speech_engine, pipeline):
    _add(store, "s1", "r1", sender=SenderRole.STUDENT)

    result = await pipeline.play("s1", "r1")

    assert result.outcome == "local"
    assert fake_client.speech_calls == []
    assert speech_engine.calls == [("I am tired", "en-US")]


@pytest.mark.asyncio
async def test_english_subject_uses_local_voice(store, fake_client, speech_engine, pipeline):
    _add(store, "s2", "m1")
    fake_client.speech_payload = _pcm([1, 2])

    assert (await pipeline.play("s2", "m1")).outcome == "local"
    assert fake_client.speech_calls == []
    assert speech_engine.calls == [("Siéntate por favor", "en-US")]


@pytest.mark.asyncio
async def test_local_voice_preference_skips_remote(store, fake_client, speech_engine, pipeline):
    store.apply(mutations.set_teacher, preferred_voice=VoiceMode.LOCAL)
    _add(store, "s1", "m1")
    fake_client.speech_payload = _pcm([1, 2])

    assert (await pipeline.play("s1", "m1")).outcome == "local"
    assert fake_client.speech_calls == []


@pytest.mark.asyncio
async def test_second_request_is_rejected_while_playing(store, speech_engine, pipeline):
    _add(store, "s2", "m1")
    _add(store, "s2", "m2")
    speech_engine.gate = asyncio.Event()

    first = asyncio.create_task(pipeline.play("s2", "m1"))
    await asyncio.sleep(0)
    second = await pipeline.play("s2", "m2")

    assert second.outcome == "rejected"
    speech_engine.gate.set()
    assert (await first).outcome == "local"
    assert speech_engine.calls == [("Siéntate por favor", "en-US")]
    assert pipeline.slot.owner is None


@pytest.mark.asyncio
async def test_slot_released_after_engine_error(store, speech_engine, pipeline):
    _add(store, "s2", "m1")
    speech_engine.error = RuntimeError("engine crashed")

    assert (await pipeline.play("s2", "m1")).outcome == "failed"
    assert pipeline.slot.owner is None

    speech_engine.error = None
    assert (await pipeline.play("s2", "m1")).outcome == "local"


@pytest.mark.asyncio
async def test_unknown_message_fails_without_holding_slot(pipeline):
    assert (await pipeline.play("s1", "missing")).outcome == "failed"
    assert pipeline.slot.owner is None


@pytest.mark.asyncio
async def test_missing_local_engine_reports_once(bus):
    engine = LocalSpeechEngine(binary="teacheraid-no-such-speech-binary", bus=bus)

    assert await engine.speak("hello", "en-US") is False
    assert await engine.speak("hello again", "en-US") is False
    assert len(bus.history("speech_unavailable")) == 1


class FailingOutput(AudioOutput):
    def __init__(self):
        self.attempts = 0

    async def play(self, buffer) -> None:
        self.attempts += 1
        raise OSError("output device unavailable")


@pytest.mark.asyncio
async def test_output_device_error_falls_back_to_local_once(store, fake_client, speech_engine, bus):
    output = FailingOutput()
    pipeline = AudioPipeline(store, fake_client, output, speech_engine, bus)
    _add(store, "s1", "m1")
    fake_client.speech_payload = _pcm([0, 16384])

    result = await pipeline.play("s1", "m1")

    assert result.outcome == "local"
    assert output.attempts == 1
    assert fake_client.speech_calls == ["Siéntate por favor"]
    assert speech_engine.calls == [("Siéntate por favor", "es-ES")]
    assert pipeline.slot.owner is None
    assert store.session.messages_for("s1")[0].is_loading_audio is False
