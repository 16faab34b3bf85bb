from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from teacheraid.audio.decode import AudioBuffer
from teacheraid.core.logging import DOMAIN_AUDIO, get_domain_logger
from teacheraid.core.settings import settings

logger = get_domain_logger(__name__, DOMAIN_AUDIO)


class AudioOutput(ABC):
    @abstractmethod
    async def play(self, buffer: AudioBuffer) -> None:
        """Play the buffer and return once playback has ended."""
        raise NotImplementedError


class SoundDeviceOutput(AudioOutput):
    """Speaker output through sounddevice, opened on first use rather than at import."""

    def __init__(self, device: int | str | None = None):
        self.device = device
        self._sd = None

    def _backend(self):
        if self._sd is None:
            import sounddevice as sd

            self._sd = sd
            logger.info("Audio output initialised (device=%s)", self.device if self.device is not None else "default")
        return self._sd

    async def play(self, buffer: AudioBuffer) -> None:
        sd = self._backend()
        await asyncio.to_thread(
            sd.play,
            buffer.samples,
            samplerate=buffer.sample_rate,
            device=self.device,
            blocking=True,
        )


class NullAudioOutput(AudioOutput):
    """Headless stand-in used when audio output is disabled."""

    async def play(self, buffer: AudioBuffer) -> None:
        logger.info("Audio output disabled; skipping %.2fs of audio", buffer.duration_seconds)


def build_audio_output() -> AudioOutput:
    if settings.audio_output_enabled:
        return SoundDeviceOutput()
    return NullAudioOutput()
