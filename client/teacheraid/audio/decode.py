from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from teacheraid.core.errors import AudioDecodeError

PCM16_FULL_SCALE = 32768.0


@dataclass(frozen=True)
class AudioBuffer:
    samples: np.ndarray  # float32, shape (frames, channels), values in [-1.0, 1.0)
    sample_rate: int

    @property
    def channels(self) -> int:
        return int(self.samples.shape[1])

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration_seconds(self) -> float:
        return self.frames / float(self.sample_rate)


def decode_pcm16(payload: bytes, sample_rate: int = 24000, channels: int = 1) -> AudioBuffer:
    """Decode interleaved 16-bit little-endian signed PCM into a float buffer."""
    if sample_rate <= 0 or channels <= 0:
        raise AudioDecodeError(f"Invalid layout: {sample_rate} Hz, {channels} channel(s)")
    if not payload:
        raise AudioDecodeError("Empty audio payload")
    if len(payload) % (2 * channels):
        raise AudioDecodeError(f"Payload of {len(payload)} bytes is not whole {channels}-channel 16-bit frames")
    pcm = np.frombuffer(payload, dtype="<i2")
    samples = (pcm.astype(np.float32) / PCM16_FULL_SCALE).reshape(-1, channels)
    return AudioBuffer(samples=samples, sample_rate=sample_rate)
