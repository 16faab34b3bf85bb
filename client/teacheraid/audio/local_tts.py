from __future__ import annotations

import asyncio
import shutil

from teacheraid.core.event_bus import EventBus
from teacheraid.core.logging import DOMAIN_AUDIO, get_domain_logger
from teacheraid.core.settings import settings

logger = get_domain_logger(__name__, DOMAIN_AUDIO)

# espeak-ng ships these regional voices; everything else is addressed by primary subtag.
_REGIONAL_VOICES = {"en-us", "en-gb", "pt-br", "es-419"}
_VOICE_ALIASES = {"zh": "cmn"}


def espeak_voice(locale: str) -> str:
    tag = (locale or "").strip().lower().replace("_", "-")
    if tag in _REGIONAL_VOICES:
        return tag
    primary = tag.split("-", 1)[0]
    return _VOICE_ALIASES.get(primary, primary)


class LocalSpeechEngine:
    """Speaks text through the espeak-ng command line; completion always resolves."""

    def __init__(self, binary: str | None = None, bus: EventBus | None = None):
        self.binary = binary or settings.local_tts_binary
        self.bus = bus or EventBus()
        self._reported_missing = False

    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    def _report_missing(self) -> None:
        if self._reported_missing:
            return
        self._reported_missing = True
        logger.warning("Local speech engine %r not found; spoken playback is unavailable", self.binary)
        self.bus.publish("speech_unavailable", "local_tts", {"engine": self.binary})

    async def speak(self, text: str, locale: str) -> bool:
        """Return True when the engine ran to completion; False on any engine problem."""
        executable = shutil.which(self.binary)
        if executable is None:
            self._report_missing()
            return False
        try:
            proc = await asyncio.create_subprocess_exec(
                executable,
                "-v",
                espeak_voice(locale),
                "--stdin",
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await proc.communicate(text.encode("utf-8"))
        except OSError as exc:
            logger.error("Local TTS error: %s", exc)
            return False
        if proc.returncode != 0:
            logger.error("Local TTS exited with %s: %s", proc.returncode, (stderr or b"").decode(errors="replace").strip())
            return False
        return True
