import base64
from abc import ABC, abstractmethod
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import httpx

from teacheraid.core.logging import DOMAIN_ADAPTATION, get_domain_logger
from teacheraid.core.resilience import get_breaker
from teacheraid.core.settings import settings

logger = get_domain_logger(__name__, DOMAIN_ADAPTATION)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


def _estimate_tokens(text: str) -> int:
    # Lightweight deterministic estimate used for observability without provider-specific token APIs.
    return max(1, len((text or "").strip()) // 4)


class BaseLLMProvider(ABC):
    provider_name: str

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        system_instruction: str = "",
        response_schema: dict | None = None,
    ) -> tuple[str | None, dict]:
        raise NotImplementedError

    @abstractmethod
    async def synthesize(self, text: str) -> tuple[bytes | None, dict]:
        raise NotImplementedError


class GeminiLLMProvider(BaseLLMProvider):
    provider_name = "gemini"

    def __init__(
        self,
        model_name: str | None = None,
        tts_model_name: str | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.model_name = model_name or settings.llm_model
        self.tts_model_name = tts_model_name or settings.tts_model
        self.api_key = settings.gemini_api_key if api_key is None else api_key
        self._transport = transport

    @staticmethod
    def _sanitize_url(raw_url: str) -> str:
        parsed = urlparse(raw_url)
        if not parsed.query:
            return raw_url
        filtered = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k.lower() != "key"]
        return urlunparse(parsed._replace(query=urlencode(filtered)))

    def _endpoint(self, model_name: str) -> str:
        api_url = settings.gemini_api_url.strip()
        if api_url:
            return self._sanitize_url(api_url.replace("{model}", model_name))
        return f"{GEMINI_BASE_URL}/{model_name}:generateContent"

    async def _post(self, model_name: str, payload: dict) -> dict:
        async with httpx.AsyncClient(timeout=settings.llm_timeout_seconds, transport=self._transport) as client:
            response = await client.post(
                self._endpoint(model_name),
                json=payload,
                headers={"x-goog-api-key": self.api_key},
            )
            response.raise_for_status()
            return response.json()

    @staticmethod
    def _first_parts(data: dict) -> list[dict]:
        candidates = data.get("candidates") or []
        if not candidates:
            return []
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return [p for p in parts if isinstance(p, dict)]

    async def generate(
        self,
        prompt: str,
        *,
        system_instruction: str = "",
        response_schema: dict | None = None,
    ) -> tuple[str | None, dict]:
        usage = {"provider": self.provider_name, "model": self.model_name}
        if not self.api_key:
            return None, {**usage, "reason": "missing_api_key"}

        breaker = get_breaker(f"llm:{self.provider_name}:{self.model_name}")
        if not breaker.can_execute():
            return None, {**usage, "reason": "circuit_open"}

        generation_config: dict = {"temperature": settings.llm_temperature}
        if response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = response_schema
        payload: dict = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        try:
            data = await self._post(self.model_name, payload)
        except Exception:
            breaker.record_failure()
            raise
        breaker.record_success()

        parts = self._first_parts(data)
        if not parts:
            return None, {**usage, "reason": "no_candidates"}
        text = "\n".join(p.get("text", "") for p in parts).strip()
        usage.update(
            {
                "prompt_tokens_estimate": _estimate_tokens(system_instruction + prompt),
                "completion_tokens_estimate": _estimate_tokens(text),
            }
        )
        return (text or None), usage

    async def synthesize(self, text: str) -> tuple[bytes | None, dict]:
        usage = {"provider": self.provider_name, "model": self.tts_model_name}
        if not self.api_key:
            return None, {**usage, "reason": "missing_api_key"}

        breaker = get_breaker(f"tts:{self.provider_name}:{self.tts_model_name}")
        if not breaker.can_execute():
            return None, {**usage, "reason": "circuit_open"}

        payload = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": settings.tts_voice_name}},
                },
            },
        }
        try:
            data = await self._post(self.tts_model_name, payload)
        except Exception:
            breaker.record_failure()
            raise
        breaker.record_success()

        for part in self._first_parts(data):
            inline = part.get("inlineData") or {}
            encoded = inline.get("data")
            if encoded:
                return base64.b64decode(encoded), {**usage, "mime_type": inline.get("mimeType")}
        return None, {**usage, "reason": "no_audio"}


class NullLLMProvider(BaseLLMProvider):
    provider_name = "none"

    async def generate(
        self,
        prompt: str,
        *,
        system_instruction: str = "",
        response_schema: dict | None = None,
    ) -> tuple[str | None, dict]:
        return None, {
            "provider": self.provider_name,
            "model": "none",
            "prompt_tokens_estimate": _estimate_tokens(system_instruction + prompt),
            "reason": "unsupported_provider",
        }

    async def synthesize(self, text: str) -> tuple[bytes | None, dict]:
        return None, {"provider": self.provider_name, "model": "none", "reason": "unsupported_provider"}


def get_llm_provider() -> BaseLLMProvider:
    provider = (settings.llm_provider or "").lower()
    if provider == "gemini":
        if not settings.gemini_api_key:
            logger.warning("GEMINI_API_KEY is not set; adaptation calls will report unavailable")
        return GeminiLLMProvider()
    return NullLLMProvider()
