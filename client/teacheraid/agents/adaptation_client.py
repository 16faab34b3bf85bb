from __future__ import annotations

import json

import httpx
from pydantic import ValidationError

from teacheraid.agents import prompts
from teacheraid.core.errors import AdaptationError
from teacheraid.core.json_parser import parse_llm_object
from teacheraid.core.llm_provider import BaseLLMProvider, get_llm_provider
from teacheraid.core.logging import DOMAIN_ADAPTATION, get_domain_logger
from teacheraid.schemas.adaptation import (
    GUIDE_BOOK_SCHEMA,
    OPTIONS_SCHEMA,
    TRANSLATION_SCHEMA,
    AdaptResult,
    GuideBookResult,
)
from teacheraid.schemas.session import Message, SenderRole, StrategyOption, Subject

logger = get_domain_logger(__name__, DOMAIN_ADAPTATION)


class AdaptationClient:
    """Stateless request/response calls against the language-adaptation service."""

    def __init__(self, provider: BaseLLMProvider | None = None):
        self.provider = provider or get_llm_provider()

    async def _generate_object(self, operation: str, prompt: str, system_instruction: str, schema: dict) -> dict:
        try:
            text, usage = await self.provider.generate(
                prompt,
                system_instruction=system_instruction,
                response_schema=schema,
            )
        except httpx.HTTPError as exc:
            raise AdaptationError(f"{operation}: transport error {type(exc).__name__}") from exc
        logger.info(json.dumps({"type": "llm_usage", "operation": operation, "usage": usage}))
        if not text:
            raise AdaptationError(f"{operation}: no response ({usage.get('reason', 'empty')})")
        payload = parse_llm_object(text)
        if not payload:
            raise AdaptationError(f"{operation}: response was not a JSON object")
        return payload

    async def adapt(self, text: str, sender: SenderRole, subject: Subject, teacher_name: str) -> AdaptResult:
        payload = await self._generate_object(
            "adapt",
            text,
            prompts.translation_instruction(teacher_name, subject, SenderRole(sender)),
            TRANSLATION_SCHEMA,
        )
        try:
            result = AdaptResult.model_validate(payload)
        except ValidationError as exc:
            raise AdaptationError("adapt: response is missing 'translation'") from exc
        if not result.translation.strip():
            raise AdaptationError("adapt: empty translation")
        return result

    async def synthesize_speech(self, text: str) -> bytes | None:
        """Return raw PCM bytes, or None when remote speech is unavailable for any reason."""
        try:
            audio, usage = await self.provider.synthesize(text)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Remote speech synthesis failed, falling back: %s", type(exc).__name__)
            return None
        if audio is None:
            logger.info("Remote speech unavailable: %s", usage.get("reason", "unknown"))
        return audio

    async def generate_options(
        self,
        intent: str,
        subject: Subject,
        recent_context: list[Message],
        teacher_name: str,
    ) -> list[StrategyOption]:
        payload = await self._generate_object(
            "generate_options",
            f'Teacher Intent: "{intent}"',
            prompts.options_instruction(teacher_name, subject, recent_context[-5:]),
            OPTIONS_SCHEMA,
        )
        raw_options = payload.get("options")
        if not isinstance(raw_options, list):
            return []
        options: list[StrategyOption] = []
        for index, raw in enumerate(raw_options, start=1):
            if not isinstance(raw, dict):
                return []
            try:
                # Positional ids; the service's own ids are not guaranteed unique.
                options.append(StrategyOption.model_validate({**raw, "id": str(index)}))
            except ValidationError:
                logger.warning("Discarding option set: option %s is malformed", index)
                return []
        return options

    async def analyze_profile(self, subject: Subject, history: list[Message]) -> GuideBookResult:
        payload = await self._generate_object(
            "analyze_profile",
            "Analyze profile and chats.",
            prompts.guide_book_instruction(subject, history),
            GUIDE_BOOK_SCHEMA,
        )
        try:
            return GuideBookResult.model_validate(payload)
        except ValidationError as exc:
            raise AdaptationError("analyze_profile: response is missing guide fields") from exc
