"""Language name handling shared by prompts, remote synthesis and local speech."""

REFERENCE_LANGUAGE = "English"

# Best-effort mapping from the language names teachers type to BCP 47 tags.
LOCALE_BY_NAME: dict[str, str] = {
    "english": "en-US",
    "spanish": "es-ES",
    "french": "fr-FR",
    "german": "de-DE",
    "italian": "it-IT",
    "japanese": "ja-JP",
    "chinese": "zh-CN",
    "mandarin": "zh-CN",
    "korean": "ko-KR",
    "portuguese": "pt-BR",
    "russian": "ru-RU",
    "arabic": "ar-SA",
    "hindi": "hi-IN",
}


def resolve_locale(language: str) -> str:
    """Map a language name to a locale tag; unknown names are returned unchanged."""
    normalized = (language or "").strip().lower()
    return LOCALE_BY_NAME.get(normalized, language)


def is_passthrough_language(language: str) -> bool:
    # Same-language subjects get adaptation rather than translation.
    return REFERENCE_LANGUAGE.lower() in (language or "").lower()
