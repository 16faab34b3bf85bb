from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _ServiceModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AdaptResult(_ServiceModel):
    translation: str
    cultural_note: str | None = None


class GuideBookResult(_ServiceModel):
    guide: str
    updated_sensitivities: str


# Response schemas handed to the service so it answers in JSON mode.
TRANSLATION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "translation": {"type": "STRING", "description": "The translated or adapted message."},
        "culturalNote": {"type": "STRING", "description": "Explanation or insight."},
    },
    "required": ["translation"],
}

GUIDE_BOOK_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "guide": {"type": "STRING", "description": "Markdown formatted guide book."},
        "updatedSensitivities": {"type": "STRING", "description": "The revised sensitivities text."},
    },
    "required": ["guide", "updatedSensitivities"],
}

OPTIONS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "options": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "id": {"type": "STRING", "description": "Unique ID (1, 2, 3)"},
                    "strategy": {"type": "STRING", "description": "Strategy label"},
                    "englishText": {"type": "STRING", "description": "The message in English"},
                    "translatedText": {
                        "type": "STRING",
                        "description": "The message in target language/adaptation",
                    },
                    "reasoning": {"type": "STRING", "description": "Why this works"},
                },
                "required": ["id", "strategy", "englishText", "translatedText", "reasoning"],
            },
        }
    },
}
