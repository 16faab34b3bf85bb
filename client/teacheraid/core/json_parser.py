import json
import re
from typing import Any

# ```json ... ``` (or a bare ``` fence) around the payload.
_FENCE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)
_decoder = json.JSONDecoder()


def _first_json_value(text: str) -> Any:
    # Scan for the first position where a complete object or array decodes.
    for index, char in enumerate(text):
        if char not in "{[":
            continue
        try:
            value, _ = _decoder.raw_decode(text, index)
        except ValueError:
            continue
        return value
    return None


def parse_llm_json(text: str) -> Any:
    """Decode model output that should be JSON but may arrive fenced or wrapped in prose.

    Returns {} when nothing decodable is found.
    """
    if not text:
        return {}
    candidate = text.strip()
    fenced = _FENCE.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()
    try:
        return json.loads(candidate)
    except ValueError:
        pass
    value = _first_json_value(candidate)
    return {} if value is None else value


def parse_llm_object(text: str) -> dict:
    """Like parse_llm_json, but anything other than a JSON object comes back as {}."""
    parsed = parse_llm_json(text)
    return parsed if isinstance(parsed, dict) else {}
