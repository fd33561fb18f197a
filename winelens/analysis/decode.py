"""Defensive decoding of AI-emitted structured output.

Model output may arrive wrapped in markdown code fences, as a single object
where an array was asked for, or as prose. These helpers degrade to an empty
result instead of raising.
"""

import json
import logging
import re
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[a-zA-Z]*\s*|\s*```")


def strip_code_fences(text: str) -> str:
    if "```" in text:
        text = _FENCE_RE.sub("", text)
    return text.strip()


def decode_json_array(text: Any) -> List[Dict[str, Any]]:
    """Decode a JSON array of objects; a lone object becomes a one-element list.

    Returns [] on any failure. Non-object elements are dropped.
    """
    if not isinstance(text, str):
        return []
    content = strip_code_fences(text)
    try:
        if content.startswith("["):
            parsed = json.loads(content)
        elif content.startswith("{"):
            parsed = [json.loads(content)]
        else:
            logger.warning(f"Model output is not JSON: {content[:200]!r}")
            return []
    except (json.JSONDecodeError, ValueError) as exc:
        logger.warning(f"Could not parse model output as JSON: {exc}")
        return []

    if isinstance(parsed, dict):
        parsed = [parsed]
    if not isinstance(parsed, list):
        return []
    return [entry for entry in parsed if isinstance(entry, dict)]


def decode_json_object(text: Any) -> Dict[str, Any]:
    """Strict single-object decode. Raises ValueError when no object can be read."""
    if not isinstance(text, str):
        raise ValueError("Model output is not text")
    content = strip_code_fences(text)
    parsed = json.loads(content)
    if isinstance(parsed, list) and len(parsed) == 1:
        parsed = parsed[0]
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
