"""Stage 1: identify wines in the image."""

import logging
from typing import Any, Dict, List, Optional

from winelens.ai.client import AIClient
from winelens.ai.prompts import EXTRACTION_PROMPT
from winelens.analysis.decode import decode_json_array
from winelens.jobs.models import Item

logger = logging.getLogger(__name__)

# Canonical field -> accepted keys, in priority order
FIELD_ALIASES = {
    "name": ("name", "wine_name", "wineName"),
    "vintage": ("vintage", "year"),
    "producer": ("producer", "winery"),
    "region": ("region", "country"),
    "varietal": ("varietal", "grape_variety", "grapeVariety"),
}


def _first_value(raw: Dict[str, Any], keys) -> Optional[str]:
    for key in keys:
        value = raw.get(key)
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def normalize_items(raw_items: List[Dict[str, Any]], max_items: int = 10) -> List[Item]:
    """Map loosely-keyed model output onto Items; nameless entries are dropped."""
    items = []
    for raw in raw_items:
        fields = {field: _first_value(raw, keys) for field, keys in FIELD_ALIASES.items()}
        if not fields["name"]:
            continue
        items.append(Item(**fields))
        if len(items) >= max_items:
            break
    return items


async def extract_items(
    ai: AIClient,
    image_url: str,
    max_items: int = 10,
    log_prefix: str = "",
) -> List[Item]:
    """Ask the vision model for the wines in the image.

    Collaborator errors propagate; undecodable output yields [].
    """
    content = await ai.complete(
        EXTRACTION_PROMPT.format(max_items=max_items),
        image_url=image_url,
        max_tokens=800,
        temperature=0.5,
    )
    logger.debug(f"{log_prefix}Raw vision response: {content!r}")
    items = normalize_items(decode_json_array(content), max_items=max_items)
    logger.info(f"{log_prefix}Identified {len(items)} wine(s)")
    return items
