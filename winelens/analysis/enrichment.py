"""Stage 2: per-wine enrichment, fanned out one task per wine.

Each wine gets an AI-estimated profile (score, summary, pairings, price,
value, flavor profile) and a handful of review snippets. Ratings quoted
in snippets are pulled out with regexes. A failure inside one wine's task
degrades that wine only.
"""

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional

from winelens.ai.client import AIClient
from winelens.ai.prompts import PROFILE_PROMPT, REVIEWS_PROMPT, REVIEWS_SYSTEM
from winelens.analysis.decode import decode_json_object
from winelens.jobs.models import Item, Review

logger = logging.getLogger(__name__)

FLAVOR_KEYS = ("fruitiness", "acidity", "tannin", "body", "sweetness", "oak")

FALLBACK_SCORE = 0
FALLBACK_SUMMARY = "Details could not be generated for this wine."
FALLBACK_PRICE = "N/A"
FALLBACK_VALUE_RATIO = 5.0
FALLBACK_VALUE_ASSESSMENT = "Value could not be assessed."
NEUTRAL_FLAVOR = 5.0

# (pattern, scale) where scale converts the match to 0-100
RATING_PATTERNS = [
    (re.compile(r"(\d{1,3})\s*/\s*100", re.I), 1.0),
    (re.compile(r"(\d(?:\.\d)?)\s*/\s*5\b", re.I), 20.0),
    (re.compile(r"(\d{1,3})\s*pts\b", re.I), 1.0),
    (re.compile(r"(\d{1,3})\s*points\b", re.I), 1.0),
    (re.compile(r"(\d(?:\.\d)?)\s*stars\b", re.I), 20.0),
    (re.compile(r"rated\s*(\d{1,3})", re.I), 1.0),
]

ProgressHook = Callable[[int, int], Awaitable[None]]


def extract_rating(text: str) -> Optional[int]:
    """First rating quoted in text, normalized to 0-100."""
    for pattern, scale in RATING_PATTERNS:
        match = pattern.search(text)
        if match:
            score = round(float(match.group(1)) * scale)
            return max(0, min(score, 100))
    return None


def parse_review_snippets(text: str) -> List[Review]:
    """One snippet per non-empty line, 'Source: review text'."""
    reviews = []
    for line in (text or "").splitlines():
        line = line.strip().lstrip("-*• ").strip()
        if not line:
            continue
        source, sep, body = line.partition(":")
        if sep and body.strip() and len(source) <= 40:
            source, body = source.strip(), body.strip()
        else:
            source, body = "Review Snippet", line
        reviews.append(Review(source=source, review=body, rating=extract_rating(body)))
    return reviews


def _clamp(value: Any, low: float, high: float) -> float:
    number = float(value)
    return max(low, min(number, high))


def apply_profile(item: Item, profile: Dict[str, Any]) -> Item:
    """Merge a decoded profile into item. Raises ValueError when the score is unusable."""
    if "score" not in profile:
        raise ValueError("Profile response has no score")
    item.score = int(round(_clamp(profile["score"], 0, 100)))
    item.summary = str(profile.get("summary") or FALLBACK_SUMMARY)

    pairings = profile.get("pairings") or []
    if isinstance(pairings, str):
        pairings = [p.strip() for p in pairings.split(",") if p.strip()]
    item.pairings = [str(p) for p in pairings]

    item.estimated_price = str(profile.get("estimatedPrice") or FALLBACK_PRICE)
    ratio = profile.get("valueRatio")
    item.value_ratio = _clamp(ratio, 1, 10) if ratio is not None else FALLBACK_VALUE_RATIO
    item.value_assessment = str(profile.get("valueAssessment") or FALLBACK_VALUE_ASSESSMENT)

    flavor = profile.get("flavorProfile") or {}
    item.flavor_profile = {
        key: _clamp(flavor.get(key, NEUTRAL_FLAVOR), 1, 10) for key in FLAVOR_KEYS
    }
    return item


def fallback_item(base: Item, image_url: Optional[str], error: str) -> Item:
    item = base.identification()
    item.score = FALLBACK_SCORE
    item.summary = FALLBACK_SUMMARY
    item.estimated_price = FALLBACK_PRICE
    item.value_ratio = FALLBACK_VALUE_RATIO
    item.value_assessment = FALLBACK_VALUE_ASSESSMENT
    item.flavor_profile = {key: NEUTRAL_FLAVOR for key in FLAVOR_KEYS}
    item.image_url = image_url
    item.error = error
    return item


async def fetch_profile(ai: AIClient, item: Item) -> Dict[str, Any]:
    content = await ai.complete(
        PROFILE_PROMPT.format(description=item.describe()),
        json_mode=True,
        max_tokens=800,
        temperature=0.7,
    )
    return decode_json_object(content)


async def fetch_reviews(ai: AIClient, item: Item) -> List[Review]:
    content = await ai.complete(
        REVIEWS_PROMPT.format(description=item.describe()),
        system=REVIEWS_SYSTEM,
        max_tokens=500,
        temperature=0.7,
    )
    return parse_review_snippets(content)


async def enrich_item(ai: AIClient, base: Item, image_url: Optional[str] = None) -> Item:
    """Enrich one wine. Raises on any collaborator or decode failure."""
    profile, reviews = await asyncio.gather(
        fetch_profile(ai, base),
        fetch_reviews(ai, base),
    )
    item = apply_profile(base.identification(), profile)
    item.reviews = reviews
    item.image_url = image_url
    return item


async def enrich_items(
    ai: AIClient,
    items: List[Item],
    image_url: Optional[str] = None,
    timeout: Optional[float] = None,
    on_progress: Optional[ProgressHook] = None,
    log_prefix: str = "",
) -> List[Item]:
    """Enrich all wines concurrently. Result order matches input order."""
    total = len(items)
    done = 0

    async def run_one(base: Item) -> Item:
        nonlocal done
        try:
            coro = enrich_item(ai, base, image_url)
            if timeout:
                result = await asyncio.wait_for(coro, timeout=timeout)
            else:
                result = await coro
        except asyncio.TimeoutError:
            logger.warning(f"{log_prefix}Enrichment timed out for {base.name}")
            result = fallback_item(base, image_url, f"Enrichment timed out after {timeout}s")
        except Exception as exc:
            logger.warning(f"{log_prefix}Enrichment failed for {base.name}: {exc}")
            result = fallback_item(
                base, image_url, f"Failed to process complete data: {exc}"
            )
        done += 1
        if on_progress is not None:
            await on_progress(done, total)
        return result

    return list(await asyncio.gather(*(run_one(item) for item in items)))
