import asyncio

import pytest

from helpers import FakeAI
from winelens.analysis.enrichment import (
    FALLBACK_SCORE,
    apply_profile,
    enrich_items,
    extract_rating,
    parse_review_snippets,
)
from winelens.jobs.models import Item


@pytest.mark.parametrize("text,expected", [
    ("Stunning wine. 94 points.", 94),
    ("Scored 88/100 by the panel", 88),
    ("Community rating 4.5/5", 90),
    ("Four and a half: 4 stars", 80),
    ("91 pts", 91),
    ("Rated 87 by critics", 87),
    ("Lovely acidity, long finish.", None),
])
def test_extract_rating(text, expected):
    assert extract_rating(text) == expected


def test_parse_review_snippets():
    reviews = parse_review_snippets(
        "Decanter: Elegant and well-balanced. 93 points.\n\n"
        "- Vivino: Juicy cherry fruit.\n"
        "A line without any source marker\n"
    )
    assert [r.source for r in reviews] == ["Decanter", "Vivino", "Review Snippet"]
    assert reviews[0].rating == 93
    assert reviews[1].rating is None
    assert reviews[2].review == "A line without any source marker"


def test_apply_profile_clamps_values():
    item = apply_profile(Item(name="X"), {
        "score": 140,
        "valueRatio": 0,
        "flavorProfile": {"body": 12},
    })
    assert item.score == 100
    assert item.value_ratio == 1
    assert item.flavor_profile["body"] == 10
    assert item.flavor_profile["oak"] == 5


def test_apply_profile_requires_score():
    with pytest.raises(ValueError):
        apply_profile(Item(name="X"), {"summary": "no score here"})


@pytest.mark.asyncio
async def test_enrich_items_success():
    ai = FakeAI()
    items = await enrich_items(ai, [Item(name="Barolo", vintage="2016")], image_url="u")
    item = items[0]
    assert item.error is None
    assert item.score == 92
    assert item.vintage == "2016"
    assert item.pairings == ["Ribeye", "Aged cheddar"]
    assert item.image_url == "u"
    assert item.reviews[0].source == "Wine Enthusiast"
    assert item.reviews[0].rating == 92


@pytest.mark.asyncio
async def test_one_failure_is_isolated_and_order_kept():
    ai = FakeAI(fail_for=["Bravo"], malformed_for=["Charlie"])
    bases = [Item(name="Alpha"), Item(name="Bravo", producer="B Estate"), Item(name="Charlie")]
    items = await enrich_items(ai, bases)

    assert [i.name for i in items] == ["Alpha", "Bravo", "Charlie"]
    assert items[0].error is None
    assert items[1].error and "upstream error" in items[1].error
    assert items[1].producer == "B Estate"
    assert items[1].score == FALLBACK_SCORE
    assert items[2].error is not None


@pytest.mark.asyncio
async def test_timeout_counts_as_item_failure():
    class SlowAI(FakeAI):
        async def complete(self, prompt, **kwargs):
            if "Slow" in prompt:
                await asyncio.sleep(1)
            return await super().complete(prompt, **kwargs)

    items = await enrich_items(SlowAI(), [Item(name="Slow"), Item(name="Fast")], timeout=0.05)
    assert "timed out" in items[0].error
    assert items[1].error is None


@pytest.mark.asyncio
async def test_progress_hook_called_per_item():
    seen = []

    async def hook(done, total):
        seen.append((done, total))

    await enrich_items(FakeAI(), [Item(name="A"), Item(name="B")], on_progress=hook)
    assert sorted(seen) == [(1, 2), (2, 2)]
