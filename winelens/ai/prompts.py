"""Prompt templates for extraction and enrichment."""

EXTRACTION_PROMPT = """Analyze this image and identify ALL wines visible, whether they're bottles, labels, or entries on a wine menu/list.

For each wine, extract these details (if available):
- name: The specific name of the wine
- vintage: The year the wine was produced
- producer: The winery or producer
- region: The region or country of origin
- varietal: The grape variety/varieties

List ALL wines visible, up to {max_items} maximum.
Return a JSON array where each object represents a wine with the fields above.
Format: [{{wine1}}, {{wine2}}, ...]. Do not include any markdown formatting or backticks."""


PROFILE_PROMPT = """You are a wine expert. Based on what you know about the following wine: {description}, please provide:

1. A concise single-paragraph summary of the likely characteristics, flavors, and quality of this wine.
2. An estimated rating on a scale of 0-100, using the full range of the scale.
3. Food pairing suggestions (3-5 specific dishes).
4. An estimated price range in USD.
5. A value ratio score from 1-10 where 10 means exceptional value for money.
6. A brief value assessment (1-2 sentences).
7. A flavor profile with scores from 1-10 for: fruitiness, acidity, tannin, body, sweetness, and oak.

Return your response in this JSON format:
{{
  "summary": "...",
  "score": number,
  "pairings": ["dish 1", "dish 2", "dish 3"],
  "estimatedPrice": "$XX - $YY",
  "valueRatio": number,
  "valueAssessment": "...",
  "flavorProfile": {{"fruitiness": n, "acidity": n, "tannin": n, "body": n, "sweetness": n, "oak": n}}
}}

If there's insufficient information, provide reasonable estimates based on the varietal, region, or producer reputation if known."""


REVIEWS_PROMPT = """You are a wine critic with expert knowledge. For the wine "{description}", generate 3-4 realistic review snippets as they would appear on popular wine review sites.

Each snippet MUST begin with the source name followed by a colon (e.g. "Wine Enthusiast: ..."), use one of Vivino, Wine Enthusiast, Decanter, Wine Spectator or James Suckling, and be 1-3 sentences long, sometimes ending with a rating.

Format as plain text with each snippet on its own line."""


REVIEWS_SYSTEM = "You are a sophisticated wine connoisseur who writes concise, honest review snippets."
