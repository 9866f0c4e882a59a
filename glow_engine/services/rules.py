"""Keyword rule tables used by the classifier, the synthesizer and the scorer.

Each table is ordered: the first entry whose keywords match wins.
"""

from __future__ import annotations

from typing import Optional


Rule = tuple[str, tuple[str, ...]]


TOPIC_RULES: tuple[Rule, ...] = (
    ("routine", ("routine", "step")),
    ("products", ("product", "recommend")),
    ("ingredients", ("ingredient", "chemical")),
    ("skin-analysis", ("skin", "concern")),
    ("concerns", ("acne", "wrinkle", "dark spot")),
)
DEFAULT_TOPIC = "general"

# Positive is checked before negative, so a mixed message resolves positive.
SENTIMENT_RULES: tuple[Rule, ...] = (
    ("positive", ("good", "great", "love", "happy", "better", "improved", "thank")),
    ("negative", ("bad", "worse", "hate", "problem", "issue", "concern", "worried")),
)
DEFAULT_SENTIMENT = "neutral"

COMPLEXITY_RULES: tuple[Rule, ...] = (
    ("simple", ("simple", "quick", "brief")),
    ("detailed", ("detail", "explain", "why")),
)
DEFAULT_COMPLEXITY = "moderate"

INTENT_RULES: tuple[Rule, ...] = (
    ("learning", ("how", "what")),
    ("recommendation", ("recommend", "suggest")),
    ("troubleshooting", ("help", "problem")),
    ("comparison", ("compare", "difference")),
)
DEFAULT_INTENT = "information"


def first_match(text: str, rules: tuple[Rule, ...], default: str) -> str:
    lowered = text.lower()
    for label, keywords in rules:
        if any(k in lowered for k in keywords):
            return label
    return default


TOPIC_SUGGESTIONS: dict[str, tuple[str, ...]] = {
    "routine": ("Show me routine examples", "Check for ingredient conflicts", "Optimize my routine order"),
    "products": ("Find products for my skin type", "Compare similar products", "Show ingredient analysis"),
    "ingredients": ("Explain this ingredient", "Check ingredient safety", "Find products with this ingredient"),
    "skin-analysis": ("Update my skin profile", "Track my progress", "Get personalized recommendations"),
    "concerns": ("Find treatments for this concern", "Learn about prevention", "See success stories"),
    "general": ("Tell me about my skin type", "Recommend a routine", "Find products for me"),
}


# Concern labels come from the quiz ("Acne & Breakouts") or from slugs ("acne").
CONCERN_KEYWORDS: tuple[Rule, ...] = (
    ("acne", ("acne", "breakout")),
    ("dark-spots", ("dark spot", "dark-spot", "hyperpigmentation", "pigment")),
    ("wrinkles", ("wrinkle", "fine line", "aging", "ageing")),
    ("dryness", ("dry", "dehydrat")),
    ("sensitivity", ("sensitiv", "redness")),
)


def canonical_concern(label: str) -> Optional[str]:
    text = (label or "").strip().lower()
    if not text:
        return None
    for key, keywords in CONCERN_KEYWORDS:
        if text == key or any(k in text for k in keywords):
            return key
    return None


CONCERN_ADVICE: dict[str, dict[str, str]] = {
    "acne": {
        "simple": "focus on salicylic acid and benzoyl peroxide.",
        "full": (
            "I recommend ingredients like salicylic acid for exfoliation, niacinamide for inflammation, "
            "and benzoyl peroxide for bacteria control."
        ),
    },
    "dark-spots": {
        "simple": "vitamin C and niacinamide work well.",
        "full": "look for vitamin C, niacinamide, and alpha arbutin to brighten and even skin tone over time.",
    },
    "wrinkles": {
        "simple": "retinol is highly effective.",
        "full": "retinol, peptides, and hyaluronic acid can help reduce fine lines and improve skin texture.",
    },
    "dryness": {
        "simple": "hyaluronic acid and ceramides help.",
        "full": "focus on hydrating ingredients like hyaluronic acid, ceramides, and glycerin to restore moisture barrier.",
    },
    "sensitivity": {
        "simple": "gentle, fragrance-free products are best.",
        "full": "choose fragrance-free, hypoallergenic products with soothing ingredients like centella and allantoin.",
    },
}
DEFAULT_CONCERN_ADVICE = "I can provide targeted recommendations."


def concern_advice(concern: str, complexity: str) -> str:
    entry = CONCERN_ADVICE.get(canonical_concern(concern) or "")
    if not entry:
        return DEFAULT_CONCERN_ADVICE
    return entry["simple"] if complexity == "simple" else entry["full"]


# Scorer table: concern -> (ingredient keywords, pro string).
CONCERN_INGREDIENTS: dict[str, tuple[tuple[str, ...], str]] = {
    "acne": (("salicylic acid", "benzoyl peroxide", "niacinamide"), "Contains acne-fighting ingredients"),
    "dark-spots": (("vitamin c", "alpha arbutin", "kojic acid"), "Effective for brightening and fading dark spots"),
    "wrinkles": (("retinol", "peptides", "vitamin e"), "Anti-aging ingredients present"),
}
