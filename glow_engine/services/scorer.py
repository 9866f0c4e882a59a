from __future__ import annotations

import random
from typing import Iterable, Optional, Sequence

from glow_engine.models import (
    BehaviorPatterns,
    Candidate,
    ConceptRecommendation,
    PersonalizedRecommendation,
    ScoredCandidate,
    UserProfile,
)
from glow_engine.services.rules import CONCERN_INGREDIENTS, canonical_concern


BASE_SCORE = 50
CONCERN_MATCH_BONUS = 20
SENSITIVITY_PENALTY = 30
PREFERENCE_BONUS = 10
MIN_SCORE = 0
MAX_SCORE = 100

FEATURED_BOOST = 5
VIEWED_BOOST = 3
VARIETY_WINDOW = 5


def _clamp(score: float) -> int:
    return int(max(MIN_SCORE, min(MAX_SCORE, round(score))))


def _lowered(values: Iterable[str]) -> list[str]:
    return [str(v).strip().lower() for v in values if str(v).strip()]


def _score_one(profile: UserProfile, candidate: Candidate) -> ScoredCandidate:
    ingredients = _lowered(candidate.ingredients)
    score = BASE_SCORE
    pros: list[str] = []
    cons: list[str] = []

    for concern in profile.concerns:
        entry = CONCERN_INGREDIENTS.get(canonical_concern(concern) or "")
        if not entry:
            continue
        keywords, pro = entry
        if any(k in ingredient for ingredient in ingredients for k in keywords):
            score += CONCERN_MATCH_BONUS
            pros.append(pro)

    for sensitivity in profile.sensitivities:
        term = str(sensitivity).strip().lower()
        if term and any(term in ingredient for ingredient in ingredients):
            score -= SENSITIVITY_PENALTY
            cons.append(f"Contains {sensitivity} (your sensitivity)")

    if profile.preferences.cruelty_free and candidate.cruelty_free:
        score += PREFERENCE_BONUS
        pros.append("Cruelty-free certified")
    if profile.preferences.vegan and candidate.vegan:
        score += PREFERENCE_BONUS
        pros.append("Vegan formula")

    return ScoredCandidate(candidate=candidate, score=_clamp(score), pros=pros, cons=cons)


def score_candidates(profile: UserProfile, candidates: Sequence[Candidate]) -> list[ScoredCandidate]:
    """Score every candidate against ``profile`` and rank them, best first.

    Equal scores keep their input order.
    """

    scored = [_score_one(profile, c) for c in candidates]
    return sorted(scored, key=lambda s: -s.score)


def _shuffle_near_ties(items: list[tuple[float, ScoredCandidate, list[str]]], rng: random.Random) -> None:
    # Items are already sorted; shuffle runs whose scores stay within the window of the run head.
    start = 0
    while start < len(items):
        end = start + 1
        while end < len(items) and items[start][0] - items[end][0] < VARIETY_WINDOW:
            end += 1
        if end - start > 1:
            run = items[start:end]
            rng.shuffle(run)
            items[start:end] = run
        start = end


def _personalized_note(candidate: Candidate, patterns: BehaviorPatterns, viewed: set[str]) -> str:
    notes: list[str] = []
    if patterns.engagement_level == "high" and candidate.advanced:
        notes.append("Perfect for your advanced skincare knowledge")
    if str(candidate.id) in viewed:
        notes.append("You viewed this before")
    if patterns.session_duration / 60000.0 > 30 and candidate.premium:
        notes.append("Premium choice for dedicated skincare enthusiasts")
    return notes[0] if notes else ""


def personalize_recommendations(
    profile: UserProfile,
    candidates: Sequence[Candidate],
    patterns: BehaviorPatterns,
    *,
    viewed_products: Iterable[str] = (),
    limit: int = 10,
    rng: Optional[random.Random] = None,
) -> list[PersonalizedRecommendation]:
    """Profile scores plus behavior boosts.

    High-engagement sessions get near-tied neighbours reordered by ``rng``;
    passing ``rng=None`` keeps the ranking fully deterministic.
    """

    viewed = {str(v) for v in viewed_products}
    items: list[tuple[float, ScoredCandidate, list[str]]] = []
    for scored in score_candidates(profile, candidates):
        score = float(scored.score)
        reasons = list(scored.pros)
        if "marketplace" in patterns.preferred_features and scored.candidate.featured:
            score += FEATURED_BOOST
            reasons.append("Featured in the marketplace you browse")
        if str(scored.candidate.id) in viewed:
            score += VIEWED_BOOST
            reasons.append("Recently viewed")
        items.append((score, scored, reasons))

    items.sort(key=lambda item: -item[0])
    if patterns.engagement_level == "high" and rng is not None:
        _shuffle_near_ties(items, rng)

    return [
        PersonalizedRecommendation(
            candidate=scored.candidate,
            match_score=_clamp(score),
            match_reasons=reasons,
            personalized_note=_personalized_note(scored.candidate, patterns, viewed),
        )
        for score, scored, reasons in items[: max(0, limit)]
    ]


_CONCEPT_CATALOG: tuple[tuple[str, tuple[str, ...], tuple[ConceptRecommendation, ...]], ...] = (
    (
        "acne",
        ("acne",),
        (
            ConceptRecommendation(
                name="Salicylic Acid Cleanser",
                reason="Targets acne-causing bacteria and unclogs pores",
                ingredients=["Salicylic Acid 2%", "Niacinamide", "Tea Tree Oil"],
                match=95,
            ),
            ConceptRecommendation(
                name="Benzoyl Peroxide Treatment",
                reason="Reduces active breakouts and prevents new ones",
                ingredients=["Benzoyl Peroxide 5%", "Aloe Vera", "Panthenol"],
                match=90,
            ),
        ),
    ),
    (
        "dark-spots",
        ("dark spots",),
        (
            ConceptRecommendation(
                name="Vitamin C Serum",
                reason="Brightens skin tone and fades dark spots",
                ingredients=["Vitamin C 15%", "Ferulic Acid", "Vitamin E"],
                match=93,
            ),
            ConceptRecommendation(
                name="Alpha Arbutin Treatment",
                reason="Targets hyperpigmentation without irritation",
                ingredients=["Alpha Arbutin 2%", "Kojic Acid", "Licorice Root"],
                match=88,
            ),
        ),
    ),
    (
        "wrinkles",
        ("aging",),
        (
            ConceptRecommendation(
                name="Retinol Night Serum",
                reason="Reduces fine lines and improves skin texture",
                ingredients=["Retinol 0.5%", "Peptides", "Hyaluronic Acid"],
                match=94,
            ),
            ConceptRecommendation(
                name="Peptide Complex Cream",
                reason="Boosts collagen production and firms skin",
                ingredients=["Matrixyl 3000", "Argireline", "Ceramides"],
                match=89,
            ),
        ),
    ),
    (
        "dryness",
        (),
        (
            ConceptRecommendation(
                name="Hyaluronic Acid Serum",
                reason="Deeply hydrates and plumps skin",
                ingredients=["Hyaluronic Acid", "Glycerin", "B5"],
                match=92,
            ),
            ConceptRecommendation(
                name="Ceramide Barrier Cream",
                reason="Repairs moisture barrier and locks in hydration",
                ingredients=["Ceramides", "Squalane", "Shea Butter"],
                match=91,
            ),
        ),
    ),
)

_FALLBACK_CONCEPT = ConceptRecommendation(
    name="Gentle Daily Cleanser",
    reason="Perfect for maintaining healthy skin",
    ingredients=["Glycerin", "Panthenol", "Allantoin"],
    match=85,
)


def recommend_for_concerns(profile: UserProfile, search_query: Optional[str] = None) -> list[ConceptRecommendation]:
    concerns = {canonical_concern(c) for c in profile.concerns}
    query = (search_query or "").lower()
    skin_type = (profile.skin_type or "normal").strip().lower()

    picks: list[ConceptRecommendation] = []
    for key, query_terms, concepts in _CONCEPT_CATALOG:
        hit = key in concerns or any(term in query for term in query_terms)
        if key == "dryness" and skin_type == "dry":
            hit = True
        if hit:
            picks.extend(c.model_copy() for c in concepts)

    if not picks:
        picks.append(_FALLBACK_CONCEPT.model_copy())
    return sorted(picks, key=lambda c: -c.match)
