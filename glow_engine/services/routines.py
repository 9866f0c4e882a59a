from __future__ import annotations

from typing import Literal

from glow_engine.models import RoutineStep, UserProfile
from glow_engine.services.rules import canonical_concern


TimeOfDay = Literal["morning", "evening"]


def _cleanser_for(skin_type: str) -> str:
    if skin_type == "dry":
        return "Creamy Hydrating Cleanser"
    if skin_type == "oily":
        return "Foaming Gel Cleanser"
    return "Gentle Daily Cleanser"


def suggest_routine(profile: UserProfile, time_of_day: TimeOfDay) -> list[RoutineStep]:
    skin_type = (profile.skin_type or "normal").strip().lower()
    concerns = {canonical_concern(c) for c in profile.concerns}
    steps: list[RoutineStep] = []

    def add(category: str, product: str, reason: str, timing: str, warning: str | None = None) -> None:
        steps.append(
            RoutineStep(
                step=len(steps) + 1,
                category=category,
                product=product,
                reason=reason,
                timing=timing,
                warning=warning,
            )
        )

    add(
        "Cleanser",
        _cleanser_for(skin_type),
        f"Removes impurities without stripping {skin_type} skin",
        "Apply to damp skin, massage for 60 seconds, rinse",
    )

    if time_of_day == "morning":
        if "dark-spots" in concerns:
            add(
                "Serum",
                "Vitamin C Brightening Serum",
                "Brightens and protects against environmental damage",
                "Apply 3-4 drops to face and neck",
            )
        if "dryness" in concerns or skin_type == "dry":
            add(
                "Hydrating Serum",
                "Hyaluronic Acid Serum",
                "Locks in moisture throughout the day",
                "Apply to damp skin for best absorption",
            )
        add(
            "Moisturizer",
            "Lightweight Gel Moisturizer" if skin_type == "oily" else "Nourishing Day Cream",
            "Hydrates and protects skin barrier",
            "Apply evenly to face and neck",
        )
        add(
            "SPF",
            "Broad Spectrum SPF 50",
            "Essential protection against UV damage",
            "Apply generously as final step, reapply every 2 hours",
            warning="Never skip this step!",
        )
        return steps

    if "acne" in concerns:
        add(
            "Treatment",
            "Salicylic Acid Treatment",
            "Unclogs pores and prevents breakouts",
            "Apply to clean, dry skin, wait 5 minutes",
        )
    if "wrinkles" in concerns:
        add(
            "Treatment",
            "Retinol Serum 0.5%",
            "Reduces fine lines and improves texture",
            "Start 2-3x per week, gradually increase",
            warning="Use sunscreen during the day",
        )
    elif "dark-spots" in concerns:
        add("Treatment", "Alpha Arbutin Serum", "Fades dark spots gently", "Apply after cleansing")
    add(
        "Serum",
        "Niacinamide Serum",
        "Strengthens barrier and reduces inflammation",
        "Apply 3-4 drops",
    )
    add(
        "Moisturizer",
        "Rich Night Cream" if skin_type == "dry" else "Balancing Night Moisturizer",
        "Repairs and nourishes overnight",
        "Apply as final step",
    )
    return steps
