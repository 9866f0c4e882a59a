from __future__ import annotations

import logging
import time
from collections import deque
from typing import TYPE_CHECKING, Callable, Optional

from glow_engine.models import (
    AIResponse,
    BehaviorPatterns,
    ConversationContext,
    Preferences,
    SessionContext,
    TranscriptEntry,
    UserProfile,
)
from glow_engine.services.classifier import classify
from glow_engine.services.rules import TOPIC_SUGGESTIONS, canonical_concern, concern_advice
from glow_engine.services.scorer import recommend_for_concerns

if TYPE_CHECKING:
    from glow_engine.store.session_state import SessionManager


logger = logging.getLogger("glow-engine.responder")

BASE_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.95
MAX_TRANSCRIPT_ENTRIES = 20
MAX_SUGGESTIONS = 3


def _now_ms() -> int:
    return int(time.time() * 1000)


def _opening(sentiment: str, tone: str) -> str:
    friendly = tone == "friendly"
    if sentiment == "positive":
        return "That's wonderful! " if friendly else "Excellent. "
    if sentiment == "negative":
        return "I understand your concern. " if friendly else "I see. "
    return ""


def calculate_confidence(preferences: Preferences, patterns: BehaviorPatterns, topic_count: int) -> float:
    confidence = BASE_CONFIDENCE
    if preferences.skin_type:
        confidence += 0.1
    if preferences.concerns:
        confidence += 0.1
    if preferences.goals:
        confidence += 0.1

    if patterns.engagement_level == "high":
        confidence += 0.1
    elif patterns.engagement_level == "medium":
        confidence += 0.05

    if topic_count > 5:
        confidence += 0.1
    elif topic_count > 2:
        confidence += 0.05

    # Float sums drift past the ceiling (0.5 + 6 * 0.1), so round before capping.
    return min(round(confidence, 4), MAX_CONFIDENCE)


def _routine_reply(prefs: Preferences, complexity: str, intent: str) -> str:
    routine_preference = prefs.routine_preference or "moderate"
    if intent == "recommendation":
        if complexity == "simple":
            return f"For a {routine_preference} routine, I recommend starting with cleanser, treatment, and moisturizer."
        concern = prefs.concerns[0] if prefs.concerns else "your concerns"
        text = (
            f"Based on your {routine_preference} routine preference, here's what I suggest: "
            f"Start with a gentle cleanser suited for {prefs.skin_type or 'your skin type'}, "
            f"follow with targeted treatments for {concern}, and finish with a moisturizer."
        )
        if routine_preference == "extensive":
            text += " You can also add serums, essences, and SPF for comprehensive care."
        return text
    if intent == "troubleshooting":
        return (
            "Let's optimize your routine. Common issues include using too many actives at once or incorrect "
            "product order. What specific problem are you experiencing?"
        )
    return f"I can help you build a personalized {routine_preference} routine. What would you like to focus on?"


def _products_reply(prefs: Preferences, complexity: str, intent: str, viewed_count: int) -> str:
    budget = prefs.budget_range or "mid"
    skin_type = prefs.skin_type or "combination"
    if intent == "recommendation":
        if complexity == "simple":
            return f"I recommend {budget}-range products suitable for {skin_type} skin."
        viewed = f", and the {viewed_count} products you've viewed" if viewed_count > 0 else ""
        text = (
            f"Based on your {skin_type} skin and {budget} budget preference{viewed}, "
            "I can suggest products that match your needs."
        )
        if prefs.concerns:
            text += f" For {prefs.concerns[0]}, look for ingredients like niacinamide or retinol."
        return text
    if intent == "comparison":
        return (
            "I'll help you compare products. What specific aspects matter most to you - ingredients, price, "
            "effectiveness, or user reviews?"
        )
    return f"I can recommend products tailored to your {skin_type} skin. What type of product are you looking for?"


def _ingredients_reply(prefs: Preferences, complexity: str, intent: str) -> str:
    if intent == "learning":
        if complexity == "simple":
            return "This ingredient works by targeting specific skin concerns. Would you like to know if it's suitable for you?"
        concern = prefs.concerns[0] if prefs.concerns else "various skin issues"
        text = (
            "Let me explain this ingredient in detail. It works at the cellular level to address concerns "
            f"like {concern}."
        )
        if prefs.sensitivities:
            text += f" Given your sensitivities to {', '.join(prefs.sensitivities)}, I'll also check for potential reactions."
        return text
    return "I can provide detailed ingredient information. Which ingredient would you like to learn about?"


def _skin_analysis_reply(prefs: Preferences, complexity: str, intent: str) -> str:
    concerns = prefs.concerns or []
    skin_type = prefs.skin_type or "your skin type"
    if intent == "recommendation":
        if complexity == "simple":
            first = concerns[0] if concerns else "your concerns"
            return f"For {skin_type} skin with {first}, focus on gentle, targeted treatments."
        shows = f"primary concerns: {', '.join(concerns)}" if concerns else "balanced characteristics"
        focus = concerns[0] if concerns else "maintenance and prevention"
        return (
            f"Your {skin_type} skin profile shows {shows}. I recommend a personalized approach focusing on "
            f"{focus}. Track your progress regularly to see what works best."
        )
    focus = f" with focus on {' and '.join(concerns)}" if concerns else ""
    return f"Let's analyze your skin. Your current profile shows {skin_type} skin{focus}. What would you like to know?"


def _concerns_reply(prefs: Preferences, complexity: str, intent: str) -> str:
    if intent == "troubleshooting":
        if complexity == "simple":
            return "For this concern, consistent routine and targeted ingredients are key."
        layering = (
            "Since you prefer minimal routines, focus on multi-functional products."
            if prefs.routine_preference == "minimal"
            else "You can layer multiple treatments for better results."
        )
        return (
            "This concern typically requires a multi-faceted approach. Consider ingredients that address the "
            f"root cause, maintain a consistent routine, and track your progress. {layering}"
        )
    return (
        "I can help address this concern. What specific aspect would you like to focus on - prevention, "
        "treatment, or maintenance?"
    )


def _general_reply(prefs: Preferences, complexity: str, patterns: BehaviorPatterns) -> str:
    has_profile = bool(prefs.skin_type) or bool(prefs.concerns)
    if not has_profile:
        return (
            "I'm here to help with your skincare journey! To give you the most personalized advice, I'd love to "
            "learn about your skin type and concerns. Have you taken our skin quiz yet?"
        )
    if patterns.engagement_level == "high":
        if complexity == "detailed":
            features = ", ".join(patterns.preferred_features) or "recent"
            return (
                f"You've been actively exploring! Based on your {features} interests, I can provide deeper "
                "insights into personalized skincare."
            )
        return "You've been actively exploring! How can I help you today?"
    return "I'm here to help with any skincare questions. What would you like to know?"


class ResponseSynthesizer:
    """Rule-based reply builder with a short transcript and per-topic counters.

    Replies are deterministic for identical inputs and identical topic counts.
    """

    def __init__(self, *, clock: Optional[Callable[[], int]] = None) -> None:
        self._clock = clock or _now_ms
        self._transcript: deque[TranscriptEntry] = deque(maxlen=MAX_TRANSCRIPT_ENTRIES)
        self._topic_knowledge: dict[str, int] = {}

    def transcript(self) -> list[TranscriptEntry]:
        return list(self._transcript)

    def topic_knowledge(self) -> dict[str, int]:
        return dict(self._topic_knowledge)

    def synthesize(
        self,
        utterance: str,
        conversation: ConversationContext,
        preferences: Preferences,
        patterns: BehaviorPatterns,
        *,
        session_context: Optional[SessionContext] = None,
    ) -> AIResponse:
        topic = conversation.topic
        self._topic_knowledge[topic] = self._topic_knowledge.get(topic, 0) + 1

        message = _opening(conversation.sentiment, preferences.ai_tone or "friendly")
        complexity = conversation.complexity
        intent = conversation.user_intent

        if topic == "routine":
            message += _routine_reply(preferences, complexity, intent)
        elif topic == "products":
            viewed_count = len(session_context.viewed_products) if session_context else 0
            message += _products_reply(preferences, complexity, intent, viewed_count)
        elif topic == "ingredients":
            message += _ingredients_reply(preferences, complexity, intent)
        elif topic == "skin-analysis":
            message += _skin_analysis_reply(preferences, complexity, intent)
        elif topic == "concerns":
            message += _concerns_reply(preferences, complexity, intent)
        else:
            message += _general_reply(preferences, complexity, patterns)

        if preferences.concerns and topic != "general":
            message += f" Since you're focusing on {' and '.join(preferences.concerns)}, "
            message += concern_advice(preferences.concerns[0], complexity)

        suggestions = list(TOPIC_SUGGESTIONS.get(topic, TOPIC_SUGGESTIONS["general"]))[:MAX_SUGGESTIONS]
        confidence = calculate_confidence(preferences, patterns, self._topic_knowledge[topic])
        response = AIResponse(
            message=message,
            suggestions=suggestions,
            confidence=confidence,
            reasoning=f"Based on your {preferences.skin_type or 'skin'} profile and {patterns.engagement_level} engagement",
        )

        now = self._clock()
        self._transcript.append(TranscriptEntry(role="user", content=utterance, timestamp=now))
        self._transcript.append(TranscriptEntry(role="assistant", content=message, timestamp=now))
        logger.debug("response_synthesized topic=%s intent=%s confidence=%s", topic, intent, confidence)
        return response

    def generate_response(self, utterance: str, session: SessionManager) -> AIResponse:
        """Classify ``utterance`` and answer it from a SessionManager snapshot."""

        state = session.get_state()
        return self.synthesize(
            utterance,
            classify(utterance),
            state.preferences,
            session.get_behavior_patterns(),
            session_context=state.context,
        )

    def conversation_summary(self) -> str:
        if not self._transcript:
            return "No conversation history yet."
        ranked = sorted(self._topic_knowledge.items(), key=lambda item: -item[1])
        topics = [topic for topic, _ in ranked[:3]]
        exchanges = len(self._transcript) // 2
        return f"We've discussed {', '.join(topics)} across {exchanges} exchanges."

    def clear_history(self) -> None:
        self._transcript.clear()
        self._topic_knowledge.clear()


def _has_any(text: str, words: tuple[str, ...]) -> bool:
    return any(w in text for w in words)


def _evening_treatment(concerns: set[Optional[str]]) -> str:
    if "acne" in concerns:
        return "Salicylic Acid or Benzoyl Peroxide"
    if "wrinkles" in concerns:
        return "Retinol"
    return "Active ingredient"


def quick_reply(query: str, profile: UserProfile) -> str:
    """One-shot markdown answer from the profile alone.

    Unlike ``ResponseSynthesizer`` this keeps no conversation state and reads
    no session; branches are checked in order and the first hit answers.
    """

    text = (query or "").lower()
    skin_type = profile.skin_type or "normal"
    concerns = list(profile.concerns)
    canonical = {canonical_concern(c) for c in concerns}

    if _has_any(text, ("recommend", "suggest", "product")):
        picks = recommend_for_concerns(profile, query)[:3]
        lines = [
            f"{i}. **{p.name}**\n   {p.reason}\n   Key ingredients: {', '.join(p.ingredients)}"
            for i, p in enumerate(picks, start=1)
        ]
        return (
            f"Based on your {skin_type} skin and concerns about {', '.join(concerns)}, I recommend:\n\n"
            + "\n\n".join(lines)
            + "\n\nWould you like more details about any of these?"
        )

    if _has_any(text, ("routine", "order", "layer")):
        return (
            f"For your {skin_type} skin, here's the optimal routine order:\n\n"
            "**Morning:**\n1. Cleanser\n2. Toner (if using)\n3. Serum (Vitamin C for brightening)\n"
            "4. Moisturizer\n5. SPF 30+ (essential!)\n\n"
            "**Evening:**\n1. Cleanser (double cleanse if wearing makeup)\n"
            f"2. Treatment ({_evening_treatment(canonical)})\n3. Serum (Hydrating or targeted)\n"
            "4. Moisturizer\n5. Night cream (optional)\n\n"
            "Wait 1-2 minutes between each step for better absorption!"
        )

    if _has_any(text, ("ingredient", "what is")):
        if "retinol" in text:
            return (
                "**Retinol** is a vitamin A derivative that's excellent for anti-aging:\n\n"
                "**Benefits:**\n- Reduces fine lines and wrinkles\n- Improves skin texture\n"
                "- Fades hyperpigmentation\n- Boosts collagen production\n\n"
                f"**Tips for your {skin_type} skin:**\n- Start with 0.25% concentration\n- Use only at night\n"
                "- Always wear SPF during the day\n- Introduce slowly (2-3x per week)\n"
                "- May cause initial purging\n\n"
                "Would you like product recommendations with retinol?"
            )
        if "niacinamide" in text:
            fits = []
            if "acne" in canonical:
                fits.append("- Helps control breakouts and sebum")
            if "dark-spots" in canonical:
                fits.append("- Fades dark spots effectively")
            fits += [
                "- Safe for sensitive skin",
                "- Can be used morning and night",
                "- Pairs well with most ingredients",
            ]
            return (
                f"**Niacinamide** (Vitamin B3) is a versatile ingredient perfect for {skin_type} skin:\n\n"
                "**Benefits:**\n- Reduces inflammation and redness\n- Minimizes pores\n"
                "- Regulates oil production\n- Brightens skin tone\n- Strengthens skin barrier\n\n"
                "**Why it's great for you:**\n" + "\n".join(fits) + "\n\n"
                "Concentrations of 5-10% are most effective!"
            )

    if _has_any(text, ("acne", "breakout")):
        return (
            "For acne-prone skin, here's my personalized advice:\n\n"
            "**Key Strategies:**\n- Use salicylic acid (BHA) to unclog pores\n"
            "- Benzoyl peroxide for active breakouts\n- Niacinamide to reduce inflammation\n"
            "- Don't over-exfoliate (2-3x per week max)\n\n"
            "**Avoid:**\n- Heavy oils and comedogenic ingredients\n- Over-washing (strips natural oils)\n"
            "- Picking or popping (causes scarring)\n\n"
            "**Pro tip:** Introduce one active ingredient at a time and give it 6-8 weeks to work. "
            "Consistency is key!\n\n"
            "Would you like specific product recommendations?"
        )

    if _has_any(text, ("progress", "working", "result")):
        first = concerns[0] if concerns else "concerns"
        return (
            "Great question! Here's how to track your progress effectively:\n\n"
            "**Photo Documentation:**\n- Take photos in same lighting weekly\n- Same angle and distance\n"
            "- No makeup, clean skin\n\n"
            f"**What to Track:**\n- Skin texture changes\n- Reduction in {first}\n- Product reactions\n"
            "- Mood and stress levels\n\n"
            "**Timeline Expectations:**\n- Hydration: 1-2 weeks\n- Acne treatments: 6-8 weeks\n"
            "- Anti-aging: 12+ weeks\n- Hyperpigmentation: 8-12 weeks\n\n"
            "Remember: Skincare is a marathon, not a sprint!"
        )

    if _has_any(text, ("sensitive", "irritation", "reaction")):
        return (
            "For sensitive skin, let's be extra careful:\n\n"
            "**Safe Ingredients:**\n- Centella Asiatica (Cica)\n- Ceramides\n- Hyaluronic Acid\n"
            "- Niacinamide (low %)\n- Colloidal Oatmeal\n\n"
            "**Avoid:**\n- Fragrance and essential oils\n- High % acids (start low)\n- Alcohol denat.\n"
            "- Harsh physical scrubs\n\n"
            "**Patch Test Protocol:**\n1. Apply small amount behind ear\n2. Wait 24-48 hours\n"
            "3. Check for redness/itching\n4. If clear, test on face\n\n"
            "Always introduce one new product at a time!"
        )

    focus = ", ".join(concerns) if concerns else "your concerns"
    return (
        f"I'm here to help with your {skin_type} skin! I can assist with:\n\n"
        f"- Product recommendations for {focus}\n- Routine building and product layering\n"
        "- Ingredient education\n- Addressing specific skin concerns\n- Progress tracking tips\n\n"
        "What would you like to know more about?"
    )
