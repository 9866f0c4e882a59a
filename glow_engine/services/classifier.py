from __future__ import annotations

from glow_engine.models import ConversationContext
from glow_engine.services.rules import (
    COMPLEXITY_RULES,
    DEFAULT_COMPLEXITY,
    DEFAULT_INTENT,
    DEFAULT_SENTIMENT,
    DEFAULT_TOPIC,
    INTENT_RULES,
    SENTIMENT_RULES,
    TOPIC_RULES,
    first_match,
)


def classify(text: str) -> ConversationContext:
    """Map an utterance to topic, sentiment, complexity and intent.

    Every field is resolved on its own by case-insensitive substring matching
    against the rule tables; the first matching rule wins.
    """

    text = text or ""
    return ConversationContext(
        topic=first_match(text, TOPIC_RULES, DEFAULT_TOPIC),
        sentiment=first_match(text, SENTIMENT_RULES, DEFAULT_SENTIMENT),
        complexity=first_match(text, COMPLEXITY_RULES, DEFAULT_COMPLEXITY),
        user_intent=first_match(text, INTENT_RULES, DEFAULT_INTENT),
    )
