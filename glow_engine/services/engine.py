from __future__ import annotations

import random
import threading
from typing import Optional, Sequence

from glow_engine.models import AIResponse, Candidate, PersonalizedRecommendation, UserProfile
from glow_engine.services.responder import ResponseSynthesizer
from glow_engine.services.scorer import personalize_recommendations
from glow_engine.store.session_state import SessionManager


class PersonalizationEngine:
    """One user's session plus the conversation state built on top of it.

    Storage writes can block, so the HTTP host calls into the engine from
    worker threads; ``lock`` serializes every session mutation.
    """

    def __init__(
        self,
        session: Optional[SessionManager] = None,
        *,
        synthesizer: Optional[ResponseSynthesizer] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.session = session or SessionManager()
        self.synthesizer = synthesizer or ResponseSynthesizer()
        self.rng = rng
        self.lock = threading.RLock()

    def chat(self, utterance: str) -> AIResponse:
        with self.lock:
            self.session.track_interaction("input", "ai-chat-message", {"message": utterance})
            return self.synthesizer.generate_response(utterance, self.session)

    def recommend(
        self,
        profile: UserProfile,
        candidates: Sequence[Candidate],
        *,
        limit: int = 10,
    ) -> list[PersonalizedRecommendation]:
        with self.lock:
            state = self.session.get_state()
            patterns = self.session.get_behavior_patterns()
        return personalize_recommendations(
            profile,
            candidates,
            patterns,
            viewed_products=state.context.viewed_products,
            limit=limit,
            rng=self.rng,
        )

    def flush(self) -> bool:
        with self.lock:
            return self.session.flush()
