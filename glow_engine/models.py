"""Pydantic schemas shared by the session store, the engine services and the API."""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


InteractionType = Literal["click", "input", "navigation", "selection", "completion"]
EngagementLevel = Literal["low", "medium", "high"]
Sentiment = Literal["positive", "neutral", "negative"]
Complexity = Literal["simple", "moderate", "detailed"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)


# Session record


class Interaction(_CamelModel):
    timestamp: int
    type: InteractionType
    target: str
    data: Optional[Any] = None


class Preferences(_CamelModel):
    skin_type: Optional[str] = None
    concerns: Optional[list[str]] = None
    goals: Optional[list[str]] = None
    sensitivities: Optional[list[str]] = None
    routine_preference: Optional[Literal["minimal", "moderate", "extensive"]] = None
    budget_range: Optional[Literal["budget", "mid", "luxury"]] = None
    ai_tone: Optional[Literal["friendly", "professional", "concise"]] = None


class SessionContext(_CamelModel):
    current_page: str = "/"
    visited_pages: list[str] = Field(default_factory=list)
    completed_actions: list[str] = Field(default_factory=list)
    search_history: list[str] = Field(default_factory=list)
    viewed_products: list[str] = Field(default_factory=list)
    saved_items: list[str] = Field(default_factory=list)
    quiz_progress: Optional[Any] = None
    routine_steps: Optional[list[Any]] = None


class SessionRecord(_CamelModel):
    user_id: str
    session_id: str
    start_time: int
    interactions: list[Interaction] = Field(default_factory=list)
    preferences: Preferences = Field(default_factory=Preferences)
    context: SessionContext = Field(default_factory=SessionContext)


# Derived signals


class BehaviorPatterns(_CamelModel):
    engagement_level: EngagementLevel = "low"
    primary_interests: list[str] = Field(default_factory=list)
    preferred_features: list[str] = Field(default_factory=list)
    session_duration: int = 0
    interaction_frequency: float = 0.0


class ConversationContext(_CamelModel):
    topic: str = "general"
    sentiment: Sentiment = "neutral"
    complexity: Complexity = "moderate"
    user_intent: str = "information"


class AIResponse(_CamelModel):
    message: str
    suggestions: list[str] = Field(default_factory=list)
    confidence: float
    reasoning: Optional[str] = None


class TranscriptEntry(_CamelModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: int


# Profile and catalog input


class ProfilePreferences(_CamelModel):
    texture: Optional[str] = None
    finish: Optional[str] = None
    cruelty_free: Optional[bool] = None
    vegan: Optional[bool] = None


class RoutinePreferences(_CamelModel):
    complexity: Optional[str] = None
    time_of_day: list[str] = Field(default_factory=list)


class UserProfile(_CamelModel):
    skin_type: str = "normal"
    concerns: list[str] = Field(default_factory=list)
    goals: list[str] = Field(default_factory=list)
    sensitivities: list[str] = Field(default_factory=list)
    preferences: ProfilePreferences = Field(default_factory=ProfilePreferences)
    routine_preferences: Optional[RoutinePreferences] = None

    @field_validator("skin_type", mode="before")
    @classmethod
    def _default_skin_type(cls, v: Any) -> Any:
        return v or "normal"

    @field_validator("concerns", "goals", "sensitivities", mode="before")
    @classmethod
    def _null_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("preferences", mode="before")
    @classmethod
    def _null_preferences(cls, v: Any) -> Any:
        return {} if v is None else v


class Candidate(_CamelModel):
    id: Union[str, int] = ""
    name: Optional[str] = None
    category: Optional[str] = None
    ingredients: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("ingredients", "attributes"),
    )
    skin_types: list[str] = Field(default_factory=list)
    cruelty_free: bool = False
    vegan: bool = False
    featured: bool = False
    advanced: bool = False
    premium: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _null_id(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("ingredients", "skin_types", mode="before")
    @classmethod
    def _null_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("cruelty_free", "vegan", "featured", "advanced", "premium", mode="before")
    @classmethod
    def _null_flag(cls, v: Any) -> Any:
        return False if v is None else v


class ScoredCandidate(_CamelModel):
    candidate: Candidate
    score: int
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)


class PersonalizedRecommendation(_CamelModel):
    candidate: Candidate
    match_score: int
    match_reasons: list[str] = Field(default_factory=list)
    personalized_note: str = ""


class ConceptRecommendation(_CamelModel):
    name: str
    reason: str
    ingredients: list[str] = Field(default_factory=list)
    match: int


class RoutineStep(_CamelModel):
    step: int
    category: str
    product: str
    reason: str
    timing: str
    warning: Optional[str] = None


# Note/log store


class DailyLog(_CamelModel):
    date: str
    skin_condition: float = Field(3.0, ge=1, le=5)
    mood: str = ""
    notes: str = ""
    products_used: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)


class ProgressReport(_CamelModel):
    trend: Literal["improving", "declining", "stable", "insufficient_data"]
    message: str
    avg_condition: Optional[str] = None
    recent_avg: Optional[str] = None
    total_logs: int = 0
    top_concerns: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
