from __future__ import annotations

import asyncio
import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, Body, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from glow_engine import config
from glow_engine.models import (
    Candidate,
    DailyLog,
    InteractionType,
    Preferences,
    SessionContext,
    UserProfile,
)
from glow_engine.services.behavior import contextual_actions
from glow_engine.services.engine import PersonalizationEngine
from glow_engine.services.progress import analyze_progress
from glow_engine.services.responder import quick_reply
from glow_engine.services.routines import suggest_routine
from glow_engine.services.scorer import recommend_for_concerns, score_candidates
from glow_engine.store.session_state import session_to_json_dict


router = APIRouter()

logger = logging.getLogger("glow-engine.v1")


class _Body(BaseModel):
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)


class InteractionBody(_Body):
    type: InteractionType
    target: str = ""
    data: Optional[Any] = None


class PageBody(_Body):
    page: str


class ActionBody(_Body):
    action: str


class SearchBody(_Body):
    query: str


class SaveItemBody(_Body):
    item_id: str
    type: str = "product"


class QuickChatBody(_Body):
    message: Optional[str] = None
    query: Optional[str] = None
    profile: Optional[UserProfile] = None


class ScoreBody(_Body):
    profile: UserProfile = Field(default_factory=UserProfile)
    candidates: list[Candidate] = Field(default_factory=list)


class PersonalizedBody(ScoreBody):
    limit: int = 10


class ConceptsBody(_Body):
    profile: UserProfile = Field(default_factory=UserProfile)
    search_query: Optional[str] = None


class RoutineBody(_Body):
    profile: UserProfile = Field(default_factory=UserProfile)
    time_of_day: Literal["morning", "evening"] = "morning"


class ProgressBody(_Body):
    logs: list[DailyLog] = Field(default_factory=list)
    timeframe: str = "week"


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if isinstance(value, dict):
        return {k: _dump(v) for k, v in value.items()}
    return value


def _engine(request: Request) -> PersonalizationEngine:
    return request.app.state.engine


def _session_envelope(engine: PersonalizationEngine) -> dict[str, Any]:
    return {"ok": True, "session": session_to_json_dict(engine.session.get_state())}


# Session routes block on storage writes; they are sync so FastAPI runs them
# in its threadpool.


@router.get("/session")
def session_state(request: Request):
    engine = _engine(request)
    with engine.lock:
        return _session_envelope(engine)


@router.post("/session/interactions")
def session_track(body: InteractionBody, request: Request):
    engine = _engine(request)
    with engine.lock:
        engine.session.track_interaction(body.type, body.target, body.data)
        return _session_envelope(engine)


@router.patch("/session/preferences")
def session_preferences(body: Preferences, request: Request):
    engine = _engine(request)
    with engine.lock:
        engine.session.update_preferences(body)
        return _session_envelope(engine)


@router.patch("/session/context")
def session_context(body: SessionContext, request: Request):
    engine = _engine(request)
    with engine.lock:
        engine.session.update_context(body)
        return _session_envelope(engine)


@router.post("/session/navigate")
def session_navigate(body: PageBody, request: Request):
    engine = _engine(request)
    with engine.lock:
        engine.session.navigate_to(body.page)
        return _session_envelope(engine)


@router.post("/session/actions")
def session_complete_action(body: ActionBody, request: Request):
    engine = _engine(request)
    with engine.lock:
        engine.session.complete_action(body.action)
        return _session_envelope(engine)


@router.post("/session/searches")
def session_search(body: SearchBody, request: Request):
    engine = _engine(request)
    with engine.lock:
        engine.session.add_search(body.query)
        return _session_envelope(engine)


@router.post("/session/products/{product_id}/view")
def session_view_product(product_id: str, request: Request):
    engine = _engine(request)
    with engine.lock:
        engine.session.view_product(product_id)
        return _session_envelope(engine)


@router.post("/session/saved")
def session_save_item(body: SaveItemBody, request: Request):
    engine = _engine(request)
    with engine.lock:
        engine.session.save_item(body.item_id, body.type)
        return _session_envelope(engine)


@router.post("/session/reset")
def session_reset(request: Request):
    engine = _engine(request)
    with engine.lock:
        engine.session.reset()
        logger.info("session_reset session_id=%s", engine.session.get_state().session_id)
        return _session_envelope(engine)


@router.post("/session/flush")
def session_flush(request: Request):
    return {"ok": _engine(request).flush()}


@router.get("/session/behavior")
def session_behavior(request: Request):
    engine = _engine(request)
    with engine.lock:
        patterns = engine.session.get_behavior_patterns()
        preferences = engine.session.get_state().preferences
    return {"patterns": _dump(patterns), "actions": contextual_actions(patterns, preferences)}


@router.get("/session/personalization")
def session_personalization(request: Request):
    engine = _engine(request)
    with engine.lock:
        context = engine.session.get_personalization_context()
    payload = _dump(context)
    payload["preferences"] = context["preferences"].model_dump(mode="json", by_alias=True, exclude_unset=True)
    return payload


def _chat_message(body: dict[str, Any]) -> str:
    message = body.get("message") or body.get("query")
    if not isinstance(message, str) or not message.strip():
        raise HTTPException(status_code=400, detail="Missing `message`")
    return message.strip()


async def _typing_delay() -> None:
    delay_s = config.response_delay_s()
    if delay_s > 0:
        await asyncio.sleep(delay_s)


@router.post("/chat")
async def chat(request: Request, body: dict[str, Any] = Body(...)):
    message = _chat_message(body)
    response = await asyncio.to_thread(_engine(request).chat, message)
    await _typing_delay()
    return _dump(response)


@router.post("/chat/quick")
async def chat_quick(body: QuickChatBody):
    message = _chat_message(body.model_dump(include={"message", "query"}))
    reply = quick_reply(message, body.profile or UserProfile())
    await _typing_delay()
    return {"message": reply}


@router.get("/chat/summary")
def chat_summary(request: Request):
    engine = _engine(request)
    with engine.lock:
        synthesizer = engine.synthesizer
        return {
            "summary": synthesizer.conversation_summary(),
            "topics": synthesizer.topic_knowledge(),
            "transcript": _dump(synthesizer.transcript()),
        }


@router.delete("/chat/history")
def chat_clear_history(request: Request):
    engine = _engine(request)
    with engine.lock:
        engine.synthesizer.clear_history()
    return {"ok": True}


@router.post("/recommendations/score")
async def recommendations_score(body: ScoreBody):
    return {"results": _dump(score_candidates(body.profile, body.candidates))}


@router.post("/recommendations/personalized")
def recommendations_personalized(body: PersonalizedBody, request: Request):
    results = _engine(request).recommend(body.profile, body.candidates, limit=body.limit)
    return {"results": _dump(results)}


@router.post("/recommendations/concepts")
async def recommendations_concepts(body: ConceptsBody):
    return {"results": _dump(recommend_for_concerns(body.profile, body.search_query))}


@router.post("/routines/suggest")
async def routines_suggest(body: RoutineBody):
    return {"time_of_day": body.time_of_day, "steps": _dump(suggest_routine(body.profile, body.time_of_day))}


@router.post("/progress/analyze")
async def progress_analyze(body: ProgressBody):
    return _dump(analyze_progress(body.logs, body.timeframe))
