from __future__ import annotations

import os
from pathlib import Path
import sys
import threading
import time
import unittest
from unittest import mock

from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

os.environ["REDIS_URL"] = ""
os.environ["SESSION_FLUSH_INTERVAL_S"] = "0"
os.environ["RESPONSE_DELAY_S"] = "0"

from glow_engine.main import create_app  # noqa: E402
from glow_engine.services.engine import PersonalizationEngine  # noqa: E402
from glow_engine.store.session_state import SESSION_STORAGE_KEY, SessionManager  # noqa: E402
from glow_engine.store.storage import InMemoryStorage  # noqa: E402


class CountingStorage(InMemoryStorage):
    def __init__(self) -> None:
        super().__init__()
        self.writes = 0

    def set_item(self, key: str, value: str) -> None:
        self.writes += 1
        super().set_item(key, value)


class SlowStorage(InMemoryStorage):
    """Writes wait on ``release`` once ``hold`` is on, like a stalled Redis socket."""

    def __init__(self) -> None:
        super().__init__()
        self.hold = False
        self.entered = threading.Event()
        self.release = threading.Event()
        self.timed_out = False

    def set_item(self, key: str, value: str) -> None:
        if self.hold:
            self.entered.set()
            self.timed_out = not self.release.wait(2.0)
        super().set_item(key, value)


class TestApiEndpoints(unittest.TestCase):
    def setUp(self) -> None:
        self.storage = InMemoryStorage()
        self.engine = PersonalizationEngine(SessionManager(self.storage), rng=None)
        self.app = create_app(engine=self.engine)

    def test_healthz_reports_storage_backend(self) -> None:
        with TestClient(self.app) as client:
            res = client.get("/healthz")
            self.assertEqual(res.status_code, 200)
            data = res.json()
            self.assertTrue(data["ok"])
            self.assertEqual(data["service"], "glow-engine")
            self.assertEqual(data["session_storage_backend"], "memory")

    def test_chat_requires_message(self) -> None:
        with TestClient(self.app) as client:
            res = client.post("/v1/chat", json={"message": "   "})
            self.assertEqual(res.status_code, 400)
            self.assertEqual(res.json()["detail"], "Missing `message`")

    def test_chat_tracks_input_and_returns_response(self) -> None:
        with TestClient(self.app) as client:
            res = client.post("/v1/chat", json={"message": "Can you recommend a quick product?"})
            self.assertEqual(res.status_code, 200)
            data = res.json()
            self.assertIsInstance(data["message"], str)
            self.assertEqual(len(data["suggestions"]), 3)
            self.assertGreaterEqual(data["confidence"], 0.5)
            self.assertLessEqual(data["confidence"], 0.95)

            session = client.get("/v1/session").json()["session"]
            last = session["interactions"][-1]
            self.assertEqual(last["type"], "input")
            self.assertEqual(last["target"], "ai-chat-message")

            summary = client.get("/v1/chat/summary").json()
            self.assertEqual(summary["topics"], {"products": 1})
            self.assertEqual(len(summary["transcript"]), 2)

            self.assertEqual(client.delete("/v1/chat/history").json(), {"ok": True})
            self.assertEqual(client.get("/v1/chat/summary").json()["summary"], "No conversation history yet.")

    def test_preferences_patch_uses_camel_case(self) -> None:
        with TestClient(self.app) as client:
            res = client.patch("/v1/session/preferences", json={"skinType": "oily", "concerns": ["acne"]})
            self.assertEqual(res.status_code, 200)
            self.assertEqual(res.json()["session"]["preferences"], {"skinType": "oily", "concerns": ["acne"]})

            res = client.patch("/v1/session/preferences", json={"aiTone": "concise"})
            self.assertEqual(
                res.json()["session"]["preferences"],
                {"skinType": "oily", "concerns": ["acne"], "aiTone": "concise"},
            )

            personalization = client.get("/v1/session/personalization").json()
            self.assertEqual(personalization["preferences"]["aiTone"], "concise")

    def test_invalid_preference_value_rejected(self) -> None:
        with TestClient(self.app) as client:
            res = client.patch("/v1/session/preferences", json={"budgetRange": "unlimited"})
            self.assertEqual(res.status_code, 422)

    def test_navigation_feeds_behavior(self) -> None:
        with TestClient(self.app) as client:
            for page in ("/discover", "/routines", "/discover/serums"):
                client.post("/v1/session/navigate", json={"page": page})
            client.post("/v1/session/actions", json={"action": "skin-quiz"})
            client.post("/v1/session/actions", json={"action": "skin-quiz"})

            session = client.get("/v1/session").json()["session"]
            self.assertEqual(session["context"]["currentPage"], "/discover/serums")
            self.assertEqual(session["context"]["completedActions"], ["skin-quiz"])

            behavior = client.get("/v1/session/behavior").json()
            self.assertEqual(behavior["patterns"]["preferredFeatures"], ["discover", "routines"])
            self.assertEqual(behavior["patterns"]["engagementLevel"], "medium")
            self.assertIn("Update your skin profile for better recommendations", behavior["actions"])

    def test_invalid_interaction_type_is_422(self) -> None:
        with TestClient(self.app) as client:
            res = client.post("/v1/session/interactions", json={"type": "scroll", "target": "page"})
            self.assertEqual(res.status_code, 422)

    def test_saved_items_and_searches(self) -> None:
        with TestClient(self.app) as client:
            client.post("/v1/session/searches", json={"query": "vitamin c"})
            client.post("/v1/session/products/p1/view")
            res = client.post("/v1/session/saved", json={"itemId": "p1"})
            context = res.json()["session"]["context"]
            self.assertEqual(context["searchHistory"], ["vitamin c"])
            self.assertEqual(context["viewedProducts"], ["p1"])
            self.assertEqual(context["savedItems"], ["product:p1"])

    def test_reset_and_flush(self) -> None:
        with TestClient(self.app) as client:
            old_id = client.get("/v1/session").json()["session"]["sessionId"]
            client.post("/v1/session/navigate", json={"page": "/discover"})
            res = client.post("/v1/session/reset")
            session = res.json()["session"]
            self.assertNotEqual(session["sessionId"], old_id)
            self.assertEqual(session["interactions"], [])

            self.assertEqual(client.post("/v1/session/flush").json(), {"ok": True})
            self.assertIn(session["sessionId"], self.storage.get_item(SESSION_STORAGE_KEY) or "")

    def test_score_endpoint(self) -> None:
        with TestClient(self.app) as client:
            res = client.post(
                "/v1/recommendations/score",
                json={
                    "profile": {
                        "skinType": "oily",
                        "concerns": ["Acne & Breakouts"],
                        "sensitivities": ["fragrance"],
                    },
                    "candidates": [{"id": 1, "attributes": ["salicylic acid", "fragrance"]}],
                },
            )
            self.assertEqual(res.status_code, 200)
            [result] = res.json()["results"]
            self.assertEqual(result["score"], 40)
            self.assertEqual(result["candidate"]["id"], 1)

    def test_personalized_endpoint_boosts_viewed(self) -> None:
        with TestClient(self.app) as client:
            client.post("/v1/session/products/b/view")
            res = client.post(
                "/v1/recommendations/personalized",
                json={"candidates": [{"id": "a"}, {"id": "b"}], "limit": 5},
            )
            results = res.json()["results"]
            self.assertEqual([r["candidate"]["id"] for r in results], ["b", "a"])
            self.assertEqual(results[0]["matchScore"], 53)

    def test_concepts_routines_and_progress(self) -> None:
        with TestClient(self.app) as client:
            concepts = client.post("/v1/recommendations/concepts", json={"profile": {}}).json()["results"]
            self.assertEqual(concepts[0]["name"], "Gentle Daily Cleanser")

            routine = client.post(
                "/v1/routines/suggest",
                json={"profile": {"skinType": "oily"}, "timeOfDay": "morning"},
            ).json()
            self.assertEqual(routine["time_of_day"], "morning")
            self.assertEqual(routine["steps"][-1]["category"], "SPF")

            progress = client.post("/v1/progress/analyze", json={"logs": []}).json()
            self.assertEqual(progress["trend"], "insufficient_data")

    def test_score_endpoint_tolerates_null_fields(self) -> None:
        with TestClient(self.app) as client:
            res = client.post(
                "/v1/recommendations/score",
                json={"profile": {"skinType": None, "concerns": None}, "candidates": [{"id": 1, "attributes": None}]},
            )
            self.assertEqual(res.status_code, 200)
            [result] = res.json()["results"]
            self.assertEqual(result["score"], 50)
            self.assertEqual(result["candidate"]["ingredients"], [])

    def test_quick_chat(self) -> None:
        with TestClient(self.app) as client:
            res = client.post("/v1/chat/quick", json={"message": "What is retinol?", "profile": {"skinType": None}})
            self.assertEqual(res.status_code, 200)
            self.assertIn("**Tips for your normal skin:**", res.json()["message"])

            res = client.post("/v1/chat/quick", json={"query": "I had a reaction"})
            self.assertIn("**Patch Test Protocol:**", res.json()["message"])

            self.assertEqual(client.post("/v1/chat/quick", json={"message": ""}).status_code, 400)
            session = client.get("/v1/session").json()["session"]
            self.assertEqual(session["interactions"], [])

    def test_progress_rejects_condition_outside_scale(self) -> None:
        with TestClient(self.app) as client:
            res = client.post("/v1/progress/analyze", json={"logs": [{"date": "2024-06-01", "skinCondition": 9}]})
            self.assertEqual(res.status_code, 422)


class TestSessionWritesOffLoop(unittest.TestCase):
    def test_slow_storage_write_does_not_stall_other_requests(self) -> None:
        storage = SlowStorage()
        app = create_app(engine=PersonalizationEngine(SessionManager(storage), rng=None))

        with TestClient(app) as client:
            storage.hold = True
            worker = threading.Thread(
                target=lambda: client.post("/v1/session/navigate", json={"page": "/discover"})
            )
            worker.start()
            self.assertTrue(storage.entered.wait(2.0))

            res = client.post("/v1/recommendations/score", json={"candidates": [{"id": "a"}]})
            self.assertEqual(res.status_code, 200)

            storage.release.set()
            worker.join(5.0)
            self.assertFalse(storage.timed_out)
            storage.hold = False

        self.assertIn("/discover", storage.get_item(SESSION_STORAGE_KEY) or "")


class TestLifespanFlush(unittest.TestCase):
    def _wait_for(self, predicate, timeout_s: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout_s
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    def test_periodic_flush_writes_session(self) -> None:
        storage = CountingStorage()
        app = create_app(engine=PersonalizationEngine(SessionManager(storage), rng=None))

        with mock.patch.dict(os.environ, {"SESSION_FLUSH_INTERVAL_S": "0.01"}):
            with TestClient(app) as client:
                client.post("/v1/session/navigate", json={"page": "/discover"})
                after_mutation = storage.writes
                self.assertTrue(self._wait_for(lambda: storage.writes >= after_mutation + 2))

    def test_shutdown_flushes_once(self) -> None:
        storage = CountingStorage()
        app = create_app(engine=PersonalizationEngine(SessionManager(storage), rng=None))

        with TestClient(app) as client:
            client.post("/v1/session/navigate", json={"page": "/routines"})
            before_exit = storage.writes

        self.assertEqual(storage.writes, before_exit + 1)
        self.assertIn("/routines", storage.get_item(SESSION_STORAGE_KEY) or "")


if __name__ == "__main__":
    unittest.main()
