from __future__ import annotations

from pathlib import Path
import sys
import unittest

from pydantic import ValidationError

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from glow_engine.models import DailyLog, UserProfile
from glow_engine.services.progress import analyze_progress
from glow_engine.services.routines import suggest_routine


def _logs(*conditions: float, concerns: list[str] | None = None) -> list[DailyLog]:
    return [
        DailyLog(date=f"2024-05-{i + 1:02d}", skin_condition=c, concerns=list(concerns or []))
        for i, c in enumerate(conditions)
    ]


class TestSuggestRoutine(unittest.TestCase):
    def test_morning_routine_ends_with_spf(self) -> None:
        steps = suggest_routine(UserProfile(), "morning")
        self.assertEqual([s.category for s in steps], ["Cleanser", "Moisturizer", "SPF"])
        self.assertEqual(steps[-1].warning, "Never skip this step!")
        self.assertEqual([s.step for s in steps], [1, 2, 3])

    def test_oily_skin_gets_foaming_cleanser(self) -> None:
        steps = suggest_routine(UserProfile(skin_type="oily"), "morning")
        self.assertEqual(steps[0].product, "Foaming Gel Cleanser")
        self.assertEqual(steps[1].product, "Lightweight Gel Moisturizer")

    def test_dry_skin_with_dark_spots_morning(self) -> None:
        profile = UserProfile(skin_type="dry", concerns=["Hyperpigmentation"])
        steps = suggest_routine(profile, "morning")
        self.assertEqual(
            [s.product for s in steps],
            [
                "Creamy Hydrating Cleanser",
                "Vitamin C Brightening Serum",
                "Hyaluronic Acid Serum",
                "Nourishing Day Cream",
                "Broad Spectrum SPF 50",
            ],
        )
        self.assertEqual([s.step for s in steps], [1, 2, 3, 4, 5])

    def test_evening_acne_and_wrinkles(self) -> None:
        profile = UserProfile(concerns=["Acne & Breakouts", "Fine Lines & Wrinkles"])
        products = [s.product for s in suggest_routine(profile, "evening")]
        self.assertEqual(
            products,
            [
                "Gentle Daily Cleanser",
                "Salicylic Acid Treatment",
                "Retinol Serum 0.5%",
                "Niacinamide Serum",
                "Balancing Night Moisturizer",
            ],
        )

    def test_evening_dark_spots_without_wrinkles(self) -> None:
        profile = UserProfile(concerns=["dark spots"])
        products = [s.product for s in suggest_routine(profile, "evening")]
        self.assertIn("Alpha Arbutin Serum", products)
        self.assertNotIn("Retinol Serum 0.5%", products)


class TestAnalyzeProgress(unittest.TestCase):
    def test_no_logs(self) -> None:
        report = analyze_progress([])
        self.assertEqual(report.trend, "insufficient_data")
        self.assertEqual(report.total_logs, 0)
        self.assertEqual(len(report.recommendations), 3)

    def test_improving(self) -> None:
        report = analyze_progress(_logs(1, 1, 1, 5, 5, 5, 5, 5, 5, 5))
        self.assertEqual(report.trend, "improving")
        self.assertEqual(report.avg_condition, "3.8")
        self.assertEqual(report.recent_avg, "5.0")
        self.assertEqual(report.recommendations[0], "Keep up your current routine - it's working!")

    def test_declining(self) -> None:
        report = analyze_progress(_logs(5, 5, 5, 1, 1, 1, 1, 1, 1, 1))
        self.assertEqual(report.trend, "declining")
        self.assertEqual(report.message, "Your skin needs attention.")

    def test_stable_with_top_concerns(self) -> None:
        logs = _logs(3, 3, 3, concerns=["redness"])
        logs[0].concerns.append("dryness")
        logs[1].concerns.extend(["dryness", "acne"])
        logs[2].concerns.append("pores")

        report = analyze_progress(logs)
        self.assertEqual(report.trend, "stable")
        self.assertEqual(report.top_concerns, ["redness", "dryness", "acne"])
        self.assertEqual(report.recommendations[-1], "Focus on treatments for: redness, dryness, acne")
        self.assertEqual(report.insights, [])

    def test_weekend_insight(self) -> None:
        logs = [
            DailyLog(date="2024-06-01", skin_condition=5),
            DailyLog(date="2024-06-02", skin_condition=5),
        ] + [DailyLog(date=f"2024-06-0{d}", skin_condition=2) for d in range(3, 8)]

        report = analyze_progress(logs)
        self.assertIn("Great job! You've logged 7 days of data", report.insights)
        self.assertIn(
            "Your skin differs on weekends vs weekdays - lifestyle factors may be at play",
            report.insights,
        )

    def test_unparseable_dates_are_skipped(self) -> None:
        logs = [DailyLog(date="someday", skin_condition=1), DailyLog(date="2024-06-01", skin_condition=5)]
        report = analyze_progress(logs)
        self.assertEqual(report.total_logs, 2)
        self.assertEqual(report.insights, [])

    def test_skin_condition_outside_scale_rejected(self) -> None:
        for value in (0, 5.5):
            with self.assertRaises(ValidationError):
                DailyLog(date="2024-06-01", skin_condition=value)
        self.assertEqual(DailyLog(date="2024-06-01").skin_condition, 3.0)


if __name__ == "__main__":
    unittest.main()
