"""
Tests for the statistics aggregator, sheet summaries and adaptive difficulty.

Pure functions only; no I/O.
"""
import random
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from examcraft.models.assessment import GenerationConfig, GradingResult
from examcraft.services.adaptive import (
    determine_optimal_difficulty,
    suggest_next_config,
    topic_mastery,
)
from examcraft.services.statistics import aggregate, summarize_sheet


def _result(i, correct=True, time_taken=10.0, difficulty="easy", topic="Algebra", type_="Numerical"):
    return GradingResult(
        task_id=f"t{i}",
        is_correct=correct,
        time_taken=time_taken,
        difficulty=difficulty,
        topic=topic,
        type=type_,
    )


_MIXED = [
    _result(1, True, 12.5, "easy", "Algebra", "Numerical"),
    _result(2, False, 40.1, "hard", "Geometry", "Essay"),
    _result(3, True, 3.3, "medium", "Algebra", "Multiple Choice"),
    _result(4, True, 0.1, "easy", "Geometry", "Numerical"),
    _result(5, False, 77.7, "medium", "Calculus", "True/False"),
    _result(6, True, 19.9, "hard", "Algebra", "Essay"),
]


# ---------------------------------------------------------------------------
# aggregate
# ---------------------------------------------------------------------------

class TestAggregate:
    def test_empty_results(self):
        s = aggregate([])
        assert (s.total, s.correct, s.accuracy) == (0, 0, 0.0)
        assert (s.average_time, s.fastest, s.slowest) == (0.0, 0.0, 0.0)
        assert set(s.by_difficulty) == {"easy", "medium", "hard"}
        assert all(g.total == 0 and g.accuracy == 0.0 for g in s.by_difficulty.values())
        assert s.by_topic == {} and s.by_type == {}

    def test_totals_and_accuracy(self):
        s = aggregate(_MIXED)
        assert s.total == 6
        assert s.correct == 4
        assert s.accuracy == pytest.approx(4 / 6 * 100)

    def test_timing(self):
        s = aggregate(_MIXED)
        assert s.fastest == 0.1
        assert s.slowest == 77.7
        assert s.total_time == pytest.approx(153.6)
        assert s.average_time == pytest.approx(153.6 / 6)

    def test_groupings(self):
        s = aggregate(_MIXED)
        assert s.by_difficulty["hard"].total == 2
        assert s.by_difficulty["hard"].accuracy == 50.0
        assert s.by_topic["Algebra"].correct == 3
        assert s.by_topic["Calculus"].accuracy == 0.0
        assert s.by_type["Essay"].total == 2

    def test_difficulty_keys_present_even_when_unused(self):
        s = aggregate([_result(1, difficulty="hard")])
        assert s.by_difficulty["easy"].total == 0
        assert s.by_difficulty["medium"].accuracy == 0.0

    def test_order_independent(self):
        baseline = aggregate(_MIXED)
        rng = random.Random(7)
        for _ in range(20):
            shuffled = list(_MIXED)
            rng.shuffle(shuffled)
            assert aggregate(shuffled) == baseline

    def test_idempotent(self):
        assert aggregate(_MIXED) == aggregate(_MIXED)

    def test_accepts_generator(self):
        assert aggregate(r for r in _MIXED).total == 6


class TestSummarizeSheet:
    def test_sheet_summary(self):
        sheet = summarize_sheet(_MIXED[:2])
        assert sheet.total_tasks == 2
        assert sheet.correct_tasks == 1
        assert sheet.accuracy == 50.0
        assert sheet.total_time_spent == pytest.approx(52.6)
        assert sheet.average_time_per_task == pytest.approx(26.3)


# ---------------------------------------------------------------------------
# Adaptive difficulty
# ---------------------------------------------------------------------------

class TestDetermineOptimalDifficulty:
    def test_short_history_returns_preferred(self):
        results = [_result(i) for i in range(4)]
        assert determine_optimal_difficulty(results, preferred="hard") == "hard"

    def test_low_success_goes_easy(self):
        results = [_result(i, correct=i < 3) for i in range(10)]
        assert determine_optimal_difficulty(results) == "easy"

    def test_high_success_and_fast_goes_hard(self):
        results = [_result(i, time_taken=20.0) for i in range(10)]
        assert determine_optimal_difficulty(results, optimal_time=60.0) == "hard"

    def test_high_success_but_slow_stays_medium(self):
        results = [_result(i, time_taken=55.0) for i in range(10)]
        assert determine_optimal_difficulty(results, optimal_time=60.0) == "medium"

    def test_only_last_ten_count(self):
        old_failures = [_result(i, correct=False) for i in range(20)]
        recent_wins = [_result(100 + i, time_taken=5.0) for i in range(10)]
        assert determine_optimal_difficulty(old_failures + recent_wins) == "hard"

    def test_unknown_preferred_rejected(self):
        with pytest.raises(ValueError):
            determine_optimal_difficulty([], preferred="extreme")


class TestTopicMastery:
    def test_perfect_fast_fresh_topic_scores_100(self):
        mastery = topic_mastery([_result(1, time_taken=30.0)], optimal_time=60.0)
        assert mastery["Algebra"] == pytest.approx(100.0)

    def test_weights(self):
        results = [_result(1, True, 120.0), _result(2, False, 120.0)]
        # success 0.5, efficiency 0.5, fresh
        mastery = topic_mastery(results, optimal_time=60.0)
        assert mastery["Algebra"] == pytest.approx((0.25 + 0.15 + 0.2) * 100)

    def test_stale_topic_loses_freshness(self):
        week = 7 * 24 * 60 * 60
        mastery = topic_mastery(
            [_result(1, time_taken=30.0)], optimal_time=60.0,
            last_practiced={"Algebra": 0.0}, now=float(week * 2),
        )
        assert mastery["Algebra"] == pytest.approx(80.0)


class TestSuggestNextConfig:
    BASE = GenerationConfig(
        types=["Numerical"],
        difficulty={"easy": 34, "medium": 33, "hard": 33},
        topics=["Algebra", "Geometry", "Calculus"],
        count=6,
        subject="Mathematics",
    )

    def test_weak_topics_first_and_mix_follows_level(self):
        results = (
            [_result(i, True, 10.0, topic="Algebra") for i in range(5)]
            + [_result(10 + i, False, 90.0, topic="Geometry") for i in range(5)]
        )
        cfg = suggest_next_config(results, self.BASE)
        # Calculus never attempted (0), Geometry weak, Algebra mastered.
        assert cfg.topics == ["Calculus", "Geometry"]
        assert cfg.difficulty.medium == 60
        assert cfg.count == 6
        assert cfg.types == ["Numerical"]

    def test_all_topics_strong_keeps_full_list(self):
        results = [_result(i, True, 10.0, topic=t) for i, t in enumerate(["Algebra", "Geometry", "Calculus"] * 2)]
        cfg = suggest_next_config(results, self.BASE)
        assert cfg.topics == ["Algebra", "Geometry", "Calculus"]
        assert cfg.difficulty.hard == 60
