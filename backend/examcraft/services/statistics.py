"""
Statistics Aggregator: folds GradingResults into accuracy and timing figures.

One pass over the results increments the overall counters and the
by-difficulty / by-topic / by-type groups from the same record. Accuracy is a
percentage (0-100); an empty group reports 0. Timing uses math.fsum and the
groups are emitted key-sorted, so any permutation of the same results yields
an identical summary.
"""
from __future__ import annotations

import math
from collections import defaultdict
from typing import Iterable

from examcraft.models.assessment import (
    DIFFICULTIES,
    GradingResult,
    GroupStats,
    SheetSummary,
    StatisticsSummary,
)


def _accuracy(correct: int, total: int) -> float:
    return correct / total * 100 if total else 0.0


def _freeze(counters: dict[str, list[int]]) -> dict[str, GroupStats]:
    return {
        key: GroupStats(total=total, correct=correct, accuracy=_accuracy(correct, total))
        for key, (total, correct) in sorted(counters.items())
    }


def aggregate(results: Iterable[GradingResult]) -> StatisticsSummary:
    by_difficulty: dict[str, list[int]] = {d: [0, 0] for d in DIFFICULTIES}
    by_topic: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    by_type: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    times: list[float] = []
    total = correct = 0

    for r in results:
        hit = 1 if r.is_correct else 0
        total += 1
        correct += hit
        times.append(r.time_taken)
        for bucket, key in ((by_difficulty, r.difficulty), (by_topic, r.topic), (by_type, r.type)):
            bucket[key][0] += 1
            bucket[key][1] += hit

    total_time = math.fsum(times)
    difficulty_stats = _freeze(by_difficulty)
    return StatisticsSummary(
        total=total,
        correct=correct,
        accuracy=_accuracy(correct, total),
        total_time=total_time,
        average_time=total_time / total if total else 0.0,
        fastest=min(times) if times else 0.0,
        slowest=max(times) if times else 0.0,
        by_difficulty={d: difficulty_stats[d] for d in DIFFICULTIES},
        by_topic=_freeze(by_topic),
        by_type=_freeze(by_type),
    )


def summarize_sheet(results: list[GradingResult]) -> SheetSummary:
    """Row written alongside a sheet submission."""
    stats = aggregate(results)
    return SheetSummary(
        total_tasks=stats.total,
        correct_tasks=stats.correct,
        accuracy=stats.accuracy,
        total_time_spent=stats.total_time,
        average_time_per_task=stats.average_time,
    )
