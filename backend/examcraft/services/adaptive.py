"""
Adaptive difficulty: turns a learner's recent GradingResults into the next
GenerationConfig.

  determine_optimal_difficulty  last 10 results; <5 → preferred level,
                                success <40% → easy, success >80% and fast
                                (avg time under 80% of optimal) → hard,
                                anything else → medium
  topic_mastery                 per topic, 0-100:
                                (success*0.5 + time_efficiency*0.3 + freshness*0.2) * 100
  suggest_next_config           re-weights the difficulty mix toward the
                                recommended level and narrows topics to the
                                weak ones (mastery below 70)

Results are taken to be in chronological order (oldest first).
"""
from __future__ import annotations

import logging
import time
from collections import defaultdict
from typing import Mapping, Optional

from examcraft.models.assessment import DifficultyMix, GenerationConfig, GradingResult, canonical_difficulty

logger = logging.getLogger(__name__)

RECENT_WINDOW = 10
MIN_HISTORY = 5
EASY_BELOW = 0.4
HARD_ABOVE = 0.8
FAST_FACTOR = 0.8
WEAK_MASTERY = 70.0
STALE_AFTER_SECONDS = 7 * 24 * 60 * 60

# Mix used for the next sheet, keyed by recommended difficulty.
_MIX_FOR: dict[str, DifficultyMix] = {
    "easy": DifficultyMix(easy=60, medium=30, hard=10),
    "medium": DifficultyMix(easy=20, medium=60, hard=20),
    "hard": DifficultyMix(easy=10, medium=30, hard=60),
}


def determine_optimal_difficulty(
    results: list[GradingResult],
    preferred: str = "medium",
    optimal_time: float = 60.0,
) -> str:
    preferred_level = canonical_difficulty(preferred)
    if preferred_level is None:
        raise ValueError(f"Unknown difficulty: {preferred}")

    recent = results[-RECENT_WINDOW:]
    if len(recent) < MIN_HISTORY:
        return preferred_level

    success = sum(1 for r in recent if r.is_correct) / len(recent)
    avg_time = sum(r.time_taken for r in recent) / len(recent)

    if success < EASY_BELOW:
        return "easy"
    if success > HARD_ABOVE and avg_time < optimal_time * FAST_FACTOR:
        return "hard"
    return "medium"


def topic_mastery(
    results: list[GradingResult],
    optimal_time: float = 60.0,
    last_practiced: Optional[Mapping[str, float]] = None,
    now: Optional[float] = None,
) -> dict[str, float]:
    """
    Mastery score per topic seen in `results`.

    time_efficiency = min(1, optimal_time / average_time); a topic answered in
    zero time counts as fully efficient. freshness = 1 - min(1, age / 7 days)
    where age comes from `last_practiced` (epoch seconds); topics without a
    timestamp count as practiced just now.
    """
    now = time.time() if now is None else now
    last_practiced = last_practiced or {}

    grouped: dict[str, list[GradingResult]] = defaultdict(list)
    for r in results:
        grouped[r.topic].append(r)

    mastery: dict[str, float] = {}
    for topic in sorted(grouped):
        items = grouped[topic]
        success = sum(1 for r in items if r.is_correct) / len(items)
        avg_time = sum(r.time_taken for r in items) / len(items)
        efficiency = 1.0 if avg_time <= 0 else min(1.0, optimal_time / avg_time)
        age = max(0.0, now - last_practiced.get(topic, now))
        staleness = min(1.0, age / STALE_AFTER_SECONDS)
        mastery[topic] = (success * 0.5 + efficiency * 0.3 + (1 - staleness) * 0.2) * 100
    return mastery


def suggest_next_config(
    results: list[GradingResult],
    base_config: GenerationConfig,
    preferred: str = "medium",
    optimal_time: float = 60.0,
) -> GenerationConfig:
    """
    Follow-up config: same types, subject and count as `base_config`.

    Topics never attempted count as weak. When every topic is at or above the
    mastery bar the full topic list is kept.
    """
    level = determine_optimal_difficulty(results, preferred, optimal_time)
    mastery = topic_mastery(results, optimal_time)

    weak = sorted(
        (t for t in base_config.topics if mastery.get(t, 0.0) < WEAK_MASTERY),
        key=lambda t: mastery.get(t, 0.0),
    )
    topics = weak or list(base_config.topics)

    logger.info(
        "Adaptive config: difficulty=%s, weak topics=%s (of %d)",
        level, weak, len(base_config.topics),
    )
    return GenerationConfig(
        types=list(base_config.types),
        difficulty=_MIX_FOR[level],
        topics=topics,
        count=base_config.count,
        subject=base_config.subject,
    )
