"""
Plan Generator: phase 1 of the generation pipeline.

One text-service call turns a GenerationConfig into an ordered list of
TaskSpecifications (type, topic, difficulty, goal). The plan is a cheap
blueprint; the Task Synthesizer expands each item in phase 2.

Planning is best-effort about COUNT (fewer or more records than requested
is logged and accepted) but strict about VOCABULARY (difficulty, type and
topic must land in their closed sets or the whole plan fails).
"""
from __future__ import annotations

import logging
import math
from collections import Counter
from typing import Callable, Optional

from examcraft.core.errors import AssessmentError, ParseFailure, ServiceFailure, ValidationFailure
from examcraft.models.assessment import (
    DIFFICULTIES,
    DifficultyMix,
    DifficultyQuota,
    GenerationConfig,
    PlanSummary,
    TaskSpecification,
    canonical_difficulty,
    canonical_task_type,
)
from examcraft.prompts.task_generation import (
    PLAN_END,
    PLAN_FIELDS,
    PLAN_START,
    PLAN_SYSTEM_PROMPT,
    PLAN_USER_TEMPLATE,
)
from examcraft.services.rate_limiter import RateLimitedCaller, get_rate_limited_caller
from examcraft.utils.record_parser import parse_records
from examcraft.utils.topics import reconcile_topic

logger = logging.getLogger(__name__)

ProgressCallback = Callable[..., None]


# ---------------------------------------------------------------------------
# Difficulty quota
# ---------------------------------------------------------------------------

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_difficulty_quota(count: int, mix: DifficultyMix) -> DifficultyQuota:
    """
    Split `count` tasks into easy/medium/hard counts.

    easy and medium are rounded (half-up) from their percentages; hard takes
    the remainder and is floored at 1. The three always sum to `count`: when
    the floor (or a negative remainder) needs tasks, they are taken from the
    larger of medium and easy.

    Examples:
        count=10, 30/50/20  → 3 / 5 / 2
        count=3,  50/50/0   → 1 / 1 / 1   (2 + 2 overshoots; hard floored)
        count=2,  100/0/0   → 1 / 0 / 1   (hard floor applies even at 0%)
    """
    if count <= 0:
        return DifficultyQuota(easy=0, medium=0, hard=0)

    easy = _round_half_up(count * mix.easy / 100)
    medium = _round_half_up(count * mix.medium / 100)
    hard = max(1, count - easy - medium)

    surplus = easy + medium + hard - count
    while surplus > 0:
        if medium >= easy:
            medium -= 1
        else:
            easy -= 1
        surplus -= 1

    return DifficultyQuota(easy=easy, medium=medium, hard=hard)


# ---------------------------------------------------------------------------
# Prompt + parsing
# ---------------------------------------------------------------------------

def build_plan_prompt(config: GenerationConfig) -> list[dict]:
    quota = compute_difficulty_quota(config.count, config.difficulty)
    types = ", ".join(config.types)
    topics = ", ".join(config.topics)
    user_msg = PLAN_USER_TEMPLATE.format(
        count=config.count,
        subject=config.subject,
        types=types,
        topics=topics,
        easy=quota.easy,
        medium=quota.medium,
        hard=quota.hard,
        plan_start=PLAN_START,
        plan_end=PLAN_END,
    )
    return [
        {"role": "system", "content": PLAN_SYSTEM_PROMPT},
        {"role": "user", "content": user_msg},
    ]


def _to_specification(fields: dict[str, str], config: GenerationConfig) -> TaskSpecification:
    raw_number = fields["TASK_NUMBER"].strip().strip("[]#").strip()
    try:
        sequence = int(raw_number)
    except ValueError:
        raise ValidationFailure(
            f'Invalid task number "{fields["TASK_NUMBER"]}" in plan',
            field="TASK_NUMBER", value=fields["TASK_NUMBER"],
        ) from None

    difficulty = canonical_difficulty(fields["DIFFICULTY"])
    if difficulty is None:
        raise ValidationFailure(
            f'Invalid difficulty "{fields["DIFFICULTY"]}" in plan {sequence}. '
            f"Must be one of: {', '.join(DIFFICULTIES)}",
            field="DIFFICULTY", value=fields["DIFFICULTY"],
        )

    task_type = canonical_task_type(fields["TYPE"])
    if task_type is None or task_type not in config.types:
        raise ValidationFailure(
            f'Invalid type "{fields["TYPE"]}" in plan {sequence}. '
            f"Must be one of: {', '.join(config.types)}",
            field="TYPE", value=fields["TYPE"],
        )

    return TaskSpecification(
        sequence=max(sequence, 1),
        type=task_type,
        topic=reconcile_topic(fields["TOPIC"], config.topics),
        difficulty=difficulty,
        goal=fields["GOAL"],
    )


def parse_plan(raw_text: str, config: GenerationConfig) -> list[TaskSpecification]:
    """Parse plan records into specifications sorted by sequence number."""
    records = parse_records(raw_text, PLAN_START, PLAN_END, PLAN_FIELDS)
    if not records:
        raise ParseFailure("No valid task plans found in response", missing=PLAN_FIELDS)

    specs = sorted(
        (_to_specification(fields, config) for fields in records),
        key=lambda s: s.sequence,
    )

    expected = list(range(1, len(specs) + 1))
    if [s.sequence for s in specs] != expected:
        logger.warning(
            "Plan sequence numbers %s are not dense; renumbering 1..%d",
            [s.sequence for s in specs], len(specs),
        )
        specs = [s.model_copy(update={"sequence": i}) for i, s in zip(expected, specs)]
    return specs


def summarize_plan(specs: list[TaskSpecification], config: GenerationConfig) -> PlanSummary:
    coverage = Counter(s.topic for s in specs)
    difficulty = Counter(s.difficulty for s in specs)
    return PlanSummary(
        strategy=(
            f"Generate {config.count} tasks covering {', '.join(config.topics)} "
            "with balanced difficulty distribution"
        ),
        topic_coverage=dict(coverage),
        difficulty_distribution={d: difficulty.get(d, 0) for d in DIFFICULTIES},
    )


# ---------------------------------------------------------------------------
# PlanGenerator
# ---------------------------------------------------------------------------

class PlanGenerator:
    """Builds the plan prompt, makes the single plan call, parses the result."""

    def __init__(self, caller: Optional[RateLimitedCaller] = None):
        self._caller = caller

    @property
    def caller(self) -> RateLimitedCaller:
        if self._caller is None:
            self._caller = get_rate_limited_caller()
        return self._caller

    async def plan(
        self,
        config: GenerationConfig,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[TaskSpecification]:
        if on_progress:
            on_progress("planning", 0, 1, None)

        try:
            raw = await self.caller.invoke(build_plan_prompt(config))
        except AssessmentError:
            raise
        except Exception as exc:
            raise ServiceFailure("plan", str(exc)) from exc

        specs = parse_plan(raw, config)
        if len(specs) != config.count:
            logger.warning(
                "Expected %d task plans, got %d. Proceeding with available plans.",
                config.count, len(specs),
            )

        summary = summarize_plan(specs, config)
        logger.info(
            "Plan ready: %d specs, topics=%s, difficulty=%s",
            len(specs), summary.topic_coverage, summary.difficulty_distribution,
        )

        if on_progress:
            on_progress("planning", 1, 1, summary)
        return specs
