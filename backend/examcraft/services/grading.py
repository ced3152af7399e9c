"""
Session grading: every task of a sheet checked against the learner's
submission, concurrently, results returned in task order.

A task with no submission is graded as an empty answer ("No answer provided. Expected: ..., Got: (none)").
The canonical answer is task.answer, falling back to task.solution.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Mapping, Optional, Union

from examcraft.models.assessment import AnswerSubmission, GradingResult, Task
from examcraft.services.answer_checker import DEGRADED_NOTICE, AnswerChecker, get_answer_checker
from examcraft.services.telemetry import emit_event

logger = logging.getLogger(__name__)

SubmissionLike = Union[AnswerSubmission, dict]


def _coerce(sub: Optional[SubmissionLike]) -> AnswerSubmission:
    if sub is None:
        return AnswerSubmission()
    if isinstance(sub, AnswerSubmission):
        return sub
    return AnswerSubmission.model_validate(sub)


async def grade_task(task: Task, submission: AnswerSubmission, checker: AnswerChecker) -> GradingResult:
    canonical = task.answer or task.solution or ""
    verdict = await checker.grade(submission.answer, canonical, task.type, question=task.text)
    if verdict.degraded:
        logger.warning("Task %s graded in degraded mode", task.id)
    return GradingResult(
        task_id=task.id,
        is_correct=verdict.is_correct,
        feedback=verdict.feedback,
        time_taken=submission.time_taken,
        answer=submission.answer,
        shown_work=submission.solution,
        difficulty=task.difficulty,
        topic=task.topic,
        type=task.type,
    )


async def grade_session(
    tasks: list[Task],
    answers: Mapping[str, SubmissionLike],
    checker: Optional[AnswerChecker] = None,
) -> list[GradingResult]:
    """Grade every task concurrently; output order matches `tasks`."""
    checker = checker or get_answer_checker()
    results = await asyncio.gather(*(
        grade_task(task, _coerce(answers.get(task.id)), checker) for task in tasks
    ))

    correct = sum(1 for r in results if r.is_correct)
    degraded = sum(1 for r in results if r.feedback.startswith(DEGRADED_NOTICE))
    logger.info("Graded %d tasks: %d correct, %d degraded", len(results), correct, degraded)
    emit_event("session_graded", phase="grade", count=len(results), correct=correct, degraded=degraded, ok=True)
    return list(results)
