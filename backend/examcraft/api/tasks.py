import asyncio
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from examcraft.core.config import get_settings
from examcraft.core.errors import AssessmentError
from examcraft.models.assessment import (
    AnswerSubmission,
    GenerationConfig,
    GradingResult,
    PlanSummary,
    SheetSummary,
    StatisticsSummary,
    Task,
)
from examcraft.services.adaptive import (
    determine_optimal_difficulty,
    suggest_next_config,
    topic_mastery,
)
from examcraft.services.answer_checker import AnswerChecker, get_answer_checker
from examcraft.services.grading import grade_session
from examcraft.services.rate_limiter import RateLimitedCaller, get_rate_limited_caller
from examcraft.services.statistics import aggregate, summarize_sheet
from examcraft.services.submission_store import SubmissionStore
from examcraft.services.task_synthesizer import generate
from examcraft.services.telemetry import instrument

logger = logging.getLogger("examcraft.api.tasks")
router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"])


# ──────────────────────────────────────────────
# Dependencies
# ──────────────────────────────────────────────

def get_caller() -> RateLimitedCaller:
    return get_rate_limited_caller()


def get_checker() -> AnswerChecker:
    return get_answer_checker()


def get_store() -> Optional[SubmissionStore]:
    """None when Supabase is not configured; results are then not persisted."""
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_key:
        return None
    return SubmissionStore()


def _http_error(exc: AssessmentError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"error": exc.error_code, "message": exc.message, "context": exc.context},
    )


# ──────────────────────────────────────────────
# Request / response models
# ──────────────────────────────────────────────

class GenerateRequest(BaseModel):
    config: GenerationConfig
    user_id: Optional[str] = None


class GenerateResponse(BaseModel):
    tasks: list[Task]
    plan_summary: Optional[PlanSummary] = None
    generation_time_ms: int


class GradeRequest(BaseModel):
    tasks: list[Task] = Field(min_length=1)
    answers: dict[str, AnswerSubmission] = Field(default_factory=dict)
    user_id: Optional[str] = None
    sheet_id: Optional[str] = None


class GradeResponse(BaseModel):
    results: list[GradingResult]
    statistics: StatisticsSummary
    sheet: SheetSummary
    sheet_id: Optional[str] = None


class StatisticsRequest(BaseModel):
    results: list[GradingResult] = Field(default_factory=list)


class NextConfigRequest(BaseModel):
    results: list[GradingResult] = Field(default_factory=list)
    config: GenerationConfig
    preferred_difficulty: str = "medium"
    optimal_time: float = Field(default=60.0, gt=0)


class NextConfigResponse(BaseModel):
    difficulty: str
    mastery: dict[str, float]
    config: GenerationConfig


# ──────────────────────────────────────────────
# Routes
# ──────────────────────────────────────────────

@router.post("/generate", response_model=GenerateResponse)
@instrument(route="/api/v1/tasks/generate")
async def generate_tasks(
    request: GenerateRequest,
    caller: RateLimitedCaller = Depends(get_caller),
    store: Optional[SubmissionStore] = Depends(get_store),
):
    t0 = time.time()
    summary: dict = {}

    def _on_progress(phase, current, total, plan_summary=None):
        logger.debug("generate progress phase=%s %s/%s", phase, current, total)
        if plan_summary is not None:
            summary["plan"] = plan_summary

    try:
        tasks = await generate(request.config, on_progress=_on_progress, caller=caller)
    except AssessmentError as exc:
        logger.warning("/generate failed: %s", exc)
        raise _http_error(exc)

    if store is not None:
        await asyncio.to_thread(store.save_tasks, tasks, request.user_id, request.config.subject)

    return GenerateResponse(
        tasks=tasks,
        plan_summary=summary.get("plan"),
        generation_time_ms=int((time.time() - t0) * 1000),
    )


@router.post("/grade", response_model=GradeResponse)
@instrument(route="/api/v1/tasks/grade")
async def grade_tasks(
    request: GradeRequest,
    checker: AnswerChecker = Depends(get_checker),
    store: Optional[SubmissionStore] = Depends(get_store),
):
    unknown = set(request.answers) - {t.id for t in request.tasks}
    if unknown:
        raise HTTPException(status_code=422, detail=f"Answers for unknown tasks: {', '.join(sorted(unknown))}")

    try:
        results = await grade_session(request.tasks, request.answers, checker=checker)
    except AssessmentError as exc:
        raise _http_error(exc)

    sheet = summarize_sheet(results)
    sheet_id = request.sheet_id
    if store is not None:
        saved_id = await asyncio.to_thread(store.save_sheet, sheet, sheet_id, request.user_id)
        # A failed sheet write keeps the caller's id and skips the per-task rows.
        if saved_id:
            sheet_id = saved_id
            await asyncio.to_thread(store.save_results, results, sheet_id, request.user_id)

    return GradeResponse(
        results=results,
        statistics=aggregate(results),
        sheet=sheet,
        sheet_id=sheet_id,
    )


@router.post("/statistics", response_model=StatisticsSummary)
@instrument(route="/api/v1/tasks/statistics")
async def task_statistics(request: StatisticsRequest):
    return aggregate(request.results)


@router.post("/next-config", response_model=NextConfigResponse)
@instrument(route="/api/v1/tasks/next-config")
async def next_config(request: NextConfigRequest):
    try:
        difficulty = determine_optimal_difficulty(
            request.results, request.preferred_difficulty, request.optimal_time,
        )
        config = suggest_next_config(
            request.results, request.config, request.preferred_difficulty, request.optimal_time,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    return NextConfigResponse(
        difficulty=difficulty,
        mastery=topic_mastery(request.results, request.optimal_time),
        config=config,
    )
