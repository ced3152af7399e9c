"""
Task Synthesizer: phase 2 of the generation pipeline.

Each TaskSpecification from the plan becomes one text-service call and one
complete Task (prompt text, answer, worked solution). Calls are sequential in
sequence-number order; the first specification that cannot be synthesized
aborts the run with a GenerationError naming it. A partial task set is never
returned as success.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from examcraft.core.errors import (
    AssessmentError,
    GenerationError,
    ParseFailure,
    ServiceFailure,
    ValidationFailure,
)
from examcraft.models.assessment import (
    DIFFICULTIES,
    GenerationConfig,
    Task,
    TaskSpecification,
    canonical_difficulty,
    canonical_task_type,
)
from examcraft.prompts.task_generation import (
    OPTIONS_BLOCK,
    TASK_END,
    TASK_FIELDS,
    TASK_START,
    TASK_SYSTEM_PROMPT,
    TASK_USER_TEMPLATE,
    get_type_guidance,
)
from examcraft.services.plan_generator import PlanGenerator, ProgressCallback, summarize_plan
from examcraft.services.rate_limiter import RateLimitedCaller, get_rate_limited_caller
from examcraft.services.telemetry import emit_event
from examcraft.utils.record_parser import parse_records
from examcraft.utils.topics import reconcile_topic

logger = logging.getLogger(__name__)


def build_task_prompt(spec: TaskSpecification, config: GenerationConfig) -> list[dict]:
    user_msg = TASK_USER_TEMPLATE.format(
        type=spec.type,
        difficulty=spec.difficulty,
        topic=spec.topic,
        goal=spec.goal,
        subject=config.subject,
        options_block=OPTIONS_BLOCK if spec.type == "Multiple Choice" else "",
        guidance=get_type_guidance(spec.type, config.subject),
        task_start=TASK_START,
        task_end=TASK_END,
    )
    return [
        {"role": "system", "content": TASK_SYSTEM_PROMPT},
        {"role": "user", "content": user_msg},
    ]


def render_options(text: str, options: str) -> str:
    """Append the option list so the stored prompt is self-contained."""
    question = text.strip()
    if not question.endswith("?"):
        question += "."
    return f"{question}\n\nChoose the correct answer:\n{options.strip()}"


def parse_task(
    raw_text: str,
    config: GenerationConfig,
    spec: Optional[TaskSpecification] = None,
) -> Task:
    """
    Parse the first task record of a synthesis response into a Task.

    When `spec` is given its type wins over the type the model wrote back.
    """
    records = parse_records(raw_text, TASK_START, TASK_END, TASK_FIELDS)
    if not records:
        raise ParseFailure(
            "No valid tasks found in response. Response may contain only explanatory text.",
            missing=TASK_FIELDS,
        )
    if len(records) > 1:
        logger.warning("Synthesis returned %d task records; keeping the first", len(records))
    fields = records[0]

    task_type = canonical_task_type(fields["TYPE"])
    if task_type is None:
        raise ValidationFailure(f'Invalid task type "{fields["TYPE"]}"', field="TYPE", value=fields["TYPE"])
    if spec is not None and task_type != spec.type:
        logger.warning(
            "Task %d: model wrote type %r, plan asked for %r; keeping plan type",
            spec.sequence, task_type, spec.type,
        )
        task_type = spec.type

    difficulty = canonical_difficulty(fields["DIFFICULTY"])
    if difficulty is None:
        raise ValidationFailure(
            f'Invalid difficulty "{fields["DIFFICULTY"]}". Must be one of: {", ".join(DIFFICULTIES)}',
            field="DIFFICULTY", value=fields["DIFFICULTY"],
        )

    text = fields["TEXT"]
    if task_type == "Multiple Choice" and fields.get("OPTIONS"):
        text = render_options(text, fields["OPTIONS"])

    return Task(
        id=str(uuid.uuid4()),
        text=text,
        type=task_type,
        topic=reconcile_topic(fields["TOPIC"], config.topics),
        difficulty=difficulty,
        answer=fields["ANSWER"],
        solution=fields["SOLUTION"],
    )


class TaskSynthesizer:
    """Expands one specification into one Task via one text-service call."""

    def __init__(self, caller: Optional[RateLimitedCaller] = None):
        self._caller = caller

    @property
    def caller(self) -> RateLimitedCaller:
        if self._caller is None:
            self._caller = get_rate_limited_caller()
        return self._caller

    async def synthesize(self, spec: TaskSpecification, config: GenerationConfig) -> Task:
        try:
            raw = await self.caller.invoke(build_task_prompt(spec, config))
        except AssessmentError:
            raise
        except Exception as exc:
            raise ServiceFailure(f"synthesize task {spec.sequence}", str(exc)) from exc

        return parse_task(raw, config, spec)


async def generate(
    config: GenerationConfig,
    on_progress: Optional[ProgressCallback] = None,
    caller: Optional[RateLimitedCaller] = None,
) -> list[Task]:
    """
    Plan, then synthesize every specification in sequence order.

    on_progress(phase, current, total, plan_summary) is called with
    ("planning", 0, 1, None), ("planning", 1, 1, summary), then
    ("generating", n, total, summary) after each synthesized task.
    """
    planner = PlanGenerator(caller)
    synthesizer = TaskSynthesizer(caller)

    try:
        specs = await planner.plan(config, on_progress=on_progress)
    except AssessmentError as exc:
        emit_event("generation_failed", phase="plan", error_type=exc.error_code, ok=False)
        raise GenerationError("plan", exc) from exc

    summary = summarize_plan(specs, config)
    tasks: list[Task] = []
    for spec in specs:
        phase = f"synthesize task {spec.sequence}"
        try:
            task = await synthesizer.synthesize(spec, config)
        except AssessmentError as exc:
            logger.error("Error generating task %d: %s", spec.sequence, exc)
            emit_event("generation_failed", phase=phase, error_type=exc.error_code, ok=False)
            raise GenerationError(phase, exc, sequence=spec.sequence) from exc

        tasks.append(task)
        logger.info("Task %d/%d: %s / %s / %s", spec.sequence, len(specs), task.type, task.topic, task.difficulty)
        if on_progress:
            on_progress("generating", spec.sequence, len(specs), summary)

    emit_event("generation_complete", phase="generate", count=len(tasks), ok=True)
    return tasks
