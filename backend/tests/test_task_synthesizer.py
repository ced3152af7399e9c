"""
Tests for task parsing, synthesis and the two-phase generate() pipeline.

All tests run fully offline. The pipeline tests drive a real
RateLimitedCaller whose completion function is a scripted stub, so the
throttle and retry layers are exercised too (with a no-op sleep).
"""
import asyncio
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from examcraft.core.errors import GenerationError, ParseFailure, ValidationFailure
from examcraft.models.assessment import GenerationConfig, TaskSpecification
from examcraft.prompts.task_generation import PLAN_END, PLAN_START, TASK_END, TASK_START
from examcraft.services.rate_limiter import RateLimitedCaller, SlidingWindowLimiter
from examcraft.services.task_synthesizer import (
    build_task_prompt,
    generate,
    parse_task,
    render_options,
)


def _run(coro):
    return asyncio.run(coro)


async def _no_sleep(_seconds):
    return None


def _caller(responses: list) -> tuple[RateLimitedCaller, list]:
    """RateLimitedCaller over a stub that pops queued responses."""
    seen: list = []

    async def complete(messages, **kwargs):
        seen.append(messages)
        outcome = responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    caller = RateLimitedCaller(
        complete,
        limiter=SlidingWindowLimiter(limit=100, window=60.0, sleep=_no_sleep),
        max_retries=3,
        base_delay=0.0,
        sleep=_no_sleep,
    )
    return caller, seen


def _config(**overrides) -> GenerationConfig:
    data = {
        "types": ["Multiple Choice"],
        "difficulty": {"easy": 100, "medium": 0, "hard": 0},
        "topics": ["Algebra"],
        "count": 2,
        "subject": "Mathematics",
    }
    data.update(overrides)
    return GenerationConfig(**data)


def _spec(n=1, type_="Multiple Choice", difficulty="easy", topic="Algebra"):
    return TaskSpecification(sequence=n, type=type_, topic=topic, difficulty=difficulty, goal="solve")


def _plan(*rows):
    return "".join(
        f"{PLAN_START}\nTASK_NUMBER: {n}\nTYPE: {t}\nDIFFICULTY: {d}\nTOPIC: {topic}\nGOAL: goal {n}\n{PLAN_END}\n"
        for n, t, d, topic in rows
    )


def _mc_task(question="What is x if x + 2 = 5?", answer="B", difficulty="easy"):
    return (
        f"{TASK_START}\nTYPE: Multiple Choice\nDIFFICULTY: {difficulty}\nTOPIC: Algebra\n"
        f"TEXT: {question}\nOPTIONS:\nA) 2\nB) 3\nC) 4\nD) 5\n"
        f"ANSWER: {answer}\nSOLUTION: Subtract 2 from both sides.\nx = 3.\n{TASK_END}"
    )


# ---------------------------------------------------------------------------
# Prompt + option rendering
# ---------------------------------------------------------------------------

class TestBuildTaskPrompt:
    def test_multiple_choice_prompt_asks_for_options(self):
        user = build_task_prompt(_spec(), _config())[1]["content"]
        assert "OPTIONS:" in user
        assert "TYPE: Multiple Choice" in user
        assert TASK_START in user and TASK_END in user

    def test_other_types_have_no_options_block(self):
        cfg = _config(types=["Essay"])
        user = build_task_prompt(_spec(type_="Essay"), cfg)[1]["content"]
        assert "OPTIONS:" not in user


class TestRenderOptions:
    def test_question_mark_kept(self):
        out = render_options("What is 2 + 2?", "A) 3\nB) 4")
        assert out == "What is 2 + 2?\n\nChoose the correct answer:\nA) 3\nB) 4"

    def test_full_stop_added(self):
        assert render_options("Pick the prime", "A) 4").startswith("Pick the prime.\n\n")


# ---------------------------------------------------------------------------
# parse_task
# ---------------------------------------------------------------------------

class TestParseTask:
    def test_multiple_choice_text_includes_options(self):
        task = parse_task(_mc_task(), _config())
        assert task.text.startswith("What is x if x + 2 = 5?\n\nChoose the correct answer:\nA) 2")
        assert task.answer == "B"
        assert task.solution == "Subtract 2 from both sides.\nx = 3."
        assert task.type == "Multiple Choice"
        assert task.topic == "Algebra"
        assert task.id

    def test_ids_are_unique(self):
        assert parse_task(_mc_task(), _config()).id != parse_task(_mc_task(), _config()).id

    def test_plan_type_wins_over_written_type(self):
        raw = _mc_task().replace("TYPE: Multiple Choice", "TYPE: Short Answer")
        task = parse_task(raw, _config(), _spec())
        assert task.type == "Multiple Choice"
        assert "Choose the correct answer:" in task.text

    def test_explanatory_text_only_is_parse_failure(self):
        with pytest.raises(ParseFailure):
            parse_task("I'd be happy to help you learn algebra!", _config())

    def test_missing_solution_is_parse_failure(self):
        raw = f"{TASK_START}\nTYPE: Numerical\nDIFFICULTY: easy\nTOPIC: Algebra\nTEXT: q\nANSWER: 3\n{TASK_END}"
        with pytest.raises(ParseFailure) as exc_info:
            parse_task(raw, _config())
        assert exc_info.value.missing == ["SOLUTION"]

    def test_invalid_difficulty_is_validation_failure(self):
        with pytest.raises(ValidationFailure):
            parse_task(_mc_task(difficulty="trivial"), _config())

    def test_unknown_type_is_validation_failure(self):
        raw = _mc_task().replace("TYPE: Multiple Choice", "TYPE: Riddle")
        with pytest.raises(ValidationFailure):
            parse_task(raw, _config())


# ---------------------------------------------------------------------------
# generate()
# ---------------------------------------------------------------------------

class TestGenerate:
    def test_two_easy_multiple_choice_tasks(self):
        plan = _plan((1, "Multiple Choice", "easy", "Algebra"), (2, "Multiple Choice", "easy", "Algebra"))
        caller, seen = _caller([plan, _mc_task(), _mc_task("Solve 3x = 9?", "B")])
        events = []

        tasks = _run(generate(_config(), on_progress=lambda *a: events.append(a), caller=caller))

        assert len(tasks) == 2
        for task in tasks:
            assert task.type == "Multiple Choice"
            assert task.difficulty == "easy"
            assert task.topic == "Algebra"
            assert "Choose the correct answer:" in task.text
            assert task.answer and task.solution
        assert len(seen) == 3
        assert [e[:3] for e in events] == [
            ("planning", 0, 1),
            ("planning", 1, 1),
            ("generating", 1, 2),
            ("generating", 2, 2),
        ]

    def test_tasks_follow_plan_order(self):
        plan = _plan((2, "Multiple Choice", "easy", "Algebra"), (1, "Multiple Choice", "easy", "Algebra"))
        caller, seen = _caller([plan, _mc_task("First?"), _mc_task("Second?")])
        tasks = _run(generate(_config(), caller=caller))
        assert tasks[0].text.startswith("First?")
        assert "goal 1" in seen[1][1]["content"]
        assert "goal 2" in seen[2][1]["content"]

    def test_transient_failure_is_retried(self):
        plan = _plan((1, "Multiple Choice", "easy", "Algebra"))
        caller, seen = _caller([plan, RuntimeError("502 bad gateway"), _mc_task()])
        tasks = _run(generate(_config(count=1), caller=caller))
        assert len(tasks) == 1
        assert len(seen) == 3

    def test_plan_failure_names_plan_phase(self):
        caller, _ = _caller(["no markers here at all"])
        with pytest.raises(GenerationError) as exc_info:
            _run(generate(_config(), caller=caller))
        assert exc_info.value.phase == "plan"
        assert isinstance(exc_info.value.cause, ParseFailure)

    def test_synthesis_failure_aborts_whole_run(self):
        plan = _plan((1, "Multiple Choice", "easy", "Algebra"), (2, "Multiple Choice", "easy", "Algebra"))
        caller, _ = _caller([plan, _mc_task(), "Sorry, I cannot write that task."])
        with pytest.raises(GenerationError) as exc_info:
            _run(generate(_config(), caller=caller))
        err = exc_info.value
        assert err.phase == "synthesize task 2"
        assert err.sequence == 2
        assert "synthesize task 2" in str(err)

    def test_service_exhaustion_is_reported_as_generation_error(self):
        plan = _plan((1, "Multiple Choice", "easy", "Algebra"))
        caller, _ = _caller([plan] + [RuntimeError("down")] * 4)
        with pytest.raises(GenerationError) as exc_info:
            _run(generate(_config(count=1), caller=caller))
        assert exc_info.value.status_code == 502
        assert exc_info.value.phase == "synthesize task 1"
