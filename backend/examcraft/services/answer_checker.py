"""
Answer Equivalence Engine: decides whether a learner answer matches the
canonical answer for a task type.

Every type first gets a normalized exact-match check (lowercase, trim,
collapse whitespace, strip punctuation). If that fails, the type's strategy
from the checker's dispatch table decides:

  Multiple Choice      first option letter a-d on both sides
  True/False           true/false, accepting t/f in either direction
  Numerical,
  Problem Solving      first numeric literal on both sides, adaptive tolerance
                       (0.01 absolute when |expected| <= 1, else 0.1% relative)
  Short Answer,
  Fill in the Blank    numeric equivalence, else edit-distance similarity > 0.85
  Essay                AI rubric (score >= 85); on any rubric failure, fall back
                       to similarity > 0.7 and flag the feedback as degraded
  everything else      normalized exact match only

Incorrect verdicts always name both the expected and the received answer.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from examcraft.core.config import get_settings
from examcraft.models.assessment import TASK_TYPES
from examcraft.prompts.task_generation import RUBRIC_SYSTEM_PROMPT, RUBRIC_USER_TEMPLATE
from examcraft.services.rate_limiter import RateLimitedCaller, get_rate_limited_caller

logger = logging.getLogger(__name__)

DEGRADED_NOTICE = "Assessment degraded"

# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

# Fixed punctuation set. "." and "-" are only stripped when they do not lead
# into a digit, so "6.5" and "-3" survive normalisation intact.
_PUNCT_RE = re.compile(r"[,/#!$%^&*;:{}=_`~()\"']|\.(?!\d)|-(?!\d)")
_WS_RE = re.compile(r"\s+")


def normalize_answer(answer: str) -> str:
    """
    Lowercase, trim, collapse whitespace and strip punctuation.

    Examples:
        "  The  Mitochondria. " → "the mitochondria"
        "B) because..."         → "b because"
        "x = -4.5 cm"           → "x -4.5 cm"
    """
    s = _WS_RE.sub(" ", (answer or "").lower().strip())
    s = _PUNCT_RE.sub("", s)
    return _WS_RE.sub(" ", s).strip()


# ---------------------------------------------------------------------------
# Numeric equivalence
# ---------------------------------------------------------------------------

_THOUSANDS_RE = re.compile(r"(?<=\d),(?=\d{3}(?!\d))")
_NON_NUMERIC_RE = re.compile(r"[^\d.eE+-]")
_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def extract_number(text: str) -> Optional[float]:
    """First numeric literal in text (optionally signed, optional exponent)."""
    cleaned = _NON_NUMERIC_RE.sub(" ", _THOUSANDS_RE.sub("", text or ""))
    m = _NUMBER_RE.search(cleaned)
    if not m:
        return None
    try:
        return float(m.group(0))
    except ValueError:
        return None


def is_numerically_equal(answer: str, expected: str) -> bool:
    """
    Compare the first number in each string with an adaptive tolerance.

    |expected| <= 1 → absolute tolerance 0.01
    |expected| >  1 → relative tolerance 0.1% of |expected|
    """
    got = extract_number(answer)
    want = extract_number(expected)
    if got is None or want is None:
        return False
    tolerance = 0.01 if abs(want) <= 1 else abs(want) * 0.001
    return abs(got - want) <= tolerance


# ---------------------------------------------------------------------------
# Edit-distance similarity
# ---------------------------------------------------------------------------

def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    """1 - levenshtein(a, b) / max(len(a), len(b)); two empty strings → 1.0."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1 - levenshtein(a, b) / longest


# ---------------------------------------------------------------------------
# Choice / boolean extraction
# ---------------------------------------------------------------------------

_STANDALONE_CHOICE_RE = re.compile(r"\b([a-d])\b")
_ANY_CHOICE_RE = re.compile(r"[a-d]")


def extract_choice(answer: str) -> Optional[str]:
    """Option letter a-d: a standalone letter if present, else the first a-d character."""
    norm = normalize_answer(answer)
    m = _STANDALONE_CHOICE_RE.search(norm)
    if m:
        return m.group(1)
    m = _ANY_CHOICE_RE.search(norm)
    return m.group(0) if m else None


# Whole tokens only; negated phrases are listed first so they win at the same position.
_TRUE_FALSE_RE = re.compile(r"\b(not\s+true|not\s+false|untrue|true|false|t|f)\b")
_TRUE_FALSE_TOKENS = {
    "true": "true", "t": "true", "not false": "true",
    "false": "false", "f": "false", "not true": "false", "untrue": "false",
}


def normalize_true_false(answer: str) -> str:
    """
    "true"/"false" from the first verdict token in the answer.

    "False, it is not true" → "false"; "untrue" → "false". Answers with no
    verdict token come back normalized but otherwise unchanged.
    """
    norm = normalize_answer(answer)
    m = _TRUE_FALSE_RE.search(norm)
    if not m:
        return norm
    return _TRUE_FALSE_TOKENS[_WS_RE.sub(" ", m.group(1))]


# ---------------------------------------------------------------------------
# Verdicts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CheckResult:
    is_correct: bool
    feedback: str = ""
    degraded: bool = False


def _mismatch(expected: str, got: str, suffix: str = "") -> str:
    msg = f"Expected: {expected}, Got: {got}"
    return f"{msg} {suffix}" if suffix else msg


def grade_multiple_choice(answer: str, canonical: str) -> CheckResult:
    got = extract_choice(answer)
    want = extract_choice(canonical)
    if got is None or want is None:
        return CheckResult(False, _mismatch(
            (want or normalize_answer(canonical)).upper(),
            (got or normalize_answer(answer)).upper(),
        ))
    if got == want:
        return CheckResult(True, "Correct choice!")
    return CheckResult(False, _mismatch(want.upper(), got.upper()))


def grade_true_false(answer: str, canonical: str) -> CheckResult:
    got = normalize_true_false(answer)
    want = normalize_true_false(canonical)
    if got == want:
        return CheckResult(True, "Correct!")
    return CheckResult(False, _mismatch(want, got))


def grade_numeric(answer: str, canonical: str) -> CheckResult:
    if is_numerically_equal(answer, canonical):
        return CheckResult(True, "Numerically correct!")
    return CheckResult(False, _mismatch(canonical.strip(), normalize_answer(answer)))


def grade_exact(answer: str, canonical: str) -> CheckResult:
    # Normalized exact match already failed by the time this runs.
    return CheckResult(False, _mismatch(canonical.strip(), normalize_answer(answer)))


def similarity_grader(threshold: float) -> Callable[[str, str], CheckResult]:
    """Numeric equivalence first, then edit-distance similarity above threshold."""

    def grade(answer: str, canonical: str) -> CheckResult:
        if is_numerically_equal(answer, canonical):
            return CheckResult(True, "Numerically equivalent!")
        similarity = string_similarity(normalize_answer(answer), normalize_answer(canonical))
        pct = f"({round(similarity * 100)}% similarity)"
        if similarity > threshold:
            return CheckResult(True, f"Close match {pct}")
        return CheckResult(False, _mismatch(canonical.strip(), normalize_answer(answer), pct))

    return grade


def _clean_json(content: str) -> str:
    """Strip markdown fences."""
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def parse_rubric_verdict(raw: str) -> tuple[float, str]:
    """Return (score, feedback) from the rubric JSON; raises ValueError when malformed."""
    data = json.loads(_clean_json(raw))
    if not isinstance(data, dict) or "score" not in data:
        raise ValueError("rubric response has no score")
    score = float(data["score"])
    if not 0 <= score <= 100:
        raise ValueError(f"rubric score out of range: {score}")

    parts = [f"Assessment Score: {score:g}%"]
    if data.get("feedback"):
        parts.append(f"Detailed Feedback:\n{data['feedback']}")
    covered = data.get("keyPointsCovered") or []
    if covered:
        parts.append(f"Key Points Demonstrated: {', '.join(map(str, covered))}")
    suggestions = data.get("improvementSuggestions") or []
    if suggestions:
        parts.append(f"Areas for Improvement: {', '.join(map(str, suggestions))}")
    return score, "\n\n".join(parts)


# ---------------------------------------------------------------------------
# AnswerChecker
# ---------------------------------------------------------------------------

class AnswerChecker:
    """Type-dispatched grading. Pure apart from the essay rubric call."""

    def __init__(
        self,
        caller: Optional[RateLimitedCaller] = None,
        similarity_threshold: float = 0.85,
        essay_pass_score: float = 85,
        essay_fallback_threshold: float = 0.7,
    ):
        self._caller = caller
        self.essay_pass_score = essay_pass_score
        self.essay_fallback_threshold = essay_fallback_threshold

        similar = similarity_grader(similarity_threshold)
        self._graders: dict[str, Callable[[str, str], CheckResult]] = {
            "Multiple Choice": grade_multiple_choice,
            "True/False": grade_true_false,
            "Numerical": grade_numeric,
            "Problem Solving": grade_numeric,
            "Short Answer": similar,
            "Fill in the Blank": similar,
            "Matching": grade_exact,
            "Coding": grade_exact,
            "Debugging": grade_exact,
            "Case Study": grade_exact,
            "Diagram Analysis": grade_exact,
            "Data Analysis": grade_exact,
            "Theory": grade_exact,
            "Practical": grade_exact,
        }

    @property
    def caller(self) -> RateLimitedCaller:
        if self._caller is None:
            self._caller = get_rate_limited_caller()
        return self._caller

    @property
    def handled_types(self) -> set[str]:
        return set(self._graders) | {"Essay"}

    async def grade(
        self,
        answer: str,
        canonical: str,
        task_type: str,
        question: str = "",
    ) -> CheckResult:
        if not (answer or "").strip():
            expected = (canonical or "").strip() or "(none)"
            return CheckResult(False, "No answer provided. " + _mismatch(expected, "(none)"))
        if not (canonical or "").strip():
            return CheckResult(
                False, "No canonical answer to compare against. " + _mismatch("(none)", answer.strip()),
            )
        if task_type not in TASK_TYPES:
            raise ValueError(f"Unknown task type: {task_type}")

        if normalize_answer(answer) == normalize_answer(canonical):
            return CheckResult(True, "Exact match!")

        if task_type == "Essay":
            return await self._grade_essay(answer, canonical, question)
        return self._graders[task_type](answer, canonical)

    async def _grade_essay(self, answer: str, criteria: str, question: str) -> CheckResult:
        messages = [
            {"role": "system", "content": RUBRIC_SYSTEM_PROMPT},
            {"role": "user", "content": RUBRIC_USER_TEMPLATE.format(
                type="Essay", question=question or "(not provided)",
                criteria=criteria, answer=answer,
            )},
        ]
        try:
            raw = await self.caller.invoke(messages, json_mode=True)
            score, feedback = parse_rubric_verdict(raw)
        except Exception as exc:
            logger.warning("AI rubric failed (%s: %s); using similarity fallback", exc.__class__.__name__, exc)
            return self._essay_fallback(answer, criteria)
        return CheckResult(score >= self.essay_pass_score, feedback)

    def _essay_fallback(self, answer: str, criteria: str) -> CheckResult:
        similarity = string_similarity(normalize_answer(answer), normalize_answer(criteria))
        correct = similarity > self.essay_fallback_threshold
        feedback = (
            f"{DEGRADED_NOTICE}: AI rubric unavailable, graded by text similarity "
            f"({round(similarity * 100)}%)."
        )
        if not correct:
            feedback += " " + _mismatch(criteria.strip(), normalize_answer(answer))
        return CheckResult(correct, feedback, degraded=True)


def get_answer_checker() -> AnswerChecker:
    settings = get_settings()
    return AnswerChecker(
        similarity_threshold=settings.similarity_threshold,
        essay_pass_score=settings.essay_pass_score,
        essay_fallback_threshold=settings.essay_fallback_threshold,
    )
