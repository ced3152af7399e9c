from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Literal, Optional, get_args


Difficulty = Literal["easy", "medium", "hard"]

TaskType = Literal[
    "Multiple Choice",
    "True/False",
    "Numerical",
    "Problem Solving",
    "Short Answer",
    "Fill in the Blank",
    "Essay",
    "Matching",
    "Coding",
    "Debugging",
    "Case Study",
    "Diagram Analysis",
    "Data Analysis",
    "Theory",
    "Practical",
]

DIFFICULTIES: tuple[str, ...] = get_args(Difficulty)
TASK_TYPES: tuple[str, ...] = get_args(TaskType)

MAX_TASK_COUNT = 20


def canonical_difficulty(value: str) -> str | None:
    """Case-insensitive lookup in the difficulty set; None when unknown."""
    v = (value or "").strip().lower()
    return v if v in DIFFICULTIES else None


def canonical_task_type(value: str) -> str | None:
    """Case-insensitive lookup in the task-type taxonomy; None when unknown."""
    v = (value or "").strip().lower()
    for t in TASK_TYPES:
        if t.lower() == v:
            return t
    return None


class DifficultyMix(BaseModel):
    model_config = ConfigDict(frozen=True)

    easy: int = Field(ge=0, le=100)
    medium: int = Field(ge=0, le=100)
    hard: int = Field(ge=0, le=100)

    @model_validator(mode="after")
    def _sums_to_100(self):
        total = self.easy + self.medium + self.hard
        if total != 100:
            raise ValueError(f"difficulty mix must sum to 100, got {total}")
        return self


class GenerationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    types: list[TaskType] = Field(min_length=1)
    difficulty: DifficultyMix
    topics: list[str] = Field(min_length=1)
    count: int = Field(ge=1, le=MAX_TASK_COUNT)
    subject: str

    @field_validator("types", mode="before")
    @classmethod
    def _canonical_types(cls, v):
        if not isinstance(v, (list, tuple, set)):
            return v
        out: list = []
        for item in v:
            canon = canonical_task_type(item) if isinstance(item, str) else None
            value = canon or item
            if value not in out:
                out.append(value)
        return out

    @field_validator("topics")
    @classmethod
    def _clean_topics(cls, v: list[str]) -> list[str]:
        out: list[str] = []
        for topic in v:
            t = topic.strip()
            if t and t not in out:
                out.append(t)
        if not out:
            raise ValueError("at least one non-blank topic is required")
        return out


class DifficultyQuota(BaseModel):
    easy: int
    medium: int
    hard: int

    @property
    def total(self) -> int:
        return self.easy + self.medium + self.hard


class TaskSpecification(BaseModel):
    model_config = ConfigDict(frozen=True)

    sequence: int = Field(ge=1)
    type: TaskType
    topic: str
    difficulty: Difficulty
    goal: str = ""


class PlanSummary(BaseModel):
    strategy: str
    topic_coverage: dict[str, int]
    difficulty_distribution: dict[str, int]


class Task(BaseModel):
    id: str
    text: str
    type: TaskType
    topic: str
    difficulty: Difficulty
    answer: Optional[str] = None
    solution: Optional[str] = None


class AnswerSubmission(BaseModel):
    answer: str = ""
    solution: Optional[str] = None  # learner's shown work
    time_taken: float = Field(default=0.0, ge=0)


class GradingResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    task_id: str
    is_correct: bool
    feedback: str = ""
    time_taken: float = Field(default=0.0, ge=0)
    answer: str = ""
    shown_work: Optional[str] = None
    difficulty: Difficulty
    topic: str
    type: TaskType


class GroupStats(BaseModel):
    total: int = 0
    correct: int = 0
    accuracy: float = 0.0


class StatisticsSummary(BaseModel):
    total: int
    correct: int
    accuracy: float
    total_time: float
    average_time: float
    fastest: float
    slowest: float
    by_difficulty: dict[str, GroupStats]
    by_topic: dict[str, GroupStats]
    by_type: dict[str, GroupStats]


class SheetSummary(BaseModel):
    total_tasks: int
    correct_tasks: int
    accuracy: float
    total_time_spent: float
    average_time_per_task: float
