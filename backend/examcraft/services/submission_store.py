"""SubmissionStore: persists generated tasks and graded sheets to Supabase.

Rules:
  - Accepts an injected supabase_client so the store is offline-testable.
  - Every write is best-effort: DB errors are logged and reported as a False /
    0 return, never raised. Grading results are returned to the learner even
    when nothing could be saved.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from examcraft.models.assessment import GradingResult, SheetSummary, Task

logger = logging.getLogger(__name__)

TASKS_TABLE = "tasks"
TASK_SUBMISSIONS_TABLE = "task_submissions"
SHEET_SUBMISSIONS_TABLE = "sheet_submissions"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SubmissionStore:
    def __init__(self, supabase_client=None):
        self._sb = supabase_client

    def _get_sb(self):
        if self._sb:
            return self._sb
        from examcraft.core.deps import get_supabase_client
        return get_supabase_client()

    def save_tasks(self, tasks: list[Task], user_id: Optional[str] = None, subject: str = "") -> int:
        """Insert generated tasks; returns the number of rows written."""
        if not tasks:
            return 0
        rows = [
            {
                "id": t.id,
                "user_id": user_id,
                "subject": subject,
                "text": t.text,
                "type": t.type,
                "topic": t.topic,
                "difficulty": t.difficulty,
                "answer": t.answer,
                "solution": t.solution,
                "created_at": _now(),
            }
            for t in tasks
        ]
        try:
            self._get_sb().table(TASKS_TABLE).insert(rows).execute()
        except Exception as exc:
            logger.error("[SubmissionStore.save_tasks] DB error: %s", exc, exc_info=True)
            return 0
        return len(rows)

    def save_results(
        self,
        results: list[GradingResult],
        sheet_id: str,
        user_id: Optional[str] = None,
    ) -> int:
        """Insert one task_submissions row per graded task."""
        if not results:
            return 0
        rows = [
            {
                "sheet_id": sheet_id,
                "user_id": user_id,
                "task_id": r.task_id,
                "answer": r.answer,
                "solution": r.shown_work,
                "is_correct": r.is_correct,
                "feedback": r.feedback,
                "time_taken": r.time_taken,
                "submitted_at": _now(),
            }
            for r in results
        ]
        try:
            self._get_sb().table(TASK_SUBMISSIONS_TABLE).insert(rows).execute()
        except Exception as exc:
            logger.error("[SubmissionStore.save_results] DB error: %s", exc, exc_info=True)
            return 0
        return len(rows)

    def save_sheet(
        self,
        summary: SheetSummary,
        sheet_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Optional[str]:
        """Insert the sheet summary row; returns the sheet id or None on failure."""
        sheet_id = sheet_id or str(uuid.uuid4())
        row = {
            "id": sheet_id,
            "user_id": user_id,
            **summary.model_dump(),
            "submitted_at": _now(),
        }
        try:
            self._get_sb().table(SHEET_SUBMISSIONS_TABLE).insert(row).execute()
        except Exception as exc:
            logger.error("[SubmissionStore.save_sheet] DB error: %s", exc, exc_info=True)
            return None
        return sheet_id
