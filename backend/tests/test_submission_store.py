"""Tests for SubmissionStore.

All tests run FULLY OFFLINE; Supabase is replaced by an in-memory fake that
records inserts per table.
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from examcraft.models.assessment import GradingResult, SheetSummary, Task
from examcraft.services.submission_store import SubmissionStore


# ─────────────────────────────────────────────────────────────────────────────
# Offline Supabase mock
# ─────────────────────────────────────────────────────────────────────────────

class _FakeResult:
    def __init__(self, data):
        self.data = data


class _FakeQuery:
    def __init__(self, sink: list, fail: bool):
        self._sink = sink
        self._fail = fail
        self._pending = None

    def insert(self, rows, **kw) -> "_FakeQuery":
        self._pending = rows if isinstance(rows, list) else [rows]
        return self

    def execute(self) -> _FakeResult:
        if self._fail:
            raise ConnectionError("supabase unreachable")
        self._sink.extend(self._pending or [])
        return _FakeResult(self._pending)


class _FakeSupabase:
    def __init__(self, fail: bool = False):
        self.tables: dict[str, list] = {}
        self._fail = fail

    def table(self, name: str) -> _FakeQuery:
        return _FakeQuery(self.tables.setdefault(name, []), self._fail)


def _task(id_="t1"):
    return Task(id=id_, text="What is 2+2?", type="Numerical", topic="Arithmetic",
                difficulty="easy", answer="4", solution="2+2=4")


def _result(id_="t1", correct=True):
    return GradingResult(task_id=id_, is_correct=correct, feedback="ok", time_taken=9.5,
                         answer="4", shown_work="added", difficulty="easy",
                         topic="Arithmetic", type="Numerical")


_SHEET = SheetSummary(total_tasks=2, correct_tasks=1, accuracy=50.0,
                      total_time_spent=19.0, average_time_per_task=9.5)


class TestSaveTasks:
    def test_rows_written(self):
        sb = _FakeSupabase()
        n = SubmissionStore(supabase_client=sb).save_tasks([_task("t1"), _task("t2")], user_id="u1", subject="Maths")
        assert n == 2
        rows = sb.tables["tasks"]
        assert [r["id"] for r in rows] == ["t1", "t2"]
        assert rows[0]["user_id"] == "u1"
        assert rows[0]["subject"] == "Maths"
        assert rows[0]["answer"] == "4"

    def test_empty_list_is_noop(self):
        sb = _FakeSupabase()
        assert SubmissionStore(supabase_client=sb).save_tasks([]) == 0
        assert sb.tables == {}

    def test_db_error_is_swallowed(self):
        assert SubmissionStore(supabase_client=_FakeSupabase(fail=True)).save_tasks([_task()]) == 0


class TestSaveResults:
    def test_one_row_per_result(self):
        sb = _FakeSupabase()
        n = SubmissionStore(supabase_client=sb).save_results(
            [_result("t1"), _result("t2", correct=False)], sheet_id="s1", user_id="u1",
        )
        assert n == 2
        rows = sb.tables["task_submissions"]
        assert all(r["sheet_id"] == "s1" for r in rows)
        assert [r["is_correct"] for r in rows] == [True, False]
        assert rows[0]["solution"] == "added"

    def test_db_error_is_swallowed(self):
        store = SubmissionStore(supabase_client=_FakeSupabase(fail=True))
        assert store.save_results([_result()], sheet_id="s1") == 0


class TestSaveSheet:
    def test_generates_id_when_missing(self):
        sb = _FakeSupabase()
        sheet_id = SubmissionStore(supabase_client=sb).save_sheet(_SHEET, user_id="u1")
        assert sheet_id
        row = sb.tables["sheet_submissions"][0]
        assert row["id"] == sheet_id
        assert row["accuracy"] == 50.0
        assert row["average_time_per_task"] == 9.5

    def test_keeps_given_id(self):
        sb = _FakeSupabase()
        assert SubmissionStore(supabase_client=sb).save_sheet(_SHEET, sheet_id="sheet-9") == "sheet-9"

    def test_db_error_returns_none(self):
        assert SubmissionStore(supabase_client=_FakeSupabase(fail=True)).save_sheet(_SHEET) is None
