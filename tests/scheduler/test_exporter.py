"""Tests for JSON export of solve results."""

import json

import pytest

from k12_scheduler.exceptions import ConfigFileError
from k12_scheduler.scheduler.exporter import export_result_json, load_result_json
from k12_scheduler.scheduler.models import (
    SearchStatus,
    SolveResult,
    SolveStatistics,
    UnassignedVariable,
    UnscheduledReason,
)


@pytest.fixture
def sample_result(make_assignment):
    return SolveResult(
        success=False,
        status=SearchStatus.EXHAUSTED,
        assignments=[
            make_assignment("C1_math_T1_0", 1, 2),
            make_assignment(
                "fixed_C1_class_meeting_5_4", 5, 4, subject="班会", course_id="meeting", is_fixed=True
            ),
        ],
        unassigned=[
            UnassignedVariable(
                variable_id="C1_pe_T3_0",
                class_id="C1",
                course_id="pe",
                teacher_id="T3",
                subject="体育",
                reason=UnscheduledReason.NO_ROOM_AVAILABLE,
                details="No admissible room",
            )
        ],
        statistics=SolveStatistics(total_variables=3, assigned_variables=2, unassigned_variables=1),
        message="Incomplete schedule: 2/3 lessons placed",
        suggestions=["Insufficient specialized rooms for '体育': add rooms of type gym"],
    )


class TestExportResultJson:
    """Tests for export_result_json / load_result_json."""

    def test_creates_parent_directories(self, tmp_path, sample_result):
        output = tmp_path / "out" / "nested" / "schedule.json"

        export_result_json(sample_result, output)

        assert output.exists()

    def test_chinese_text_not_escaped(self, tmp_path, sample_result):
        output = tmp_path / "schedule.json"

        export_result_json(sample_result, output)

        text = output.read_text(encoding="utf-8")
        assert "班会" in text
        assert "\\u" not in text

    def test_flat_assignment_rows(self, tmp_path, sample_result):
        output = tmp_path / "schedule.json"
        export_result_json(sample_result, output)

        data = load_result_json(output)

        assert data["status"] == "exhausted"
        assert data["statistics"]["total_variables"] == 3
        first = data["assignments"][0]
        assert (first["day_of_week"], first["period"]) == (1, 2)
        assert first["week_type"] == "all"
        assert data["unassigned"][0]["reason"] == "no_room_available"

    def test_load_back_into_result(self, tmp_path, sample_result):
        output = tmp_path / "schedule.json"
        export_result_json(sample_result, output)

        restored = SolveResult.from_dict(load_result_json(output))

        assert restored.status == SearchStatus.EXHAUSTED
        assert restored.assignments == sample_result.assignments
        assert restored.unassigned == sample_result.unassigned
        assert restored.suggestions == sample_result.suggestions

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_result_json(tmp_path / "missing.json")

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{", encoding="utf-8")

        with pytest.raises(ConfigFileError, match="invalid JSON"):
            load_result_json(path)

    @pytest.mark.parametrize(
        "data,reason",
        [
            ([], "expected a JSON object"),
            ({"status": "finished", "assignments": []}, "unknown status"),
            ({"status": "success", "assignments": {}}, "'assignments' must be a list"),
            ({"status": "success", "assignments": [{"variable_id": "v0", "class_id": "C1"}]}, "lacks teacher_id"),
        ],
    )
    def test_load_rejects_foreign_json(self, tmp_path, data, reason):
        path = tmp_path / "other.json"
        path.write_text(json.dumps(data), encoding="utf-8")

        with pytest.raises(ConfigFileError, match=reason):
            load_result_json(path)

    def test_load_minimal_result(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text(json.dumps({"status": "aborted"}), encoding="utf-8")

        assert load_result_json(path) == {"status": "aborted"}
