"""Tests for loading problem directories."""

import json

import pytest

from k12_scheduler.exceptions import ConfigFileError, ValidationError
from k12_scheduler.scheduler.config import ConfigLoader, RoomConfig

ROOM_FIELDS = ["id", "name", "type", "capacity", "equipment", "floor", "is_active"]


def _write_rooms(path, rows):
    lines = [",".join(ROOM_FIELDS)]
    for row in rows:
        lines.append(",".join(row.get(name, "") for name in ROOM_FIELDS))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


class TestConfigLoader:
    """Tests for ConfigLoader."""

    def test_load_complete_directory(self, school_dir):
        loader = ConfigLoader(school_dir)

        assert [r.id for r in loader.rooms] == ["R101", "G1"]
        assert [c.id for c in loader.classes] == ["C1"]
        assert loader.classes[0].homeroom_teacher_id == "T1"
        assert {c.id for c in loader.courses} == {"math", "chinese", "pe", "meeting"}
        assert {t.id for t in loader.teachers} == {"T1", "T2", "T3"}
        assert len(loader.teaching_plans[0].course_assignments) == 4
        assert loader.errors == []

    def test_rules_and_algorithm(self, school_dir):
        loader = ConfigLoader(school_dir)

        assert loader.rules.time_rules.daily_periods == 4
        assert loader.rules.time_rules.working_days == (1, 2, 3, 4, 5)
        fixed = loader.rules.course_arrangement.fixed_time_courses.courses
        assert len(fixed) == 1
        assert fixed[0].name == "班会"
        assert (fixed[0].day_of_week, fixed[0].period) == (5, 4)
        assert loader.algorithm.enable_local_optimization is False

    def test_optional_files_default(self, school_dir):
        (school_dir / "rules.json").unlink()
        (school_dir / "algorithm.json").unlink()
        (school_dir / "teachers.json").unlink()

        loader = ConfigLoader(school_dir)

        assert loader.teachers == []
        assert loader.rules.time_rules.daily_periods == 8
        assert loader.algorithm.enable_local_optimization is True
        assert loader.catalog.category_for("体育", "体育") is not None

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigFileError) as exc_info:
            ConfigLoader(tmp_path / "nowhere")

        assert "not a directory" in str(exc_info.value)

    @pytest.mark.parametrize(
        "filename",
        ["rooms.csv", "classes.json", "courses.json", "teaching-plans.json"],
    )
    def test_missing_required_file(self, school_dir, filename):
        (school_dir / filename).unlink()

        with pytest.raises(ConfigFileError) as exc_info:
            ConfigLoader(school_dir)

        assert filename in exc_info.value.path

    def test_malformed_json(self, school_dir):
        (school_dir / "courses.json").write_text("[{", encoding="utf-8")

        with pytest.raises(ConfigFileError) as exc_info:
            ConfigLoader(school_dir)

        assert exc_info.value.path.endswith("courses.json")

    def test_json_object_instead_of_array(self, school_dir):
        (school_dir / "classes.json").write_text(json.dumps({"id": "C1"}), encoding="utf-8")

        with pytest.raises(ConfigFileError, match="expected a JSON array"):
            ConfigLoader(school_dir)

    def test_invalid_entries_collected(self, school_dir):
        classes = [
            {"id": "C1", "name": "一年级1班", "studentCount": 30},
            {"name": "no id"},
            {"id": "C3", "studentCount": "many"},
        ]
        (school_dir / "classes.json").write_text(json.dumps(classes, ensure_ascii=False), encoding="utf-8")

        loader = ConfigLoader(school_dir)

        assert [c.id for c in loader.classes] == ["C1"]
        assert len(loader.errors) == 2
        assert all(isinstance(e, ValidationError) for e in loader.errors)


class TestRoomConfig:
    """Tests for RoomConfig."""

    def test_parse_rows(self, tmp_path):
        path = tmp_path / "rooms.csv"
        _write_rooms(
            path,
            [
                {
                    "id": "R1",
                    "name": "Lab 1",
                    "type": "lab",
                    "capacity": "35",
                    "equipment": "sink; gas ;",
                    "floor": "2",
                },
                {"id": "R2", "capacity": "30", "is_active": "false"},
            ],
        )

        config = RoomConfig(path)

        lab = config.get_room("R1")
        assert lab.type == "lab"
        assert lab.capacity == 35
        assert lab.equipment == ["sink", "gas"]
        assert lab.floor == 2
        assert lab.is_active

        plain = config.get_room("R2")
        assert plain.name == "R2"
        assert plain.type == "classroom"
        assert plain.floor is None
        assert not plain.is_active
        assert [r.id for r in config.get_active_rooms()] == ["R1"]
        assert [r.id for r in config.get_rooms_by_type("lab")] == ["R1"]

    def test_bad_rows_collected(self, tmp_path):
        path = tmp_path / "rooms.csv"
        _write_rooms(
            path,
            [
                {"id": "R1", "capacity": "40"},
                {"id": "R1", "capacity": "50"},
                {"id": "", "capacity": "40"},
                {"id": "R4", "capacity": "lots"},
            ],
        )

        config = RoomConfig(path)

        assert [r.id for r in config.rooms] == ["R1"]
        assert config.get_room("R1").capacity == 40
        assert len(config.errors) == 3
        assert any("duplicate" in e.reason for e in config.errors)

    def test_missing_file(self, tmp_path):
        config = RoomConfig(tmp_path / "rooms.csv")

        assert config.rooms == []
        assert config.get_room("R1") is None
