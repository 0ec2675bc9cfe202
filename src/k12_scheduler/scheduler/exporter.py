"""Export functions for solve results."""

import json
from pathlib import Path

from ..exceptions import ConfigFileError
from .models import SearchStatus, SolveResult

# Columns every exported assignment row carries; the reports group on them
ASSIGNMENT_KEYS = ("variable_id", "class_id", "teacher_id", "room_id", "day_of_week", "period")


def export_result_json(result: SolveResult, output_path: Path | str) -> None:
    """Export solve result to JSON file.

    Args:
        result: SolveResult to export
        output_path: Path to output JSON file
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with open(output, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, ensure_ascii=False, indent=2)


def load_result_json(input_path: Path | str) -> dict:
    """Load an exported solve result and check its shape.

    Args:
        input_path: Path to result JSON file

    Returns:
        Dictionary in the shape written by export_result_json

    Raises:
        ConfigFileError: If the file is not valid JSON or not a solve result
    """
    with open(input_path, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigFileError(str(input_path), f"invalid JSON ({e})") from e

    _check_result_shape(data, str(input_path))
    return data


def _check_result_shape(data, path: str) -> None:
    if not isinstance(data, dict):
        raise ConfigFileError(path, "expected a JSON object")

    status = data.get("status")
    if status not in {s.value for s in SearchStatus}:
        raise ConfigFileError(path, f"unknown status {status!r}")

    for key in ("assignments", "unassigned"):
        if not isinstance(data.get(key, []), list):
            raise ConfigFileError(path, f"'{key}' must be a list")

    for i, row in enumerate(data.get("assignments", [])):
        missing = [key for key in ASSIGNMENT_KEYS if not isinstance(row, dict) or key not in row]
        if missing:
            raise ConfigFileError(path, f"assignment {i} lacks {', '.join(missing)}")
