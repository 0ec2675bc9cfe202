"""Excel timetable generator from solve results."""

import re
from pathlib import Path

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .constants import DAY_NAMES

# Fonts
FONT_HEADER = Font(name="Times New Roman", size=11, bold=True)
FONT_CELL = Font(name="Times New Roman", size=10)

# Borders
THIN_SIDE = Side(style="thin")
BORDER_ALL = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)

# Alignments
ALIGN_CENTER_WRAP = Alignment(horizontal="center", vertical="center", wrap_text=True)

FILL_FIXED = PatternFill(start_color="FFF2CC", end_color="FFF2CC", fill_type="solid")

PERIOD_COLUMN_WIDTH = 10.0
DAY_COLUMN_WIDTH = 24.0

# Characters Excel does not allow in sheet names
INVALID_SHEET_CHARS = re.compile(r"[\[\]\*\?/\\:]")


def sheet_name(name: str, used: set[str]) -> str:
    """Make a unique, valid (<= 31 chars) worksheet name."""
    base = INVALID_SHEET_CHARS.sub("_", name).strip() or "Sheet"
    base = base[:31]
    candidate = base
    counter = 2
    while candidate in used:
        suffix = f"~{counter}"
        candidate = base[: 31 - len(suffix)] + suffix
        counter += 1
    used.add(candidate)
    return candidate


def assignments_frame(result_data: dict) -> pd.DataFrame:
    """Flat table of assignments from an exported result."""
    columns = [
        "class_id",
        "day_of_week",
        "period",
        "subject",
        "course_id",
        "teacher_id",
        "room_id",
        "is_fixed",
        "week_type",
    ]
    rows = result_data.get("assignments", [])
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows)[columns].sort_values(["class_id", "day_of_week", "period"])


def build_timetable(
    df: pd.DataFrame,
    owner_column: str,
    owner_id: str,
    cell_columns: tuple[str, ...],
    days: list[int],
    periods: list[int],
    labels: dict[str, str] | None = None,
) -> pd.DataFrame:
    """Pivot one owner's lessons into a periods x days grid."""
    labels = labels or {}
    own = df[df[owner_column] == owner_id]
    grid = pd.DataFrame(
        "",
        index=pd.Index(periods, name="Period"),
        columns=[DAY_NAMES[d].capitalize() for d in days],
    )
    for row in own.itertuples(index=False):
        day = int(row.day_of_week)
        if day not in days or int(row.period) not in periods:
            continue
        parts = [str(labels.get(getattr(row, col), getattr(row, col))) for col in cell_columns]
        text = "\n".join(part for part in parts if part)
        if row.week_type != "all":
            text += f"\n({row.week_type} weeks)"
        column = DAY_NAMES[day].capitalize()
        current = grid.at[int(row.period), column]
        grid.at[int(row.period), column] = f"{current}\n---\n{text}" if current else text
    return grid


def _style_sheet(worksheet, n_rows: int, n_cols: int) -> None:
    worksheet.column_dimensions["A"].width = PERIOD_COLUMN_WIDTH
    for col in range(2, n_cols + 2):
        worksheet.column_dimensions[get_column_letter(col)].width = DAY_COLUMN_WIDTH
    for row in worksheet.iter_rows(min_row=1, max_row=n_rows + 1, max_col=n_cols + 1):
        for cell in row:
            cell.border = BORDER_ALL
            cell.alignment = ALIGN_CENTER_WRAP
            cell.font = FONT_HEADER if cell.row == 1 or cell.column == 1 else FONT_CELL


def generate_timetable_excel(
    result_data: dict,
    output_path: Path | str,
    class_names: dict[str, str] | None = None,
    teacher_names: dict[str, str] | None = None,
    include_teachers: bool = True,
    days: list[int] | None = None,
    periods: list[int] | None = None,
) -> Path:
    """Write per-class (and per-teacher) timetables to one workbook.

    Sheets:
    - Summary: statistics of the run
    - one sheet per class (periods x days)
    - one sheet per teacher when include_teachers is set
    - Unassigned: lessons that could not be placed

    Args:
        result_data: Result dictionary as written by export_result_json
        output_path: Path of the .xlsx file to write
        class_names: Optional class id -> display name
        teacher_names: Optional teacher id -> display name
        include_teachers: Also write teacher timetables
        days: Days to show (defaults to the days present in the result)
        periods: Periods to show (defaults to 1..max period present)

    Returns:
        Path of the written workbook
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    class_names = class_names or {}
    teacher_names = teacher_names or {}

    df = assignments_frame(result_data)
    if days is None:
        days = sorted(int(d) for d in df["day_of_week"].unique()) or [1, 2, 3, 4, 5]
    if periods is None:
        last = int(df["period"].max()) if not df.empty else 1
        periods = list(range(1, last + 1))

    used: set[str] = set()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        statistics = result_data.get("statistics", {})
        summary = pd.DataFrame(
            [
                {"Metric": "Status", "Value": result_data.get("status", "")},
                {"Metric": "Message", "Value": result_data.get("message", "")},
                {"Metric": "Total lessons", "Value": statistics.get("total_variables", 0)},
                {"Metric": "Assigned", "Value": statistics.get("assigned_variables", 0)},
                {"Metric": "Unassigned", "Value": statistics.get("unassigned_variables", 0)},
                {"Metric": "Hard violations", "Value": statistics.get("hard_violations", 0)},
                {"Metric": "Soft violations", "Value": statistics.get("soft_violations", 0)},
            ]
        )
        summary.to_excel(writer, sheet_name=sheet_name("Summary", used), index=False)

        for class_id in sorted(df["class_id"].unique()):
            grid = build_timetable(
                df, "class_id", class_id, ("subject", "teacher_id", "room_id"), days, periods, teacher_names
            )
            name = sheet_name(class_names.get(class_id, class_id), used)
            grid.to_excel(writer, sheet_name=name)
            _style_sheet(writer.sheets[name], len(periods), len(days))
            _mark_fixed(writer.sheets[name], df, class_id, days, periods)

        if include_teachers:
            for teacher_id in sorted(df["teacher_id"].unique()):
                grid = build_timetable(
                    df, "teacher_id", teacher_id, ("subject", "class_id", "room_id"), days, periods, class_names
                )
                name = sheet_name(f"T {teacher_names.get(teacher_id, teacher_id)}", used)
                grid.to_excel(writer, sheet_name=name)
                _style_sheet(writer.sheets[name], len(periods), len(days))

        unassigned = pd.DataFrame(result_data.get("unassigned", []))
        if not unassigned.empty:
            unassigned.to_excel(writer, sheet_name=sheet_name("Unassigned", used), index=False)

    return output


def _mark_fixed(worksheet, df: pd.DataFrame, class_id: str, days: list[int], periods: list[int]) -> None:
    """Highlight fixed-time lessons."""
    fixed = df[(df["class_id"] == class_id) & (df["is_fixed"])]
    for row in fixed.itertuples(index=False):
        day, period = int(row.day_of_week), int(row.period)
        if day in days and period in periods:
            cell = worksheet.cell(row=periods.index(period) + 2, column=days.index(day) + 2)
            cell.fill = FILL_FIXED
