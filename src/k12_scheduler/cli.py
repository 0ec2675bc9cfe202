"""CLI entry point for the K-12 scheduler."""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Annotated, Optional

import pandas as pd
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .exceptions import SchedulerError
from .scheduler import (
    ConfigLoader,
    ProgressEvent,
    StagedScheduler,
    export_result_json,
    generate_timetable_excel,
    load_result_json,
)
from .scheduler.constants import DAY_NAMES
from .scheduler.excel_generator import assignments_frame

app = typer.Typer(
    name="k12-scheduler",
    help="Generate weekly timetables for K-12 schools",
    add_completion=False,
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load(config_dir: Path) -> ConfigLoader:
    try:
        return ConfigLoader(config_dir)
    except SchedulerError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _load_result(input_file: Path) -> dict:
    if not input_file.exists():
        console.print(f"[bold red]Error:[/bold red] File not found: {input_file}")
        raise typer.Exit(1)
    try:
        return load_result_json(input_file)
    except SchedulerError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def solve(
    config_dir: Annotated[
        Path,
        typer.Argument(help="Directory with rooms.csv, classes.json, courses.json and teaching-plans.json"),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("-o", "--output", help="Output JSON file path"),
    ] = None,
    max_iterations: Annotated[
        Optional[int],
        typer.Option("--max-iterations", help="Maximum search iterations"),
    ] = None,
    backtrack_limit: Annotated[
        Optional[int],
        typer.Option("--backtrack-limit", help="Maximum number of backtracks"),
    ] = None,
    time_limit: Annotated[
        Optional[float],
        typer.Option("--time-limit", help="Wall-clock limit in seconds"),
    ] = None,
    seed: Annotated[
        Optional[int],
        typer.Option("--seed", help="Random seed for local optimization"),
    ] = None,
    no_optimize: Annotated[
        bool,
        typer.Option("--no-optimize", help="Skip local optimization"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("-v", "--verbose", help="Show detailed output"),
    ] = False,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Exit with code 1 unless every lesson is scheduled"),
    ] = False,
) -> None:
    """Generate a timetable for a problem directory."""
    _setup_logging(verbose)
    loader = _load(config_dir)

    config = loader.algorithm
    overrides = {
        "max_iterations": max_iterations,
        "backtrack_limit": backtrack_limit,
        "time_limit": time_limit,
        "random_seed": seed,
    }
    config = replace(config, **{k: v for k, v in overrides.items() if v is not None})
    if no_optimize:
        config = replace(config, enable_local_optimization=False)
    if verbose:
        config = replace(config, verbose=True)

    if loader.errors:
        console.print(f"[bold yellow]Warning:[/bold yellow] {len(loader.errors)} invalid entries skipped")

    scheduler = StagedScheduler(
        rules=loader.rules,
        rooms=loader.rooms,
        classes=loader.classes,
        teachers=loader.teachers,
        courses=loader.courses,
        config=config,
        catalog=loader.catalog,
    )

    with console.status("[bold green]Scheduling...") as status:

        def on_progress(event: ProgressEvent) -> None:
            status.update(
                f"[bold green]{event.stage}[/bold green] {event.percentage:.0f}% "
                f"({event.assigned_count}/{event.total_count})"
            )

        result = scheduler.schedule(loader.teaching_plans, progress_callback=on_progress)

    console.print(f"\n[bold]Schedule Results for:[/bold] {config_dir}")
    colour = "green" if result.success else "yellow"
    console.print(f"  Status: [{colour}]{result.status.value}[/{colour}]")
    console.print(f"  {result.message}")

    statistics = result.statistics
    overview_table = Table(title="Overview", show_header=False)
    overview_table.add_column("Metric", style="cyan")
    overview_table.add_column("Value", style="green")
    overview_table.add_row("Total Lessons", str(statistics.total_variables))
    overview_table.add_row("Assigned", str(statistics.assigned_variables))
    overview_table.add_row("Unassigned", str(statistics.unassigned_variables))
    overview_table.add_row("Assignment Rate", f"{statistics.assignment_rate:.1f}%")
    overview_table.add_row("Hard Violations", str(statistics.hard_violations))
    overview_table.add_row("Soft Violations", str(statistics.soft_violations))
    overview_table.add_row("Iterations", str(statistics.iterations))
    overview_table.add_row("Backtracks", str(statistics.backtracks))
    overview_table.add_row("Time (ms)", f"{statistics.execution_time_ms:.0f}")
    console.print(overview_table)

    if verbose and statistics.stages:
        stage_table = Table(title="Stages")
        stage_table.add_column("Stage", style="cyan")
        stage_table.add_column("Status", style="magenta")
        stage_table.add_column("Total", style="green")
        stage_table.add_column("Assigned", style="green")
        stage_table.add_column("Unassigned", style="yellow")
        stage_table.add_column("Backtracks", style="blue")
        for stage in statistics.stages:
            stage_table.add_row(
                stage.stage,
                stage.status,
                str(stage.total),
                str(stage.assigned),
                str(stage.unassigned),
                str(stage.backtracks),
            )
        console.print(stage_table)

    if result.unassigned:
        console.print(f"\n[bold yellow]Unscheduled lessons ({len(result.unassigned)}):[/bold yellow]")
        shown = result.unassigned if verbose else result.unassigned[:10]
        for item in shown:
            console.print(f"  [yellow]- {item.variable_id}: {item.reason.value}[/yellow]")
        if len(shown) < len(result.unassigned):
            console.print(f"  [yellow]... and {len(result.unassigned) - len(shown)} more[/yellow]")

    if result.suggestions:
        console.print("\n[bold]Suggestions:[/bold]")
        for suggestion in result.suggestions:
            console.print(f"  • {suggestion}")

    output_path = output or Path("output/schedule.json")
    if output_path.suffix != ".json":
        output_path = output_path.with_suffix(".json")
    with console.status(f"[bold green]Exporting to {output_path}..."):
        export_result_json(result, output_path)
    console.print(f"\n[bold green]✓[/bold green] Schedule exported to: {output_path}")

    if strict and not result.success:
        raise typer.Exit(1)


@app.command()
def validate(
    config_dir: Annotated[
        Path,
        typer.Argument(help="Problem directory to check"),
    ],
) -> None:
    """Validate a problem directory without scheduling."""
    with console.status("[bold green]Validating files..."):
        loader = _load(config_dir)

    console.print(f"\n[bold]Validation Results for:[/bold] {config_dir}")

    counts_table = Table(title="Loaded", show_header=False)
    counts_table.add_column("Item", style="cyan")
    counts_table.add_column("Count", style="green")
    counts_table.add_row("Rooms", str(len(loader.rooms)))
    counts_table.add_row("Classes", str(len(loader.classes)))
    counts_table.add_row("Teachers", str(len(loader.teachers)))
    counts_table.add_row("Courses", str(len(loader.courses)))
    counts_table.add_row("Teaching Plans", str(len(loader.teaching_plans)))
    console.print(counts_table)

    if loader.errors:
        console.print("[bold red]✗ Configuration has issues[/bold red]")
        console.print(f"\n[bold red]Errors ({len(loader.errors)}):[/bold red]")
        for error in loader.errors:
            console.print(f"  [red]• {error}[/red]")
        raise typer.Exit(1)

    console.print("[bold green]✓ Configuration is valid[/bold green]")


@app.command("generate-excel")
def generate_excel(
    input_file: Annotated[
        Path,
        typer.Argument(help="Result JSON file written by the solve command"),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("-o", "--output", help="Output Excel file path"),
    ] = None,
    config_dir: Annotated[
        Optional[Path],
        typer.Option("--config-dir", help="Problem directory, used for class and teacher names"),
    ] = None,
    no_teachers: Annotated[
        bool,
        typer.Option("--no-teachers", help="Skip per-teacher sheets"),
    ] = False,
) -> None:
    """Generate an Excel timetable workbook from a result JSON."""
    result_data = _load_result(input_file)

    class_names: dict[str, str] = {}
    teacher_names: dict[str, str] = {}
    days = periods = None
    if config_dir:
        loader = _load(config_dir)
        class_names = {c.id: c.name for c in loader.classes}
        teacher_names = {t.id: t.name for t in loader.teachers}
        time_rules = loader.rules.time_rules
        days = sorted(time_rules.working_days)
        periods = list(range(1, time_rules.daily_periods + 1))

    output_path = output or input_file.with_suffix(".xlsx")
    with console.status(f"[bold green]Writing {output_path}..."):
        written = generate_timetable_excel(
            result_data,
            output_path,
            class_names=class_names,
            teacher_names=teacher_names,
            include_teachers=not no_teachers,
            days=days,
            periods=periods,
        )
    console.print(f"[bold green]✓[/bold green] Timetable written to: {written}")


@app.command()
def stats(
    input_file: Annotated[
        Path,
        typer.Argument(help="Result JSON file written by the solve command"),
    ],
) -> None:
    """Show load statistics of a result JSON."""
    result_data = _load_result(input_file)
    df = assignments_frame(result_data)
    statistics = result_data.get("statistics", {})

    console.print(f"\n[bold]Statistics for:[/bold] {input_file.name}")
    console.print(f"  Generation date: {result_data.get('generation_date', '')}")
    console.print(f"  Status: {result_data.get('status', '')}")

    overview_table = Table(title="Overview", show_header=False)
    overview_table.add_column("Metric", style="cyan")
    overview_table.add_column("Value", style="green")
    overview_table.add_row("Total Lessons", str(statistics.get("total_variables", 0)))
    overview_table.add_row("Assigned", str(statistics.get("assigned_variables", 0)))
    overview_table.add_row("Unassigned", str(statistics.get("unassigned_variables", 0)))
    overview_table.add_row("Classes", str(df["class_id"].nunique()))
    overview_table.add_row("Teachers", str(df["teacher_id"].nunique()))
    overview_table.add_row("Rooms Used", str(df["room_id"].nunique()))
    console.print(overview_table)

    if df.empty:
        return

    # Lessons per class per day
    load = pd.crosstab(df["class_id"], df["day_of_week"])
    day_table = Table(title="Lessons by Day")
    day_table.add_column("Class", style="cyan")
    for day in load.columns:
        day_table.add_column(DAY_NAMES.get(int(day), str(day)).capitalize(), style="green")
    for class_id, row in load.iterrows():
        day_table.add_row(str(class_id), *(str(int(v)) for v in row))
    console.print(day_table)

    teacher_load = df.groupby("teacher_id").size().sort_values(ascending=False)
    teacher_table = Table(title="Teacher Load")
    teacher_table.add_column("Teacher", style="cyan")
    teacher_table.add_column("Lessons", style="green")
    for teacher_id, count in teacher_load.items():
        teacher_table.add_row(str(teacher_id), str(count))
    console.print(teacher_table)

    unassigned = result_data.get("unassigned", [])
    if unassigned:
        reasons = pd.Series([u.get("reason", "unknown") for u in unassigned]).value_counts()
        reason_table = Table(title="Unscheduled by Reason")
        reason_table.add_column("Reason", style="cyan")
        reason_table.add_column("Count", style="yellow")
        for reason, count in reasons.items():
            reason_table.add_row(str(reason), str(count))
        console.print(reason_table)


if __name__ == "__main__":
    app()
