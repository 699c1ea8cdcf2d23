"""Command-line interface for the onboarding extraction pipeline."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from onboarding.config import configure_logging, get_settings
from onboarding.models.enums import JobStatus, PipelineStage
from onboarding.models.job import Job, StageProgress
from onboarding.pipeline.errors import (
    InvalidJobStateError,
    JobNotFoundError,
    RetryLimitExceededError,
    UploadValidationError,
)
from onboarding.pipeline.runner import PipelineRunner, build_runner, resolve_mime_type

app = typer.Typer(
    name="onboard",
    help="Onboarding extraction pipeline - turn recordings and documents into onboarding items",
    add_completion=False,
)
console = Console()


def _setup(verbose: bool) -> PipelineRunner:
    settings = get_settings()
    configure_logging("DEBUG" if verbose else "WARNING", settings.log_json)
    return build_runner(settings)


async def _follow(runner: PipelineRunner, start) -> Job:
    """Run ``start`` and show stage progress until the job is terminal."""
    with Progress(SpinnerColumn(), TextColumn("{task.description}"), console=console) as progress:
        task_id = progress.add_task("Queued", total=None)

        async def on_progress(job_id: str, stage_progress: StageProgress) -> None:
            label = stage_progress.stage.value.replace("_", " ").title()
            message = f" - {stage_progress.message}" if stage_progress.message else ""
            progress.update(task_id, description=f"{label} ({stage_progress.percent}%){message}")

        job_id = await start(on_progress)
        await runner.wait_idle()

    return await runner.get_job(job_id)


@app.command()
def run(
    file_path: Path = typer.Argument(
        ...,
        help="Path to the transcript or document",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    session_id: Optional[str] = typer.Option(None, "--session", "-s", help="Onboarding session id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Process a file through all pipeline stages and print the result."""
    runner = _setup(verbose)
    data = file_path.read_bytes()

    console.print(
        Panel.fit(
            "[bold blue]Onboarding Extraction[/bold blue]\n"
            f"Processing {file_path.name}...",
            border_style="blue",
        )
    )

    async def start(on_progress) -> str:
        job = await runner.start_job(
            data,
            file_path.name,
            mime_type=resolve_mime_type(file_path.name, None),
            session_id=session_id,
            on_progress=on_progress,
        )
        console.print(f"[dim]Job:[/dim] {job.id}")
        return job.id

    try:
        job = asyncio.run(_follow(runner, start))
    except UploadValidationError as e:
        console.print(f"[red]Rejected:[/red] {e}")
        sys.exit(1)

    _display_job(job)
    if job.status != JobStatus.COMPLETE:
        sys.exit(1)


@app.command()
def status(job_id: str = typer.Argument(..., help="Job id")) -> None:
    """Show the current state of a job."""
    runner = _setup(False)
    try:
        job = asyncio.run(runner.get_job(job_id))
    except JobNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    _display_job(job)


@app.command()
def retry(
    job_id: str = typer.Argument(..., help="Job id"),
    from_stage: Optional[PipelineStage] = typer.Option(
        None, "--from-stage", help="Stage to resume from (defaults to the failing stage)"
    ),
    force: bool = typer.Option(False, "--force", help="Continue past quality-gate failures"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Retry a failed job."""
    runner = _setup(verbose)

    async def start(on_progress) -> str:
        ack = await runner.retry_job(job_id, from_stage=from_stage, force=force, on_progress=on_progress)
        console.print(
            f"[dim]Attempt {ack.attempt}/{ack.ceiling} from {ack.retrying_from.value}[/dim]"
        )
        return ack.job_id

    try:
        job = asyncio.run(_follow(runner, start))
    except (JobNotFoundError, InvalidJobStateError, RetryLimitExceededError) as e:
        console.print(f"[red]Retry refused:[/red] {e}")
        sys.exit(1)

    _display_job(job)
    if job.status != JobStatus.COMPLETE:
        sys.exit(1)


@app.command()
def items(
    job_id: str = typer.Argument(..., help="Job id"),
    as_json: bool = typer.Option(False, "--json", help="Print items as JSON"),
) -> None:
    """List the items a job materialized."""
    runner = _setup(False)
    try:
        found = asyncio.run(runner.list_items(job_id))
    except JobNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if as_json:
        console.print_json(json.dumps([i.model_dump(mode="json") for i in found]))
        return

    table = Table(title=f"{len(found)} items")
    table.add_column("Type", style="cyan")
    table.add_column("Section", style="dim")
    table.add_column("Status")
    table.add_column("Conf.", justify="right")
    table.add_column("Content")
    for item in found:
        table.add_row(
            item.type.value,
            f"{item.profile.value}/{item.profile_section}",
            item.status.value,
            f"{item.confidence:.2f}",
            item.content[:80],
        )
    console.print(table)


@app.command()
def info() -> None:
    """Display configuration."""
    from onboarding.llm.client import get_llm_settings

    settings = get_settings()
    llm = get_llm_settings()

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="dim")
    table.add_column("Value")

    table.add_row("Database", settings.database_url)
    table.add_row("Uploads", str(settings.blob_dir))
    table.add_row("LLM Model", llm.model_name)
    table.add_row("Judge Model", llm.judge_model_name or llm.model_name)
    table.add_row("Ollama URL", llm.ollama_base_url)
    table.add_row("Retry Ceiling", str(settings.retry_ceiling))
    table.add_row("LLM Judges", "on" if settings.eval_llm_judges_enabled else "off")

    console.print(table)


def _display_job(job: Job) -> None:
    """Display a job's state and results."""
    colour = {
        JobStatus.COMPLETE: "green",
        JobStatus.FAILED: "red",
    }.get(job.status, "yellow")

    console.print(f"\n[bold]Job {job.id}[/bold]")
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value")

    table.add_row("File", job.filename)
    table.add_row("Status", f"[{colour}]{job.status.value}[/{colour}]")
    table.add_row("Stage", job.current_stage.value)
    table.add_row("Retries", str(job.retry_count))
    if job.classification_result:
        table.add_row(
            "Content Type",
            f"{job.classification_result.type.value} ({job.classification_result.confidence:.2f})",
        )
    if job.population_result:
        population = job.population_result
        table.add_row("Items", str(population.extracted_items))
        table.add_row("Integrations", str(population.integrations))
        table.add_row("Business Rules", str(population.business_rules))
        table.add_row("Test Cases", str(population.test_cases))
    if job.error:
        table.add_row("Error", f"[red]{job.error}[/red]")
    console.print(table)

    if job.population_result and job.population_result.warnings:
        console.print(f"\n[yellow]Warnings:[/yellow] {len(job.population_result.warnings)}")
        for warning in job.population_result.warnings[:10]:
            console.print(f"  - {warning}")


if __name__ == "__main__":
    app()
