"""Status command for crawl job visibility."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from crawlshot.core.config import Settings
from crawlshot.services.models import CrawlJob, JobStatus
from crawlshot.services.queue import QueueManager
from crawlshot.services.storage import ArtifactStore

app = typer.Typer(no_args_is_help=False, invoke_without_command=True)


@app.callback()
def status(
    job_id: str | None = typer.Argument(None),
    list_recent: bool = typer.Option(False, "--list", help="List recent jobs"),
    limit: int = typer.Option(10, "--limit", help="Jobs to list"),
) -> None:
    """Show crawl job status information."""
    settings = Settings()
    queue = QueueManager(settings.redis_url)
    console = Console()

    if job_id and not list_recent:
        job, progress = asyncio.run(_fetch_job(queue, job_id))
        if job is None:
            console.print(f"[red]Job {job_id} not found[/red]")
            raise typer.Exit(code=1)
        _print_single(console, job, progress, settings)
        return

    jobs = asyncio.run(_fetch_recent(queue, limit))
    if not jobs:
        console.print("No crawl jobs found")
        return
    _print_table(console, jobs)


def _status_style(status: JobStatus) -> str:
    return {
        JobStatus.PENDING: "yellow",
        JobStatus.ACTIVE: "blue",
        JobStatus.COMPLETED: "green",
        JobStatus.FAILED: "red",
    }[status]


async def _fetch_job(queue: QueueManager, job_id: str) -> tuple[CrawlJob | None, dict | None]:
    try:
        job = await queue.get_job(job_id)
        progress = await queue.get_progress(job_id) if job else None
        return job, progress
    finally:
        await queue.close()


async def _fetch_recent(queue: QueueManager, limit: int) -> list[CrawlJob]:
    try:
        return await queue.list_recent(limit=limit)
    finally:
        await queue.close()


def _print_single(
    console: Console, job: CrawlJob, progress: dict | None, settings: Settings
) -> None:
    color = _status_style(job.status)
    lines = [
        f"URL: {job.url}",
        f"Status: [{color}]{job.status.value}[/{color}]",
        f"Attempts: {job.attempts}",
        f"Created: {job.created_at or '-'}",
        f"Started: {job.started_at or '-'}",
        f"Finished: {job.finished_at or '-'}",
    ]
    if progress:
        lines.append(
            f"Progress: {progress.get('progress', 0)}% "
            f"({progress.get('stage', '-')}, page {progress.get('currentPage', 0)}"
            f"/{progress.get('totalPages', '-')})"
        )
    if job.error:
        lines.append(f"Error: [red]{job.error}[/red]")
    if job.status == JobStatus.COMPLETED:
        store = ArtifactStore(settings.screenshots_dir, job.output_base_url)
        lines.append(f"Manifest: {store.manifest_url(job.id)}")
    console.print(Panel("\n".join(lines), title=f"Job {job.id}"))


def _print_table(console: Console, jobs: list[CrawlJob]) -> None:
    table = Table(title="Crawl Jobs")
    table.add_column("Job ID")
    table.add_column("URL")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Finished")
    table.add_column("Error")
    for job in jobs:
        color = _status_style(job.status)
        table.add_row(
            job.id,
            job.url,
            f"[{color}]{job.status.value}[/{color}]",
            job.started_at or "-",
            job.finished_at or "-",
            job.error or "-",
        )
    console.print(table)
