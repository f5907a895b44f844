"""Worker command: execute queued crawl jobs."""

from __future__ import annotations

import asyncio
import signal
from typing import Annotated

import typer
from rich.console import Console

from crawlshot.core.config import Settings
from crawlshot.core.logger import configure_logging
from crawlshot.services.models import JobStatus
from crawlshot.services.queue import QueueManager
from crawlshot.services.worker import CrawlWorker

console = Console()


def worker_command(
    once: Annotated[
        bool, typer.Option("--once", help="Process at most one job and exit")
    ] = False,
) -> None:
    """Run the crawl worker until interrupted."""
    settings = Settings()
    configure_logging(settings)
    status = asyncio.run(_run_worker(settings, once))
    if once:
        if status is None:
            console.print("No job available")
            return
        color = "green" if status == JobStatus.COMPLETED else "red"
        console.print(f"Job finished: [{color}]{status.value}[/{color}]")
        if status == JobStatus.FAILED:
            raise typer.Exit(code=1)


async def _run_worker(settings: Settings, once: bool) -> JobStatus | None:
    queue = QueueManager(settings.redis_url)
    worker = CrawlWorker(settings, queue)
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        """Finish the current job, then stop."""
        console.print("\n[yellow]Stopping after the current job...[/yellow]")
        stop_event.set()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, _signal_handler)
        loop.add_signal_handler(signal.SIGTERM, _signal_handler)
    except NotImplementedError:
        # Windows doesn't support add_signal_handler
        signal.signal(signal.SIGINT, lambda *_: _signal_handler())
        signal.signal(signal.SIGTERM, lambda *_: _signal_handler())

    try:
        if once:
            return await worker.run_once()
        await worker.run_forever(stop_event)
        return None
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
            loop.remove_signal_handler(signal.SIGTERM)
        except (NotImplementedError, RuntimeError):
            signal.signal(signal.SIGINT, signal.SIG_DFL)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
        await worker.close()
        await queue.close()
