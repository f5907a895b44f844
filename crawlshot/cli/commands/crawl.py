"""Crawl command: enqueue a screenshot crawl job."""

from __future__ import annotations

import asyncio
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.panel import Panel

from crawlshot.core.config import Settings
from crawlshot.core.errors import ConfigurationError
from crawlshot.core.url_validation import UrlValidator
from crawlshot.services.jobs import CrawlJobService
from crawlshot.services.models import CrawlJob
from crawlshot.services.queue import QueueManager

console = Console()


def _parse_cookies(values: list[str]) -> list[dict[str, str]]:
    cookies = []
    for value in values:
        name, sep, cookie_value = value.partition("=")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Cookie must be NAME=VALUE, got {value!r}")
        cookies.append({"name": name.strip(), "value": cookie_value})
    return cookies


def _build_auth(
    cookies: list[str],
    login_url: str | None,
    username: str | None,
    password: str | None,
) -> dict[str, Any] | None:
    if cookies and login_url:
        raise typer.BadParameter("Use either --cookie or --login-url, not both")
    if cookies:
        return {"method": "cookies", "cookies": _parse_cookies(cookies)}
    if login_url:
        return {
            "method": "credentials",
            "loginUrl": login_url,
            "username": username,
            "password": password,
        }
    return None


def crawl_command(
    url: Annotated[str, typer.Argument(help="Start URL of the crawl")],
    output_base_url: Annotated[
        str | None,
        typer.Option(
            "--output-base-url",
            "-o",
            help="Public base URL for screenshots and progress (default: PUBLIC_URL)",
        ),
    ] = None,
    max_pages: Annotated[
        int, typer.Option("--max-pages", "-n", help="Page budget (0=unlimited)")
    ] = 0,
    max_depth: Annotated[
        int, typer.Option("--max-depth", "-d", help="Maximum path depth (0=unlimited)")
    ] = 0,
    sample_size: Annotated[
        int, typer.Option("--sample-size", "-s", help="Pages per section (0=unlimited)")
    ] = 3,
    default_language_only: Annotated[
        bool,
        typer.Option("--default-language-only", help="Skip other-language URLs"),
    ] = False,
    delay: Annotated[
        int, typer.Option("--delay", help="Extra wait after page load (ms)")
    ] = 0,
    request_delay: Annotated[
        int, typer.Option("--request-delay", help="Delay before each navigation (ms)")
    ] = 1000,
    device_scale_factor: Annotated[
        float, typer.Option("--device-scale-factor", help="Browser device scale factor")
    ] = 1.0,
    cookie: Annotated[
        list[str] | None,
        typer.Option("--cookie", help="Cookie to inject as NAME=VALUE (repeatable)"),
    ] = None,
    login_url: Annotated[
        str | None, typer.Option("--login-url", help="Login page for credential auth")
    ] = None,
    username: Annotated[
        str | None, typer.Option("--username", help="Username for credential auth")
    ] = None,
    password: Annotated[
        str | None,
        typer.Option(
            "--password",
            help="Password for credential auth",
            envvar="CRAWLSHOT_PASSWORD",
        ),
    ] = None,
) -> None:
    """Enqueue a crawl job and print its id."""
    settings = Settings()
    payload: dict[str, Any] = {
        "url": url,
        "outputBaseUrl": output_base_url or settings.public_url,
        "maxRequestsPerCrawl": max_pages,
        "maxDepth": max_depth,
        "sampleSize": sample_size,
        "defaultLanguageOnly": default_language_only,
        "delay": delay,
        "requestDelay": request_delay,
        "deviceScaleFactor": device_scale_factor,
    }
    auth = _build_auth(cookie or [], login_url, username, password)
    if auth is not None:
        payload["auth"] = auth

    queue = QueueManager(settings.redis_url)
    validator = UrlValidator(
        allow_private_ips=settings.allow_private_targets,
        allow_localhost=settings.allow_private_targets,
    )
    try:
        job, queue_length = asyncio.run(
            _enqueue(CrawlJobService(queue, validator), queue, payload)
        )
    except ConfigurationError as exc:
        console.print(f"[red]Invalid crawl request: {exc}[/red]")
        raise typer.Exit(code=1) from exc

    if job is None:
        console.print("[red]Job queue is not available[/red]")
        raise typer.Exit(code=1)

    console.print(f"Job ID: {job.id}")
    config = job.config
    console.print(
        Panel(
            f"URL: {job.url}\n"
            f"Max pages: {config.max_requests_per_crawl or 'unlimited'}\n"
            f"Max depth: {config.max_depth or 'unlimited'}\n"
            f"Sample size: {config.sample_size or 'unlimited'}\n"
            f"Auth: {config.auth.method if config.auth else 'none'}\n"
            f"Queue length: {queue_length}",
            title="Crawl Queued",
        )
    )


async def _enqueue(
    service: CrawlJobService, queue: QueueManager, payload: dict[str, Any]
) -> tuple[CrawlJob | None, int | None]:
    try:
        job = await service.enqueue(payload)
        queue_length = await queue.get_queue_length() if job else None
        return job, queue_length
    finally:
        await queue.close()
