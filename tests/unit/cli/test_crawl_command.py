"""Unit tests for the crawl command using Typer's CliRunner."""

import asyncio
import re

import pytest
from typer.testing import CliRunner

from crawlshot.cli.app import app
from crawlshot.core.config import Settings
from crawlshot.services.queue import QueueManager

runner = CliRunner()


@pytest.fixture(autouse=True)
def _patch_dependencies(
    monkeypatch: pytest.MonkeyPatch, settings: Settings, queue: QueueManager
) -> None:
    monkeypatch.setattr("crawlshot.cli.commands.crawl.Settings", lambda: settings)
    monkeypatch.setattr("crawlshot.cli.commands.crawl.QueueManager", lambda url: queue)


def _job_id(output: str) -> str:
    match = re.search(r"Job ID: (crawl_\d+_\d+)", output)
    assert match, output
    return match.group(1)


@pytest.mark.parametrize(
    ("command", "expected_text"),
    [
        (["--help"], "crawl"),
        (["crawl", "--help"], "--output-base-url"),
        (["status", "--help"], "--list"),
        (["worker", "--help"], "--once"),
        (["serve", "--help"], "--port"),
    ],
)
def test_command_help(command: list[str], expected_text: str) -> None:
    """Test every command documents its options."""
    result = runner.invoke(app, command)

    assert result.exit_code == 0
    assert expected_text in result.output


def test_crawl_enqueues_job(queue: QueueManager) -> None:
    """Test the crawl command queues a job with the given options."""
    result = runner.invoke(
        app,
        [
            "crawl",
            "https://example.com/docs",
            "--output-base-url",
            "https://cdn.example.com",
            "--max-pages",
            "5",
            "--max-depth",
            "2",
            "--default-language-only",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Crawl Queued" in result.output
    job = asyncio.run(queue.get_job(_job_id(result.output)))
    assert job is not None
    assert job.url == "https://example.com/docs"
    assert job.output_base_url == "https://cdn.example.com"
    assert job.config.max_requests_per_crawl == 5
    assert job.config.max_depth == 2
    assert job.config.default_language_only is True


def test_crawl_defaults_output_base_to_public_url(queue: QueueManager) -> None:
    """Test the configured public URL is used when no output base is given."""
    result = runner.invoke(app, ["crawl", "https://example.com/"])

    assert result.exit_code == 0, result.output
    job = asyncio.run(queue.get_job(_job_id(result.output)))
    assert job.output_base_url == "http://localhost:3006"


def test_crawl_with_cookies(queue: QueueManager) -> None:
    """Test repeated --cookie options become cookie auth."""
    result = runner.invoke(
        app,
        ["crawl", "https://example.com/", "--cookie", "session=abc", "--cookie", "csrf=x=y"],
    )

    assert result.exit_code == 0, result.output
    job = asyncio.run(queue.get_job(_job_id(result.output)))
    assert [(c.name, c.value) for c in job.config.auth.cookies] == [
        ("session", "abc"),
        ("csrf", "x=y"),
    ]


def test_crawl_with_credentials_from_env(queue: QueueManager) -> None:
    """Test the password can be supplied through the environment."""
    result = runner.invoke(
        app,
        [
            "crawl",
            "https://example.com/",
            "--login-url",
            "https://example.com/login",
            "--username",
            "alice",
        ],
        env={"CRAWLSHOT_PASSWORD": "s3cret"},
    )

    assert result.exit_code == 0, result.output
    assert "s3cret" not in result.output
    job = asyncio.run(queue.get_job(_job_id(result.output)))
    assert job.config.auth.username == "alice"
    assert job.config.auth.password == "s3cret"


@pytest.mark.parametrize(
    "extra",
    [
        ["--cookie", "no-equals-sign"],
        ["--cookie", "a=b", "--login-url", "https://example.com/login"],
    ],
)
def test_crawl_rejects_bad_auth_options(extra: list[str]) -> None:
    """Test malformed auth options are usage errors."""
    result = runner.invoke(app, ["crawl", "https://example.com/", *extra])

    assert result.exit_code == 2


def test_crawl_invalid_url(queue: QueueManager) -> None:
    """Test an invalid start URL is reported and nothing is queued."""
    result = runner.invoke(app, ["crawl", "ftp://example.com/"])

    assert result.exit_code == 1
    assert "Invalid crawl request" in result.output
    assert asyncio.run(queue.get_queue_length()) == 0


def test_crawl_queue_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test an unreachable queue exits with an error."""

    class DownQueue:
        async def enqueue(self, job) -> bool:
            return False

        async def close(self) -> None:
            return None

    monkeypatch.setattr("crawlshot.cli.commands.crawl.QueueManager", lambda url: DownQueue())

    result = runner.invoke(app, ["crawl", "https://example.com/"])

    assert result.exit_code == 1
    assert "Job queue is not available" in result.output
