"""Serve command: run the REST API under uvicorn."""

from __future__ import annotations

from typing import Annotated

import typer
import uvicorn

from crawlshot.api.app import create_app
from crawlshot.core.config import Settings


def serve_command(
    host: Annotated[str, typer.Option("--host", help="Interface to bind")] = "0.0.0.0",
    port: Annotated[int, typer.Option("--port", help="Port to listen on")] = 3006,
) -> None:
    """Serve the crawl API and the screenshots directory."""
    settings = Settings()
    uvicorn.run(create_app(settings), host=host, port=port)
