"""Typer application entry point for crawlshot CLI."""

import typer

from crawlshot.cli.commands import crawl as crawl_command
from crawlshot.cli.commands import serve as serve_command
from crawlshot.cli.commands import status as status_command
from crawlshot.cli.commands import worker as worker_command

app = typer.Typer(no_args_is_help=True, name="crawlshot")

app.add_typer(status_command.app, name="status")

# Register these as direct commands (not sub-typers) to avoid argument parsing
# issues
app.command(name="crawl", help="Enqueue a screenshot crawl of a website")(
    crawl_command.crawl_command
)
app.command(name="worker", help="Run the crawl worker")(worker_command.worker_command)
app.command(name="serve", help="Serve the REST API")(serve_command.serve_command)


if __name__ == "__main__":
    app()
