"""Command-line entrypoints for CommentDesk."""

import json
import logging
from datetime import date
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from commentdesk.auth import AdminService
from commentdesk.config import get_settings
from commentdesk.drafting import DraftGenerator
from commentdesk.errors import CommentDeskError
from commentdesk.rulemakings import RulemakingService
from commentdesk.seed import seed_rulemakings
from commentdesk.store import RecordStore, create_record_store

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(level: str, log_json: bool = False) -> None:
    """Set up logging with Rich handler or JSON lines."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    if log_json:

        class JsonFormatter(logging.Formatter):
            def format(self, record: logging.LogRecord) -> str:
                payload = {
                    "level": record.levelname,
                    "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
                    "message": record.getMessage(),
                    "name": record.name,
                }
                return json.dumps(payload)

        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logging.basicConfig(level=log_level, handlers=[handler], force=True)
    else:
        logging.basicConfig(
            level=log_level,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=console, rich_tracebacks=True)],
            force=True,
        )


def _store(database_url: Optional[str]) -> RecordStore:
    settings = get_settings()
    store = create_record_store(database_url or settings.database_url, settings.database_file)
    store.ensure_schema()
    return store


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def main(log_level: Optional[str]) -> None:
    """CommentDesk management commands."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level, settings.log_json)


@main.command()
@click.option("--host", default=None, help="Bind address (default API_HOST)")
@click.option("--port", default=None, type=int, help="Port (default PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    try:
        settings.validate_runtime_config()
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise SystemExit(1)

    host = host or settings.api_host
    port = port or settings.api_port
    logger.info(f"Starting CommentDesk API on {host}:{port} ({settings.environment})")
    uvicorn.run(
        "commentdesk.api:create_api_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@main.command(name="init-db")
@click.option("--database-url", envvar="DATABASE_URL", default=None)
def init_db(database_url: Optional[str]) -> None:
    """Create record tables and indexes if needed."""
    _store(database_url)
    console.print("[green]✓ Record store schema ready[/green]")


@main.command()
@click.option(
    "--deadline",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Comment deadline for the sample rulemaking (default: 90 days out)",
)
@click.option("--database-url", envvar="DATABASE_URL", default=None)
def seed(deadline, database_url: Optional[str]) -> None:
    """Add the sample CFPB rulemaking."""
    store = _store(database_url)
    deadline_date: Optional[date] = deadline.date() if deadline else None
    created = seed_rulemakings(RulemakingService(store), deadline_date)
    for rulemaking in created:
        console.print(f"[green]✓ Added rulemaking:[/green] {rulemaking.title}")
    console.print(f"Added {len(created)} rulemaking(s)")


@main.command(name="create-admin")
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--name", default=None)
@click.option("--role", default="admin", show_default=True)
@click.option("--database-url", envvar="DATABASE_URL", default=None)
def create_admin(
    email: str, password: str, name: Optional[str], role: str, database_url: Optional[str]
) -> None:
    """Create an admin account."""
    store = _store(database_url)
    try:
        account = AdminService(store).create_admin(email, password, name, role)
    except CommentDeskError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise SystemExit(1)
    console.print(f"[green]✓ Admin created:[/green] {account['email']} ({account['role']})")


@main.command(name="check-llm")
def check_llm() -> None:
    """Verify the text-generation credentials."""
    settings = get_settings()
    generator = DraftGenerator(
        api_key=settings.claude_api_key,
        model=settings.claude_model,
        base_url=settings.claude_base_url,
    )
    if generator.check_api_key():
        console.print(f"[green]✓ Text generation reachable ({settings.claude_model})[/green]")
    else:
        console.print("[red]✗ Text generation unavailable - check CLAUDE_API_KEY[/red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
