from __future__ import annotations

from typing import Optional

import typer
import uvicorn

from app.core.config import get_settings
from app.core.logging import SENSITIVE_FIELDS, mask_secret

from .images import images_app

cli = typer.Typer(help="Command line interface for the Dream Machine image API")
cli.add_typer(images_app, name="images")


@cli.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind the API server to"),
    port: Optional[int] = typer.Option(None, help="Port to bind the API server to"),
    reload: Optional[bool] = typer.Option(None, help="Enable auto reload (development only)"),
) -> None:
    settings = get_settings()
    host = host or settings.cli_default_host
    port = port or settings.cli_default_port
    reload = settings.cli_reload if reload is None else reload

    uvicorn.run("app.main:app", host=host, port=port, reload=reload)


@cli.command()
def serve_stub(
    host: str = typer.Option("127.0.0.1", help="Host to bind the DashScope stub to"),
    port: int = typer.Option(9000, help="Port to bind the DashScope stub to"),
    checks_until_done: int = typer.Option(2, help="Status checks answered with RUNNING before success"),
) -> None:
    """Run a local stand-in for the DashScope image API."""
    from .local_provider import run

    run(host=host, port=port, checks_until_done=checks_until_done)


@cli.command()
def show_config() -> None:
    settings = get_settings()
    for field, value in settings.model_dump().items():
        if field in SENSITIVE_FIELDS and isinstance(value, str):
            value = mask_secret(value)
        typer.echo(f"{field}: {value}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
