from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import typer

DEFAULT_TIMEOUT = 120.0

API_BASE_OPTION = typer.Option(
    ..., "--api-base", envvar="DREAM_API_BASE", help="Base API URL (e.g. http://localhost:5001/api)"
)


def _build_client(api_base: str) -> httpx.Client:
    base_url = api_base.rstrip("/")
    return httpx.Client(base_url=base_url, timeout=DEFAULT_TIMEOUT)


def _echo_response(response: httpx.Response) -> None:
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:  # pragma: no cover - exercised via CLI
        typer.echo(f"Request failed ({exc.response.status_code}): {exc.response.text}")
        raise typer.Exit(code=1)

    typer.echo(response.text)


def _request(api_base: str, method: str, path: str, **kwargs: Any) -> None:
    try:
        with _build_client(api_base) as client:
            response = client.request(method, path, **kwargs)
    except httpx.RequestError as exc:  # pragma: no cover - exercised via CLI
        typer.echo(f"Request error: {exc}")
        raise typer.Exit(code=1)
    _echo_response(response)


images_app = typer.Typer(help="Interact with the image APIs via HTTP")


@images_app.command("generate")
def generate_image(
    prompt: str = typer.Option(..., "--prompt", help="Text describing the image"),
    aspect_ratio: Optional[str] = typer.Option(None, "--aspect-ratio", help="Aspect ratio such as 1:1 or 16:9"),
    user: Optional[str] = typer.Option(None, "--user", help="User identifier"),
    board: Optional[str] = typer.Option(None, "--board", help="Board name"),
    api_base: str = API_BASE_OPTION,
) -> None:
    """Generate images for a prompt and print the response."""
    body: Dict[str, Any] = {"prompt": prompt}
    if aspect_ratio:
        body["aspectRatio"] = aspect_ratio
    if user:
        body["userId"] = user
    if board:
        body["boardName"] = board
    _request(api_base, "POST", "/images", json=body)


@images_app.command("list")
def list_images(
    user: str = typer.Option(..., "--user", help="User identifier"),
    limit: int = typer.Option(20, "--limit", help="Maximum number of records"),
    api_base: str = API_BASE_OPTION,
) -> None:
    """List stored images for a user, newest first."""
    _request(api_base, "GET", f"/images/user/{user}", params={"limit": limit})


@images_app.command("get")
def get_image(
    image_id: str = typer.Option(..., "--id", help="Image record identifier"),
    api_base: str = API_BASE_OPTION,
) -> None:
    """Show a stored image record."""
    _request(api_base, "GET", f"/images/{image_id}")


@images_app.command("categories")
def list_categories(api_base: str = API_BASE_OPTION) -> None:
    """List brainstorm categories."""
    _request(api_base, "GET", "/brainstorm/categories")


@images_app.command("brainstorm")
def brainstorm(
    category: str = typer.Option(..., "--category", help="Category id (e.g. landscapes)"),
    count: int = typer.Option(4, "--count", help="Number of prompts (1-10)"),
    api_base: str = API_BASE_OPTION,
) -> None:
    """Ask for creative prompt ideas in a category."""
    _request(api_base, "GET", f"/brainstorm/{category}", params={"count": count})
