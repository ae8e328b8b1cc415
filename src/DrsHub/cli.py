"""
DrsHub command line interface.

Commands:
    resolve   Resolve a DRS URI and print the JSON response
    plan      Show the provider and the backend calls a request would make
    settings  Print the effective settings
    serve     Run the HTTP service

Examples:
    drshub resolve drs://dg.4503/abc -f gsUri -f size --token "$TOKEN"
    drshub plan drs://dg.4dfc:abc -f accessUrl --method s3
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from DrsHub import __version__
from DrsHub.config import DrsHubSettings, load_settings
from DrsHub.errors import DrsHubError, RequestError
from DrsHub.fields import DEFAULT_FIELDS, unsupported_fields
from DrsHub.logging_utils import configure_logging
from DrsHub.net.client import ResilientHttpClient, build_async_client
from DrsHub.orchestrator.resolver import DrsResolver
from DrsHub.planning import plan_fetches
from DrsHub.resolvers.profiles import AccessMethodType
from DrsHub.resolvers.registry import resolve_provider

app = typer.Typer(
    name="drshub",
    help="Resolve GA4GH DRS URIs into metadata, credentials and access URLs",
    no_args_is_help=True,
)

_console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="YAML/JSON settings file")
FieldOption = typer.Option(None, "--field", "-f", help="Requested field (repeatable)")


def _load(config: Optional[Path]) -> DrsHubSettings:
    try:
        settings = load_settings(str(config) if config else None)
    except ValueError as exc:
        _console.print(f"[red]Error loading settings: {exc}[/red]")
        raise typer.Exit(code=2) from exc
    configure_logging(level=settings.log_level, fmt=settings.log_format.value)
    return settings


def _print_json(payload: object) -> None:
    typer.echo(json.dumps(payload, indent=2, sort_keys=False))


async def _resolve(
    settings: DrsHubSettings,
    url: str,
    fields: List[str],
    authorization: Optional[str],
    force_access_url: bool,
) -> dict:
    http = ResilientHttpClient(
        build_async_client(settings.http), settings.retry, config=settings.http
    )
    try:
        resolver = DrsResolver(settings, http)
        return await resolver.resolve(
            url, fields, authorization, force_access_url=force_access_url
        )
    finally:
        await http.aclose()


@app.command()
def resolve(
    url: str = typer.Argument(..., help="DRS URI to resolve"),
    field: Optional[List[str]] = FieldOption,
    token: Optional[str] = typer.Option(
        None, "--token", envvar="DRSHUB_TOKEN", help="Bearer token of the caller"
    ),
    force_access_url: bool = typer.Option(
        False, "--force-access-url", help="Fetch an access URL regardless of provider policy"
    ),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Resolve URL and print the response body."""
    settings = _load(config)
    fields = list(field) if field else list(DEFAULT_FIELDS)
    authorization = f"Bearer {token}" if token else None
    try:
        response = asyncio.run(_resolve(settings, url, fields, authorization, force_access_url))
    except DrsHubError as exc:
        _print_json(exc.to_failure_response())
        raise typer.Exit(code=1) from exc
    _print_json(response)


@app.command()
def plan(
    url: str = typer.Argument(..., help="DRS URI to plan"),
    field: Optional[List[str]] = FieldOption,
    method: Optional[AccessMethodType] = typer.Option(
        None, "--method", help="Assume metadata offers this access method"
    ),
    force_access_url: bool = typer.Option(False, "--force-access-url"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Show the provider profile and planned backend calls without calling anything."""
    settings = _load(config)
    fields = list(field) if field else list(DEFAULT_FIELDS)
    try:
        invalid = unsupported_fields(fields)
        if invalid:
            names = "','".join(invalid)
            raise RequestError(f"Fields '{names}' are not supported.")
        parts, profile = resolve_provider(url, settings, force_access_url)
    except DrsHubError as exc:
        _print_json(exc.to_failure_response())
        raise typer.Exit(code=1) from exc

    fetches = plan_fetches(profile, method, fields)
    table = Table(title=f"{profile.name}")
    table.add_column("Step")
    table.add_column("Value")
    table.add_row("metadata URL", parts.metadata_url())
    table.add_row("bond provider", profile.bond_provider.value if profile.bond_provider else "-")
    for name, value in vars(fetches).items():
        table.add_row(name, "yes" if value else "no")
    _console.print(table)


@app.command("settings")
def show_settings(config: Optional[Path] = ConfigOption) -> None:
    """Print the effective settings as JSON."""
    settings = _load(config)
    payload = settings.model_dump(mode="json")
    payload["resolved"] = {
        "hosts": vars(settings.hosts),
        "bond_url": settings.bond_url,
        "externalcreds_url": settings.externalcreds_url,
        "sam_url": settings.sam_url,
    }
    _print_json(payload)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: int = typer.Option(int(os.environ.get("PORT", "8080")), "--port"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Run the HTTP service with uvicorn."""
    import uvicorn

    from DrsHub.api.app import create_app

    settings = _load(config)
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)


@app.command()
def version() -> None:
    """Print the DrsHub version."""
    typer.echo(__version__)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
