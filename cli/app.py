from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import typer
import uvicorn

from app.auth import issue_token
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_health, render_readings, render_stats
from logging_config import configure_logging
from services.enrichment import enrich_reading
from services.generator import ReadingGenerator, backfill_readings
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


class Service(str, Enum):
    storage = "storage"
    enrichment = "enrichment"
    ingress = "ingress"


_FACTORIES = {
    Service.storage: ("app.main:create_storage_app", 3004),
    Service.enrichment: ("app.main:create_enrichment_app", 3003),
    Service.ingress: ("app.main:create_ingress_app", 3002),
}


app = typer.Typer(
    help="Run and query the city temperature relay pipeline.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Storage API base URL (defaults to API_BASE_URL env or http://localhost:3004).",
    ),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        help="Bearer token for protected queries (defaults to API_TOKEN env).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, token=token, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("serve")
def serve_command(
    service: Service = typer.Argument(..., help="Which hop to run."),
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: Optional[int] = typer.Option(None, "--port", help="Port to listen on."),
) -> None:
    """Run one pipeline hop under uvicorn."""
    configure_logging(hop=service.value)
    factory, default_port = _FACTORIES[service]
    uvicorn.run(factory, factory=True, host=host, port=port or default_port, log_config=None)


@app.command("generate")
def generate_command(
    url: Optional[str] = typer.Option(None, "--url", help="Ingress relay WebSocket URL."),
    interval: Optional[float] = typer.Option(None, "--interval", help="Seconds between readings."),
    retry_delay: Optional[float] = typer.Option(
        None, "--retry-delay", help="Seconds to wait before reconnecting."
    ),
) -> None:
    """Stream synthetic readings to the ingress relay until interrupted."""
    configure_logging(hop="generator")
    settings = get_settings()
    generator = ReadingGenerator(
        url=url or settings.ingress_url,
        interval=interval or settings.generator_interval,
        retry_delay=retry_delay or settings.generator_retry_delay,
    )
    try:
        asyncio.run(generator.run())
    except KeyboardInterrupt:
        typer.echo(f"Stopped after sending {generator.sent_count} readings.")


@app.command("seed")
def seed_command(
    ctx: typer.Context,
    hours: float = typer.Option(2.0, "--hours", min=0.1, help="How far back to backfill."),
    step_minutes: int = typer.Option(5, "--step-minutes", min=1, help="Minutes between readings."),
) -> None:
    """Insert backfilled readings directly into the storage API."""
    state = _get_state(ctx)
    end = int(time.time())
    start = end - int(hours * 3600)
    created = 0
    for raw in backfill_readings(start, end, step_minutes * 60):
        enriched = enrich_reading(raw, "seed-script", datetime.now(timezone.utc))
        state.client.insert_reading(enriched.to_wire())
        created += 1
    typer.secho(f"Inserted {created} readings into {state.config.base_url}.", fg=typer.colors.GREEN)


@app.command("token")
def token_command(
    subject: str = typer.Option("admin", "--subject", help="Token subject."),
    role: str = typer.Option("admin", "--role", help="Role claim (admin or user)."),
) -> None:
    """Print a signed bearer token for the query API."""
    typer.echo(issue_token(subject, role=role))


@app.command("latest")
def latest_command(
    ctx: typer.Context,
    city: Optional[str] = typer.Option(None, "--city", help="Restrict to one city."),
    limit: int = typer.Option(3, "--limit", min=1, help="Number of readings."),
) -> None:
    """Show the most recent stored readings."""
    state = _get_state(ctx)
    render_readings(state.client.latest(city=city, limit=limit))


@app.command("stats")
def stats_command(
    ctx: typer.Context,
    city: str = typer.Argument(..., help="Registered city name."),
    start_date: Optional[str] = typer.Option(None, "--start", help="Window start (ISO or epoch)."),
    end_date: Optional[str] = typer.Option(None, "--end", help="Window end (ISO or epoch)."),
) -> None:
    """Show aggregate statistics for one city."""
    state = _get_state(ctx)
    render_stats(state.client.city_stats(city, start_date=start_date, end_date=end_date))


@app.command("check")
def check_command(ctx: typer.Context) -> None:
    """Report the health of every hop."""
    state = _get_state(ctx)
    settings = get_settings()
    ingress_http = settings.ingress_url.replace("wss://", "https://").replace("ws://", "http://")
    results = {
        "storage": state.client.health(state.config.base_url),
        "enrichment": state.client.health(settings.enrichment_url),
        "ingress": state.client.health(ingress_http),
    }
    render_health(results)
    if any(payload.get("status") != "healthy" for payload in results.values()):
        raise typer.Exit(code=1)
