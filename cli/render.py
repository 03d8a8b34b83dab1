from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_readings(payload: Dict[str, Any]) -> None:
    echo_heading("Latest Readings")
    readings = payload.get("data") or []
    if not readings:
        typer.echo("No readings stored.")
        return
    for reading in readings:
        typer.echo(
            f"  - {reading.get('isoDate')} {reading.get('city')}: "
            f"{reading.get('temperature')}{reading.get('unit', '')} "
            f"({reading.get('temperatureCategory')}) id={reading.get('id')}"
        )


def render_stats(payload: Dict[str, Any]) -> None:
    stats = payload.get("stats") or {}
    echo_heading(f"Statistics for {payload.get('city')}")
    echo_key_values(
        [
            ("count", stats.get("count")),
            ("avgTemp", stats.get("avgTemp")),
            ("minTemp", stats.get("minTemp")),
            ("maxTemp", stats.get("maxTemp")),
            ("latestTemp", stats.get("latestTemp")),
            ("latestTimestamp", stats.get("latestTimestamp")),
        ]
    )


def render_health(results: Mapping[str, Dict[str, Any]]) -> None:
    echo_heading("Service Health")
    for name, payload in results.items():
        status = payload.get("status", "unknown")
        colour = typer.colors.GREEN if status == "healthy" else typer.colors.RED
        typer.secho(f"{name}: {status}", fg=colour)
        details = {key: value for key, value in payload.items() if key != "status"}
        for key, value in details.items():
            typer.echo(f"  {key}: {value}")
