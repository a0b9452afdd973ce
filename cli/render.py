from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_mapping(mapping: Dict[str, Any]) -> str:
    return ", ".join(f"{key}={value}" for key, value in mapping.items())


def render_measurement(payload: Dict[str, Any]) -> None:
    echo_heading("Measurement Result")
    echo_key_values(
        [
            ("device_id", payload.get("device_id")),
            ("processing_ms", payload.get("processing_ms")),
        ]
    )

    events = payload.get("events") or []
    typer.echo()
    echo_heading("Events")
    if events:
        for event in events:
            line = f"  - {event.get('event_id')}: {_format_mapping(event.get('tokens') or {})}"
            filter_state = event.get("filter_state") or {}
            if filter_state:
                line += f" [{_format_mapping(filter_state)}]"
            typer.echo(line)
    else:
        typer.echo("No events emitted.")

    fired = payload.get("fired") or []
    typer.echo()
    echo_heading("Fired Triggers")
    if fired:
        for item in fired:
            typer.echo(f"  - {item.get('event_id')} (rule {item.get('rule_id')})")
    else:
        typer.echo("No triggers fired.")


def render_state(payload: Dict[str, Any]) -> None:
    echo_heading("Device State")
    echo_key_values([("device_id", payload.get("device_id"))])

    typer.echo()
    echo_heading("Capabilities")
    capabilities = payload.get("capabilities") or {}
    if capabilities:
        echo_key_values(sorted(capabilities.items()))
    else:
        typer.echo("No capabilities exposed.")

    typer.echo()
    echo_heading("Previous Values")
    previous = payload.get("previous_values") or {}
    tracked = [(key, value) for key, value in sorted(previous.items()) if value is not None]
    if tracked:
        echo_key_values(tracked)
    else:
        typer.echo("No readings tracked yet.")
