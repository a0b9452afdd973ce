from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_measurement, render_state


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for sending ventilation unit measurements to the event service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    device_id: Optional[str] = typer.Option(
        None,
        "--device",
        "-d",
        help="Device identifier (defaults to CLI_DEVICE_ID env or 'casa').",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP request timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, device_id=device_id, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    kind: str = typer.Argument(..., help="Metric kind name or wire code, e.g. CO2 or 12."),
    value: float = typer.Argument(..., help="Decoded measurement value."),
) -> None:
    """Send one measurement and show the resulting events."""
    state = _get_state(ctx)
    wire_kind: Any = int(kind) if kind.strip().lstrip("-").isdigit() else kind
    payload = state.client.send_measurement(wire_kind, value)
    render_measurement(payload)


@app.command("state")
def state_command(ctx: typer.Context) -> None:
    """Show current capability values for the device."""
    state = _get_state(ctx)
    render_state(state.client.get_state())


@app.command("rule")
def rule_command(
    ctx: typer.Context,
    event_id: str = typer.Argument(..., help="Event to react to, e.g. co2_above_threshold."),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t", help="Threshold for crossing events."),
    channel: Optional[str] = typer.Option(
        None,
        "--type",
        help="Channel filter: temperature supply/return/intake or ventilation supply/exhaust.",
    ),
) -> None:
    """Register a trigger rule for the device."""
    state = _get_state(ctx)
    args: Dict[str, Any] = {}
    if threshold is not None:
        args["threshold"] = threshold
    if channel is None and event_id.startswith(("temperature", "ventilation_level")):
        raise typer.BadParameter(f"Event {event_id} needs --type to choose a channel.")
    if channel is not None:
        if event_id.startswith("temperature"):
            args["temperature_type"] = channel
        elif event_id.startswith("ventilation_level"):
            args["ventilation_type"] = channel
        else:
            raise typer.BadParameter(f"Event {event_id} has no channel to filter on.")
    payload = state.client.register_rule(event_id, args)
    typer.secho(f"Rule registered. rule_id={payload.get('rule_id')}", fg=typer.colors.GREEN)
