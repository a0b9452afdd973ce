from __future__ import annotations

from typing import Any, Dict, Union

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the event service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def send_measurement(self, kind: Union[int, str], value: float) -> Dict[str, Any]:
        try:
            response = self._client.post(
                f"/devices/{self._config.device_id}/measurements",
                json={"kind": kind, "value": value},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def get_state(self) -> Dict[str, Any]:
        device_id = self._config.device_id
        try:
            response = self._client.get(f"/devices/{device_id}")
            if response.status_code == 404:
                raise typer.BadParameter(f"Device {device_id} has not reported any measurements.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def register_rule(self, event_id: str, args: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.post(
                f"/devices/{self._config.device_id}/rules",
                json={"event_id": event_id, "args": args},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: Any = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
