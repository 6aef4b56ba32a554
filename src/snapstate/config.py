"""Ingestion configuration."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from pathlib import Path

from snapstate.errors import ConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(name: str, value: str | None, default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number of seconds, got {value!r}") from exc
    if parsed <= 0:
        raise ConfigError(f"{name} must be positive, got {value!r}")
    return parsed


@dataclasses.dataclass(frozen=True)
class IngestConfig:
    """How the root timeseries value is obtained and refreshed.

    Parameters
    ----------
    refresh_interval : float
        Minimum number of seconds between two fetches of the remote feed.
        Defaults to 10 minutes.
    production : bool
        Start empty and fetch the remote feed. When False the bundled
        snapshot at ``static_path`` is loaded instead.
    static_path : Path
        JSON snapshot used outside production.
    """

    refresh_interval: float = 600.0
    production: bool = False
    static_path: Path = Path("static/timeseries.json")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> IngestConfig:
        """Read ``SNAPSTATE_REFRESH_INTERVAL``, ``PRODUCTION`` and ``SNAPSTATE_STATIC_PATH``."""
        env = os.environ if environ is None else environ
        defaults = cls()
        static_path = env.get("SNAPSTATE_STATIC_PATH")
        return cls(
            refresh_interval=_env_float(
                "SNAPSTATE_REFRESH_INTERVAL",
                env.get("SNAPSTATE_REFRESH_INTERVAL"),
                defaults.refresh_interval,
            ),
            production=_env_bool(env.get("PRODUCTION"), defaults.production),
            static_path=Path(static_path) if static_path else defaults.static_path,
        )
