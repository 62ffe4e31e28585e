"""Engine configuration for attendsync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from attendsync.exceptions import SyncConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class SyncConfig:
    """Engine configuration.

    Parameters
    ----------
    endpoint_url : str or None
        Remote web app URL used for both writes and snapshot reads.  Only
        used when no URL has been persisted yet; a URL changed at runtime
        through :meth:`attendsync.SyncEngine.set_endpoint_url` wins over it
        on the next start.
    poll_interval : float
        Seconds between two snapshot polls of the reconciler.
    request_timeout : float
        Seconds after which an in-flight HTTP call is aborted.
    backoff_min_seconds : float
        Lower bound of the randomized wait after a failed delivery.
    backoff_max_seconds : float
        Upper bound of the randomized wait after a failed delivery.
    idle_interval : float
        Seconds the sync processor sleeps when there is nothing to send
        and no enqueue wake-up arrives.
    polling_enabled : bool
        Run the reconciler loop.  Submission-only clients (kiosks) may
        disable it and only push marks.
    storage_dir : str or None
        Directory used by :class:`attendsync.storage.JsonFileStorage` when
        the operator script builds its own storage.
    """

    endpoint_url: str | None = None
    poll_interval: float = 5.0
    request_timeout: float = 25.0
    backoff_min_seconds: float = 5.0
    backoff_max_seconds: float = 20.0
    idle_interval: float = 1.0
    polling_enabled: bool = True
    storage_dir: str | None = None

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise SyncConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.request_timeout <= 0:
            raise SyncConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.idle_interval <= 0:
            raise SyncConfigError(f"idle_interval must be positive, got {self.idle_interval}")
        if self.backoff_min_seconds < 0 or self.backoff_max_seconds < self.backoff_min_seconds:
            raise SyncConfigError(
                "backoff window must satisfy 0 <= min <= max, "
                f"got [{self.backoff_min_seconds}, {self.backoff_max_seconds}]"
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> SyncConfig:
        """Create configuration from environment variables.

        Reads optional ``ATTENDSYNC_*`` variables.  Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        SyncConfig
            Populated configuration.

        Raises
        ------
        SyncConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "ATTENDSYNC_ENDPOINT_URL": "endpoint_url",
            "ATTENDSYNC_STORAGE_DIR": "storage_dir",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "ATTENDSYNC_POLL_INTERVAL": "poll_interval",
            "ATTENDSYNC_REQUEST_TIMEOUT": "request_timeout",
            "ATTENDSYNC_BACKOFF_MIN": "backoff_min_seconds",
            "ATTENDSYNC_BACKOFF_MAX": "backoff_max_seconds",
            "ATTENDSYNC_IDLE_INTERVAL": "idle_interval",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = float(val)
            except ValueError as exc:
                raise SyncConfigError(f"{env_key} must be a number, got {val!r}") from exc

        if "polling_enabled" not in overrides:
            config_kwargs["polling_enabled"] = _env_bool(env.get("ATTENDSYNC_POLLING_ENABLED"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
