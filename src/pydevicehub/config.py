"""Hub configuration for pydevicehub."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from pydevicehub.exceptions import DeviceHubConfigError


def _env_int(env_key: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError as exc:
        raise DeviceHubConfigError(f"{env_key} must be an integer, got {value!r}") from exc


def _env_float(env_key: str, value: str) -> float:
    try:
        return float(value.strip())
    except ValueError as exc:
        raise DeviceHubConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class HubConfig:
    """Hub configuration.

    Parameters
    ----------
    host : str
        Interface the HTTP adapter binds to.
    port : int
        TCP port of the HTTP adapter.
    upload_dir : Path
        Directory receiving uploaded audio files, one sub-directory
        per device.
    upload_url_prefix : str
        Public URL prefix under which ``upload_dir`` is served.
    subscriber_queue_size : int
        Maximum number of undelivered events buffered per observer.
        ``0`` means unbounded.  A full queue drops events and flags the
        subscription as overflowed.
    ws_heartbeat : float
        Websocket ping interval in seconds.  ``0`` disables heartbeats.
    log_level : str
        Log level applied by the ``python -m pydevicehub`` entry point.
    """

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000
    upload_dir: Path = Path("uploads")
    upload_url_prefix: str = "/uploads"
    subscriber_queue_size: int = 0
    ws_heartbeat: float = 30.0
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.subscriber_queue_size < 0:
            raise DeviceHubConfigError("subscriber_queue_size must be >= 0")
        if not 0 <= self.port <= 65535:
            raise DeviceHubConfigError(f"port out of range: {self.port}")

    @classmethod
    def from_env(cls, **overrides: Any) -> HubConfig:
        """Create configuration from environment variables.

        Reads the optional ``DEVICEHUB_*`` variables; ``PORT`` is honoured
        when ``DEVICEHUB_PORT`` is unset.  Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        HubConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "DEVICEHUB_HOST": "host",
            "DEVICEHUB_UPLOAD_URL_PREFIX": "upload_url_prefix",
            "DEVICEHUB_LOG_LEVEL": "log_level",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        port_key = "DEVICEHUB_PORT" if "DEVICEHUB_PORT" in env else "PORT"
        port_env = env.get(port_key)
        if port_env is not None and "port" not in overrides:
            config_kwargs["port"] = _env_int(port_key, port_env)

        upload_env = env.get("DEVICEHUB_UPLOAD_DIR")
        if upload_env is not None and "upload_dir" not in overrides:
            config_kwargs["upload_dir"] = Path(upload_env)

        queue_env = env.get("DEVICEHUB_SUBSCRIBER_QUEUE_SIZE")
        if queue_env is not None and "subscriber_queue_size" not in overrides:
            config_kwargs["subscriber_queue_size"] = _env_int("DEVICEHUB_SUBSCRIBER_QUEUE_SIZE", queue_env)

        heartbeat_env = env.get("DEVICEHUB_WS_HEARTBEAT")
        if heartbeat_env is not None and "ws_heartbeat" not in overrides:
            config_kwargs["ws_heartbeat"] = _env_float("DEVICEHUB_WS_HEARTBEAT", heartbeat_env)

        upload_override = overrides.get("upload_dir")
        if isinstance(upload_override, str):
            overrides["upload_dir"] = Path(upload_override)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
