"""Run the hub: ``python -m pydevicehub``."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any

from aiohttp import web

from pydevicehub.config import HubConfig
from pydevicehub.server import create_app

_LOG = logging.getLogger("pydevicehub")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Device telemetry hub (HTTP ingestion + websocket sync)")
    parser.add_argument("--host", help="Bind address (env DEVICEHUB_HOST)")
    parser.add_argument("--port", type=int, help="TCP port (env DEVICEHUB_PORT / PORT)")
    parser.add_argument("--upload-dir", type=Path, help="Audio upload directory (env DEVICEHUB_UPLOAD_DIR)")
    parser.add_argument("--queue-size", type=int, help="Per-observer queue bound, 0 = unbounded")
    parser.add_argument("--log-level", help="Logging level (env DEVICEHUB_LOG_LEVEL)")
    args = parser.parse_args(argv)

    overrides: dict[str, Any] = {}
    for arg_name, field_name in (
        ("host", "host"),
        ("port", "port"),
        ("upload_dir", "upload_dir"),
        ("queue_size", "subscriber_queue_size"),
        ("log_level", "log_level"),
    ):
        value = getattr(args, arg_name)
        if value is not None:
            overrides[field_name] = value
    config = HubConfig.from_env(**overrides)

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _LOG.info("Serving on http://%s:%d (uploads in %s)", config.host, config.port, config.upload_dir)
    web.run_app(create_app(config), host=config.host, port=config.port, print=None)


if __name__ == "__main__":
    main()
