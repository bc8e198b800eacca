"""aiohttp application exposing the hub over HTTP and websockets.

Producers ``POST`` submissions, info updates and audio uploads; observers
pull with ``GET /api/...`` or connect to ``/ws`` for the
snapshot-then-stream protocol.  All state lives in the injected
:class:`EventStore`.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import shutil
import weakref
from pathlib import Path
from typing import IO, Any

from aiohttp import WSCloseCode, web

from pydevicehub.config import HubConfig
from pydevicehub.exceptions import SubscriptionOverflowError, ValidationError
from pydevicehub.ingestion.audio import audio_filename, build_audio_record, is_safe_path_component
from pydevicehub.ingestion.submission import ingest_submission, merge_device_info
from pydevicehub.state.events import Category, resolve_category
from pydevicehub.state.store import EventStore
from pydevicehub.sync.broadcaster import Broadcaster
from pydevicehub.sync.gateway import ObserverConnection, SynchronizationGateway

_logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", HubConfig)
STORE_KEY = web.AppKey("store", EventStore)
GATEWAY_KEY = web.AppKey("gateway", SynchronizationGateway)
WEBSOCKETS_KEY = web.AppKey("websockets", weakref.WeakSet)

AUDIO_FIELD = "audio"


def _json_error(message: str, *, status: int = 400) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _read_body(request: web.Request) -> Any:
    """JSON body, or the form fields for urlencoded submissions."""
    if request.content_type == "application/json":
        try:
            return await request.json()
        except json.JSONDecodeError:
            return None
    form = await request.post()
    return {key: value for key, value in form.items() if isinstance(value, str)}


# ----------------------------------------------------------------------
# Producer endpoints
# ----------------------------------------------------------------------


async def handle_submit(request: web.Request) -> web.Response:
    body = await _read_body(request)
    try:
        report = ingest_submission(request.app[STORE_KEY], body)
    except ValidationError as exc:
        if exc.field == "body":
            return _json_error(str(exc))
        return _json_error('deviceId required (or field "device")')
    return web.json_response({"message": f"Data received for {report.device_id}", **report.to_dict()})


async def handle_device_info(request: web.Request) -> web.Response:
    body = await _read_body(request)
    try:
        info = merge_device_info(request.app[STORE_KEY], body)
    except ValidationError as exc:
        return _json_error(str(exc))
    return web.json_response({"message": "Device info updated", "info": info})


def _save_upload(source: IO[bytes], target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("wb") as fh:
        shutil.copyfileobj(source, fh)


async def handle_audio_upload(request: web.Request) -> web.Response:
    config = request.app[CONFIG_KEY]
    store = request.app[STORE_KEY]
    form = await request.post()

    raw_device_id = form.get("deviceId")
    if not isinstance(raw_device_id, str) or not raw_device_id.strip():
        return _json_error("deviceId required")
    device_id = raw_device_id.strip()
    if not is_safe_path_component(device_id):
        return _json_error("deviceId cannot be used as an upload directory")
    store.register(device_id)

    upload = form.get(AUDIO_FIELD)
    if not isinstance(upload, web.FileField):
        return _json_error("No audio file uploaded")

    filename = audio_filename()
    target = config.upload_dir / device_id / filename
    await asyncio.get_running_loop().run_in_executor(None, _save_upload, upload.file, target)
    _logger.debug("Stored upload %s (%s) for %s", target, upload.filename, device_id)

    record = build_audio_record(device_id, filename, url_prefix=config.upload_url_prefix)
    event = store.submit(device_id, Category.AUDIO, record)
    assert event is not None  # noqa: S101
    return web.json_response({"message": "Audio uploaded", "audio": event.records[0].to_dict()})


# ----------------------------------------------------------------------
# Pull endpoints
# ----------------------------------------------------------------------


async def handle_list_devices(request: web.Request) -> web.Response:
    devices = request.app[STORE_KEY].list_devices()
    return web.json_response([device.to_dict() for device in devices])


async def handle_query(request: web.Request) -> web.Response:
    category = resolve_category(request.match_info["category"])
    if category is None:
        return _json_error("Unknown category", status=404)
    device_id = request.query.get("deviceId") or None
    entries = request.app[STORE_KEY].query(category, device_id)
    return web.json_response([entry.to_dict() for entry in entries])


# ----------------------------------------------------------------------
# Push endpoint
# ----------------------------------------------------------------------


async def _watch_client(ws: web.WebSocketResponse, connection: ObserverConnection) -> None:
    """Consume client frames until the socket closes, then end the stream."""
    try:
        async for msg in ws:
            _logger.debug("Ignoring observer frame type=%s", msg.type)
    finally:
        connection.close()


async def handle_websocket(request: web.Request) -> web.WebSocketResponse:
    config = request.app[CONFIG_KEY]
    ws = web.WebSocketResponse(heartbeat=config.ws_heartbeat or None)
    await ws.prepare(request)
    request.app[WEBSOCKETS_KEY].add(ws)

    device_id = request.query.get("deviceId") or None
    connection = request.app[GATEWAY_KEY].connect(device_id=device_id, loop=asyncio.get_running_loop())
    reader = asyncio.create_task(_watch_client(ws, connection))
    try:
        await ws.send_json({"event": "init-data", "data": connection.snapshot.to_dict()})
        async for event in connection:
            await ws.send_json({"event": event.name, "data": event.to_dict()})
    except SubscriptionOverflowError as exc:
        _logger.warning("Observer fell behind (%d dropped); closing websocket", exc.dropped)
        await ws.close(code=WSCloseCode.TRY_AGAIN_LATER, message=b"observer lagged")
    except ConnectionResetError:
        _logger.debug("Observer websocket reset", exc_info=True)
    finally:
        connection.close()
        reader.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reader
        if not ws.closed:
            await ws.close()
    return ws


# ----------------------------------------------------------------------
# Application
# ----------------------------------------------------------------------


async def _on_shutdown(app: web.Application) -> None:
    for ws in set(app[WEBSOCKETS_KEY]):
        await ws.close(code=WSCloseCode.GOING_AWAY, message=b"server shutdown")


async def _on_cleanup(app: web.Application) -> None:
    app[STORE_KEY].broadcaster.close()


def create_app(config: HubConfig | None = None, *, store: EventStore | None = None) -> web.Application:
    """Build the application around *store* (a fresh one by default)."""
    config = config or HubConfig()
    if store is None:
        store = EventStore(Broadcaster(queue_size=config.subscriber_queue_size))
    config.upload_dir.mkdir(parents=True, exist_ok=True)

    app = web.Application()
    app[CONFIG_KEY] = config
    app[STORE_KEY] = store
    app[GATEWAY_KEY] = SynchronizationGateway(store)
    app[WEBSOCKETS_KEY] = weakref.WeakSet()

    app.router.add_post("/submit", handle_submit)
    app.router.add_post("/api/deviceinfo", handle_device_info)
    app.router.add_post("/api/audio", handle_audio_upload)
    app.router.add_get("/api/devices", handle_list_devices)
    app.router.add_get("/api/{category}", handle_query)
    app.router.add_get("/ws", handle_websocket)
    app.router.add_static(config.upload_url_prefix, config.upload_dir, show_index=False)

    app.on_shutdown.append(_on_shutdown)
    app.on_cleanup.append(_on_cleanup)
    return app
