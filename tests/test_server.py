from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from pathlib import Path

import aiohttp
import pytest
from aiohttp import test_utils

from pydevicehub.config import HubConfig
from pydevicehub.server import create_app
from pydevicehub.state.store import EventStore


@contextlib.asynccontextmanager
async def _client(tmp_path: Path, store: EventStore | None = None) -> AsyncIterator[test_utils.TestClient]:
    config = HubConfig(upload_dir=tmp_path / "uploads", ws_heartbeat=0)
    app = create_app(config, store=store)
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        yield client


@pytest.mark.asyncio
async def test_submit_then_pull(tmp_path: Path) -> None:
    async with _client(tmp_path) as client:
        resp = await client.post("/submit", json={"deviceId": "d1", "sms": [{"body": "hi", "address": "112"}]})
        assert resp.status == 200
        body = await resp.json()
        assert body["message"] == "Data received for d1"
        assert body["accepted"] == {"sms": 1}

        resp = await client.get("/api/sms", params={"deviceId": "d1"})
        assert resp.status == 200
        (row,) = await resp.json()
        assert row["deviceId"] == "d1"
        assert row["body"] == "hi"
        assert row["address"] == "112"
        assert "timestamp" in row

        resp = await client.get("/api/sms", params={"deviceId": "ghost"})
        assert await resp.json() == []


@pytest.mark.asyncio
async def test_submit_without_device_is_rejected(tmp_path: Path) -> None:
    async with _client(tmp_path) as client:
        resp = await client.post("/submit", json={"sms": [{"body": "hi"}]})
        assert resp.status == 400
        assert (await resp.json())["error"] == 'deviceId required (or field "device")'

        resp = await client.get("/api/devices")
        assert await resp.json() == []


@pytest.mark.asyncio
async def test_unknown_category_is_not_found(tmp_path: Path) -> None:
    async with _client(tmp_path) as client:
        resp = await client.get("/api/weather")
        assert resp.status == 404


@pytest.mark.asyncio
async def test_device_info_merge_and_listing(tmp_path: Path) -> None:
    async with _client(tmp_path) as client:
        await client.post("/api/deviceinfo", json={"deviceId": "d1", "model": "Pixel"})
        resp = await client.post("/api/deviceinfo", json={"deviceId": "d1", "battery": 80})
        assert resp.status == 200
        info = (await resp.json())["info"]
        assert info["model"] == "Pixel"
        assert info["battery"] == 80

        resp = await client.get("/api/devices")
        (device,) = await resp.json()
        assert device["deviceId"] == "d1"
        assert device["info"]["model"] == "Pixel"

        resp = await client.post("/api/deviceinfo", json={"model": "Pixel"})
        assert resp.status == 400


@pytest.mark.asyncio
async def test_audio_upload_is_stored_and_served(tmp_path: Path) -> None:
    async with _client(tmp_path) as client:
        form = aiohttp.FormData()
        form.add_field("deviceId", "d1")
        form.add_field("audio", b"ID3-not-really-mp3", filename="clip.mp3", content_type="audio/mpeg")

        resp = await client.post("/api/audio", data=form)
        assert resp.status == 200
        audio = (await resp.json())["audio"]
        assert audio["url"].startswith("/uploads/d1/audio-")
        assert audio["filename"].endswith(".mp3")

        stored = tmp_path / "uploads" / "d1" / audio["filename"]
        assert stored.read_bytes() == b"ID3-not-really-mp3"

        served = await client.get(audio["url"])
        assert served.status == 200
        assert await served.read() == b"ID3-not-really-mp3"

        (row,) = await (await client.get("/api/audio", params={"deviceId": "d1"})).json()
        assert row["url"] == audio["url"]


@pytest.mark.asyncio
async def test_audio_upload_without_file_still_registers_device(tmp_path: Path) -> None:
    async with _client(tmp_path) as client:
        form = aiohttp.FormData()
        form.add_field("deviceId", "d1")

        resp = await client.post("/api/audio", data=form)
        assert resp.status == 400
        assert (await resp.json())["error"] == "No audio file uploaded"

        devices = await (await client.get("/api/devices")).json()
        assert [device["deviceId"] for device in devices] == ["d1"]


@pytest.mark.asyncio
async def test_audio_upload_rejects_unsafe_device_id(tmp_path: Path) -> None:
    async with _client(tmp_path) as client:
        form = aiohttp.FormData()
        form.add_field("deviceId", "..")
        form.add_field("audio", b"x", filename="clip.mp3")

        resp = await client.post("/api/audio", data=form)
        assert resp.status == 400


@pytest.mark.asyncio
async def test_websocket_snapshot_then_stream(tmp_path: Path) -> None:
    store = EventStore()
    store.submit("d1", "sms", {"body": "before"})

    async with _client(tmp_path, store) as client:
        ws = await client.ws_connect("/ws")
        init = await ws.receive_json(timeout=2)
        assert init["event"] == "init-data"
        assert init["data"]["sequence"] == 1
        assert [row["body"] for row in init["data"]["devices"]["d1"]["sms"]] == ["before"]

        await client.post("/submit", json={"deviceId": "d1", "sms": [{"body": "after"}]})

        message = await ws.receive_json(timeout=2)
        assert message["event"] == "new-sms"
        streamed = message["data"]
        assert streamed["deviceId"] == "d1"
        assert streamed["sequence"] == 2

        rows = await (await client.get("/api/sms", params={"deviceId": "d1"})).json()
        assert rows[-1] == {"deviceId": "d1", **streamed["payload"][0]}

        await ws.close()


@pytest.mark.asyncio
async def test_scoped_websocket_only_sees_its_device(tmp_path: Path) -> None:
    async with _client(tmp_path) as client:
        ws = await client.ws_connect("/ws", params={"deviceId": "d2"})
        init = await ws.receive_json(timeout=2)
        assert init["data"]["devices"] == {}

        await client.post("/submit", json={"deviceId": "d1", "sms": [{"body": "other"}]})
        await client.post("/api/deviceinfo", json={"deviceId": "d2", "model": "Pixel"})

        message = await ws.receive_json(timeout=2)
        assert message["event"] == "deviceinfo-update"
        assert message["data"]["deviceId"] == "d2"
        assert message["data"]["payload"]["model"] == "Pixel"

        await ws.close()
