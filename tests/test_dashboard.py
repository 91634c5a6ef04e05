"""Tests for the dashboard JSON API and scan job lifecycle."""

from __future__ import annotations

import asyncio

import aiohttp
import pytest
from aiohttp.test_utils import TestClient, TestServer

from urlsentry.dashboard import DashboardConfig, DashboardServer
from urlsentry.dashboard.server_helpers import _coerce_int, _escape
from urlsentry.history import HistoryRecorder
from urlsentry.scanner.local_scorer import LocalScorerTrigger
from urlsentry.scanner.runner import ScanRunner
from urlsentry.store.local import LocalStore


class SilentTrigger:
    async def notify(self, record_id: str, domain: str) -> None:
        return

    async def close(self) -> None:
        return


async def _make_server(tmp_path, *, trigger=None, max_csv_bytes: int = 5 * 1024 * 1024):
    store = LocalStore(tmp_path / "dash.db")
    await store.connect()
    history = HistoryRecorder(tmp_path / "history.json")
    trigger = trigger or LocalScorerTrigger(store, delay=0)
    runner = ScanRunner(
        store,
        store,
        trigger,
        history=history,
        idle_timeout=5,
        max_duration=10,
        max_csv_bytes=max_csv_bytes,
    )
    server = DashboardServer(
        config=DashboardConfig(enabled=True, max_csv_bytes=max_csv_bytes),
        runner=runner,
        store=store,
        history=history,
    )
    return server, store, trigger


async def _cleanup(server, store, trigger) -> None:
    await server.stop()
    await trigger.close()
    await store.close()


async def _wait_for_job(client: TestClient, job_id: str, *, timeout: float = 5.0) -> dict:
    deadline = asyncio.get_running_loop().time() + timeout
    while True:
        resp = await client.get(f"/api/scans/{job_id}")
        assert resp.status == 200
        data = await resp.json()
        if data["state"] in ("complete", "failed"):
            return data
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(f"job {job_id} stuck in {data['state']}")
        await asyncio.sleep(0.02)


def test_helpers():
    assert _escape("<b>") == "&lt;b&gt;"
    assert _escape(None) == ""
    assert _coerce_int("7", default=1, max_value=5) == 5
    assert _coerce_int("x", default=3) == 3


@pytest.mark.asyncio
async def test_healthz_and_index(tmp_path):
    server, store, trigger = await _make_server(tmp_path)
    try:
        async with TestClient(TestServer(server._app)) as client:
            resp = await client.get("/healthz")
            assert resp.status == 200
            assert (await resp.json())["ok"] is True

            resp = await client.get("/")
            assert resp.status == 200
            text = await resp.text()
            assert "URL Sentry" in text
            assert "No scans yet." in text
    finally:
        await _cleanup(server, store, trigger)


@pytest.mark.asyncio
async def test_single_scan_job_lifecycle(tmp_path):
    server, store, trigger = await _make_server(tmp_path)
    try:
        async with TestClient(TestServer(server._app)) as client:
            resp = await client.post("/api/scan", json={"url": "https://www.example.com/page"})
            assert resp.status == 202
            job_id = (await resp.json())["job_id"]

            job = await _wait_for_job(client, job_id)
            assert job["state"] == "complete"
            assert job["percent"] == 100.0
            assert job["completed"] == job["total"] == 1
            assert job["result"]["url"] == "example.com"
            assert job["result"]["status"] == "clean"
            assert "error" not in job

            resp = await client.get("/api/history")
            items = (await resp.json())["items"]
            assert len(items) == 1
            assert items[0]["data"]["url"] == "example.com"

            resp = await client.get("/")
            assert "example.com" in await resp.text()
    finally:
        await _cleanup(server, store, trigger)


@pytest.mark.asyncio
async def test_scan_validation_errors_return_400(tmp_path):
    server, store, trigger = await _make_server(tmp_path)
    try:
        async with TestClient(TestServer(server._app)) as client:
            resp = await client.post("/api/scan", json={"url": ""})
            assert resp.status == 400
            body = await resp.json()
            assert body == {"error": "Please enter a URL to scan", "kind": "validation"}

            resp = await client.post("/api/scan", json={"url": "not a url"})
            assert resp.status == 400

            resp = await client.post("/api/scan", data="{broken", headers={"Content-Type": "application/json"})
            assert resp.status == 400

            assert len(server.jobs) == 0
            assert await store.list_recent(10) == []
    finally:
        await _cleanup(server, store, trigger)


@pytest.mark.asyncio
async def test_bulk_upload_raw_body_and_export(tmp_path):
    server, store, trigger = await _make_server(tmp_path)
    try:
        async with TestClient(TestServer(server._app)) as client:
            resp = await client.post(
                "/api/bulk",
                data=b"url\nexample.com\nscam-offers.com\n",
                headers={"Content-Type": "text/csv"},
            )
            assert resp.status == 202
            body = await resp.json()
            assert body["total"] == 2

            job = await _wait_for_job(client, body["job_id"])
            assert job["state"] == "complete"
            assert job["result"]["totalScanned"] == 2
            assert [r["status"] for r in job["result"]["results"]] == ["clean", "dangerous"]

            resp = await client.get(f"/api/scans/{body['job_id']}/export")
            assert resp.status == 200
            assert resp.headers["Content-Type"].startswith("text/csv")
            assert "attachment" in resp.headers["Content-Disposition"]
            lines = (await resp.text()).strip().splitlines()
            assert lines[0] == '"url","spamScore","status","message"'
            assert len(lines) == 3
    finally:
        await _cleanup(server, store, trigger)


@pytest.mark.asyncio
async def test_bulk_upload_multipart(tmp_path):
    server, store, trigger = await _make_server(tmp_path)
    try:
        async with TestClient(TestServer(server._app)) as client:
            form = aiohttp.FormData()
            form.add_field("file", b"domain\na.com\nb.com\nc.com\n", filename="domains.csv", content_type="text/csv")
            resp = await client.post("/api/bulk", data=form)
            assert resp.status == 202
            body = await resp.json()

            job = await _wait_for_job(client, body["job_id"])
            assert job["source"] == "domains.csv"
            assert job["total"] == 3

            form = aiohttp.FormData()
            form.add_field("file", b"a.com\n", filename="domains.txt", content_type="text/plain")
            resp = await client.post("/api/bulk", data=form)
            assert resp.status == 400
            assert (await resp.json())["error"] == "Please upload a CSV file"
    finally:
        await _cleanup(server, store, trigger)


@pytest.mark.asyncio
async def test_oversized_upload_returns_413_without_inserting(tmp_path):
    server, store, trigger = await _make_server(tmp_path, max_csv_bytes=1024)
    try:
        async with TestClient(TestServer(server._app)) as client:
            resp = await client.post(
                "/api/bulk",
                data=b"example.com\n" * 200,
                headers={"Content-Type": "text/csv"},
            )
            assert resp.status == 413
            assert len(server.jobs) == 0
            assert await store.list_recent(10) == []
    finally:
        await _cleanup(server, store, trigger)


@pytest.mark.asyncio
async def test_csv_without_domains_returns_400(tmp_path):
    server, store, trigger = await _make_server(tmp_path)
    try:
        async with TestClient(TestServer(server._app)) as client:
            resp = await client.post("/api/bulk", data=b"url\n\n", headers={"Content-Type": "text/csv"})
            assert resp.status == 400
            assert (await resp.json())["error"] == "No valid domains found in the CSV file"
    finally:
        await _cleanup(server, store, trigger)


@pytest.mark.asyncio
async def test_cancel_running_job(tmp_path):
    server, store, trigger = await _make_server(tmp_path, trigger=SilentTrigger())
    try:
        async with TestClient(TestServer(server._app)) as client:
            resp = await client.post("/api/scan", json={"url": "example.com"})
            job_id = (await resp.json())["job_id"]
            await asyncio.sleep(0.05)

            resp = await client.get(f"/api/scans/{job_id}/export")
            assert resp.status == 409

            resp = await client.delete(f"/api/scans/{job_id}")
            assert resp.status == 200
            job = await resp.json()
            assert job["state"] == "failed"
            assert job["error"]["message"] == "Scan cancelled"
            assert store.active_subscriptions == 0

            resp = await client.get("/api/history")
            assert (await resp.json())["items"] == []
    finally:
        await _cleanup(server, store, trigger)


@pytest.mark.asyncio
async def test_unknown_job_is_404(tmp_path):
    server, store, trigger = await _make_server(tmp_path)
    try:
        async with TestClient(TestServer(server._app)) as client:
            assert (await client.get("/api/scans/nope")).status == 404
            assert (await client.delete("/api/scans/nope")).status == 404
            assert (await client.get("/api/scans/nope/export")).status == 404
    finally:
        await _cleanup(server, store, trigger)


@pytest.mark.asyncio
async def test_history_export_and_clear(tmp_path):
    server, store, trigger = await _make_server(tmp_path)
    try:
        async with TestClient(TestServer(server._app)) as client:
            resp = await client.post("/api/scan", json={"url": "example.com"})
            await _wait_for_job(client, (await resp.json())["job_id"])

            resp = await client.get("/api/history/export")
            assert resp.status == 200
            assert "url-sentry-history-" in resp.headers["Content-Disposition"]
            text = await resp.text()
            assert text.splitlines()[0] == '"id","type","timestamp","url","spamScore","status","message"'
            assert '"example.com"' in text

            resp = await client.delete("/api/history")
            assert resp.status == 200
            resp = await client.get("/api/history")
            assert (await resp.json())["items"] == []
    finally:
        await _cleanup(server, store, trigger)


@pytest.mark.asyncio
async def test_domains_listing_and_delete(tmp_path):
    server, store, trigger = await _make_server(tmp_path)
    try:
        await store.insert({"domain": "old.com", "status": "review"})
        await store.insert({"domain": "new.com"})
        async with TestClient(TestServer(server._app)) as client:
            resp = await client.get("/api/domains?limit=1")
            body = await resp.json()
            assert body["count"] == 1
            assert body["domains"][0]["domain"] == "new.com"

            resp = await client.get("/api/domains")
            domains = (await resp.json())["domains"]
            assert [d["status"] for d in domains] == ["Clean", "Review"]

            resp = await client.delete("/api/domains")
            assert (await resp.json())["deleted"] == 2
            resp = await client.get("/api/domains")
            assert (await resp.json())["domains"] == []
    finally:
        await _cleanup(server, store, trigger)
