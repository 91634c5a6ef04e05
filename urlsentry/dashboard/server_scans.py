"""Scan job API handlers."""

from __future__ import annotations

from aiohttp import web

from ..errors import ValidationError
from ..history import bulk_results_csv
from ..models import BulkScanResult, UrlScanResult
from .server_helpers import _csv_response, _scan_error_response, _today


class DashboardServerScansMixin:
    """Start, poll, cancel and export scan jobs."""

    def _job_or_404(self, request: web.Request):
        job_id = (request.match_info.get("job_id") or "").strip()
        job = self.jobs.get(job_id)
        if job is None:
            raise web.HTTPNotFound(text="Scan job not found")
        return job

    async def _api_scan(self, request: web.Request) -> web.Response:
        data = await self._read_json(request)
        url = data.get("url")
        if url is not None and not isinstance(url, str):
            return web.json_response({"error": "url must be a string", "kind": "validation"}, status=400)
        try:
            job = self.jobs.submit_url(url or "")
        except ValidationError as exc:
            return _scan_error_response(exc)
        return web.json_response(
            {"job_id": job.id, "status_url": f"/api/scans/{job.id}"},
            status=202,
        )

    async def _api_bulk(self, request: web.Request) -> web.Response:
        content, filename = await self._read_csv_upload(request)
        try:
            job = self.jobs.submit_csv(content, filename=filename)
        except ValidationError as exc:
            return _scan_error_response(exc)
        return web.json_response(
            {
                "job_id": job.id,
                "status_url": f"/api/scans/{job.id}",
                "total": job.domain_count,
            },
            status=202,
        )

    async def _api_scans(self, request: web.Request) -> web.Response:
        return web.json_response({"jobs": [job.to_dict() for job in self.jobs.jobs()]})

    async def _api_scan_status(self, request: web.Request) -> web.Response:
        job = self._job_or_404(request)
        return web.json_response(job.to_dict())

    async def _api_scan_cancel(self, request: web.Request) -> web.Response:
        job = self._job_or_404(request)
        job = await self.jobs.cancel(job.id)
        return web.json_response(job.to_dict())

    async def _api_scan_export(self, request: web.Request) -> web.Response:
        job = self._job_or_404(request)
        result = job.result
        if result is None:
            return web.json_response({"error": "Scan has no results yet", "state": job.session.state.value}, status=409)
        if isinstance(result, UrlScanResult):
            result = BulkScanResult(results=[result], total_scanned=1, timestamp=result.timestamp)
        return _csv_response(bulk_results_csv(result), f"bulk-scan-results-{_today()}.csv")
