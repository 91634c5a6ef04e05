"""Route registration for dashboard server."""

from __future__ import annotations


class DashboardServerRoutesMixin:
    """Route registration helper."""

    def _register_routes(self) -> None:
        # Health check
        self._app.router.add_get("/healthz", self._healthz)
        self._app.router.add_get("/", self._index)

        # Scan jobs
        self._app.router.add_post("/api/scan", self._api_scan)
        self._app.router.add_post("/api/bulk", self._api_bulk)
        self._app.router.add_get("/api/scans", self._api_scans)
        self._app.router.add_get("/api/scans/{job_id}", self._api_scan_status)
        self._app.router.add_delete("/api/scans/{job_id}", self._api_scan_cancel)
        self._app.router.add_get("/api/scans/{job_id}/export", self._api_scan_export)

        # History log
        self._app.router.add_get("/api/history", self._api_history)
        self._app.router.add_delete("/api/history", self._api_history_clear)
        self._app.router.add_get("/api/history/export", self._api_history_export)

        # Stored domain rows
        self._app.router.add_get("/api/domains", self._api_domains)
        self._app.router.add_delete("/api/domains", self._api_domains_clear)
