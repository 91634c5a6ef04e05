"""Core dashboard server initialization and lifecycle."""

from __future__ import annotations

import logging

from aiohttp import web

from ..history import HistoryRecorder
from ..scanner.runner import ScanRunner
from ..store.base import RecordStore
from .jobs import ScanJobRegistry
from .server_config import DashboardConfig

logger = logging.getLogger(__name__)

# Headroom over the CSV cap for multipart boundaries and part headers.
_MULTIPART_OVERHEAD = 64 * 1024


class DashboardServerCoreMixin:
    """Core dashboard server lifecycle."""

    def __init__(
        self,
        *,
        config: DashboardConfig,
        runner: ScanRunner,
        store: RecordStore,
        history: HistoryRecorder | None = None,
    ):
        self.config = config
        self.runner = runner
        self.store = store
        self.history = history
        self.jobs = ScanJobRegistry(runner, max_jobs=config.max_jobs)

        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

        self._app = web.Application(client_max_size=int(config.max_csv_bytes) + _MULTIPART_OVERHEAD)
        self._register_routes()

    async def start(self) -> None:
        if not self.config.enabled:
            return
        if self._runner:
            return
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, host=self.config.host, port=int(self.config.port))
        await self._site.start()
        logger.info("Dashboard listening on http://%s:%s", self.config.host, self.config.port)

    async def stop(self) -> None:
        await self.jobs.shutdown()
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
        self._site = None

    async def _healthz(self, request: web.Request) -> web.Response:
        running = sum(1 for job in self.jobs.jobs() if not job.done)
        return web.json_response({"ok": True, "jobs_running": running})
