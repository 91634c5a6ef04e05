"""Background scan jobs owned by the dashboard process."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

from ..errors import ScanError
from ..models import ScanResult, generate_id, utc_now_iso
from ..scanner.csv_import import validate_csv_filename
from ..scanner.progress import ScanSession
from ..scanner.runner import ScanRunner
from .server_helpers import _error_payload

logger = logging.getLogger(__name__)


@dataclass
class ScanJob:
    """One scan running (or finished) behind the API."""

    id: str
    kind: str
    source: str
    domain_count: int
    session: ScanSession
    created_at: str = field(default_factory=utc_now_iso)
    finished_at: Optional[str] = None
    task: Optional[asyncio.Task] = None
    result: Optional[ScanResult] = None
    error: Optional[ScanError] = None

    @property
    def done(self) -> bool:
        return self.task is None or self.task.done()

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "kind": self.kind,
            "source": self.source,
            "domain_count": self.domain_count,
            "created_at": self.created_at,
            "finished_at": self.finished_at,
            **self.session.to_dict(),
        }
        if self.result is not None:
            data["result"] = self.result.to_dict()
        error = self.error or self.session.error
        if error is not None:
            data["error"] = _error_payload(error)
        return data


class ScanJobRegistry:
    """Starts scans as asyncio tasks and keeps their outcome for polling.

    Input validation happens synchronously in ``submit_*`` so callers get a
    ``ValidationError`` before any task is created or any row is inserted.
    """

    def __init__(self, runner: ScanRunner, *, max_jobs: int = 100):
        self.runner = runner
        self.max_jobs = max(1, int(max_jobs))
        self._jobs: "OrderedDict[str, ScanJob]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._jobs)

    def get(self, job_id: str) -> Optional[ScanJob]:
        return self._jobs.get(job_id)

    def jobs(self) -> list[ScanJob]:
        return list(reversed(self._jobs.values()))

    def submit_url(self, url: str) -> ScanJob:
        domain = self.runner.validate_url(url)
        return self._start("url", domain, [domain], bulk=False)

    def submit_csv(self, content: bytes | str, *, filename: str | None = None) -> ScanJob:
        validate_csv_filename(filename)
        domains = self.runner.parse_csv(content)
        return self._start("bulk", filename or "upload.csv", domains, bulk=True)

    def _start(self, kind: str, source: str, domains: list[str], *, bulk: bool) -> ScanJob:
        job = ScanJob(
            id=generate_id(),
            kind=kind,
            source=source,
            domain_count=len(domains),
            session=self.runner.new_session(),
        )
        job.task = asyncio.create_task(self._run(job, domains, bulk=bulk))
        self._jobs[job.id] = job
        self._prune()
        logger.info("Started %s scan job %s (%d domain(s))", kind, job.id, len(domains))
        return job

    async def _run(self, job: ScanJob, domains: list[str], *, bulk: bool) -> None:
        try:
            job.result = await self.runner.scan_domains(domains, bulk=bulk, session=job.session)
        except ScanError as exc:
            job.error = exc
        except asyncio.CancelledError:
            job.error = job.session.error
            raise
        except Exception as exc:
            logger.exception("Scan job %s crashed", job.id)
            job.error = ScanError(f"Unexpected error: {exc}")
            job.session.fail(job.error)
        finally:
            job.finished_at = utc_now_iso()

    async def cancel(self, job_id: str) -> Optional[ScanJob]:
        """Cancel a running job; finished jobs are returned unchanged."""
        job = self._jobs.get(job_id)
        if job is None:
            return None
        if job.task is not None and not job.task.done():
            job.task.cancel()
            try:
                await job.task
            except asyncio.CancelledError:
                pass
            logger.info("Scan job %s cancelled", job.id)
        if not job.session.is_finished:
            job.session.fail(ScanError("Scan cancelled"))
        if job.error is None and job.result is None:
            job.error = job.session.error
        job.finished_at = job.finished_at or utc_now_iso()
        return job

    def _prune(self) -> None:
        if len(self._jobs) <= self.max_jobs:
            return
        for job_id in list(self._jobs):
            if len(self._jobs) <= self.max_jobs:
                break
            if self._jobs[job_id].done:
                del self._jobs[job_id]

    async def shutdown(self) -> None:
        running = [job.id for job in self._jobs.values() if not job.done]
        for job_id in running:
            await self.cancel(job_id)
