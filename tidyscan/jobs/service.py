from __future__ import annotations

import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import uuid4

from tidyscan.core.config import Settings
from tidyscan.db.models import ScanKind
from tidyscan.jobs.types import CancellationToken, ScanCancelledError, ScanJobSnapshot, ScanStatus

logger = logging.getLogger(__name__)

ScanPipeline = Callable[[CancellationToken], Any]


class ScanJobNotFoundError(RuntimeError):
    pass


class InvalidScanStateError(RuntimeError):
    pass


ALLOWED_TRANSITIONS: dict[ScanStatus, set[ScanStatus]] = {
    ScanStatus.PENDING: {ScanStatus.RUNNING, ScanStatus.CANCELLED},
    ScanStatus.RUNNING: {ScanStatus.COMPLETED, ScanStatus.FAILED, ScanStatus.CANCELLED},
    ScanStatus.COMPLETED: set(),
    ScanStatus.FAILED: set(),
    ScanStatus.CANCELLED: set(),
}


@dataclass
class _ScanJob:
    id: str
    kind: ScanKind
    status: ScanStatus
    created_at: datetime
    token: CancellationToken = field(default_factory=CancellationToken)
    future: Future[Any] | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None


class ScanJobService:
    """Runs scan pipelines on background worker threads.

    At most one job per ``ScanKind`` is pending or running. Submitting while
    one is in flight returns the in-flight job instead of scheduling another.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._lock = threading.Lock()
        self._jobs: dict[str, _ScanJob] = {}
        self._active: dict[ScanKind, str] = {}
        self._executor = ThreadPoolExecutor(
            max_workers=int(settings.scan_worker_threads),
            thread_name_prefix="tidyscan-scan",
        )

    def _now(self) -> datetime:
        return datetime.now(tz=timezone.utc)

    def _enforce_transition(self, from_status: ScanStatus, to_status: ScanStatus) -> None:
        if to_status not in ALLOWED_TRANSITIONS[from_status]:
            raise InvalidScanStateError(f"Illegal transition: {from_status.value} -> {to_status.value}")

    def _get(self, job_id: str) -> _ScanJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise ScanJobNotFoundError(f"Scan job not found: {job_id}")
        return job

    def _finish(self, job: _ScanJob, status: ScanStatus, error_message: str | None = None) -> None:
        # Caller holds self._lock.
        self._enforce_transition(job.status, status)
        job.status = status
        job.error_message = error_message
        job.finished_at = self._now()
        if self._active.get(job.kind) == job.id:
            del self._active[job.kind]
        logger.info("Scan job %s (%s) finished: %s", job.id, job.kind.value, status.value)

    def submit(self, kind: ScanKind, pipeline: ScanPipeline) -> ScanJobSnapshot:
        with self._lock:
            active_id = self._active.get(kind)
            if active_id is not None:
                logger.info("Scan of %s already in flight as job %s", kind.value, active_id)
                return self._to_snapshot(self._jobs[active_id])

            job = _ScanJob(id=str(uuid4()), kind=kind, status=ScanStatus.PENDING, created_at=self._now())
            self._jobs[job.id] = job
            self._active[kind] = job.id
            job.future = self._executor.submit(self._run, job, pipeline)
            return self._to_snapshot(job)

    def _run(self, job: _ScanJob, pipeline: ScanPipeline) -> Any:
        with self._lock:
            if job.status == ScanStatus.CANCELLED:
                raise ScanCancelledError("Scan cancelled before start")
            self._enforce_transition(job.status, ScanStatus.RUNNING)
            job.status = ScanStatus.RUNNING
            job.started_at = self._now()
        logger.info("Scan job %s (%s) started", job.id, job.kind.value)

        try:
            result = pipeline(job.token)
        except ScanCancelledError as exc:
            with self._lock:
                self._finish(job, ScanStatus.CANCELLED, str(exc))
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Scan job %s (%s) failed", job.id, job.kind.value)
            with self._lock:
                self._finish(job, ScanStatus.FAILED, str(exc) or exc.__class__.__name__)
            raise

        with self._lock:
            if job.token.cancelled:
                logger.info("Scan job %s completed despite late cancellation", job.id)
            self._finish(job, ScanStatus.COMPLETED)
        return result

    def result(self, job_id: str, timeout: float | None = None) -> Any:
        with self._lock:
            job = self._get(job_id)
            future = job.future
        if future is None:
            raise InvalidScanStateError(f"Scan job {job_id} was never scheduled")
        try:
            return future.result(timeout=timeout)
        except CancelledError as exc:
            raise ScanCancelledError("Scan cancelled before start") from exc

    def cancel_job(self, job_id: str) -> ScanJobSnapshot:
        with self._lock:
            job = self._get(job_id)
            if job.status == ScanStatus.PENDING:
                job.token.cancel()
                if job.future is not None:
                    job.future.cancel()
                self._finish(job, ScanStatus.CANCELLED, "Cancelled before start")
            elif job.status == ScanStatus.RUNNING:
                job.token.cancel()
                logger.info("Cancellation requested for scan job %s", job.id)
            else:
                self._enforce_transition(job.status, ScanStatus.CANCELLED)
            return self._to_snapshot(job)

    def get_job(self, job_id: str) -> ScanJobSnapshot:
        with self._lock:
            return self._to_snapshot(self._get(job_id))

    def active_job(self, kind: ScanKind) -> ScanJobSnapshot | None:
        with self._lock:
            active_id = self._active.get(kind)
            return self._to_snapshot(self._jobs[active_id]) if active_id is not None else None

    def is_scanning(self, kind: ScanKind) -> bool:
        with self._lock:
            return kind in self._active

    def list_jobs(self, kind: ScanKind | None = None) -> list[ScanJobSnapshot]:
        with self._lock:
            jobs = [job for job in self._jobs.values() if kind is None or job.kind == kind]
            jobs.sort(key=lambda job: (job.created_at, job.id), reverse=True)
            return [self._to_snapshot(job) for job in jobs]

    def shutdown(self, *, wait: bool = True) -> None:
        with self._lock:
            for job in self._jobs.values():
                if job.status in {ScanStatus.PENDING, ScanStatus.RUNNING}:
                    job.token.cancel()
        self._executor.shutdown(wait=wait)

    def _to_snapshot(self, job: _ScanJob) -> ScanJobSnapshot:
        return ScanJobSnapshot(
            id=job.id,
            kind=job.kind,
            status=job.status,
            error_message=job.error_message,
            created_at=job.created_at,
            started_at=job.started_at,
            finished_at=job.finished_at,
        )


def snapshot_to_dict(snapshot: ScanJobSnapshot) -> dict[str, Any]:
    return {
        "id": snapshot.id,
        "kind": snapshot.kind.value,
        "status": snapshot.status.value,
        "error_message": snapshot.error_message,
        "created_at": snapshot.created_at,
        "started_at": snapshot.started_at,
        "finished_at": snapshot.finished_at,
    }
