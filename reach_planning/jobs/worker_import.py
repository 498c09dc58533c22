"""Background worker running import jobs off the request path."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from reach_planning.config import QUEUE_SETTINGS
from reach_planning.database import session_scope
from reach_planning.exceptions import ImportCancelled, ReachPlanningError
from reach_planning.jobs.import_job import ImportJob
from reach_planning.jobs.queue import PriorityJobQueue
from reach_planning.models.db.enums import JobState
from reach_planning.services.import_engine import run_import
from reach_planning.services.session_store import SessionStore
from reach_planning.utils import get_logger

logger = get_logger(__name__)


@dataclass
class JobRecord:
    job_id: str
    session_id: str
    state: JobState = JobState.QUEUED
    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)
    error: Optional[str] = None
    queued_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "jobId": self.job_id,
            "sessionId": self.session_id,
            "state": self.state.value,
            "error": self.error,
            "queuedAt": self.queued_at,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
        }


class JobTracker:
    """Thread-safe status records of import jobs, latest job per session."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: Dict[str, JobRecord] = {}
        self._by_session: Dict[str, str] = {}

    def register(self, job: ImportJob) -> JobRecord:
        record = JobRecord(job_id=job.job_id, session_id=job.session_id)
        with self._lock:
            self._jobs[job.job_id] = record
            self._by_session[job.session_id] = job.job_id
        return record

    def get(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            return self._jobs.get(job_id)

    def for_session(self, session_id: str) -> Optional[JobRecord]:
        with self._lock:
            job_id = self._by_session.get(session_id)
            return self._jobs.get(job_id) if job_id else None

    def set_state(self, job_id: str, state: JobState, error: Optional[str] = None) -> None:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None:
                return
            record.state = state
            record.error = error
            if state == JobState.RUNNING:
                record.started_at = time.time()
            elif state in (JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED):
                record.finished_at = time.time()

    def snapshot(self) -> dict:
        with self._lock:
            counts: Dict[str, int] = {}
            for record in self._jobs.values():
                counts[record.state.value] = counts.get(record.state.value, 0) + 1
            return counts


class ImportWorker:
    def __init__(self, queue: PriorityJobQueue, tracker: Optional[JobTracker] = None, *, poll_timeout: Optional[float] = None):
        self.queue = queue
        self.tracker = tracker or JobTracker()
        self.poll_timeout = float(QUEUE_SETTINGS.get("poll_timeout_seconds", 1.0)) if poll_timeout is None else poll_timeout  # type: ignore[arg-type]
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="import-worker", daemon=True)
        self._thread.start()
        logger.info("Import worker started")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None and timeout is not None:
            self._thread.join(timeout=timeout)
        logger.info("Import worker stop requested")

    def submit(self, session_id: str, *, priority: str = "normal", correlation_id: Optional[str] = None) -> JobRecord:
        job = ImportJob(session_id=session_id, priority=priority, correlation_id=correlation_id)
        record = self.tracker.register(job)
        try:
            self.queue.enqueue(job, priority=priority)
        except Exception as exc:
            self.tracker.set_state(job.job_id, JobState.FAILED, str(exc))
            raise
        logger.info("Enqueued import job", session_id=session_id, job_id=job.job_id,
                    priority=priority, correlation_id=correlation_id)
        return record

    def cancel(self, session_id: str) -> Optional[JobRecord]:
        """Request cancellation of the session's current job.

        A job still waiting in the queue is dropped and its session moved to
        ``error`` here; a running job stops at its next row boundary.
        """
        record = self.tracker.for_session(session_id)
        if record is None or record.state not in (JobState.QUEUED, JobState.RUNNING):
            return record
        record.cancel_event.set()
        if record.state == JobState.QUEUED and self.queue.discard(ImportJob(session_id=session_id).key()):
            with session_scope() as db:
                SessionStore(db).mark_error(session_id, f"Import of session {session_id} was cancelled")
            self.tracker.set_state(record.job_id, JobState.CANCELLED, "cancelled before start")
        logger.info("Import cancellation requested", session_id=session_id, job_id=record.job_id)
        return record

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                job = self.queue.dequeue(timeout=self.poll_timeout)
                if job is None:
                    continue
                if not isinstance(job, ImportJob):
                    logger.warning("Skipping unknown job type", job_type=type(job).__name__)
                    continue
                self._process(job)
            except Exception as e:  # pragma: no cover
                logger.error("Worker loop error", error=str(e), exc_info=True)
                time.sleep(1)

    def _process(self, job: ImportJob) -> None:
        record = self.tracker.get(job.job_id) or self.tracker.register(job)
        self.tracker.set_state(job.job_id, JobState.RUNNING)
        logger.info("Processing import job", session_id=job.session_id, job_id=job.job_id,
                    correlation_id=job.correlation_id)
        try:
            with session_scope() as db:
                outcome = run_import(db, SessionStore(db), job.session_id, record.cancel_event)
        except ImportCancelled as e:
            self.tracker.set_state(job.job_id, JobState.CANCELLED, str(e))
            logger.info("Import job cancelled", session_id=job.session_id, job_id=job.job_id)
        except ReachPlanningError as e:
            self.tracker.set_state(job.job_id, JobState.FAILED, str(e))
            logger.error("Import job failed", session_id=job.session_id, job_id=job.job_id, error=str(e))
        except Exception as e:
            self.tracker.set_state(job.job_id, JobState.FAILED, str(e))
            logger.error("Import job failed", session_id=job.session_id, job_id=job.job_id,
                         error=str(e), exc_info=True)
        else:
            self.tracker.set_state(job.job_id, JobState.SUCCEEDED)
            logger.info("Import job completed", session_id=job.session_id, job_id=job.job_id,
                        successful=outcome.successful, failed=outcome.failed)


def create_queue() -> PriorityJobQueue:
    logger.info("Using in-memory queue")
    return PriorityJobQueue()


__all__ = ["ImportWorker", "JobTracker", "JobRecord", "create_queue"]
