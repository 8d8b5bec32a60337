from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4


@dataclass
class Job:
    job_id: str
    status: str
    project_path: Optional[str]
    timeline: List[Dict[str, Any]] = field(default_factory=list)
    result: Dict[str, Any] = field(default_factory=dict)


class JobStore:
    """In-memory scan jobs with a per-job event timeline and live subscribers."""

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._subscribers: Dict[str, List[Tuple[asyncio.AbstractEventLoop, asyncio.Queue]]] = {}
        self._lock = threading.Lock()

    def create_job(self, project_path: Optional[str]) -> Job:
        job_id = f"job_{uuid4().hex[:8]}"
        job = Job(job_id=job_id, status="running", project_path=project_path)
        with self._lock:
            self._jobs[job_id] = job
        self.add_event(job, stage="ingest", message="Scan request received", status="done")
        self.add_event(job, stage="scan", message="Repository scan started", status="in_progress")
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def add_event(self, job: Job, stage: str, message: str, status: str) -> None:
        event = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "stage": stage,
            "message": message,
            "status": status,
        }
        with self._lock:
            job.timeline.append(event)
            subscribers = list(self._subscribers.get(job.job_id, []))
        # Scans run on worker threads; hand events to each subscriber's loop.
        for loop, queue in subscribers:
            loop.call_soon_threadsafe(queue.put_nowait, event)

    def subscribe(self, job_id: str) -> Tuple[asyncio.Queue, List[Dict[str, Any]]]:
        """
        Register a live subscriber and return it with the events recorded so far.

        The snapshot and the registration happen under one lock, so every event
        reaches the caller exactly once: either in the snapshot or on the queue.
        Must be called from a running event loop.
        """
        queue: asyncio.Queue = asyncio.Queue()
        loop = asyncio.get_running_loop()
        with self._lock:
            self._subscribers.setdefault(job_id, []).append((loop, queue))
            job = self._jobs.get(job_id)
            snapshot = list(job.timeline) if job is not None else []
        return queue, snapshot

    def unsubscribe(self, job_id: str, queue: asyncio.Queue) -> None:
        with self._lock:
            subscribers = self._subscribers.get(job_id)
            if not subscribers:
                return
            remaining = [entry for entry in subscribers if entry[1] is not queue]
            if remaining:
                self._subscribers[job_id] = remaining
            else:
                self._subscribers.pop(job_id, None)


job_store = JobStore()
