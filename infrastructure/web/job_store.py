# infrastructure/web/job_store.py
# In-memory store for trim jobs and their live sessions.
# Thread-safe: all mutations are guarded by a Lock.

from threading import Lock
from typing import Optional

_jobs: dict = {}
_lock: Lock = Lock()


def get_job(job_id: str) -> Optional[dict]:
    """Return a shallow copy of the job dict, or None."""
    with _lock:
        job = _jobs.get(job_id)
        return dict(job) if job is not None else None


def set_job(job_id: str, data: dict) -> None:
    """Create or overwrite a job entry."""
    with _lock:
        _jobs[job_id] = data


def update_job(job_id: str, updates: dict) -> bool:
    """Merge *updates* into an existing job dict. Returns False if missing."""
    with _lock:
        if job_id not in _jobs:
            return False
        _jobs[job_id].update(updates)
        return True


def update_job_unless(job_id: str, updates: dict, final_statuses: frozenset) -> bool:
    """Merge *updates* unless the job already reached one of *final_statuses*."""
    with _lock:
        job = _jobs.get(job_id)
        if job is None or job.get("status") in final_statuses:
            return False
        job.update(updates)
        return True


def delete_job(job_id: str) -> None:
    """Remove a job entry (no-op if missing)."""
    with _lock:
        _jobs.pop(job_id, None)


def clear_jobs() -> None:
    """Drop every job (used between tests)."""
    with _lock:
        _jobs.clear()
