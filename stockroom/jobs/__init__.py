"""
Background Jobs Module

Handles scheduled tasks for:
- Retrying fulfillment platform syncs that failed at request time
"""

from stockroom.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler, get_job_status
from stockroom.jobs.sync_jobs import retry_pending_syncs

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "get_job_status",
    "retry_pending_syncs",
]
