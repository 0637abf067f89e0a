"""
Background Jobs Module

Handles scheduled tasks for:
- Daily shipment invoicing
- Monthly storage invoicing
"""

from portal.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler
from portal.jobs.invoice_jobs import run_daily_invoice_job, run_monthly_storage_job

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "run_daily_invoice_job",
    "run_monthly_storage_job",
]
