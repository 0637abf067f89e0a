"""
APScheduler Configuration

Background scheduler for the invoice runs. Each job runs at most once at a
time; the per-customer locks also serialize a scheduled run against a
manual trigger for the same customer.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from portal.config import settings

logger = logging.getLogger(__name__)

jobstores = {
    'default': MemoryJobStore()
}

executors = {
    'default': AsyncIOExecutor(),
}

job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,
    'misfire_grace_time': 3600,
}

scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=settings.SCHEDULER_TIMEZONE
)

JOBS = {}


def _register_jobs():
    from portal.jobs.invoice_jobs import run_daily_invoice_job, run_monthly_storage_job

    JOBS.update({
        'daily_shipment_invoices': run_daily_invoice_job,
        'monthly_storage_invoices': run_monthly_storage_job,
    })


async def run_invoice_job(job_name: str):
    """
    Wrapper called by APScheduler.

    A failing run is logged and left for the next trigger; the runs are
    idempotent so nothing is lost.
    """
    try:
        result = await JOBS[job_name]()
        logger.info(
            f"Job '{job_name}' completed: "
            f"{result.get('invoices_created', 0)}/{result.get('customers', 0)} customers invoiced"
        )
    except Exception:
        logger.exception(f"Job '{job_name}' failed")


def start_scheduler():
    """Start the background scheduler with the invoice jobs."""
    if not scheduler.running:
        _register_jobs()

        scheduler.add_job(
            run_invoice_job,
            'cron',
            hour=settings.DAILY_INVOICE_HOUR,
            minute=0,
            args=['daily_shipment_invoices'],
            id='daily_shipment_invoices',
            name='Daily Shipment Invoices',
            replace_existing=True,
        )

        scheduler.add_job(
            run_invoice_job,
            'cron',
            day=settings.MONTHLY_STORAGE_DAY,
            hour=settings.MONTHLY_STORAGE_HOUR,
            minute=0,
            args=['monthly_storage_invoices'],
            id='monthly_storage_invoices',
            name='Monthly Storage Invoices',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        for job in scheduler.get_jobs():
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status():
    """Get status of all scheduled jobs."""
    jobs = scheduler.get_jobs()
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in jobs
    ]
