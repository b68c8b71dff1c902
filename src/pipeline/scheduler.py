"""Batch driver invoked by cron; owns the retry policy."""

import logging
from typing import Any, Callable, Dict, List, Optional

from config.settings import DEFAULT_BATCH_SIZE, MAX_RETRIES
from src.pipeline.collaborators import NotificationCollaborator
from src.pipeline.errors import StaleJobError
from src.pipeline.orchestrator import JobOrchestrator
from src.pipeline.state import Job, JobStatus
from src.services.delivery_service import ResendDeliveryService
from src.services.job_store import JobStore
from src.services.llm_service import EmailDraftService
from src.services.notification_service import (
    SlackNotifier,
    build_abandoned_delivery_message,
    build_failure_message,
)
from src.services.scrape_service import FirecrawlScrapeService
from src.services.tenant_service import TenantService

logger = logging.getLogger(__name__)


class Scheduler:
    """Advances a batch of jobs per call; holds no state between calls."""

    def __init__(
        self,
        store: JobStore,
        orchestrator: JobOrchestrator,
        notifier: Optional[NotificationCollaborator] = None,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        self.store = store
        self.orchestrator = orchestrator
        self.notifier = notifier
        self.max_retries = max_retries

    def tick(self, batch_size: int = DEFAULT_BATCH_SIZE) -> List[Dict[str, Any]]:
        jobs = self.store.get_pending(limit=batch_size)
        if not jobs:
            logger.info("No pending jobs to process")
            return []

        logger.info(f"Processing {len(jobs)} jobs")
        return [self._run(job, self.orchestrator.advance) for job in jobs]

    def sweep(self, batch_size: int = DEFAULT_BATCH_SIZE) -> List[Dict[str, Any]]:
        """Recover jobs stuck mid-draft and completed jobs whose email never went out."""
        results = []
        for job in self.store.get_by_status(JobStatus.GENERATING_EMAIL, limit=batch_size):
            results.append(self._run(job, self.orchestrator.advance))

        # Abandoned deliveries stay completed and unsent; the query excludes them
        for job in self.store.get_undelivered(self.max_retries, limit=batch_size):
            results.append(self._run(job, self.orchestrator.redeliver, terminal_on_ceiling=False))

        logger.info(f"Sweep handled {len(results)} jobs")
        return results

    def _run(
        self,
        job: Job,
        action: Callable[[Job], Dict[str, Any]],
        terminal_on_ceiling: bool = True,
    ) -> Dict[str, Any]:
        try:
            result = action(job)
            result.setdefault("retries", job.retry_count)
            return result
        except StaleJobError as error:
            logger.info(f"Job {job.id} changed underneath us: {error}")
            return self._report(job, "conflict", str(error), job.retry_count)
        except Exception as error:
            logger.error(f"Error processing job {job.id}: {error}")
            try:
                return self._record_failure(job, error, terminal_on_ceiling)
            except Exception as bookkeeping_error:
                logger.error(f"Could not record failure for job {job.id}: {bookkeeping_error}")
                return self._report(job, "error", str(bookkeeping_error), job.retry_count)

    def _record_failure(
        self, job: Job, error: Exception, terminal_on_ceiling: bool
    ) -> Dict[str, Any]:
        updated = self.store.increment_retry_count(job.id)
        if updated.retry_count < self.max_retries:
            return self._report(job, "retry", str(error), updated.retry_count)

        if not terminal_on_ceiling:
            logger.error(f"Giving up on delivery for job {job.id} after {updated.retry_count} attempts")
            self._notify(build_abandoned_delivery_message(updated, str(error)))
            return self._report(job, "abandoned", str(error), updated.retry_count)

        failed = self.store.mark_failed(job.id, str(error))
        self._notify(build_failure_message(failed, str(error)))
        return self._report(job, "failed", str(error), failed.retry_count)

    @staticmethod
    def _report(job: Job, status: str, message: str, retries: int) -> Dict[str, Any]:
        return {"job_id": job.id, "status": status, "message": message, "retries": retries}

    def _notify(self, message: Dict[str, Any]) -> None:
        if self.notifier is None:
            return
        try:
            result = self.notifier.post(message)
        except Exception as error:
            logger.warning(f"Slack notification raised: {error}")
            return
        if not result.get("success"):
            logger.warning(f"Slack notification failed: {result.get('error')}")


def create_scheduler(store: Optional[JobStore] = None) -> Scheduler:
    """Wire the production collaborators into a scheduler."""
    store = store or JobStore()
    notifier = SlackNotifier()
    orchestrator = JobOrchestrator(
        store=store,
        scraper=FirecrawlScrapeService(),
        drafter=EmailDraftService(),
        delivery=ResendDeliveryService(),
        notifier=notifier,
        tenants=TenantService(),
    )
    return Scheduler(store, orchestrator, notifier=notifier)
