"""Advances one job through scrape, draft and delivery."""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from config.settings import SCRAPE_POLL_ALERT_THRESHOLD
from src.db.models import utcnow
from src.pipeline.collaborators import (
    DeliveryCollaborator,
    EmailDraftCollaborator,
    NotificationCollaborator,
    ScrapeCollaborator,
    TenantResolver,
)
from src.pipeline.errors import DeliveryError, InvalidTransitionError
from src.pipeline.state import AuthLink, DeliveryResult, EmailDraft, Job, JobStatus, TenantHints
from src.pipeline.transitions import (
    ALERT_SCRAPE_FAILED,
    ALERT_SCRAPE_STUCK,
    Transition,
    delivery_finished,
    draft_ready,
    noop,
    redelivered,
    scrape_polled,
    scrape_started,
)
from src.services.job_store import JobStore
from src.services.llm_service import fallback_draft
from src.services.notification_service import (
    build_draft_message,
    build_failure_message,
    build_stuck_scrape_message,
)
from src.services.tenant_service import default_tenant_hints

logger = logging.getLogger(__name__)


def _result(job: Job, transition: Transition) -> Dict[str, Any]:
    return {"job_id": job.id, "status": transition.outcome, "message": transition.message}


class JobOrchestrator:
    """Runs the handler for a job's current status and persists the outcome.

    Collaborator errors propagate to the caller (the scheduler owns retries).
    Notifications and tenant lookups are best-effort and never fail a job.
    """

    def __init__(
        self,
        store: JobStore,
        scraper: ScrapeCollaborator,
        drafter: EmailDraftCollaborator,
        delivery: DeliveryCollaborator,
        notifier: Optional[NotificationCollaborator] = None,
        tenants: Optional[TenantResolver] = None,
        stuck_alert_threshold: int = SCRAPE_POLL_ALERT_THRESHOLD,
        clock: Callable = utcnow,
    ) -> None:
        self.store = store
        self.scraper = scraper
        self.drafter = drafter
        self.delivery = delivery
        self.notifier = notifier
        self.tenants = tenants
        self.stuck_alert_threshold = stuck_alert_threshold
        self.clock = clock

    def advance(self, job: Job) -> Dict[str, Any]:
        logger.info(f"Processing job {job.id} with status {job.status.value}")
        if job.status.is_terminal:
            return _result(job, noop(job))
        if job.status == JobStatus.PENDING:
            return self._handle_pending(job)
        if job.status == JobStatus.SCRAPING:
            return self._handle_scraping(job)
        return self._handle_generating_email(job)

    def redeliver(self, job: Job) -> Dict[str, Any]:
        """Retry the email for a completed job whose first delivery failed."""
        if job.status != JobStatus.COMPLETED or job.email_draft is None:
            raise InvalidTransitionError(f"Job {job.id} has no completed draft to deliver")
        if job.email_sent:
            return _result(job, noop(job))

        delivery, auth_link = self._deliver(job, job.email_draft)
        if delivery is None:
            return {
                "job_id": job.id,
                "status": "noop",
                "message": f"Email for job {job.id} already sent or in flight",
            }
        if not delivery.success:
            raise DeliveryError(f"Email delivery failed: {delivery.error or 'unknown error'}")

        transition = redelivered(job, auth_link)
        self.store.apply(job.id, transition)
        return _result(job, transition)

    # -- per-status handlers -------------------------------------------------

    def _handle_pending(self, job: Job) -> Dict[str, Any]:
        scrape_job_id = self.scraper.start(job.domain)
        transition = scrape_started(job, scrape_job_id)
        self.store.apply(job.id, transition)
        return _result(job, transition)

    def _handle_scraping(self, job: Job) -> Dict[str, Any]:
        if not job.scrape_job_id:
            logger.warning(f"Job {job.id} is scraping without a scrape job ID; restarting scrape")
            return self._handle_pending(job)

        poll = self.scraper.poll(job.scrape_job_id)
        website_data = None
        if poll.status == "completed":
            website_data = self.scraper.normalize(job.domain, poll.raw_result)

        transition = scrape_polled(job, poll, website_data, self.stuck_alert_threshold)
        updated = self.store.apply(job.id, transition)

        if transition.alert == ALERT_SCRAPE_FAILED:
            self._notify(build_failure_message(updated, updated.error_message or poll.message))
        elif transition.alert == ALERT_SCRAPE_STUCK:
            self._notify(build_stuck_scrape_message(updated, updated.poll_count))

        if updated.status == JobStatus.GENERATING_EMAIL:
            return self._handle_generating_email(updated)
        return _result(job, transition)

    def _handle_generating_email(self, job: Job) -> Dict[str, Any]:
        draft = job.email_draft
        if draft is None:
            draft = self._draft(job, self._tenant_hints(job))
            job = self.store.apply(job.id, draft_ready(job, draft))

        delivery, auth_link = self._deliver(job, draft)
        transition = delivery_finished(job, delivery, auth_link, self.clock())
        completed = self.store.apply(job.id, transition)

        self._notify(build_draft_message(completed, draft))
        return _result(job, transition)

    # -- collaborators -------------------------------------------------------

    def _tenant_hints(self, job: Job) -> TenantHints:
        if self.tenants is None:
            return default_tenant_hints()
        try:
            return self.tenants.resolve(job.company_id, job.api_key_id)
        except Exception as error:
            logger.warning(f"Tenant resolution failed for job {job.id}: {error}")
            return default_tenant_hints()

    def _draft(self, job: Job, hints: TenantHints) -> EmailDraft:
        website_data = job.scrape_result or self.scraper.normalize(job.domain, None)
        try:
            return self.drafter.generate(job.name, job.email, job.domain, website_data, hints)
        except Exception as error:
            logger.error(f"Email generation failed for job {job.id}: {error}; using fallback")
            return fallback_draft(job.name, job.domain, website_data)

    def _deliver(
        self, job: Job, draft: EmailDraft
    ) -> Tuple[Optional[DeliveryResult], Optional[AuthLink]]:
        """Send under the store's delivery lease. Returns (None, None) if not ours to send."""
        if job.email_sent or not self.store.claim_delivery(job.id):
            return None, None

        try:
            auth_link = None
            if job.from_website:
                auth_link = self.delivery.generate_auth_link(job.email, job.name)
            delivery = self.delivery.send(job, draft, auth_link.url if auth_link else None)
        except Exception:
            self.store.release_delivery(job.id)
            raise

        if delivery.success:
            self.store.mark_email_sent(job.id)
        else:
            logger.warning(f"Email delivery failed for job {job.id}: {delivery.error}")
            self.store.release_delivery(job.id)
        return delivery, auth_link

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
