"""Pure state-machine handlers for the job lifecycle.

Every function takes the current job plus whatever the collaborators returned
and describes the next state as a ``Transition``. Nothing here does I/O; the
orchestrator calls collaborators and ``JobStore.apply`` persists the result as
a conditional update guarded by ``expected_status``.

    pending ──start──▶ scraping ──completed──▶ generating_email ──▶ completed
                          │  ▲
                 failed   │  └─ processing
                          ▼
                        failed ──operator retry──▶ pending
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from src.pipeline.errors import InvalidTransitionError
from src.pipeline.state import (
    AuthLink,
    DeliveryResult,
    EmailDraft,
    Job,
    JobStatus,
    ScrapePoll,
    WebsiteData,
)

ALERT_SCRAPE_FAILED = "scrape_failed"
ALERT_SCRAPE_STUCK = "scrape_stuck"


@dataclass
class Transition:
    """Outcome of one handler: what to report and what to persist."""

    outcome: str
    message: str
    expected_status: Optional[JobStatus] = None
    changes: Dict[str, Any] = field(default_factory=dict)
    alert: Optional[str] = None

    @property
    def persists(self) -> bool:
        return self.expected_status is not None

    @property
    def next_status(self) -> Optional[JobStatus]:
        return self.changes.get("status", self.expected_status)


def noop(job: Job) -> Transition:
    return Transition(
        outcome="noop",
        message=f"Job {job.id} with status {job.status.value} was not processed",
    )


def scrape_started(job: Job, scrape_job_id: str) -> Transition:
    if job.status not in (JobStatus.PENDING, JobStatus.SCRAPING):
        raise InvalidTransitionError(f"Cannot start a scrape for a {job.status.value} job")
    return Transition(
        outcome="scraping_started",
        message=f"Started scraping for domain {job.domain} with scrape job ID {scrape_job_id}",
        expected_status=job.status,
        changes={
            "status": JobStatus.SCRAPING,
            "scrape_job_id": scrape_job_id,
            "poll_count": 0,
        },
    )


def scrape_polled(
    job: Job,
    poll: ScrapePoll,
    website_data: Optional[WebsiteData] = None,
    stuck_alert_threshold: int = 0,
) -> Transition:
    """Map a poll result onto the scraping state's three exits."""
    if job.status != JobStatus.SCRAPING:
        raise InvalidTransitionError(f"Cannot apply a scrape poll to a {job.status.value} job")

    if poll.status == "processing":
        poll_count = job.poll_count + 1
        alert = None
        if stuck_alert_threshold and poll_count == stuck_alert_threshold:
            alert = ALERT_SCRAPE_STUCK
        return Transition(
            outcome="still_processing",
            message=f"Scrape job {job.scrape_job_id} is still processing",
            expected_status=JobStatus.SCRAPING,
            changes={"poll_count": poll_count},
            alert=alert,
        )

    if poll.status == "failed":
        error = poll.message or "Unknown error"
        return Transition(
            outcome="scraping_failed",
            message=f"Scraping failed: {error}",
            expected_status=JobStatus.SCRAPING,
            changes={"status": JobStatus.FAILED, "error_message": error},
            alert=ALERT_SCRAPE_FAILED,
        )

    if website_data is None:
        raise ValueError("A completed scrape needs normalized website data")

    return Transition(
        outcome="scrape_completed",
        message=f"Scrape completed for {job.domain} ({website_data.company_name})",
        expected_status=JobStatus.SCRAPING,
        changes={
            "status": JobStatus.GENERATING_EMAIL,
            "scrape_result": website_data,
            "poll_count": 0,
        },
    )


def draft_ready(job: Job, draft: EmailDraft) -> Transition:
    if job.status != JobStatus.GENERATING_EMAIL:
        raise InvalidTransitionError(f"Cannot store a draft for a {job.status.value} job")
    return Transition(
        outcome="draft_ready",
        message=f"Email drafted for {job.email}",
        expected_status=JobStatus.GENERATING_EMAIL,
        changes={"email_draft": draft},
    )


def delivery_finished(
    job: Job,
    delivery: Optional[DeliveryResult],
    auth_link: Optional[AuthLink],
    now: datetime,
) -> Transition:
    """Complete the job. ``delivery`` is None when nothing was sent this time.

    ``email_sent`` is never part of the changes: the store flips it with its
    own conditional update right after a successful send.
    """
    if job.status != JobStatus.GENERATING_EMAIL:
        raise InvalidTransitionError(f"Cannot complete a {job.status.value} job")

    changes: Dict[str, Any] = {
        "status": JobStatus.COMPLETED,
        "completed_at": now,
        "error_message": None,
    }
    if auth_link is not None and auth_link.user_id:
        changes["user_id"] = auth_link.user_id

    if delivery is None:
        outcome = "completed"
        message = f"Job completed for {job.email}; email already delivered or in flight"
    elif delivery.success:
        outcome = "completed"
        message = f"Job completed successfully for {job.email}"
    else:
        outcome = "completed_unsent"
        changes["error_message"] = f"Email delivery failed: {delivery.error or 'unknown error'}"
        message = f"Job completed for {job.email} but the email was not delivered"

    return Transition(
        outcome=outcome,
        message=message,
        expected_status=JobStatus.GENERATING_EMAIL,
        changes=changes,
    )


def redelivered(job: Job, auth_link: Optional[AuthLink]) -> Transition:
    """A completed job's email finally went out; clear the delivery error."""
    if job.status != JobStatus.COMPLETED:
        raise InvalidTransitionError(f"Cannot redeliver a {job.status.value} job")
    changes: Dict[str, Any] = {"error_message": None}
    if auth_link is not None and auth_link.user_id and not job.user_id:
        changes["user_id"] = auth_link.user_id
    return Transition(
        outcome="delivered",
        message=f"Email delivered to {job.email} for completed job {job.id}",
        expected_status=JobStatus.COMPLETED,
        changes=changes,
    )


def operator_retry(job: Job) -> Transition:
    """Send a failed job back to the start of the lifecycle."""
    if job.status != JobStatus.FAILED:
        raise InvalidTransitionError(
            f"Only failed jobs can be retried; job {job.id} is {job.status.value}"
        )
    return Transition(
        outcome="queued_for_retry",
        message=f"Job {job.id} queued for retry",
        expected_status=JobStatus.FAILED,
        changes={
            "status": JobStatus.PENDING,
            "retry_count": 0,
            "error_message": None,
            "scrape_job_id": None,
            "scrape_result": None,
            "email_draft": None,
            "poll_count": 0,
            "completed_at": None,
        },
    )
