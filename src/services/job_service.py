"""Signup intake and operator actions on jobs."""

import logging
import re
from typing import Any, Dict, List, Optional

from src.pipeline.errors import InvalidInputError
from src.pipeline.state import Job, JobStatus, SignupOutcome
from src.services.domain_classifier import classify
from src.services.job_store import JobStore

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class JobService:
    """Entry points for new signups and the job status API."""

    def __init__(self, store: Optional[JobStore] = None) -> None:
        self._store = store or JobStore()

    @property
    def store(self) -> JobStore:
        return self._store

    def process_signup(
        self,
        email: str,
        name: str,
        *,
        api_key_id: Optional[str] = None,
        company_id: Optional[str] = None,
        from_website: bool = False,
    ) -> SignupOutcome:
        """Validate a signup and queue a job unless it comes from a free mail provider."""
        email = (email or "").strip()
        name = (name or "").strip()
        if not email or not name:
            raise InvalidInputError("Email and name are required")
        if not EMAIL_RE.match(email):
            raise InvalidInputError("Invalid email format")

        logger.info(f"Processing signup for {name} ({email})")
        return self.create_job(
            email,
            name,
            api_key_id=api_key_id,
            company_id=company_id,
            from_website=from_website,
        )

    def create_job(
        self,
        email: str,
        name: str,
        domain: Optional[str] = None,
        *,
        api_key_id: Optional[str] = None,
        company_id: Optional[str] = None,
        from_website: bool = False,
    ) -> SignupOutcome:
        check = classify(email)
        domain = (domain or check.domain).strip().lower()

        if check.is_free_provider:
            logger.info(f"Skipping processing for free email provider: {check.domain}")
            return SignupOutcome(
                status="skipped",
                email=email,
                domain=check.domain,
                reason="Free email provider",
            )

        job = self._store.create(
            email=email,
            name=name,
            domain=domain,
            company_id=company_id,
            api_key_id=api_key_id,
            from_website=from_website,
        )
        return SignupOutcome(status="queued", email=email, domain=domain, job=job)

    def get_job_status(self, job_id: str) -> Dict[str, Any]:
        job = self._store.require(job_id)
        payload: Dict[str, Any] = {
            "job_id": job.id,
            "status": job.status.value,
            "email": job.email,
            "domain": job.domain,
            "email_sent": job.email_sent,
            "created_at": job.created_at.isoformat() if job.created_at else None,
            "updated_at": job.updated_at.isoformat() if job.updated_at else None,
            "completed_at": job.completed_at.isoformat() if job.completed_at else None,
        }
        if job.email_draft is not None:
            payload["email_draft"] = job.email_draft.model_dump()
        if job.status == JobStatus.FAILED:
            payload["error_message"] = job.error_message
        return payload

    def retry_job(self, job_id: str) -> Job:
        """Operator retry: only failed jobs go back to pending."""
        job = self._store.reset_for_retry(job_id)
        logger.info(f"Job {job_id} queued for retry by operator")
        return job

    def list_by_status(self, status: str, limit: Optional[int] = None) -> List[Job]:
        try:
            job_status = JobStatus(status)
        except ValueError as error:
            raise InvalidInputError(f"Unknown job status: {status}") from error
        return self._store.get_by_status(job_status, limit=limit)


job_service = JobService()
