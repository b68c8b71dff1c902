"""Database repository for pipeline jobs."""

from __future__ import annotations

import json
import logging
import uuid
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError
from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from config.settings import DATABASE_URL, DELIVERY_CLAIM_LEASE_SECONDS
from src.db.base import Base, get_engine, get_session_factory
from src.db.models import JobModel, utcnow
from src.pipeline.errors import JobNotFoundError, StaleJobError
from src.pipeline.state import (
    ACTIVE_STATUSES,
    EmailDraft,
    Job,
    JobStatus,
    WebsiteData,
)
from src.pipeline.transitions import Transition, operator_retry

logger = logging.getLogger(__name__)

_NON_TERMINAL = tuple(status for status in JobStatus if not status.is_terminal)


class JobStore:
    """System of record for jobs; every mutation is a single conditional UPDATE."""

    def __init__(
        self,
        database_url: str = DATABASE_URL,
        delivery_lease_seconds: int = DELIVERY_CLAIM_LEASE_SECONDS,
    ) -> None:
        self.database_url = database_url
        self._engine = get_engine(database_url)
        self._session_factory = get_session_factory(database_url)
        self._delivery_lease = timedelta(seconds=delivery_lease_seconds)

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self._engine)

    @contextmanager
    def session_scope(self) -> Iterable[Session]:
        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # -- create / read -------------------------------------------------------

    def create(
        self,
        *,
        email: str,
        name: str,
        domain: str,
        company_id: Optional[str] = None,
        api_key_id: Optional[str] = None,
        from_website: bool = False,
        user_id: Optional[str] = None,
    ) -> Job:
        now = utcnow()
        model = JobModel(
            id=str(uuid.uuid4()),
            email=email,
            name=name,
            domain=domain,
            status=JobStatus.PENDING.value,
            email_sent=False,
            retry_count=0,
            poll_count=0,
            company_id=company_id,
            api_key_id=api_key_id,
            from_website=from_website,
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )
        with self.session_scope() as session:
            session.add(model)
            session.flush()
            job = self._model_to_job(model)
        logger.info(f"Job created with ID: {job.id} ({email}, domain {domain})")
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self.session_scope() as session:
            return self._model_to_job(session.get(JobModel, job_id))

    def require(self, job_id: str) -> Job:
        job = self.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def get_pending(self, limit: int = 5) -> List[Job]:
        """Jobs the scheduler should advance, oldest first."""
        stmt = (
            select(JobModel)
            .where(JobModel.status.in_([s.value for s in ACTIVE_STATUSES]))
            .order_by(JobModel.created_at.asc())
            .limit(limit)
        )
        return self._fetch(stmt)

    def get_by_status(self, status: JobStatus, limit: Optional[int] = None) -> List[Job]:
        stmt = (
            select(JobModel)
            .where(JobModel.status == JobStatus(status).value)
            .order_by(JobModel.updated_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._fetch(stmt)

    def get_by_status_and_email_sent(
        self, status: JobStatus, email_sent: bool, limit: Optional[int] = None
    ) -> List[Job]:
        stmt = (
            select(JobModel)
            .where(JobModel.status == JobStatus(status).value)
            .where(JobModel.email_sent.is_(email_sent))
            .order_by(JobModel.created_at.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._fetch(stmt)

    def get_undelivered(self, max_retries: int, limit: int = 5) -> List[Job]:
        """Completed, unsent jobs that still have a draft and retry budget left."""
        stmt = (
            select(JobModel)
            .where(JobModel.status == JobStatus.COMPLETED.value)
            .where(JobModel.email_sent.is_(False))
            .where(JobModel.email_draft_json.isnot(None))
            .where(JobModel.retry_count < max_retries)
            .order_by(JobModel.created_at.asc())
            .limit(limit)
        )
        return self._fetch(stmt)

    # -- state transitions ---------------------------------------------------

    def apply(self, job_id: str, transition: Transition) -> Job:
        """Persist ``transition`` only if the job is still in its expected status."""
        if not transition.persists:
            return self.require(job_id)

        values = self._serialize_changes(transition.changes)
        values["updated_at"] = utcnow()
        expected = transition.expected_status.value
        stmt = (
            update(JobModel)
            .where(JobModel.id == job_id)
            .where(JobModel.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self.session_scope() as session:
            result = session.execute(stmt)
            if result.rowcount == 0:
                self._raise_missing_or_stale(session, job_id, expected)
            model = session.get(JobModel, job_id, populate_existing=True)
            job = self._model_to_job(model)

        logger.debug(f"Job {job_id}: {transition.outcome} ({job.status.value})")
        return job

    def increment_retry_count(self, job_id: str) -> Job:
        stmt = (
            update(JobModel)
            .where(JobModel.id == job_id)
            .values(retry_count=JobModel.retry_count + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        with self.session_scope() as session:
            result = session.execute(stmt)
            if result.rowcount == 0:
                raise JobNotFoundError(job_id)
            job = self._model_to_job(session.get(JobModel, job_id, populate_existing=True))

        logger.info(f"Job {job_id} retry count incremented to {job.retry_count}")
        return job

    def mark_failed(self, job_id: str, error_message: str) -> Job:
        """Terminal failure; only jobs still in flight can be failed."""
        stmt = (
            update(JobModel)
            .where(JobModel.id == job_id)
            .where(JobModel.status.in_([s.value for s in _NON_TERMINAL]))
            .values(
                status=JobStatus.FAILED.value,
                error_message=error_message,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        with self.session_scope() as session:
            result = session.execute(stmt)
            if result.rowcount == 0:
                self._raise_missing_or_stale(session, job_id, "in progress")
            job = self._model_to_job(session.get(JobModel, job_id, populate_existing=True))

        logger.info(f"Marked job {job_id} as failed: {error_message}")
        return job

    def reset_for_retry(self, job_id: str) -> Job:
        """Move a failed job back to pending with a fresh retry budget."""
        job = self.apply(job_id, operator_retry(self.require(job_id)))
        logger.info(f"Job {job_id} reset to pending for retry")
        return job

    # -- delivery guard ------------------------------------------------------

    def claim_delivery(self, job_id: str) -> bool:
        """Take the send lease for an unsent job. Only the claimer may send."""
        now = utcnow()
        stmt = (
            update(JobModel)
            .where(JobModel.id == job_id)
            .where(JobModel.email_sent.is_(False))
            .where(
                or_(
                    JobModel.delivery_claimed_at.is_(None),
                    JobModel.delivery_claimed_at < now - self._delivery_lease,
                )
            )
            .values(delivery_claimed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        with self.session_scope() as session:
            claimed = session.execute(stmt).rowcount == 1
        if not claimed:
            logger.info(f"Delivery for job {job_id} already sent or claimed elsewhere")
        return claimed

    def mark_email_sent(self, job_id: str) -> bool:
        """Flip ``email_sent`` false→true; returns False if it was already set."""
        stmt = (
            update(JobModel)
            .where(JobModel.id == job_id)
            .where(JobModel.email_sent.is_(False))
            .values(email_sent=True, delivery_claimed_at=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        with self.session_scope() as session:
            flipped = session.execute(stmt).rowcount == 1
        if flipped:
            logger.info(f"Marked email as sent for job {job_id}")
        else:
            logger.warning(f"Job {job_id} already had email_sent set")
        return flipped

    def release_delivery(self, job_id: str) -> None:
        stmt = (
            update(JobModel)
            .where(JobModel.id == job_id)
            .values(delivery_claimed_at=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        with self.session_scope() as session:
            session.execute(stmt)

    # -- helpers -------------------------------------------------------------

    def _fetch(self, stmt) -> List[Job]:
        with self.session_scope() as session:
            models = session.scalars(stmt).all()
            return [job for job in map(self._model_to_job, models) if job is not None]

    @staticmethod
    def _raise_missing_or_stale(session: Session, job_id: str, expected: str) -> None:
        if session.get(JobModel, job_id) is None:
            raise JobNotFoundError(job_id)
        raise StaleJobError(job_id, expected)

    @staticmethod
    def _serialize_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for key, value in changes.items():
            if key == "status":
                values["status"] = JobStatus(value).value
            elif key == "scrape_result":
                values["scrape_result_json"] = value.model_dump_json() if value is not None else None
            elif key == "email_draft":
                values["email_draft_json"] = value.model_dump_json() if value is not None else None
            else:
                values[key] = value
        return values

    def _model_to_job(self, model: Optional[JobModel]) -> Optional[Job]:
        if model is None:
            return None
        return Job(
            id=model.id,
            email=model.email,
            name=model.name,
            domain=model.domain,
            status=JobStatus(model.status),
            scrape_job_id=model.scrape_job_id,
            scrape_result=self._deserialize(model.scrape_result_json, WebsiteData, model.id),
            email_draft=self._deserialize(model.email_draft_json, EmailDraft, model.id),
            email_sent=bool(model.email_sent),
            retry_count=model.retry_count or 0,
            poll_count=model.poll_count or 0,
            error_message=model.error_message,
            company_id=model.company_id,
            api_key_id=model.api_key_id,
            from_website=bool(model.from_website),
            user_id=model.user_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
            completed_at=model.completed_at,
        )

    @staticmethod
    def _deserialize(raw: Optional[str], schema, job_id: str):
        if not raw:
            return None
        try:
            return schema.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as error:
            logger.error(f"Job {job_id} has an unreadable {schema.__name__} column: {error}")
            return None
