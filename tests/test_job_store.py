from datetime import timedelta

import pytest

from src.db.models import JobModel, utcnow
from src.pipeline.errors import InvalidTransitionError, JobNotFoundError, StaleJobError
from src.pipeline.state import DeliveryResult, EmailDraft, JobStatus, ScrapePoll, WebsiteData
from src.pipeline.transitions import delivery_finished, draft_ready, scrape_polled, scrape_started
from src.services.job_store import JobStore


def create_job(store, email="alice@acme.com", **kwargs):
    return store.create(email=email, name="Alice", domain=email.split("@")[1], **kwargs)


def test_create_and_fetch_job(store):
    job = create_job(store, company_id="co-1", from_website=True)

    fetched = store.get(job.id)
    assert fetched is not None
    assert fetched.status == JobStatus.PENDING
    assert fetched.email_sent is False
    assert fetched.retry_count == 0
    assert fetched.company_id == "co-1"
    assert fetched.from_website is True
    assert fetched.created_at is not None


def test_get_missing_job(store):
    assert store.get("missing") is None
    with pytest.raises(JobNotFoundError):
        store.require("missing")


def test_get_pending_returns_active_jobs_oldest_first(store):
    first = create_job(store, "a@one.com")
    second = create_job(store, "b@two.com")
    third = create_job(store, "c@three.com")
    store.apply(second.id, scrape_started(second, "fc-2"))
    store.mark_failed(third.id, "boom")

    pending = store.get_pending(limit=5)

    assert [job.id for job in pending] == [first.id, second.id]
    assert store.get_pending(limit=1)[0].id == first.id


def test_apply_persists_models_as_json(store):
    job = create_job(store)
    job = store.apply(job.id, scrape_started(job, "fc-1"))
    website = WebsiteData(company_name="Acme Inc", services=["Publishing"])

    job = store.apply(job.id, scrape_polled(job, ScrapePoll(status="completed"), website))
    job = store.apply(job.id, draft_ready(job, EmailDraft(subject="Hi", body="Hello")))

    fetched = store.require(job.id)
    assert fetched.status == JobStatus.GENERATING_EMAIL
    assert fetched.scrape_result.company_name == "Acme Inc"
    assert fetched.scrape_result.services == ["Publishing"]
    assert fetched.email_draft.subject == "Hi"


def test_apply_is_conditional_on_expected_status(store):
    job = create_job(store)
    store.apply(job.id, scrape_started(job, "fc-1"))

    # ``job`` is a stale pending snapshot now.
    with pytest.raises(StaleJobError):
        store.apply(job.id, scrape_started(job, "fc-2"))

    assert store.require(job.id).scrape_job_id == "fc-1"


def test_apply_on_missing_job_raises_not_found(store):
    job = create_job(store)
    transition = scrape_started(job, "fc-1")

    with pytest.raises(JobNotFoundError):
        store.apply("missing", transition)


def test_increment_retry_count_is_cumulative(store):
    job = create_job(store)

    assert store.increment_retry_count(job.id).retry_count == 1
    assert store.increment_retry_count(job.id).retry_count == 2
    assert store.require(job.id).status == JobStatus.PENDING


def test_mark_failed_only_from_in_flight_statuses(store):
    job = create_job(store)
    failed = store.mark_failed(job.id, "scrape start failed")

    assert failed.status == JobStatus.FAILED
    assert failed.error_message == "scrape start failed"
    with pytest.raises(StaleJobError):
        store.mark_failed(job.id, "again")


def test_reset_for_retry_only_from_failed(store):
    job = create_job(store)
    with pytest.raises(InvalidTransitionError):
        store.reset_for_retry(job.id)

    store.increment_retry_count(job.id)
    store.mark_failed(job.id, "boom")
    reset = store.reset_for_retry(job.id)

    assert reset.status == JobStatus.PENDING
    assert reset.retry_count == 0
    assert reset.error_message is None


def test_delivery_claim_is_exclusive_until_released(store):
    job = create_job(store)

    assert store.claim_delivery(job.id) is True
    assert store.claim_delivery(job.id) is False

    store.release_delivery(job.id)
    assert store.claim_delivery(job.id) is True


def test_mark_email_sent_flips_once_and_blocks_claims(store):
    job = create_job(store)
    store.claim_delivery(job.id)

    assert store.mark_email_sent(job.id) is True
    assert store.mark_email_sent(job.id) is False
    assert store.require(job.id).email_sent is True
    assert store.claim_delivery(job.id) is False


def test_expired_delivery_claim_can_be_taken_over(tmp_path):
    store = JobStore(database_url=f"sqlite:///{tmp_path/'lease.db'}", delivery_lease_seconds=60)
    store.create_schema()
    job = create_job(store)
    assert store.claim_delivery(job.id) is True

    with store.session_scope() as session:
        session.get(JobModel, job.id).delivery_claimed_at = utcnow() - timedelta(minutes=5)

    assert store.claim_delivery(job.id) is True


def test_get_by_status_and_email_sent(store):
    sent = create_job(store, "a@one.com")
    unsent = create_job(store, "b@two.com")
    for job in (sent, unsent):
        job = store.apply(job.id, scrape_started(job, "fc"))
        job = store.apply(
            job.id, scrape_polled(job, ScrapePoll(status="completed"), WebsiteData(company_name="X"))
        )
    store.mark_email_sent(sent.id)

    unsent_jobs = store.get_by_status_and_email_sent(JobStatus.GENERATING_EMAIL, False)
    assert [job.id for job in unsent_jobs] == [unsent.id]
    assert len(store.get_by_status(JobStatus.GENERATING_EMAIL)) == 2
    assert len(store.get_by_status(JobStatus.GENERATING_EMAIL, limit=1)) == 1


def complete_unsent(store, email, retry_count=0, with_draft=True):
    job = create_job(store, email)
    job = store.apply(job.id, scrape_started(job, "fc"))
    job = store.apply(
        job.id, scrape_polled(job, ScrapePoll(status="completed"), WebsiteData(company_name="X"))
    )
    if with_draft:
        job = store.apply(job.id, draft_ready(job, EmailDraft(subject="Hi", body="Hello")))
    failure = DeliveryResult(success=False, error="provider outage")
    job = store.apply(job.id, delivery_finished(job, failure, None, utcnow()))
    with store.session_scope() as session:
        session.get(JobModel, job.id).retry_count = retry_count
    return job


def test_get_undelivered_skips_abandoned_and_draftless_jobs(store):
    for index in range(10):
        complete_unsent(store, f"gone{index}@old.com", retry_count=3)
    complete_unsent(store, "nodraft@acme.com", with_draft=False)
    first = complete_unsent(store, "a@one.com", retry_count=2)
    second = complete_unsent(store, "b@two.com")
    third = complete_unsent(store, "c@three.com")
    store.mark_email_sent(third.id)

    undelivered = store.get_undelivered(max_retries=3, limit=5)

    assert [job.id for job in undelivered] == [first.id, second.id]
    assert len(store.get_undelivered(max_retries=3, limit=1)) == 1
