import pytest

from conftest import FakeDelivery, FakeDrafter, FakeNotifier, FakeScraper, FakeTenants
from src.pipeline.orchestrator import JobOrchestrator
from src.pipeline.scheduler import Scheduler
from src.pipeline.state import JobStatus
from src.services.job_service import JobService
from src.services.tenant_service import TenantService

API_HEADERS = {"X-API-Key": "master-key"}
WEBSITE_HEADERS = {"X-Website-Secret": "form-secret"}


@pytest.fixture
def api(store, monkeypatch):
    from src.api import server

    tenants = TenantService(store.database_url)
    orchestrator = JobOrchestrator(
        store=store,
        scraper=FakeScraper(),
        drafter=FakeDrafter(),
        delivery=FakeDelivery(),
        notifier=FakeNotifier(),
        tenants=FakeTenants(),
    )
    monkeypatch.setattr(server, "job_service", JobService(store=store))
    monkeypatch.setattr(server, "tenant_service", tenants)
    monkeypatch.setattr(server, "scheduler", Scheduler(store, orchestrator))
    monkeypatch.setattr(server, "API_KEY", "master-key")
    monkeypatch.setattr(server, "WEBSITE_FORM_SECRET", "form-secret")
    monkeypatch.setattr(server, "WEBSITE_COMPANY_SLUG", "agent-smith")
    monkeypatch.setattr(server, "CRON_SECRET", "cron-secret")

    return server.app.test_client(), store, tenants


def test_health(api):
    client, _, _ = api

    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


def test_process_signup_queues_job(api):
    client, store, _ = api

    response = client.post("/api/process-signup", json={"email": "alice@acme.com", "name": "Alice"}, headers=API_HEADERS)

    assert response.status_code == 202
    data = response.get_json()
    assert data["status"] == "queued"
    assert store.require(data["job_id"]).status == JobStatus.PENDING


def test_process_signup_skips_free_providers(api):
    client, store, _ = api

    response = client.post("/api/process-signup", json={"email": "bob@gmail.com", "name": "Bob"}, headers=API_HEADERS)

    assert response.status_code == 200
    assert response.get_json()["status"] == "skipped"
    assert store.get_pending() == []


def test_process_signup_rejects_bad_input(api):
    client, _, _ = api

    response = client.post("/api/process-signup", json={"email": "not-an-email", "name": "X"}, headers=API_HEADERS)

    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid email format", "status": "failed"}


def test_api_key_is_required(api):
    client, _, _ = api

    assert client.post("/api/process-signup", json={}).status_code == 401
    assert client.post("/api/process-signup", json={}, headers={"X-API-Key": "wrong-key-123"}).status_code == 401


def test_stored_api_key_attributes_the_job(api):
    client, store, tenants = api
    company = tenants.create_company("Globex", "globex")
    record, raw_key = tenants.create_api_key(company.id)

    response = client.post(
        "/api/process-signup",
        json={"email": "hank@globex.com", "name": "Hank"},
        headers={"X-API-Key": raw_key},
    )

    job = store.require(response.get_json()["job_id"])
    assert job.company_id == company.id
    assert job.api_key_id == record.key_id
    assert job.from_website is False


def test_website_signup_uses_website_company(api):
    client, store, tenants = api
    company = tenants.create_company("Agent Smith", "agent-smith")

    response = client.post("/api/website-signup", json={"email": "alice@acme.com", "name": "Alice"}, headers=WEBSITE_HEADERS)

    assert response.status_code == 202
    job = store.require(response.get_json()["job_id"])
    assert job.from_website is True
    assert job.company_id == company.id


def test_website_signup_requires_secret(api):
    client, _, _ = api

    response = client.post("/api/website-signup", json={"email": "alice@acme.com", "name": "Alice"})

    assert response.status_code == 401


def test_job_status_and_not_found(api):
    client, store, _ = api
    job = store.create(email="alice@acme.com", name="Alice", domain="acme.com")

    ok = client.get(f"/api/job-status/{job.id}", headers=WEBSITE_HEADERS)
    missing = client.get("/api/job-status/nope", headers=API_HEADERS)

    assert ok.status_code == 200
    assert ok.get_json()["status"] == "pending"
    assert missing.status_code == 404
    assert missing.get_json()["status"] == "failed"


def test_jobs_by_status(api):
    client, store, _ = api
    store.create(email="alice@acme.com", name="Alice", domain="acme.com")

    response = client.get("/api/jobs/status/pending?limit=10", headers=API_HEADERS)

    assert response.status_code == 200
    assert response.get_json()["count"] == 1
    assert client.get("/api/jobs/status/pending?limit=abc", headers=API_HEADERS).status_code == 400
    assert client.get("/api/jobs/status/bogus", headers=API_HEADERS).status_code == 400


def test_retry_endpoint(api):
    client, store, _ = api
    job = store.create(email="alice@acme.com", name="Alice", domain="acme.com")

    conflict = client.post(f"/api/job/{job.id}/retry", headers=API_HEADERS)
    store.mark_failed(job.id, "boom")
    retried = client.post(f"/api/job/{job.id}/retry", headers=API_HEADERS)

    assert conflict.status_code == 409
    assert retried.status_code == 200
    assert retried.get_json()["status"] == "pending"


def test_cron_requires_bearer_secret(api):
    client, _, _ = api

    assert client.get("/api/cron/process-jobs").status_code == 401
    assert client.get("/api/cron/process-jobs", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_cron_drives_jobs_to_completion(api):
    client, store, _ = api
    job = store.create(email="alice@acme.com", name="Alice", domain="acme.com")
    headers = {"Authorization": "Bearer cron-secret"}

    first = client.post("/api/cron/process-jobs", headers=headers)
    second = client.get("/api/cron/process-jobs", headers=headers)

    assert first.status_code == 200
    assert first.get_json()["results"][0]["status"] == "scraping_started"
    assert second.get_json()["results"][0]["status"] == "completed"
    assert store.require(job.id).email_sent is True


def test_process_emails_runs_sweep(api):
    client, _, _ = api

    response = client.post("/api/process-emails", headers=API_HEADERS)

    assert response.status_code == 200
    assert response.get_json() == {"message": "Processed 0 jobs", "results": []}


def test_unknown_route_returns_json_404(api):
    client, _, _ = api

    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.get_json()["status"] == "failed"


def test_wrong_method_keeps_its_status_code(api):
    client, _, _ = api

    assert client.get("/api/process-signup", headers=API_HEADERS).status_code == 405
