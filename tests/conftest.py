import os
from typing import List, Optional

import pytest

# Module-level singletons must never touch the on-disk database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from src.pipeline.orchestrator import JobOrchestrator
from src.pipeline.scheduler import Scheduler
from src.pipeline.state import AuthLink, DeliveryResult, EmailDraft, ScrapePoll, TenantHints
from src.services.job_store import JobStore
from src.services.scrape_service import normalize_scrape_result
from src.services.tenant_service import default_tenant_hints


class FakeScraper:
    """Scripted scrape provider: ``polls`` are returned in order, the last one repeats."""

    def __init__(self, polls: Optional[List[ScrapePoll]] = None, start_error: Optional[Exception] = None):
        self.polls = list(polls or [ScrapePoll(status="completed", raw_result={})])
        self.start_error = start_error
        self.start_calls: List[str] = []
        self.poll_calls: List[str] = []

    def start(self, domain: str) -> str:
        self.start_calls.append(domain)
        if self.start_error is not None:
            raise self.start_error
        return f"scrape-{len(self.start_calls)}"

    def poll(self, scrape_job_id: str) -> ScrapePoll:
        self.poll_calls.append(scrape_job_id)
        if len(self.polls) > 1:
            return self.polls.pop(0)
        return self.polls[0]

    def normalize(self, domain, raw_result):
        return normalize_scrape_result(domain, raw_result)


class FakeDrafter:
    def __init__(self):
        self.calls = []

    def generate(self, name, email, domain, website_data, tenant_hints):
        self.calls.append((name, email, domain, website_data, tenant_hints))
        return EmailDraft(
            subject=f"Hello {name}",
            body=f"Saw what {website_data.company_name} is doing.",
        )


class ThrowingDrafter:
    def __init__(self):
        self.calls = 0

    def generate(self, name, email, domain, website_data, tenant_hints):
        self.calls += 1
        raise RuntimeError("model unavailable")


class FakeDelivery:
    def __init__(self, results: Optional[List[DeliveryResult]] = None, send_error: Optional[Exception] = None):
        self.results = list(results or [])
        self.send_error = send_error
        self.sends = []
        self.auth_link_calls = []

    def generate_auth_link(self, email: str, name: str) -> AuthLink:
        self.auth_link_calls.append(email)
        return AuthLink(url=f"https://auth.example.com/magic?email={email}", user_id="user-123")

    def send(self, job, draft, auth_link):
        self.sends.append((job.id, draft, auth_link))
        if self.send_error is not None:
            raise self.send_error
        if self.results:
            return self.results.pop(0)
        return DeliveryResult(success=True, message_id=f"msg-{len(self.sends)}")


class FakeNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages = []

    def post(self, message):
        self.messages.append(message)
        if self.fail:
            raise RuntimeError("slack down")
        return {"success": True}


class FakeTenants:
    def __init__(self, hints: Optional[TenantHints] = None, error: Optional[Exception] = None):
        self.hints = hints or default_tenant_hints()
        self.error = error
        self.calls = []

    def resolve(self, company_id, api_key_id):
        self.calls.append((company_id, api_key_id))
        if self.error is not None:
            raise self.error
        return self.hints


@pytest.fixture
def store(tmp_path):
    job_store = JobStore(database_url=f"sqlite:///{tmp_path/'jobs.db'}")
    job_store.create_schema()
    return job_store


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def make_orchestrator(store, notifier):
    def factory(scraper=None, drafter=None, delivery=None, tenants=None, **kwargs):
        return JobOrchestrator(
            store=store,
            scraper=scraper or FakeScraper(),
            drafter=drafter or FakeDrafter(),
            delivery=delivery or FakeDelivery(),
            notifier=notifier,
            tenants=tenants or FakeTenants(),
            **kwargs,
        )

    return factory


@pytest.fixture
def make_scheduler(store, notifier, make_orchestrator):
    def factory(**kwargs):
        orchestrator = make_orchestrator(**kwargs)
        return Scheduler(store, orchestrator, notifier=notifier)

    return factory


def completed_poll(**data) -> ScrapePoll:
    return ScrapePoll(status="completed", raw_result=data)


def processing_poll() -> ScrapePoll:
    return ScrapePoll(status="processing")
