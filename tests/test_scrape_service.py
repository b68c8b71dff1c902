import pytest
import requests

from src.pipeline.errors import ScrapeError
from src.services.scrape_service import (
    FirecrawlScrapeService,
    format_domain_as_company_name,
    normalize_scrape_result,
)


class FakeResponse:
    def __init__(self, payload=None, status_code=200, invalid_json=False):
        self.payload = payload
        self.status_code = status_code
        self.invalid_json = invalid_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.invalid_json:
            raise ValueError("not json")
        return self.payload


class FakeSession:
    def __init__(self, *responses):
        self.headers = {}
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, timeout=None, **kwargs):
        self.requests.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_service(*responses):
    session = FakeSession(*responses)
    return FirecrawlScrapeService(api_key="fc-test", base_url="https://firecrawl.test/", session=session), session


def test_missing_fields_default_to_empty():
    data = normalize_scrape_result("acme.com", {"summary": "We build rockets"})

    assert data.company_name == "Acme"
    assert data.summary == "We build rockets"
    assert data.page_text == ""
    assert data.services == []
    assert data.products == []
    assert data.url == "https://acme.com"


def test_normalize_accepts_camel_case_and_overview():
    data = normalize_scrape_result(
        "acme.com",
        {"companyName": " Acme Inc ", "overview": "Long text", "services": ["A", None, " "]},
    )

    assert data.company_name == "Acme Inc"
    assert data.page_text == "Long text"
    assert data.services == ["A"]


def test_normalize_handles_missing_payload():
    assert normalize_scrape_result("globex.io", None).company_name == "Globex"


def test_format_domain_as_company_name():
    assert format_domain_as_company_name("initech.co.uk") == "Initech"


def test_service_requires_api_key():
    with pytest.raises(ValueError):
        FirecrawlScrapeService(api_key=None)


def test_start_posts_extract_request():
    service, session = make_service(FakeResponse({"success": True, "id": "fc-123"}))

    assert service.start("acme.com") == "fc-123"

    method, url, kwargs = session.requests[0]
    assert (method, url) == ("POST", "https://firecrawl.test/v1/extract")
    assert kwargs["json"]["urls"] == ["https://acme.com/"]
    assert session.headers["Authorization"] == "Bearer fc-test"


def test_start_without_job_id_raises():
    service, _ = make_service(FakeResponse({"success": True}))

    with pytest.raises(ScrapeError):
        service.start("acme.com")


def test_transport_errors_become_scrape_errors():
    service, _ = make_service(requests.ConnectionError("refused"))
    with pytest.raises(ScrapeError):
        service.start("acme.com")

    service, _ = make_service(FakeResponse(status_code=502))
    with pytest.raises(ScrapeError):
        service.poll("fc-1")

    service, _ = make_service(FakeResponse(invalid_json=True))
    with pytest.raises(ScrapeError):
        service.poll("fc-1")


@pytest.mark.parametrize(
    "payload,expected_status,expected_message",
    [
        ({"status": "processing"}, "processing", ""),
        ({"status": "failed", "error": "timeout"}, "failed", "timeout"),
        ({"status": "cancelled"}, "failed", "Unknown error"),
        ({"success": False, "message": "quota"}, "failed", "quota"),
    ],
)
def test_poll_maps_provider_statuses(payload, expected_status, expected_message):
    service, session = make_service(FakeResponse(payload))

    poll = service.poll("fc-1")

    assert poll.status == expected_status
    assert poll.message == expected_message
    assert session.requests[0][:2] == ("GET", "https://firecrawl.test/v1/extract/fc-1")


def test_poll_completed_returns_raw_data():
    service, _ = make_service(
        FakeResponse({"status": "completed", "data": {"company_name": "Acme Inc"}}),
        FakeResponse({"status": "completed", "results": [{"data": {"company_name": "Globex"}}]}),
    )

    assert service.poll("fc-1").raw_result == {"company_name": "Acme Inc"}
    assert service.poll("fc-2").raw_result == {"company_name": "Globex"}
