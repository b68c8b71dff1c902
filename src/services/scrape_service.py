"""Firecrawl website extraction client."""

import logging
from typing import Any, Dict, List, Optional

import requests

from config.settings import FIRECRAWL_API_KEY, FIRECRAWL_BASE_URL, HTTP_TIMEOUT_SECONDS
from src.pipeline.errors import ScrapeError
from src.pipeline.state import ScrapePoll, WebsiteData

logger = logging.getLogger(__name__)

EXTRACT_PROMPT = (
    "Draft a 200-word max overview of the website. Provide a short paragraph that "
    "summarizes the homepage. Extract the company name, a list of services, and a "
    "list of products they provide."
)

EXTRACT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "overview": {"type": "string"},
        "summary": {"type": "string"},
        "company_name": {"type": "string"},
        "services": {"type": "array", "items": {"type": "string"}},
        "products": {"type": "array", "items": {"type": "string"}},
        "contact_title": {"type": "string"},
    },
    "required": ["overview", "summary"],
}

_FAILED_STATUSES = {"failed", "error", "cancelled"}


def format_domain_as_company_name(domain: str) -> str:
    """``acme.com`` -> ``Acme``."""
    label = (domain or "").split(".")[0]
    return label[:1].upper() + label[1:]


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def normalize_scrape_result(domain: str, raw_result: Optional[Dict[str, Any]]) -> WebsiteData:
    """Map any extractor payload onto WebsiteData; missing fields become empty."""
    data = raw_result if isinstance(raw_result, dict) else {}
    company_name = _text(data.get("company_name") or data.get("companyName"))
    return WebsiteData(
        url=f"https://{domain}",
        company_name=company_name or format_domain_as_company_name(domain),
        summary=_text(data.get("summary")),
        page_text=_text(data.get("overview") or data.get("page_text") or data.get("pageText")),
        services=_string_list(data.get("services")),
        products=_string_list(data.get("products")),
        contact_title=_text(data.get("contact_title") or data.get("contactTitle")),
    )


class FirecrawlScrapeService:
    """Starts and polls Firecrawl async extract jobs."""

    def __init__(
        self,
        api_key: Optional[str] = FIRECRAWL_API_KEY,
        base_url: str = FIRECRAWL_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise ValueError("FIRECRAWL_API_KEY not found in environment variables")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
        )

    def start(self, domain: str) -> str:
        """Start an async extraction for the domain's homepage."""
        payload = {
            "urls": [f"https://{domain}/"],
            "prompt": EXTRACT_PROMPT,
            "schema": EXTRACT_SCHEMA,
        }
        logger.info(f"Starting extraction for domain: {domain}")
        body = self._request("POST", "/v1/extract", json=payload)

        scrape_job_id = self._extract_job_id(body)
        if not scrape_job_id:
            logger.error(f"Unable to determine job ID from extract response: {body}")
            raise ScrapeError(f"Failed to get extraction job ID for {domain}")

        logger.info(f"Extraction started for {domain} with ID: {scrape_job_id}")
        return scrape_job_id

    def poll(self, scrape_job_id: str) -> ScrapePoll:
        body = self._request("GET", f"/v1/extract/{scrape_job_id}")
        if not isinstance(body, dict):
            raise ScrapeError(f"Unexpected extract status payload for {scrape_job_id}")

        status = str(body.get("status") or "").lower()
        if status == "completed":
            return ScrapePoll(status="completed", raw_result=self._extract_result(body))
        if status in _FAILED_STATUSES or body.get("success") is False:
            message = body.get("error") or body.get("message") or "Unknown error"
            return ScrapePoll(status="failed", message=str(message))
        return ScrapePoll(status="processing")

    def normalize(self, domain: str, raw_result: Optional[Dict[str, Any]]) -> WebsiteData:
        return normalize_scrape_result(domain, raw_result)

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as error:
            logger.error(f"Firecrawl {method} {path} failed: {error}")
            raise ScrapeError(f"Firecrawl request failed: {error}") from error
        except ValueError as error:
            raise ScrapeError(f"Firecrawl returned invalid JSON: {error}") from error

    @staticmethod
    def _extract_job_id(body: Any) -> Optional[str]:
        if isinstance(body, str):
            return body or None
        if not isinstance(body, dict):
            return None
        job_id = body.get("id") or body.get("jobId") or body.get("job_id")
        return str(job_id) if job_id else None

    @staticmethod
    def _extract_result(body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for key in ("data", "result"):
            value = body.get(key)
            if isinstance(value, dict):
                return value
        results = body.get("results")
        if isinstance(results, list) and results:
            first = results[0]
            if isinstance(first, dict):
                return first.get("data") if isinstance(first.get("data"), dict) else first
        return None
