"""Services module exports."""

from .delivery_service import ResendDeliveryService
from .domain_classifier import classify, is_free_provider
from .job_store import JobStore
from .llm_service import EmailDraftService
from .notification_service import SlackNotifier
from .scrape_service import FirecrawlScrapeService
from .tenant_service import TenantService

__all__ = [
    "EmailDraftService",
    "FirecrawlScrapeService",
    "JobStore",
    "ResendDeliveryService",
    "SlackNotifier",
    "TenantService",
    "classify",
    "is_free_provider",
]
