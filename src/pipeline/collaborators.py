"""Interfaces the orchestrator calls through.

Concrete providers live in ``src.services``; tests substitute in-memory fakes.
Each provider maps its own response shapes onto the types in
``src.pipeline.state`` so the orchestrator never sees raw payloads.
"""

from typing import Any, Dict, Optional, Protocol

from src.pipeline.state import (
    AuthLink,
    DeliveryResult,
    EmailDraft,
    Job,
    ScrapePoll,
    TenantHints,
    WebsiteData,
)


class ScrapeCollaborator(Protocol):
    def start(self, domain: str) -> str:
        """Kick off an extraction job and return its provider id."""

    def poll(self, scrape_job_id: str) -> ScrapePoll:
        ...

    def normalize(self, domain: str, raw_result: Optional[Dict[str, Any]]) -> WebsiteData:
        ...


class EmailDraftCollaborator(Protocol):
    def generate(
        self,
        name: str,
        email: str,
        domain: str,
        website_data: WebsiteData,
        tenant_hints: TenantHints,
    ) -> EmailDraft:
        """Return a draft; implementations fall back instead of raising."""


class DeliveryCollaborator(Protocol):
    def generate_auth_link(self, email: str, name: str) -> AuthLink:
        ...

    def send(self, job: Job, draft: EmailDraft, auth_link: Optional[str]) -> DeliveryResult:
        ...


class NotificationCollaborator(Protocol):
    def post(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """Best-effort; returns ``{"success": bool}`` and never raises."""


class TenantResolver(Protocol):
    def resolve(self, company_id: Optional[str], api_key_id: Optional[str]) -> TenantHints:
        ...
