"""State definitions shared by the job pipeline."""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    SCRAPING = "scraping"
    GENERATING_EMAIL = "generating_email"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


ACTIVE_STATUSES = (JobStatus.PENDING, JobStatus.SCRAPING)


class WebsiteData(BaseModel):
    """Normalized snapshot of a prospect's website."""

    url: str = Field(default="", description="Homepage URL that was extracted")
    company_name: str = Field(description="Display name of the company")
    summary: str = Field(default="", description="Short summary of the homepage")
    page_text: str = Field(default="", description="Longer overview of the website")
    services: List[str] = Field(default_factory=list, description="Services offered")
    products: List[str] = Field(default_factory=list, description="Products offered")
    contact_title: str = Field(default="", description="Suggested contact title, if any")


class EmailDraft(BaseModel):
    """Generated outreach email before delivery."""

    subject: str = Field(description="Email subject line")
    body: str = Field(description="Plain-text email body")


class TenantHints(BaseModel):
    """Branding and style inputs for drafting, resolved per tenant."""

    company_name: str = Field(description="Sending company's name")
    company_description: str = Field(default="", description="What the sending company does")
    prompt_template: Optional[str] = Field(
        default=None, description="Custom drafting instructions, if the tenant has any"
    )
    tone: str = Field(default="conversational", description="Tone of voice")
    style: str = Field(default="friendly and concise", description="Writing style")
    max_words: int = Field(default=200, description="Upper bound on body length in words")
    source: Literal["company", "api_key", "default"] = Field(
        default="default", description="How these hints were resolved"
    )


@dataclass
class ScrapePoll:
    """Status of an extraction job as reported by the scrape provider."""

    status: Literal["processing", "completed", "failed"]
    raw_result: Optional[Dict[str, Any]] = None
    message: str = ""


@dataclass
class AuthLink:
    """One-time sign-in link; user_id is set when the provider created an account."""

    url: str
    user_id: Optional[str] = None


@dataclass
class DeliveryResult:
    success: bool
    message_id: Optional[str] = None
    error: str = ""


@dataclass
class DomainCheck:
    domain: str
    is_free_provider: bool
    email: str = ""


@dataclass
class Job:
    """A single signup's traversal through scrape, draft and deliver."""

    id: str
    email: str
    name: str
    domain: str
    status: JobStatus = JobStatus.PENDING
    scrape_job_id: Optional[str] = None
    scrape_result: Optional[WebsiteData] = None
    email_draft: Optional[EmailDraft] = None
    email_sent: bool = False
    retry_count: int = 0
    poll_count: int = 0
    error_message: Optional[str] = None
    company_id: Optional[str] = None
    api_key_id: Optional[str] = None
    from_website: bool = False
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "domain": self.domain,
            "status": self.status.value,
            "scrape_job_id": self.scrape_job_id,
            "scrape_result": self.scrape_result.model_dump() if self.scrape_result else None,
            "email_draft": self.email_draft.model_dump() if self.email_draft else None,
            "email_sent": self.email_sent,
            "retry_count": self.retry_count,
            "error_message": self.error_message,
            "company_id": self.company_id,
            "api_key_id": self.api_key_id,
            "from_website": self.from_website,
            "user_id": self.user_id,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
            "completed_at": _isoformat(self.completed_at),
        }


@dataclass
class SignupOutcome:
    """Result of the inbound signup gate."""

    status: Literal["queued", "skipped"]
    email: str
    domain: str
    job: Optional[Job] = None
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": self.status,
            "email": self.email,
            "domain": self.domain,
        }
        if self.job is not None:
            payload["job_id"] = self.job.id
        if self.reason:
            payload["reason"] = self.reason
        return payload


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
