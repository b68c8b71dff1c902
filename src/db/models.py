"""ORM models for jobs and tenant configuration."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text

from src.db.base import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo so we never store it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class JobModel(Base):
    """One prospect's trip through scrape, draft and delivery."""

    __tablename__ = "jobs"

    id = Column(String(64), primary_key=True)
    email = Column(String(320), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    domain = Column(String(255), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="pending")
    scrape_job_id = Column(String(128), nullable=True)
    scrape_result_json = Column("scrape_result", Text, nullable=True)
    email_draft_json = Column("email_draft", Text, nullable=True)
    email_sent = Column(Boolean, nullable=False, default=False)
    retry_count = Column(Integer, nullable=False, default=0)
    poll_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    company_id = Column(String(64), nullable=True, index=True)
    api_key_id = Column(String(64), nullable=True)
    from_website = Column(Boolean, nullable=False, default=False)
    user_id = Column(String(64), nullable=True)
    delivery_claimed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_jobs_status_created_at", "status", "created_at"),
        Index("idx_jobs_status_email_sent", "status", "email_sent"),
    )


class CompanyModel(Base):
    """A tenant whose branding and prompt template shape drafted emails."""

    __tablename__ = "companies"

    id = Column(String(64), primary_key=True)
    name = Column(String(256), nullable=False)
    slug = Column(String(128), nullable=False, unique=True)
    description = Column(Text, nullable=False, default="")
    default_api_key_id = Column(String(64), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class ApiKeyModel(Base):
    """Partner API key; only the salted hash is stored."""

    __tablename__ = "api_keys"

    id = Column(String(64), primary_key=True)
    company_id = Column(String(64), ForeignKey("companies.id"), nullable=False, index=True)
    key_prefix = Column(String(16), nullable=False, index=True)
    key_hash = Column(String(128), nullable=False)
    key_salt = Column(String(64), nullable=False)
    name = Column(String(256), nullable=False, default="")
    active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime, nullable=True)
    last_used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class PromptTemplateModel(Base):
    """Per-company drafting instructions; newest active row wins."""

    __tablename__ = "prompt_templates"

    id = Column(String(64), primary_key=True)
    company_id = Column(String(64), ForeignKey("companies.id"), nullable=False, index=True)
    template = Column(Text, nullable=True)
    tone = Column(String(64), nullable=True)
    style = Column(String(128), nullable=True)
    max_words = Column(Integer, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_prompt_templates_company_created_at", "company_id", "created_at"),
    )
