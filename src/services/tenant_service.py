"""Tenant lookup: companies, their prompt templates, and partner API keys."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy import select

from config.settings import (
    DATABASE_URL,
    DEFAULT_COMPANY_DESCRIPTION,
    DEFAULT_COMPANY_NAME,
    DEFAULT_MAX_WORDS,
    DEFAULT_STYLE,
    DEFAULT_TONE,
)
from src.db.base import get_session_factory
from src.db.models import ApiKeyModel, CompanyModel, PromptTemplateModel, utcnow
from src.pipeline.state import TenantHints

logger = logging.getLogger(__name__)

API_KEY_PREFIX_LENGTH = 10


@dataclass
class CompanyRecord:
    id: str
    name: str
    slug: str
    description: str = ""
    default_api_key_id: Optional[str] = None


@dataclass
class ApiKeyRecord:
    key_id: str
    company_id: str
    company_name: str
    company_slug: str


def hash_api_key(raw_key: str, salt: str) -> str:
    return hashlib.sha256(f"{raw_key}{salt}".encode("utf-8")).hexdigest()


def default_tenant_hints() -> TenantHints:
    return TenantHints(
        company_name=DEFAULT_COMPANY_NAME,
        company_description=DEFAULT_COMPANY_DESCRIPTION,
        tone=DEFAULT_TONE,
        style=DEFAULT_STYLE,
        max_words=DEFAULT_MAX_WORDS,
        source="default",
    )


class TenantService:
    """Resolves drafting hints per tenant; lookups never fail a job."""

    def __init__(self, database_url: str = DATABASE_URL) -> None:
        self._session_factory = get_session_factory(database_url)

    def resolve(self, company_id: Optional[str], api_key_id: Optional[str]) -> TenantHints:
        """Prefer ``company_id``; fall back to the company behind ``api_key_id``."""
        try:
            hints = self._resolve(company_id, api_key_id)
        except Exception as error:
            logger.warning(
                f"Tenant lookup failed (company={company_id}, api_key={api_key_id}): {error}; "
                "using default tenant"
            )
            return default_tenant_hints()

        if hints is None:
            logger.info(f"No tenant found for company={company_id} api_key={api_key_id}; using default tenant")
            return default_tenant_hints()
        return hints

    def _resolve(self, company_id: Optional[str], api_key_id: Optional[str]) -> Optional[TenantHints]:
        session = self._session_factory()
        try:
            company = None
            source = "company"
            if company_id:
                company = session.scalars(
                    select(CompanyModel)
                    .where(CompanyModel.id == company_id)
                    .where(CompanyModel.active.is_(True))
                ).first()
            if company is None and api_key_id:
                source = "api_key"
                company = session.scalars(
                    select(CompanyModel)
                    .join(ApiKeyModel, ApiKeyModel.company_id == CompanyModel.id)
                    .where(ApiKeyModel.id == api_key_id)
                    .where(CompanyModel.active.is_(True))
                ).first()
            if company is None:
                return None

            template = session.scalars(
                select(PromptTemplateModel)
                .where(PromptTemplateModel.company_id == company.id)
                .where(PromptTemplateModel.active.is_(True))
                .order_by(PromptTemplateModel.created_at.desc())
                .limit(1)
            ).first()

            hints = TenantHints(
                company_name=company.name,
                company_description=company.description or "",
                tone=DEFAULT_TONE,
                style=DEFAULT_STYLE,
                max_words=DEFAULT_MAX_WORDS,
                source=source,
            )
            if template is not None:
                hints.prompt_template = template.template or None
                hints.tone = template.tone or hints.tone
                hints.style = template.style or hints.style
                hints.max_words = template.max_words or hints.max_words
            return hints
        finally:
            session.close()

    def find_company_by_slug(self, slug: str) -> Optional[CompanyRecord]:
        session = self._session_factory()
        try:
            company = session.scalars(
                select(CompanyModel)
                .where(CompanyModel.slug == slug)
                .where(CompanyModel.active.is_(True))
            ).first()
            if company is None:
                return None
            return CompanyRecord(
                id=company.id,
                name=company.name,
                slug=company.slug,
                description=company.description or "",
                default_api_key_id=company.default_api_key_id,
            )
        finally:
            session.close()

    def authenticate_api_key(self, raw_key: Optional[str]) -> Optional[ApiKeyRecord]:
        """Match a presented key against stored salted hashes."""
        if not raw_key or len(raw_key) < API_KEY_PREFIX_LENGTH:
            return None

        session = self._session_factory()
        try:
            candidates = session.execute(
                select(ApiKeyModel, CompanyModel)
                .join(CompanyModel, CompanyModel.id == ApiKeyModel.company_id)
                .where(ApiKeyModel.key_prefix == raw_key[:API_KEY_PREFIX_LENGTH])
                .where(ApiKeyModel.active.is_(True))
                .where(CompanyModel.active.is_(True))
            ).all()

            now = utcnow()
            for key, company in candidates:
                if key.expires_at is not None and key.expires_at < now:
                    continue
                if not hmac.compare_digest(hash_api_key(raw_key, key.key_salt), key.key_hash):
                    continue
                key.last_used_at = now
                session.commit()
                return ApiKeyRecord(
                    key_id=key.id,
                    company_id=company.id,
                    company_name=company.name,
                    company_slug=company.slug,
                )
            return None
        finally:
            session.close()

    # -- provisioning --------------------------------------------------------

    def create_company(self, name: str, slug: str, description: str = "") -> CompanyRecord:
        company = CompanyModel(
            id=str(uuid.uuid4()),
            name=name,
            slug=slug,
            description=description,
            active=True,
            created_at=utcnow(),
        )
        session = self._session_factory()
        try:
            session.add(company)
            session.commit()
            logger.info(f"Created company {name} ({slug})")
            return CompanyRecord(id=company.id, name=name, slug=slug, description=description)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_api_key(
        self,
        company_id: str,
        name: str = "Primary API Key",
        expires_in_days: Optional[int] = 365,
    ) -> Tuple[ApiKeyRecord, str]:
        """Mint a key for a company. The raw key is returned here and never stored."""
        raw_key = "as_" + secrets.token_hex(24)
        salt = secrets.token_hex(16)
        now = utcnow()

        session = self._session_factory()
        try:
            company = session.get(CompanyModel, company_id)
            if company is None:
                raise LookupError(f"Company not found: {company_id}")

            key = ApiKeyModel(
                id=str(uuid.uuid4()),
                company_id=company_id,
                key_prefix=raw_key[:API_KEY_PREFIX_LENGTH],
                key_hash=hash_api_key(raw_key, salt),
                key_salt=salt,
                name=name,
                active=True,
                expires_at=now + timedelta(days=expires_in_days) if expires_in_days else None,
                created_at=now,
            )
            session.add(key)
            if not company.default_api_key_id:
                company.default_api_key_id = key.id
            session.commit()

            record = ApiKeyRecord(
                key_id=key.id,
                company_id=company.id,
                company_name=company.name,
                company_slug=company.slug,
            )
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        logger.info(f"Created API key {record.key_id} for company {company_id}")
        return record, raw_key

    def set_prompt_template(
        self,
        company_id: str,
        template: str,
        tone: Optional[str] = None,
        style: Optional[str] = None,
        max_words: Optional[int] = None,
    ) -> None:
        """Add a template; the newest active one wins at resolution time."""
        session = self._session_factory()
        try:
            session.add(
                PromptTemplateModel(
                    id=str(uuid.uuid4()),
                    company_id=company_id,
                    template=template,
                    tone=tone,
                    style=style,
                    max_words=max_words,
                    active=True,
                    created_at=utcnow(),
                )
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
