"""LLM service for drafting personalized outreach emails."""

import logging
import re
from typing import Any, List, Optional

from langchain_core.exceptions import OutputParserException
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_core.output_parsers import JsonOutputParser
from langchain_openai import ChatOpenAI
from pydantic import ValidationError

from config.settings import (
    LLM_MAX_TOKENS,
    LLM_TEMPERATURE,
    OPENAI_API_KEY,
    OPENAI_MODEL,
)
from src.pipeline.state import EmailDraft, TenantHints, WebsiteData
from src.prompts.prompt_templates import (
    DEFAULT_INSTRUCTIONS,
    EMAIL_DRAFT_SYSTEM_PROMPT,
    EMAIL_DRAFT_USER_PROMPT,
    FALLBACK_BODY,
    FALLBACK_SUBJECT,
    render_custom_template,
)

logger = logging.getLogger(__name__)

PAGE_TEXT_PROMPT_LIMIT = 1000

_SUBJECT_RE = re.compile(r"Subject:(.*?)(?:\n|$)", re.IGNORECASE)
_BODY_RE = re.compile(r"Body:(.*)", re.IGNORECASE | re.DOTALL)


def fallback_draft(name: str, domain: str, website_data: Optional[WebsiteData] = None) -> EmailDraft:
    """Deterministic draft used whenever the model cannot produce one."""
    company_name = website_data.company_name if website_data and website_data.company_name else domain
    return EmailDraft(
        subject=FALLBACK_SUBJECT.format(name=name),
        body=FALLBACK_BODY.format(name=name, company_name=company_name, domain=domain),
    )


def _message_text(message: BaseMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content.strip()
    parts: List[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts).strip()


def parse_draft_response(content: str, name: str) -> EmailDraft:
    """Parse model output as JSON, falling back to Subject:/Body: markers."""
    if not content:
        raise ValueError("Model returned an empty response")

    try:
        result = JsonOutputParser(pydantic_object=EmailDraft).parse(content)
        return EmailDraft(**result)
    except (OutputParserException, ValidationError, TypeError) as error:
        logger.debug(f"Draft response was not JSON ({error}); parsing markers")

    subject_match = _SUBJECT_RE.search(content)
    subject = subject_match.group(1).strip() if subject_match else ""
    body_match = _BODY_RE.search(content)
    body = body_match.group(1).strip() if body_match else content
    return EmailDraft(subject=subject or FALLBACK_SUBJECT.format(name=name), body=body)


class EmailDraftService:
    """Wrapper around the chat model; ``generate`` never raises."""

    def __init__(self, client: Optional[Any] = None) -> None:
        if client is not None:
            self.client = client
            return

        if not OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY not found in environment variables")

        # Reasoning models only accept the default temperature.
        default_temp_models = ("gpt-5", "o1", "o3", "o4")
        kwargs = {
            "model": OPENAI_MODEL,
            "api_key": OPENAI_API_KEY,
            "max_tokens": LLM_MAX_TOKENS,
        }
        if any(OPENAI_MODEL.startswith(prefix) for prefix in default_temp_models):
            if LLM_TEMPERATURE not in (None, 1, 1.0):
                logger.warning(
                    f"Model {OPENAI_MODEL} requires default temperature=1.0; "
                    f"overriding configured value {LLM_TEMPERATURE}"
                )
        else:
            kwargs["temperature"] = LLM_TEMPERATURE

        self.client = ChatOpenAI(**kwargs)
        logger.info(
            f"EmailDraftService initialized with {OPENAI_MODEL} "
            f"(temperature={kwargs.get('temperature', 'default')})"
        )

    def build_messages(
        self,
        name: str,
        email: str,
        domain: str,
        website_data: WebsiteData,
        tenant_hints: TenantHints,
    ) -> List[BaseMessage]:
        system_prompt = EMAIL_DRAFT_SYSTEM_PROMPT.format(
            company_name=tenant_hints.company_name,
            company_description=tenant_hints.company_description,
            tone=tenant_hints.tone,
            style=tenant_hints.style,
        )

        if tenant_hints.prompt_template:
            instructions = render_custom_template(
                tenant_hints.prompt_template,
                {
                    "name": name,
                    "email": email,
                    "domain": domain,
                    "company_name": website_data.company_name,
                    "sender_company": tenant_hints.company_name,
                    "tone": tenant_hints.tone,
                    "style": tenant_hints.style,
                    "max_words": tenant_hints.max_words,
                },
            )
        else:
            instructions = DEFAULT_INSTRUCTIONS.format(
                company_name=tenant_hints.company_name,
                max_words=tenant_hints.max_words,
                tone=tenant_hints.tone,
            )

        page_text = website_data.page_text
        if len(page_text) > PAGE_TEXT_PROMPT_LIMIT:
            page_text = page_text[:PAGE_TEXT_PROMPT_LIMIT] + "..."

        user_prompt = EMAIL_DRAFT_USER_PROMPT.format(
            name=name,
            email=email,
            domain=domain,
            prospect_company=website_data.company_name or domain,
            summary=website_data.summary or "Not available",
            page_text=page_text or "Not available",
            services=", ".join(website_data.services) or "Not specified",
            products=", ".join(website_data.products) or "Not specified",
            instructions=instructions,
        )
        return [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]

    def generate(
        self,
        name: str,
        email: str,
        domain: str,
        website_data: WebsiteData,
        tenant_hints: TenantHints,
    ) -> EmailDraft:
        """Draft an email for the prospect, or the fallback template on any error."""
        try:
            messages = self.build_messages(name, email, domain, website_data, tenant_hints)
            response = self.client.invoke(messages)
            draft = parse_draft_response(_message_text(response), name)
            logger.info(f"Generated email for {email} ({tenant_hints.source} tenant): {draft.subject}")
            return draft
        except Exception as error:
            logger.error(f"Error generating email for {email}: {error}")
            return fallback_draft(name, domain, website_data)
