"""Centralized prompt templates for outreach email drafting.

System and user prompts are kept separate so a tenant's custom template can
replace the instructions block without losing the prospect context.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class PromptTemplate:
    """Drafting prompt; optional placeholders render empty when not supplied."""

    template: str
    required_params: List[str]
    optional_params: List[str] = field(default_factory=list)

    def format(self, **values: Any) -> str:
        missing = sorted(param for param in self.required_params if param not in values)
        if missing:
            raise ValueError(f"Prompt is missing values for: {', '.join(missing)}")
        defaults = {param: "" for param in self.optional_params}
        return self.template.format(**{**defaults, **values})


class _PassthroughDict(dict):
    """Leaves unknown ``{placeholders}`` in tenant templates untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render_custom_template(template: str, values: Dict[str, Any]) -> str:
    """Fill a tenant-authored template; unknown placeholders survive as-is."""
    try:
        return template.format_map(_PassthroughDict(values))
    except (ValueError, IndexError, AttributeError):
        # Stray braces in free text; use the template verbatim.
        return template


EMAIL_DRAFT_SYSTEM_PROMPT = PromptTemplate(
    template="""You are an assistant that writes personalized outreach emails to people who just signed up for a free trial, on behalf of {company_name}.

About {company_name}: {company_description}

Write in a {tone} tone with a {style} style. Never invent facts about the prospect's company that are not in the provided website data.

Respond ONLY with a JSON object with two string fields: "subject" and "body".""",
    required_params=["company_name", "tone", "style"],
    optional_params=["company_description"],
)

EMAIL_DRAFT_USER_PROMPT = PromptTemplate(
    template="""Create a personalized email for a new free trial signup with the following information:

Name: {name}
Email: {email}
Company domain: {domain}
Company name: {prospect_company}

Website summary: {summary}

Website content: {page_text}

Services offered: {services}

Products offered: {products}

Instructions:
{instructions}""",
    required_params=["name", "email", "domain", "prospect_company", "instructions"],
    optional_params=["summary", "page_text", "services", "products"],
)

DEFAULT_INSTRUCTIONS = PromptTemplate(
    template="""1. Write a brief, personalized email welcoming them to the free trial
2. Reference their company name and business
3. Mention how {company_name} might help their specific needs based on their website
4. Keep it under {max_words} words and {tone} in tone
5. End with a question to encourage a reply""",
    required_params=["company_name", "max_words", "tone"],
)

FALLBACK_SUBJECT = "Welcome to our product, {name}!"

FALLBACK_BODY = (
    "Hi {name},\n\n"
    "Thank you for signing up for our free trial. I noticed you're from "
    "{company_name} ({domain}).\n\n"
    "I'd love to learn more about your needs and show you how our product can help "
    "your business. Would you be available for a quick call this week?\n\n"
    "Best regards,\n"
    "The Team"
)
