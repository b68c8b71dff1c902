"""Business-domain gate for inbound signups."""

from src.pipeline.errors import InvalidInputError
from src.pipeline.state import DomainCheck

FREE_EMAIL_DOMAINS = frozenset(
    {
        "gmail.com",
        "yahoo.com",
        "hotmail.com",
        "outlook.com",
        "aol.com",
        "protonmail.com",
        "icloud.com",
        "mail.com",
        "zoho.com",
        "yandex.com",
        "gmx.com",
        "live.com",
        "msn.com",
        "me.com",
        "inbox.com",
        "fastmail.com",
        "tutanota.com",
        "mail.ru",
    }
)


def extract_domain(email: str) -> str:
    if not email or "@" not in email:
        raise InvalidInputError("Invalid email format")
    domain = email.rsplit("@", 1)[1].strip().lower()
    if not domain:
        raise InvalidInputError("Invalid email format")
    return domain


def classify(email: str) -> DomainCheck:
    """Split off the domain and flag free/personal mail providers."""
    domain = extract_domain(email)
    return DomainCheck(
        domain=domain,
        is_free_provider=domain in FREE_EMAIL_DOMAINS,
        email=email.strip(),
    )


def is_free_provider(email: str) -> bool:
    return classify(email).is_free_provider
