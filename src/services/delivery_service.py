"""Outbound email delivery (Resend) and one-time sign-in links (Supabase)."""

import html
import logging
import re
from datetime import datetime
from typing import Optional
from urllib.parse import urlencode

import requests

from config.settings import (
    AUTH_REDIRECT_URL,
    HTTP_TIMEOUT_SECONDS,
    LOGIN_URL,
    RESEND_API_KEY,
    RESEND_BASE_URL,
    RESEND_SENDER_EMAIL,
    SUPABASE_SERVICE_ROLE_KEY,
    SUPABASE_URL,
)
from src.pipeline.state import AuthLink, DeliveryResult, EmailDraft, Job

logger = logging.getLogger(__name__)

_HTML_TAG_RE = re.compile(r"<[a-z][\s\S]*>", re.IGNORECASE)
_STRIP_TAGS_RE = re.compile(r"<[^>]*>")


def first_name(name: str) -> str:
    parts = (name or "").split()
    return parts[0] if parts else name


def format_email_html(body: str, recipient_first_name: str, auth_link: Optional[str] = None) -> str:
    """Wrap the drafted body in the branded HTML shell."""
    if _HTML_TAG_RE.search(body):
        content = body
    else:
        content = "".join(
            f"<p>{html.escape(paragraph).replace(chr(10), '<br>')}</p>"
            for paragraph in body.split("\n\n")
            if paragraph.strip()
        )

    signup_section = ""
    if auth_link:
        signup_section = (
            '<div style="margin: 30px 0; text-align: center;">'
            f'<a href="{html.escape(auth_link, quote=True)}" '
            'style="display: inline-block; padding: 12px 24px; background-color: #4CAF50; '
            'color: white; text-decoration: none; border-radius: 4px; font-weight: bold;">'
            "Create Your Account</a>"
            '<p style="margin-top: 15px; font-size: 14px; color: #666;">'
            "Click the button above to create your account and access your dashboard.</p>"
            "</div>"
        )

    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"><title>Agent Smith</title></head>"
        '<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #000;">'
        '<table width="100%" cellpadding="0" cellspacing="0" style="max-width: 600px; margin: 0 auto; padding: 20px;">'
        '<tr><td style="padding: 30px;">'
        f"<p>Hi {html.escape(recipient_first_name)},</p>"
        f"{content}{signup_section}"
        "<p>Best regards,<br>The Agent Smith Team</p>"
        "</td></tr>"
        f'<tr><td style="text-align: center; font-size: 12px; color: #666;">'
        f"&copy; {datetime.now().year} Agent Smith. All rights reserved.</td></tr>"
        "</table></body></html>"
    )


def html_to_text(markup: str) -> str:
    return html.unescape(_STRIP_TAGS_RE.sub("", markup)).strip()


class ResendDeliveryService:
    """Sends the completion email and mints sign-in links for web-form prospects."""

    def __init__(
        self,
        api_key: Optional[str] = RESEND_API_KEY,
        sender: str = RESEND_SENDER_EMAIL,
        base_url: str = RESEND_BASE_URL,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_service_key: Optional[str] = SUPABASE_SERVICE_ROLE_KEY,
        redirect_url: str = AUTH_REDIRECT_URL,
        login_url: str = LOGIN_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        if not api_key:
            raise ValueError("RESEND_API_KEY not found in environment variables")
        self._api_key = api_key
        self._sender = sender
        self._base_url = base_url.rstrip("/")
        self._supabase_url = supabase_url.rstrip("/") if supabase_url else None
        self._supabase_service_key = supabase_service_key
        self._redirect_url = redirect_url
        self._login_url = login_url
        self._timeout = timeout

    def generate_auth_link(self, email: str, name: str) -> AuthLink:
        """Ask Supabase for a magic link; degrade to the login page on any error."""
        logger.info(f"Generating magic link for: {email}")
        try:
            if not self._supabase_url or not self._supabase_service_key:
                raise ValueError("Supabase admin credentials are not configured")

            response = requests.post(
                f"{self._supabase_url}/auth/v1/admin/generate_link",
                headers={
                    "apikey": self._supabase_service_key,
                    "Authorization": f"Bearer {self._supabase_service_key}",
                },
                json={
                    "type": "magiclink",
                    "email": email,
                    "data": {"name": name, "source": "agent_smith_email_delivery"},
                    "redirect_to": self._redirect_url,
                },
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()

            properties = payload.get("properties") or {}
            action_link = payload.get("action_link") or properties.get("action_link")
            if not action_link:
                raise ValueError("Invalid magic link response structure")

            user = payload.get("user") or {}
            user_id = user.get("id") or payload.get("id")
            return AuthLink(url=action_link, user_id=str(user_id) if user_id else None)
        except (requests.RequestException, ValueError) as error:
            logger.error(f"Error generating magic link for {email}: {error}")
            fallback = f"{self._login_url}?" + urlencode(
                {"email": email, "error": "magic_link_generation_failed"}
            )
            return AuthLink(url=fallback)

    def send(self, job: Job, draft: EmailDraft, auth_link: Optional[str]) -> DeliveryResult:
        recipient_first_name = first_name(job.name)
        markup = format_email_html(draft.body, recipient_first_name, auth_link)
        payload = {
            "from": self._sender,
            "to": [job.email],
            "subject": draft.subject or f"Welcome to Agent Smith, {recipient_first_name}!",
            "html": markup,
            "text": html_to_text(markup),
            "tags": [{"name": "source", "value": "agent_smith"}],
        }

        logger.info(f"Sending job completion email to {job.email} (job {job.id})")
        try:
            response = requests.post(
                f"{self._base_url}/emails",
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    # Resend dedupes retried requests carrying the same key.
                    "Idempotency-Key": f"job-{job.id}",
                },
                json=payload,
                timeout=self._timeout,
            )
            response.raise_for_status()
            message_id = response.json().get("id")
        except requests.RequestException as error:
            logger.error(f"Error sending job completion email to {job.email}: {error}")
            return DeliveryResult(success=False, error=str(error))

        logger.info(f"Email sent successfully to {job.email}, ID: {message_id}")
        return DeliveryResult(success=True, message_id=message_id)
