"""Slack webhook notifications for the internal team."""

import logging
from typing import Any, Dict, Optional

import requests

from config.settings import HTTP_TIMEOUT_SECONDS, SLACK_WEBHOOK_URL
from src.pipeline.state import EmailDraft, Job

logger = logging.getLogger(__name__)


def _header(text: str) -> Dict[str, Any]:
    return {"type": "header", "text": {"type": "plain_text", "text": text, "emoji": True}}


def _fields(*pairs) -> Dict[str, Any]:
    return {
        "type": "section",
        "fields": [{"type": "mrkdwn", "text": f"*{label}:* {value}"} for label, value in pairs],
    }


def _section(text: str) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def build_draft_message(job: Job, draft: EmailDraft) -> Dict[str, Any]:
    company = job.scrape_result.company_name if job.scrape_result else job.domain
    delivery = "sent" if job.email_sent else "not sent"
    return {
        "text": f"New personalized email draft for {job.email}",
        "blocks": [
            _header("🎉 New Personalized Email Draft"),
            _fields(("Name", job.name), ("Email", job.email), ("Company", company)),
            _fields(("Job", job.id), ("Delivery", delivery)),
            {"type": "divider"},
            _section(f"*Subject:* {draft.subject}"),
            _section(f"*Body:*\n```{draft.body}```"),
        ],
    }


def build_failure_message(job: Job, error_message: str) -> Dict[str, Any]:
    return {
        "text": f"Job {job.id} failed for {job.domain}",
        "blocks": [
            _header("⚠️ Lead Enrichment Failure"),
            _fields(("Domain", job.domain), ("Email", job.email)),
            _fields(("Job", job.id), ("Retries", job.retry_count)),
            _section(f"*Error:* {error_message}"),
        ],
    }


def build_stuck_scrape_message(job: Job, polls: int) -> Dict[str, Any]:
    return {
        "text": f"Scrape for {job.domain} still processing after {polls} polls",
        "blocks": [
            _header("⏳ Website Extraction Still Running"),
            _fields(("Domain", job.domain), ("Scrape job", job.scrape_job_id or "-")),
            _section(
                f"Job `{job.id}` has been polled {polls} times without a result. "
                "It will keep polling; check the extraction provider."
            ),
        ],
    }


def build_abandoned_delivery_message(job: Job, error_message: str) -> Dict[str, Any]:
    return {
        "text": f"Giving up on delivering the email for job {job.id}",
        "blocks": [
            _header("📭 Email Delivery Abandoned"),
            _fields(("Email", job.email), ("Job", job.id)),
            _section(f"*Last error:* {error_message}"),
        ],
    }


class SlackNotifier:
    """Posts Block Kit messages to an incoming webhook; never raises."""

    def __init__(
        self,
        webhook_url: Optional[str] = SLACK_WEBHOOK_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout
        if not webhook_url:
            logger.warning("SLACK_WEBHOOK_URL not configured; Slack notifications disabled")

    def post(self, message: Dict[str, Any]) -> Dict[str, Any]:
        if not self._webhook_url:
            return {"success": False, "error": "Slack webhook URL not configured"}
        try:
            response = requests.post(self._webhook_url, json=message, timeout=self._timeout)
            response.raise_for_status()
            return {"success": True}
        except requests.RequestException as error:
            logger.error(f"Error sending to Slack: {error}")
            return {"success": False, "error": str(error)}
