"""Centralized configuration management."""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Base paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = BASE_DIR / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)

# LLM (email drafting)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "500"))

# Website extraction (Firecrawl)
FIRECRAWL_API_KEY = os.getenv("FIRECRAWL_API_KEY")
FIRECRAWL_BASE_URL = os.getenv("FIRECRAWL_BASE_URL", "https://api.firecrawl.dev")

# Slack
SLACK_WEBHOOK_URL = os.getenv("SLACK_WEBHOOK_URL")

# Email delivery (Resend) and auth links (Supabase)
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
RESEND_BASE_URL = os.getenv("RESEND_BASE_URL", "https://api.resend.com")
RESEND_SENDER_EMAIL = os.getenv("RESEND_SENDER_EMAIL", "Agent Smith <hello@agent-smith.com>")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
AUTH_REDIRECT_URL = os.getenv("AUTH_REDIRECT_URL", "https://agent-smith.magloft.com/auth/callback")
LOGIN_URL = os.getenv("LOGIN_URL", "https://agent-smith.magloft.com/login")

# Outbound HTTP
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

# Inbound auth
API_KEY = os.getenv("API_KEY")
WEBSITE_FORM_SECRET = os.getenv("WEBSITE_FORM_SECRET")
WEBSITE_COMPANY_SLUG = os.getenv("WEBSITE_COMPANY_SLUG", "agent-smith")
CRON_SECRET = os.getenv("CRON_SECRET")

# Job processing
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
DEFAULT_BATCH_SIZE = int(os.getenv("DEFAULT_BATCH_SIZE", "5"))
SCRAPE_POLL_ALERT_THRESHOLD = int(os.getenv("SCRAPE_POLL_ALERT_THRESHOLD", "30"))
DELIVERY_CLAIM_LEASE_SECONDS = int(os.getenv("DELIVERY_CLAIM_LEASE_SECONDS", "300"))

# Default tenant used when no company/template can be resolved
DEFAULT_COMPANY_NAME = os.getenv("DEFAULT_COMPANY_NAME", "MagLoft")
DEFAULT_COMPANY_DESCRIPTION = os.getenv(
    "DEFAULT_COMPANY_DESCRIPTION",
    "MagLoft specializes in software solutions for print and digital publishers: "
    "PDF to HTML conversion, mobile and web apps, custom development and integration services.",
)
DEFAULT_TONE = os.getenv("DEFAULT_TONE", "conversational")
DEFAULT_STYLE = os.getenv("DEFAULT_STYLE", "friendly and concise")
DEFAULT_MAX_WORDS = int(os.getenv("DEFAULT_MAX_WORDS", "200"))

# Flask Settings
FLASK_PORT = int(os.getenv("FLASK_PORT", "8002"))
FLASK_DEBUG = os.getenv("FLASK_DEBUG", "false").lower() == "true"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Database
DEFAULT_DB_PATH = DATA_DIR / "agent_smith.db"
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH}")
