"""Flask API server for signup intake and job processing."""

import hmac
import logging
from functools import wraps

from flask import Flask, g, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config.settings import (
    API_KEY,
    CRON_SECRET,
    DEFAULT_BATCH_SIZE,
    FLASK_DEBUG,
    FLASK_PORT,
    LOG_LEVEL,
    WEBSITE_COMPANY_SLUG,
    WEBSITE_FORM_SECRET,
)
from src.pipeline.errors import InvalidInputError, InvalidTransitionError, JobNotFoundError
from src.pipeline.scheduler import create_scheduler
from src.services.job_service import job_service
from src.services.tenant_service import TenantService

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create Flask app
app = Flask(__name__)
CORS(app)  # Website signup form posts cross-origin

# Lazily built singletons
scheduler = None
tenant_service = None


def get_scheduler():
    """Get or create the scheduler instance."""
    global scheduler
    if scheduler is None:
        logger.info("Initializing job scheduler")
        scheduler = create_scheduler(job_service.store)
    return scheduler


def get_tenant_service():
    global tenant_service
    if tenant_service is None:
        tenant_service = TenantService()
    return tenant_service


def _secret_matches(presented, expected) -> bool:
    if not presented or not expected:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def _has_website_secret() -> bool:
    return _secret_matches(request.headers.get('X-Website-Secret'), WEBSITE_FORM_SECRET)


def _authenticate_request() -> bool:
    """Accept the master API key or a stored partner key; sets ``g.api_key``."""
    raw_key = request.headers.get('X-API-Key')
    g.api_key = None
    if not raw_key:
        return False
    if _secret_matches(raw_key, API_KEY):
        return True
    g.api_key = get_tenant_service().authenticate_api_key(raw_key)
    return g.api_key is not None


def _unauthorized():
    return jsonify({
        "error": "Unauthorized",
        "status": "failed"
    }), 401


def require_api_key(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not _authenticate_request():
            return _unauthorized()
        return view(*args, **kwargs)
    return wrapper


def _parse_limit(raw, default=None):
    if raw is None or raw == '':
        return default
    try:
        limit = int(raw)
    except ValueError as error:
        raise InvalidInputError(f"limit must be an integer, got {raw!r}") from error
    if limit < 1:
        raise InvalidInputError("limit must be positive")
    return limit


def _signup_response(outcome):
    payload = outcome.to_dict()
    if outcome.status == "skipped":
        payload["message"] = "Skipped processing for free email provider"
        return jsonify(payload), 200
    payload["message"] = "Signup accepted; job queued for processing"
    return jsonify(payload), 202


@app.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint.

    Returns:
        JSON response with status
    """
    return jsonify({
        "status": "healthy",
        "service": "agent-smith"
    }), 200


@app.route('/api/website-signup', methods=['POST'])
def website_signup():
    """Accept a signup from the public website form.

    Request JSON:
        {
            "email": "alice@acme.com",
            "name": "Alice"
        }

    The job is attributed to the company configured by WEBSITE_COMPANY_SLUG
    and its email carries a sign-in link.
    """
    if not _has_website_secret():
        return _unauthorized()

    data = request.get_json(silent=True) or {}

    company = None
    try:
        company = get_tenant_service().find_company_by_slug(WEBSITE_COMPANY_SLUG)
    except Exception as error:
        logger.warning(f"Could not look up website company {WEBSITE_COMPANY_SLUG}: {error}")
    if company is None:
        logger.warning(f"Website company '{WEBSITE_COMPANY_SLUG}' not found; using default tenant")

    outcome = job_service.process_signup(
        data.get('email'),
        data.get('name'),
        company_id=company.id if company else None,
        api_key_id=company.default_api_key_id if company else None,
        from_website=True,
    )
    return _signup_response(outcome)


@app.route('/api/process-signup', methods=['POST'])
@require_api_key
def process_signup():
    """Accept a signup from an API client.

    Request JSON:
        {
            "email": "alice@acme.com",
            "name": "Alice"
        }
    """
    data = request.get_json(silent=True) or {}
    key = g.api_key

    outcome = job_service.process_signup(
        data.get('email'),
        data.get('name'),
        api_key_id=key.key_id if key else None,
        company_id=key.company_id if key else None,
    )
    return _signup_response(outcome)


@app.route('/api/job-status/<job_id>', methods=['GET'])
def job_status(job_id: str):
    """Fetch the current state of a job."""
    if not (_has_website_secret() or _authenticate_request()):
        return _unauthorized()

    return jsonify(job_service.get_job_status(job_id)), 200


@app.route('/api/jobs/status/<status>', methods=['GET'])
@require_api_key
def jobs_by_status(status: str):
    """List jobs in a given status, most recently updated first."""
    limit = _parse_limit(request.args.get('limit'))
    jobs = job_service.list_by_status(status, limit=limit)
    return jsonify({
        "status": status,
        "count": len(jobs),
        "jobs": [job.to_dict() for job in jobs]
    }), 200


@app.route('/api/job/<job_id>/retry', methods=['POST'])
@require_api_key
def retry_job(job_id: str):
    """Send a failed job back to pending."""
    job = job_service.retry_job(job_id)
    return jsonify({
        "message": "Job queued for retry",
        "job_id": job.id,
        "status": job.status.value
    }), 200


@app.route('/api/cron/process-jobs', methods=['GET', 'POST'])
def cron_process_jobs():
    """Advance a batch of in-flight jobs, then sweep for stalled deliveries."""
    if CRON_SECRET and not _secret_matches(
        request.headers.get('Authorization'), f"Bearer {CRON_SECRET}"
    ):
        return _unauthorized()

    batch_size = _parse_limit(request.args.get('batch_size'), DEFAULT_BATCH_SIZE)
    job_scheduler = get_scheduler()
    results = job_scheduler.tick(batch_size) + job_scheduler.sweep(batch_size)

    return jsonify({
        "message": f"Processed {len(results)} jobs",
        "results": results
    }), 200


@app.route('/api/process-emails', methods=['POST'])
@require_api_key
def process_emails():
    """Retry delivery for completed jobs whose email has not gone out."""
    batch_size = _parse_limit(request.args.get('batch_size'), DEFAULT_BATCH_SIZE)
    results = get_scheduler().sweep(batch_size)
    return jsonify({
        "message": f"Processed {len(results)} jobs",
        "results": results
    }), 200


@app.errorhandler(InvalidInputError)
def invalid_input(error):
    return jsonify({
        "error": str(error),
        "status": "failed"
    }), 400


@app.errorhandler(JobNotFoundError)
def job_not_found(error):
    return jsonify({
        "error": str(error),
        "status": "failed"
    }), 404


@app.errorhandler(InvalidTransitionError)
def invalid_transition(error):
    return jsonify({
        "error": str(error),
        "status": "failed"
    }), 409


@app.errorhandler(404)
def not_found(error):
    """Handle 404 errors."""
    return jsonify({
        "error": "Endpoint not found",
        "status": "failed"
    }), 404


@app.errorhandler(Exception)
def internal_error(error):
    """Handle uncaught errors."""
    if isinstance(error, HTTPException):
        return jsonify({
            "error": error.description,
            "status": "failed"
        }), error.code
    logger.error(f"Internal server error: {error}", exc_info=True)
    return jsonify({
        "error": f"Internal server error: {str(error)}",
        "status": "failed"
    }), 500


def run_server():
    """Run the Flask server."""
    from config.settings import (
        FIRECRAWL_API_KEY,
        OPENAI_API_KEY,
        RESEND_API_KEY,
        SLACK_WEBHOOK_URL,
        SUPABASE_SERVICE_ROLE_KEY,
    )

    job_service.store.create_schema()

    # Check critical configuration
    logger.info("=" * 60)
    logger.info("Configuration Check:")
    logger.info(f"OpenAI API Key: {'✓ Configured' if OPENAI_API_KEY else '✗ MISSING'}")
    logger.info(f"Firecrawl API Key: {'✓ Configured' if FIRECRAWL_API_KEY else '✗ MISSING'}")
    logger.info(f"Resend API Key: {'✓ Configured' if RESEND_API_KEY else '✗ MISSING'}")
    logger.info(f"Supabase Service Key: {'✓ Configured' if SUPABASE_SERVICE_ROLE_KEY else '✗ MISSING'}")
    logger.info(f"Slack Webhook: {'✓ Configured' if SLACK_WEBHOOK_URL else '✗ MISSING'}")
    logger.info(f"Master API Key: {'✓ Configured' if API_KEY else '✗ MISSING'}")
    logger.info(f"Cron Secret: {'✓ Configured' if CRON_SECRET else '✗ MISSING (cron route is open)'}")
    logger.info("=" * 60)

    # Log registered routes for debugging
    logger.info("Registered Routes:")
    for rule in app.url_map.iter_rules():
        methods = ','.join(sorted(rule.methods - {'HEAD', 'OPTIONS'}))
        logger.info(f"  {rule.rule:50s} [{methods}]")
    logger.info("=" * 60)

    logger.info(f"Starting Flask server on port {FLASK_PORT}")
    app.run(
        host='0.0.0.0',
        port=FLASK_PORT,
        debug=FLASK_DEBUG,
        threaded=True
    )


if __name__ == '__main__':
    run_server()
