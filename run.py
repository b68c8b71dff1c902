#!/usr/bin/env python3
"""Main entry point for the Agent Smith lead pipeline."""

import sys
import os

# Add src to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__)))

from src.api.server import run_server

if __name__ == '__main__':
    print("=" * 60)
    print("Agent Smith - Starting Server")
    print("=" * 60)
    print("\nEndpoints:")
    print("  POST /api/website-signup        - Website form signup")
    print("  POST /api/process-signup        - API signup (X-API-Key)")
    print("  GET  /api/job-status/<id>       - Job status")
    print("  GET  /api/jobs/status/<status>  - List jobs by status")
    print("  POST /api/job/<id>/retry        - Retry a failed job")
    print("  GET  /api/cron/process-jobs     - Advance pending jobs")
    print("  POST /api/process-emails        - Retry undelivered emails")
    print("  GET  /health                    - Health check")
    print("\n" + "=" * 60)

    run_server()
