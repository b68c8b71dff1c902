"""Provision a company and print a freshly minted API key for it."""

from __future__ import annotations

import argparse

from config.settings import DATABASE_URL
from src.services.job_store import JobStore
from src.services.tenant_service import TenantService


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a company and an API key for it.")
    parser.add_argument("name", help="Company display name")
    parser.add_argument("slug", help="Unique company slug, e.g. agent-smith")
    parser.add_argument("--description", default="", help="What the company does")
    parser.add_argument(
        "--expires-in-days",
        dest="expires_in_days",
        type=int,
        default=365,
        help="Key lifetime in days; 0 for no expiry (default: %(default)s)",
    )
    parser.add_argument(
        "--database-url",
        dest="database_url",
        default=DATABASE_URL,
        help="SQLAlchemy database URL (default: %(default)s)",
    )
    args = parser.parse_args()

    JobStore(args.database_url).create_schema()
    tenants = TenantService(args.database_url)

    company = tenants.find_company_by_slug(args.slug)
    if company is None:
        company = tenants.create_company(args.name, args.slug, args.description)

    record, raw_key = tenants.create_api_key(
        company.id, expires_in_days=args.expires_in_days or None
    )
    print(f"Company: {company.name} ({company.slug}) id={company.id}")
    print(f"API key id: {record.key_id}")
    print(f"API key (shown once): {raw_key}")


if __name__ == "__main__":
    main()
