"""CRM reconciliation command line.

Each command runs in one database session (committed on success, rolled
back on error) and prints a JSON summary.

Usage:
  # Create tables in a local SQLite database
  python cli.py init-db

  # Link opportunities to an account (created if missing)
  python cli.py opportunities --account "Acme Corp" --names "Renewal" "Upsell"

  # Attach contacts from a JSON file to accounts named after their last name
  python cli.py contacts --file contacts.json

  # Bulk insert-then-delete round trips
  python cli.py leads --names Doe Roe --company "Acme Corp"
  python cli.py cases --subjects "Login broken" "Billing question" --row-limit 100

contacts.json is either a list of contacts or {"contacts": [...]}, each with
optional first_name, last_name, email, phone and id.
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from db.connection import dispose_engine, get_db, get_engine
from db.models import Base
from db.store import PartialUpsertFailure, RecordFailure, SqlStore
from reconcilers import (
    ContactAccountReconciler,
    OpportunityReconciler,
    ReconcileError,
    insert_and_delete_cases,
    insert_and_delete_leads,
)
from schemas import (
    BulkRoundTripSummary,
    ContactBatchIn,
    ContactSummary,
    OpportunitySummary,
    RecordFailureOut,
)

logger = logging.getLogger(__name__)


def _failures_out(failures: list[RecordFailure]) -> list[RecordFailureOut]:
    return [RecordFailureOut(record=f.label, reason=f.reason) for f in failures]


def load_contacts(path: Path) -> ContactBatchIn:
    """Read and validate a contacts JSON file."""
    raw = json.loads(path.read_text())
    if isinstance(raw, list):
        raw = {"contacts": raw}
    return ContactBatchIn.model_validate(raw)


async def run_init_db() -> dict:
    """Create any missing crm tables (local SQLite runs; use Alembic for PostgreSQL)."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return {"tables": sorted(Base.metadata.tables)}


async def run_opportunities(
    account_name: str, names: list[str], strict: bool = False
) -> OpportunitySummary:
    async with get_db() as session:
        result = await OpportunityReconciler(SqlStore(session)).reconcile(account_name, names)
        if strict:
            result.opportunities.raise_for_failures()

    return OpportunitySummary(
        account_id=result.account.id,
        account_name=account_name,
        account_created=result.account_created,
        created=[opp.id for opp in result.opportunities.created],
        updated=[opp.id for opp in result.opportunities.updated],
        failed=_failures_out(result.opportunities.failed),
    )


async def run_contacts(path: Path, strict: bool = False) -> ContactSummary:
    batch = load_contacts(path)
    contacts = [c.to_model() for c in batch.contacts]

    async with get_db() as session:
        result = await ContactAccountReconciler(SqlStore(session)).reconcile(contacts)
        if strict:
            result.contacts.raise_for_failures()
            if result.failed_accounts:
                raise PartialUpsertFailure(result.failed_accounts)

    return ContactSummary(
        created_accounts=[a.name for a in result.created_accounts],
        linked=len(result.linked),
        skipped=len(result.skipped),
        unresolved=len(result.unresolved),
        failed=_failures_out(result.failed_accounts + result.contacts.failed),
    )


async def run_leads(
    names: list[str], company: str, row_limit: Optional[int] = None
) -> BulkRoundTripSummary:
    async with get_db() as session:
        ids = await insert_and_delete_leads(SqlStore(session), names, company=company, row_limit=row_limit)
    return BulkRoundTripSummary(entity="lead", inserted_and_deleted=len(ids), ids=ids)


async def run_cases(
    subjects: list[str], origin: str, row_limit: Optional[int] = None
) -> BulkRoundTripSummary:
    async with get_db() as session:
        ids = await insert_and_delete_cases(SqlStore(session), subjects, origin=origin, row_limit=row_limit)
    return BulkRoundTripSummary(entity="case", inserted_and_deleted=len(ids), ids=ids)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="CRM relational upsert reconciliation"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("init-db", help="Create missing tables (local SQLite runs)")

    opps = sub.add_parser("opportunities", help="Link opportunity names to one account")
    opps.add_argument("--account", required=True, help="Account name (created if missing)")
    opps.add_argument("--names", nargs="*", default=[], help="Opportunity names")
    opps.add_argument("--strict", action="store_true", help="Fail if any record is rejected")

    contacts = sub.add_parser("contacts", help="Attach contacts to accounts by last name")
    contacts.add_argument("--file", required=True, type=Path, help="Contacts JSON file")
    contacts.add_argument("--strict", action="store_true", help="Fail if any record is rejected")

    leads = sub.add_parser("leads", help="Insert then delete one lead per name")
    leads.add_argument("--names", nargs="+", required=True, help="Lead last names")
    leads.add_argument("--company", default="Acme Corp")
    leads.add_argument("--row-limit", type=int, default=None, help="Override DML_ROW_LIMIT")

    cases = sub.add_parser("cases", help="Insert then delete one case per subject")
    cases.add_argument("--subjects", nargs="+", required=True, help="Case subjects")
    cases.add_argument("--origin", default="Web")
    cases.add_argument("--row-limit", type=int, default=None, help="Override DML_ROW_LIMIT")

    return parser


async def _dispatch(args: argparse.Namespace):
    try:
        if args.command == "init-db":
            return await run_init_db()
        if args.command == "opportunities":
            return await run_opportunities(args.account, args.names, strict=args.strict)
        if args.command == "contacts":
            return await run_contacts(args.file, strict=args.strict)
        if args.command == "leads":
            return await run_leads(args.names, args.company, row_limit=args.row_limit)
        if args.command == "cases":
            return await run_cases(args.subjects, args.origin, row_limit=args.row_limit)
    finally:
        await dispose_engine()


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s %(message)s",
    )

    try:
        summary = asyncio.run(_dispatch(args))
    except (ReconcileError, PartialUpsertFailure) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1

    if isinstance(summary, dict):
        print(json.dumps(summary, indent=2))
    else:
        print(summary.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
