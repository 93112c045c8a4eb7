"""Opportunity reconciliation — one opportunity per name, all on one account."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable

from dateutil.relativedelta import relativedelta

from db.models import Account, Opportunity
from db.store import Eq, In, Store, UpsertResult
from reconcilers.errors import AccountResolutionError

logger = logging.getLogger(__name__)

DEFAULT_STAGE = "Qualification"
DEFAULT_AMOUNT = Decimal("50000")
CLOSE_IN_MONTHS = 3


@dataclass
class OpportunityReconcileResult:
    account: Account
    account_created: bool
    opportunities: UpsertResult


class OpportunityReconciler:
    """Link a batch of opportunity names to a single account.

    Store round trips per call: account query, account upsert, opportunity
    query and opportunity upsert (the last two only when names were given).
    """

    def __init__(self, store: Store):
        self.store = store

    async def reconcile(
        self, account_name: str, opportunity_names: Iterable[str]
    ) -> OpportunityReconcileResult:
        names = list(dict.fromkeys(opportunity_names))

        account, account_created = await self._resolve_account(account_name)

        if not names:
            logger.info("No opportunity names for account %r", account_name)
            return OpportunityReconcileResult(account, account_created, UpsertResult())

        # The account filter keeps same-named deals on other accounts out.
        existing: dict[str, Opportunity] = {}
        for opp in await self.store.query(
            Opportunity,
            In("name", names),
            Eq("account_id", account.id),
            order_by="created_at",
        ):
            existing.setdefault(opp.name, opp)

        close_date = datetime.now(timezone.utc).date() + relativedelta(months=CLOSE_IN_MONTHS)
        batch = []
        for name in names:
            opp = existing.get(name) or Opportunity(name=name)
            opp.stage = DEFAULT_STAGE
            opp.close_date = close_date
            opp.amount = DEFAULT_AMOUNT
            opp.account_id = account.id
            batch.append(opp)

        result = await self.store.upsert(batch)
        for failure in result.failed:
            logger.warning("Opportunity %s not saved: %s", failure.label, failure.reason)
        logger.info(
            "Account %r: %d opportunities created, %d updated",
            account_name, len(result.created), len(result.updated),
        )
        return OpportunityReconcileResult(account, account_created, result)

    async def _resolve_account(self, account_name: str) -> tuple[Account, bool]:
        """Oldest account with this name, or a new one. Always upserted."""
        matches = await self.store.query(
            Account, Eq("name", account_name), order_by="created_at", limit=1
        )
        account = matches[0] if matches else Account(name=account_name)

        result = await self.store.upsert([account])
        if not result.ok:
            raise AccountResolutionError(account_name, result.failed[0].reason)
        if result.created:
            logger.info("Created account %r", account_name)
        return result.succeeded[0], bool(result.created)
