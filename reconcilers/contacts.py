"""Contact → account reconciliation by last name."""
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from db.models import Account, Contact
from db.store import In, RecordFailure, Store, UpsertResult

logger = logging.getLogger(__name__)


def eligible_last_name(contact: Contact) -> Optional[str]:
    """Return the contact's last name, or None if it is missing or blank."""
    last_name = contact.last_name
    if last_name is None or not last_name.strip():
        return None
    return last_name


@dataclass
class ContactReconcileResult:
    created_accounts: list[Account] = field(default_factory=list)
    failed_accounts: list[RecordFailure] = field(default_factory=list)
    skipped: list[Contact] = field(default_factory=list)
    unresolved: list[Contact] = field(default_factory=list)
    contacts: UpsertResult = field(default_factory=UpsertResult)

    @property
    def linked(self) -> list[Contact]:
        return self.contacts.succeeded


class ContactAccountReconciler:
    """Give every contact an account named after its last name.

    One query for existing accounts, one upsert for the missing ones and one
    upsert for the contacts, however many contacts share a name.
    """

    def __init__(self, store: Store):
        self.store = store

    async def reconcile(self, contacts: Iterable[Contact]) -> ContactReconcileResult:
        outcome = ContactReconcileResult()

        eligible: list[tuple[Contact, str]] = []
        seen: set[int] = set()
        for contact in contacts:
            # The same object passed twice is one contact.
            if id(contact) in seen:
                continue
            seen.add(id(contact))
            last_name = eligible_last_name(contact)
            if last_name is None:
                outcome.skipped.append(contact)
            else:
                eligible.append((contact, last_name))

        if outcome.skipped:
            logger.warning("Skipped %d contact(s) without a last name", len(outcome.skipped))
        if not eligible:
            return outcome

        names = list(dict.fromkeys(last_name for _, last_name in eligible))

        accounts: dict[str, Account] = {}
        for account in await self.store.query(
            Account, In("name", names), order_by="created_at"
        ):
            accounts.setdefault(account.name, account)

        missing = [Account(name=name) for name in names if name not in accounts]
        if missing:
            created = await self.store.upsert(missing)
            for account in created.succeeded:
                accounts[account.name] = account
            for failure in created.failed:
                logger.warning("Account %s not created: %s", failure.label, failure.reason)
            outcome.created_accounts = created.succeeded
            outcome.failed_accounts = created.failed
            logger.info("Created %d account(s) from contact last names", len(created.succeeded))

        batch = []
        for contact, last_name in eligible:
            account = accounts.get(last_name)
            if account is None:
                outcome.unresolved.append(contact)
                continue
            contact.account_id = account.id
            batch.append(contact)

        if outcome.unresolved:
            logger.warning(
                "Left %d contact(s) unlinked: account could not be resolved",
                len(outcome.unresolved),
            )

        if batch:
            outcome.contacts = await self.store.upsert(batch)
            for failure in outcome.contacts.failed:
                logger.warning("Contact %s not saved: %s", failure.label, failure.reason)
            logger.info("Linked %d contact(s) to accounts", len(outcome.contacts.succeeded))
        return outcome
