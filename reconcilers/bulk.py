"""Bulk insert-then-delete round trips for leads and cases.

Both helpers check the row ceiling (dml_config.get_row_limit(), or an
explicit row_limit) before touching the store.
"""
import logging
import uuid
from typing import Iterable, Optional

from db.models import Base, Case, Lead
from db.store import Store
from dml_config import get_row_limit
from reconcilers.errors import ResourceLimitExceeded

logger = logging.getLogger(__name__)


def check_row_limit(requested: int, row_limit: Optional[int] = None, operation: str = "insert") -> int:
    """Raise ResourceLimitExceeded if requested rows exceed the ceiling."""
    limit = row_limit if row_limit is not None else get_row_limit()
    if requested > limit:
        raise ResourceLimitExceeded(requested, limit, operation)
    return limit


async def _insert_and_delete(
    store: Store, records: list[Base], row_limit: Optional[int]
) -> list[uuid.UUID]:
    check_row_limit(len(records), row_limit)

    inserted = await store.insert(records)
    ids = [record.id for record in inserted]
    await store.delete(inserted)
    return ids


async def insert_and_delete_leads(
    store: Store,
    last_names: Iterable[str],
    company: str = "Acme Corp",
    row_limit: Optional[int] = None,
) -> list[uuid.UUID]:
    """Insert one lead per last name, then delete them all.

    Returns the ids the leads had while they existed.
    """
    leads = [Lead(last_name=name, company=company) for name in last_names]
    ids = await _insert_and_delete(store, leads, row_limit)
    logger.info("Inserted and deleted %d lead(s)", len(ids))
    return ids


async def insert_and_delete_cases(
    store: Store,
    subjects: Iterable[str],
    origin: str = "Web",
    row_limit: Optional[int] = None,
) -> list[uuid.UUID]:
    """Insert one case per subject, then delete them all."""
    cases = [Case(subject=subject, origin=origin) for subject in subjects]
    ids = await _insert_and_delete(store, cases, row_limit)
    logger.info("Inserted and deleted %d case(s)", len(ids))
    return ids
