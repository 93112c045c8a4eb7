"""Bulk store contract and its SQLAlchemy adapter.

The reconcilers only talk to a Store: query by equality / set membership,
upsert (with per-record failures), insert and delete, all batched.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Collection, Iterable, Optional, Protocol

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import History, set_committed_value

from db.models import Base

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def _column(entity_type: type[Base], name: str):
    if name not in sa_inspect(entity_type).columns:
        raise ValueError(f"{entity_type.__name__} has no field {name!r}")
    return getattr(entity_type, name)


@dataclass(frozen=True)
class Eq:
    """field == value"""

    field: str
    value: Any

    def clause(self, entity_type: type[Base]):
        return _column(entity_type, self.field) == self.value


@dataclass(frozen=True)
class In:
    """field IN values. An empty collection matches nothing."""

    field: str
    values: Collection[Any]

    def clause(self, entity_type: type[Base]):
        return _column(entity_type, self.field).in_(list(self.values))


Predicate = Eq | In


# ---------------------------------------------------------------------------
# Attribute snapshots
# ---------------------------------------------------------------------------
#
# Rolling back a savepoint expunges records that became pending inside it and
# expires the persistent ones it touched, dropping their unflushed changes.
# A snapshot of the column histories lets a failed batch be replayed as-is.


def _snapshot(record: Base) -> dict[str, History]:
    state = sa_inspect(record)
    return {
        attr.key: state.attrs[attr.key].history
        for attr in state.mapper.column_attrs
        if attr.key not in state.unloaded
    }


def _restore(record: Base, snapshot: dict[str, History]) -> None:
    state = sa_inspect(record)
    if state.key is None:
        # Transient again: clear anything the failed flush generated.
        for attr in state.mapper.column_attrs:
            if attr.key not in snapshot and attr.key not in state.unloaded:
                setattr(record, attr.key, None)
        for key, history in snapshot.items():
            setattr(record, key, (history.added or history.unchanged or [None])[0])
        return

    for key, history in snapshot.items():
        if history.added:
            if history.deleted:
                set_committed_value(record, key, history.deleted[0])
            setattr(record, key, history.added[0])
        elif history.unchanged:
            set_committed_value(record, key, history.unchanged[0])


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class RecordFailure:
    record: Base
    label: str
    reason: str


class PartialUpsertFailure(Exception):
    """Some records of an upsert batch were rejected by the store."""

    def __init__(self, failures: list[RecordFailure]):
        self.failures = failures
        labels = ", ".join(f.label for f in failures[:5])
        more = f" (+{len(failures) - 5} more)" if len(failures) > 5 else ""
        super().__init__(f"{len(failures)} record(s) failed to upsert: {labels}{more}")


@dataclass
class UpsertResult:
    created: list[Base] = field(default_factory=list)
    updated: list[Base] = field(default_factory=list)
    failed: list[RecordFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> list[Base]:
        return self.created + self.updated

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_for_failures(self) -> None:
        """Raise PartialUpsertFailure if any record failed."""
        if self.failed:
            raise PartialUpsertFailure(self.failed)


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


class Store(Protocol):
    async def query(
        self,
        entity_type: type[Base],
        *predicates: Predicate,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Any]: ...

    async def upsert(self, records: Iterable[Base]) -> UpsertResult: ...

    async def insert(self, records: Iterable[Base]) -> list[Any]: ...

    async def delete(self, records: Iterable[Base]) -> None: ...


# ---------------------------------------------------------------------------
# SQLAlchemy adapter
# ---------------------------------------------------------------------------


class SqlStore:
    """Store backed by an AsyncSession.

    The caller owns the session and its transaction (see db.get_db()).
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def query(
        self,
        entity_type: type[Base],
        *predicates: Predicate,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Any]:
        """Return records matching every predicate.

        order_by="created_at" gives oldest first; ties fall back to id.
        """
        stmt = select(entity_type)
        for predicate in predicates:
            stmt = stmt.where(predicate.clause(entity_type))
        if order_by is not None:
            stmt = stmt.order_by(_column(entity_type, order_by), entity_type.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def upsert(self, records: Iterable[Base]) -> UpsertResult:
        """Create or update records, matching on id.

        The whole batch is flushed in one savepoint. If that flush hits an
        integrity violation the savepoint is rolled back and the batch is
        written again with one savepoint per record, so the rejected records
        end up in UpsertResult.failed and the rest are saved. Any other error
        propagates.

        New records get their id on the same object. A record that carries
        an id but is not attached to this session is merged: the result (or
        its RecordFailure) then holds the session's copy, not the object
        passed in, and the merge costs one SELECT per such record.
        """
        records = list(records)
        if not records:
            return UpsertResult()

        labels = [repr(record) for record in records]
        snapshots = [_snapshot(record) for record in records]
        try:
            async with self.session.begin_nested():
                staged = [await self._stage(record) for record in records]
                await self.session.flush()
        except IntegrityError as exc:
            logger.debug(
                "Batch of %d rejected (%s), retrying record by record",
                len(records), exc.orig,
            )
            for record, snapshot in zip(records, snapshots):
                _restore(record, snapshot)
            result = await self._upsert_each(records, labels)
        else:
            result = UpsertResult()
            for record, created in staged:
                (result.created if created else result.updated).append(record)

        logger.debug(
            "Upsert: %d created, %d updated, %d failed",
            len(result.created), len(result.updated), len(result.failed),
        )
        return result

    async def _stage(self, record: Base) -> tuple[Base, bool]:
        if record not in self.session and record.id is not None:
            record = await self.session.merge(record)
        else:
            self.session.add(record)
        return record, sa_inspect(record).pending

    async def _upsert_each(self, records: list[Base], labels: list[str]) -> UpsertResult:
        result = UpsertResult()
        for record, label in zip(records, labels):
            try:
                async with self.session.begin_nested():
                    record, created = await self._stage(record)
                    await self.session.flush()
            except IntegrityError as exc:
                reason = str(exc.orig) if exc.orig is not None else str(exc)
                result.failed.append(RecordFailure(record, label, reason))
                continue
            if created:
                result.created.append(record)
            else:
                result.updated.append(record)
        return result

    async def insert(self, records: Iterable[Base]) -> list[Any]:
        """Insert all records in one flush. All-or-nothing."""
        records = list(records)
        self.session.add_all(records)
        await self.session.flush()
        return records

    async def delete(self, records: Iterable[Base]) -> None:
        """Delete all records in one flush. All-or-nothing."""
        for record in records:
            await self.session.delete(record)
        await self.session.flush()
