"""SQLAlchemy 2.0 ORM models for the CRM reconciliation store.

Covers 5 tables in the crm schema:
  accounts, contacts, opportunities, leads, cases
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Shared base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Opportunity stage values used in the CHECK constraint
# ---------------------------------------------------------------------------

OPPORTUNITY_STAGES = (
    "Prospecting",
    "Qualification",
    "Needs Analysis",
    "Value Proposition",
    "Id. Decision Makers",
    "Perception Analysis",
    "Proposal/Price Quote",
    "Negotiation/Review",
    "Closed Won",
    "Closed Lost",
)

_OPPORTUNITY_STAGE_CHECK = (
    "stage IN ("
    + ", ".join(f"'{s}'" for s in OPPORTUNITY_STAGES)
    + ")"
)


# ===========================================================================
# Schema: crm
# ===========================================================================


class Account(Base):
    """crm.accounts — company record; name is the reconciliation key."""

    __tablename__ = "accounts"
    __table_args__ = {"schema": "crm"}

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    industry: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    contacts: Mapped[list["Contact"]] = relationship(
        "Contact", back_populates="account"
    )
    opportunities: Mapped[list["Opportunity"]] = relationship(
        "Opportunity", back_populates="account"
    )
    cases: Mapped[list["Case"]] = relationship("Case", back_populates="account")

    def __repr__(self) -> str:
        return f"<Account {self.name!r} id={self.id}>"


class Contact(Base):
    """crm.contacts — people, linked to an account by last name."""

    __tablename__ = "contacts"
    __table_args__ = {"schema": "crm"}

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("crm.accounts.id"),
        nullable=True,
    )
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    # Relationship
    account: Mapped[Optional["Account"]] = relationship(
        "Account", back_populates="contacts"
    )

    def __repr__(self) -> str:
        return f"<Contact {self.last_name!r} id={self.id}>"


class Opportunity(Base):
    """crm.opportunities — deals; name is unique per account by reconciliation."""

    __tablename__ = "opportunities"
    __table_args__ = (
        CheckConstraint(
            _OPPORTUNITY_STAGE_CHECK,
            name="ck_opportunity_stage",
        ),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("crm.accounts.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    stage: Mapped[str] = mapped_column(Text, nullable=False)
    close_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    # Relationship
    account: Mapped["Account"] = relationship(
        "Account", back_populates="opportunities"
    )

    def __repr__(self) -> str:
        return f"<Opportunity {self.name!r} stage={self.stage!r} id={self.id}>"


class Lead(Base):
    """crm.leads — unqualified prospects (bulk insert/delete demos only)."""

    __tablename__ = "leads"
    __table_args__ = {"schema": "crm"}

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    company: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default="Open - Not Contacted"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )


class Case(Base):
    """crm.cases — support cases (bulk insert/delete demos only)."""

    __tablename__ = "cases"
    __table_args__ = (
        CheckConstraint(
            "status IN ('New', 'Working', 'Escalated', 'Closed')",
            name="ck_case_status",
        ),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("crm.accounts.id"),
        nullable=True,
    )
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="New")
    origin: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default="Web")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    # Relationship
    account: Mapped[Optional["Account"]] = relationship(
        "Account", back_populates="cases"
    )
