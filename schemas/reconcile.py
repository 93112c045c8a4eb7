"""Input and summary schemas for the reconciliation CLI."""
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from db.models import Contact


class ContactIn(BaseModel):
    id: Optional[UUID] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    def to_model(self) -> Contact:
        return Contact(**self.model_dump(exclude_none=True))


class ContactBatchIn(BaseModel):
    contacts: List[ContactIn] = Field(default_factory=list)


class RecordFailureOut(BaseModel):
    record: str
    reason: str


class OpportunitySummary(BaseModel):
    account_id: UUID
    account_name: str
    account_created: bool
    created: List[UUID] = Field(default_factory=list)
    updated: List[UUID] = Field(default_factory=list)
    failed: List[RecordFailureOut] = Field(default_factory=list)


class ContactSummary(BaseModel):
    created_accounts: List[str] = Field(default_factory=list)
    linked: int = 0
    skipped: int = 0
    unresolved: int = 0
    failed: List[RecordFailureOut] = Field(default_factory=list)


class BulkRoundTripSummary(BaseModel):
    entity: str
    inserted_and_deleted: int
    ids: List[UUID] = Field(default_factory=list)
