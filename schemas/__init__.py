from .reconcile import (
    ContactIn,
    ContactBatchIn,
    RecordFailureOut,
    OpportunitySummary,
    ContactSummary,
    BulkRoundTripSummary,
)

__all__ = [
    "ContactIn", "ContactBatchIn", "RecordFailureOut",
    "OpportunitySummary", "ContactSummary", "BulkRoundTripSummary",
]
