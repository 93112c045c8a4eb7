"""Relational upsert reconcilers and bulk DML helpers.

- opportunities: OpportunityReconciler (one opportunity per name on one account)
- contacts: ContactAccountReconciler (one account per contact last name)
- bulk: insert_and_delete_leads, insert_and_delete_cases (row ceiling checked)
"""
from .bulk import check_row_limit, insert_and_delete_cases, insert_and_delete_leads
from .contacts import ContactAccountReconciler, ContactReconcileResult
from .errors import AccountResolutionError, ReconcileError, ResourceLimitExceeded
from .opportunities import OpportunityReconciler, OpportunityReconcileResult

__all__ = [
    "OpportunityReconciler", "OpportunityReconcileResult",
    "ContactAccountReconciler", "ContactReconcileResult",
    "insert_and_delete_leads", "insert_and_delete_cases", "check_row_limit",
    "ReconcileError", "ResourceLimitExceeded", "AccountResolutionError",
]
