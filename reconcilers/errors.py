"""Errors raised by the reconcilers and bulk helpers."""


class ReconcileError(Exception):
    pass


class ResourceLimitExceeded(ReconcileError):
    """A bulk call asked for more rows than the configured ceiling.

    Raised before any store call is made.
    """

    def __init__(self, requested: int, limit: int, operation: str = "insert"):
        self.requested = requested
        self.limit = limit
        self.operation = operation
        super().__init__(
            f"Too many DML rows for {operation}: {requested} requested, limit is {limit}"
        )


class AccountResolutionError(ReconcileError):
    """The target account could not be found or written."""

    def __init__(self, account_name: str, reason: str):
        self.account_name = account_name
        self.reason = reason
        super().__init__(f"Could not resolve account {account_name!r}: {reason}")
