"""Bulk DML limits.

The per-call row ceiling is read from the environment at call time:
  DML_ROW_LIMIT  maximum rows one bulk insert may carry (default 10000)

Usage:
    from dml_config import get_row_limit
    limit = get_row_limit()
"""
import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_ROW_LIMIT = 10000


def get_row_limit() -> int:
    """Return the configured row ceiling.

    Raises ValueError if DML_ROW_LIMIT is not a positive integer.
    """
    raw = os.environ.get("DML_ROW_LIMIT", str(DEFAULT_ROW_LIMIT))
    try:
        limit = int(raw)
    except ValueError:
        raise ValueError(f"DML_ROW_LIMIT must be an integer, got {raw!r}") from None
    if limit <= 0:
        raise ValueError(f"DML_ROW_LIMIT must be positive, got {limit}")
    return limit
