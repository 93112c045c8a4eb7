"""Database package for the CRM reconciliation store."""
from db.connection import (
    build_engine,
    dispose_engine,
    get_db,
    get_engine,
    get_sessionmaker,
    make_sessionmaker,
)

__all__ = [
    "build_engine",
    "make_sessionmaker",
    "get_engine",
    "get_sessionmaker",
    "get_db",
    "dispose_engine",
]
