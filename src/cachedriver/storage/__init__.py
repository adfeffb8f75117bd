"""
Storage layer for the SQLite cache driver.

This package wraps the embedded database:
- StorageHandle: connection and file lifecycle with corruption recovery
- PragmaProfile: version-aware construct/destruct tuning
- PreparedStatement / StatementSet: reusable parameterized statements
- TransactionEnvelope: one transaction per handle lifetime
"""

from cachedriver.storage.handle import StorageHandle, remove_database_files
from cachedriver.storage.pragmas import PragmaPhase, PragmaProfile, default_pragmas
from cachedriver.storage.statements import PreparedStatement, StatementSet
from cachedriver.storage.transaction import TransactionEnvelope

__all__ = [
    "PragmaPhase",
    "PragmaProfile",
    "PreparedStatement",
    "StatementSet",
    "StorageHandle",
    "TransactionEnvelope",
    "default_pragmas",
    "remove_database_files",
]
