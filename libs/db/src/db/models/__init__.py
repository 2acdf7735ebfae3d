"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the finance tracker models used by ``statement_import``.
"""

from .finance import Base, FtCategory, FtTransaction

__all__ = [
    "Base",
    "FtCategory",
    "FtTransaction",
]
