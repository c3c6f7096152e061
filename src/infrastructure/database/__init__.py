"""
Relational persistence (SQLAlchemy).

- client: engine and session factory
- tables: ORM rows
- repositories: row <-> domain model translation
- unit_of_work: transaction boundary and per-coach locking
"""

from .client import Database, DatabaseConnectionError, connect
from .unit_of_work import SqlAlchemyUnitOfWork

__all__ = ["Database", "DatabaseConnectionError", "connect", "SqlAlchemyUnitOfWork"]
