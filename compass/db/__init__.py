"""
Persistence layer.

- models: SQLAlchemy tables
- schemas: pydantic validation of the stored document
- store: AppDataRepository protocol and the SQLAlchemy-backed AppDataStore
"""

from compass.db.store import AppDataRepository, AppDataStore

__all__ = ["AppDataRepository", "AppDataStore"]
