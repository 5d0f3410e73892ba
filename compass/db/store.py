"""
App data persistence.

The CLI loads the whole document, runs the pure study engines on it and
saves it back. Nothing in compass.core or compass.study touches storage.
"""

from __future__ import annotations

from typing import Protocol

from loguru import logger
from pydantic import ValidationError
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from compass.core.errors import StorageError
from compass.core.models import AppData
from compass.db.database import create_db_engine, session_scope
from compass.db.models import AppState
from compass.db.schemas import SCHEMA_VERSION, AppDataDocument


class AppDataRepository(Protocol):
    """Anything that can load and save the full app data document."""

    def load_all(self) -> AppData: ...

    def save_all(self, data: AppData) -> None: ...


class AppDataStore:
    """SQLAlchemy-backed repository storing the document as one JSON row."""

    def __init__(self, engine: Engine, key: str = "app-data"):
        self.engine = engine
        self.key = key

    @classmethod
    def from_url(cls, database_url: str, key: str = "app-data") -> AppDataStore:
        try:
            engine = create_db_engine(database_url)
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot open database {database_url}: {e}") from e
        return cls(engine, key)

    @classmethod
    def from_settings(cls, settings) -> AppDataStore:
        return cls.from_url(settings.database_url, settings.app_state_key)

    def load_all(self) -> AppData:
        """Load the document; a missing row yields empty app data."""
        try:
            with session_scope(self.engine) as session:
                row = session.get(AppState, self.key)
                raw = dict(row.document) if row is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load app data: {e}") from e

        if raw is None:
            logger.info("No stored app data under '{}', starting empty", self.key)
            return AppData()

        try:
            document = AppDataDocument.model_validate(raw)
        except ValidationError as e:
            raise StorageError(f"Stored app data is invalid: {e}") from e

        data = document.to_domain()
        logger.debug(
            "Loaded {} subjects and {} sessions from '{}'",
            len(data.subjects),
            len(data.timer_sessions),
            self.key,
        )
        return data

    def save_all(self, data: AppData) -> None:
        """Replace the stored document with ``data``."""
        try:
            payload = AppDataDocument.from_domain(data).model_dump(mode="json", by_alias=True)
        except ValidationError as e:
            raise StorageError(f"App data cannot be serialized: {e}") from e

        try:
            with session_scope(self.engine) as session:
                row = session.get(AppState, self.key)
                if row is None:
                    session.add(AppState(key=self.key, document=payload, schema_version=SCHEMA_VERSION))
                else:
                    row.document = payload
                    row.schema_version = SCHEMA_VERSION
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save app data: {e}") from e

        logger.debug("Saved app data under '{}'", self.key)
