"""
Application state table.

The whole study document (subjects, topics, sessions, goals) lives in one
JSON row keyed by name, matching how the app loads and saves everything at
once.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class AppState(Base):
    """Serialized app data document."""

    __tablename__ = "app_state"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    schema_version: Mapped[int] = mapped_column(Integer, default=1)
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())
