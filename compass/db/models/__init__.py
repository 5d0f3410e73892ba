# SQLAlchemy models
from .app_state import AppState
from .base import Base

__all__ = ["AppState", "Base"]
