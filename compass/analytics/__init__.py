"""Dashboard-level analytics built on the study engines."""

from compass.analytics.facade import AnalyticsFacade, Dashboard, MemoryOverviewEntry, NextExam

__all__ = ["AnalyticsFacade", "Dashboard", "MemoryOverviewEntry", "NextExam"]
