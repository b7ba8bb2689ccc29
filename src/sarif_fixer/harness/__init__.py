"""Session harness -- analysis session snapshot and its store."""

from .session import AnalysisSession, SessionStore

__all__ = ["AnalysisSession", "SessionStore"]
