"""
Services package for business logic.
"""

from .progress_service import ProgressService, StartTestResult
from .session_directory import SessionDirectory

__all__ = [
    "ProgressService",
    "StartTestResult",
    "SessionDirectory",
]
