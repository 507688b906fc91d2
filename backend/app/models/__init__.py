"""
Models package for the Syntegra backend.
"""
from .base import Base, async_engine, AsyncSessionLocal, get_db
from .models import (
    User,
    PsychometricTest,
    AssessmentSession,
    SessionModule,
    SessionParticipant,
    ParticipantTestProgress,
    ModuleType,
    CatalogStatus,
    SessionStatus,
    ParticipantStatus,
    ProgressStatus,
)

__all__ = [
    "Base",
    "async_engine",
    "AsyncSessionLocal",
    "get_db",
    "User",
    "PsychometricTest",
    "AssessmentSession",
    "SessionModule",
    "SessionParticipant",
    "ParticipantTestProgress",
    "ModuleType",
    "CatalogStatus",
    "SessionStatus",
    "ParticipantStatus",
    "ProgressStatus",
]
