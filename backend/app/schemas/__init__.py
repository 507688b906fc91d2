"""
Pydantic schemas for request/response validation.
"""
from .progress import (
    TestSummary,
    ProgressResponse,
    TestProgressResponse,
    ParticipantProgressListResponse,
    ProgressUpdateRequest,
    CompleteTestRequest,
)

__all__ = [
    "TestSummary",
    "ProgressResponse",
    "TestProgressResponse",
    "ParticipantProgressListResponse",
    "ProgressUpdateRequest",
    "CompleteTestRequest",
]
