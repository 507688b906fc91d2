"""
Pydantic schemas for participant test-progress endpoints.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from app.models.models import ModuleType, ProgressStatus


class TestSummary(BaseModel):
    """Display fields of the test definition, read from the live catalog."""

    id: int = Field(..., description="Test ID")
    name: str = Field(..., description="Test name")
    category: str = Field(..., description="Test category (e.g. wais, mbti)")
    module_type: ModuleType = Field(..., description="Test family")
    time_limit_minutes: int = Field(..., description="Current catalog time limit")
    total_questions: int = Field(..., description="Current catalog question count")
    icon: Optional[str] = Field(None, description="Card icon")
    card_color: Optional[str] = Field(None, description="Card color")

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class ProgressResponse(BaseModel):
    """
    A progress record plus display fields computed at response time.

    ``id`` is None for not-started placeholders in the bulk listing.
    """

    id: Optional[int] = Field(None, description="Progress record ID")
    participant_id: int = Field(..., description="Session participant ID")
    session_id: int = Field(..., description="Session ID")
    test_id: int = Field(..., description="Test ID")
    user_id: Optional[int] = Field(None, description="User ID of the participant")
    status: ProgressStatus = Field(..., description="Progress status")
    started_at: Optional[datetime] = Field(None, description="Start timestamp")
    completed_at: Optional[datetime] = Field(None, description="Completion timestamp")
    expected_completion_at: Optional[datetime] = Field(
        None, description="Deadline computed at start"
    )
    time_limit_minutes: int = Field(..., description="Time limit snapshot")
    answered_questions: int = Field(0, description="Questions answered so far")
    total_questions: int = Field(0, description="Question count snapshot")
    time_spent_seconds: int = Field(0, description="Time spent on the test")
    is_auto_completed: bool = Field(
        False, description="True if the test was completed by time expiry"
    )
    last_activity_at: Optional[datetime] = Field(
        None, description="Last participant-driven change"
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    time_remaining_seconds: int = Field(
        ..., description="Whole seconds until the deadline (0 once terminal)"
    )
    progress_percentage: int = Field(..., description="Answered percentage, 0-100")
    is_time_expired: bool = Field(..., description="True once the deadline passed")

    test: Optional[TestSummary] = Field(None, description="Test display info")


class TestProgressResponse(BaseModel):
    """Single progress record response."""

    progress: ProgressResponse
    message: str = Field(..., description="Human-readable outcome")


class ParticipantProgressListResponse(BaseModel):
    """Progress of one participant across every test of a session."""

    session_id: int
    participant_id: int
    progress: List[ProgressResponse] = Field(
        ..., description="One entry per session module, in sequence order"
    )
    total_tests: int
    completed_count: int = Field(
        ..., description="Tests completed or auto-completed"
    )
    in_progress_count: int
    not_started_count: int
    message: str


class ProgressUpdateRequest(BaseModel):
    """
    Periodic progress report from the test client.

    Ranges are checked by the progress service so that violations come back as
    structured validation errors with the offending field.
    """

    answered_questions: Optional[int] = Field(
        None, description="Questions answered so far"
    )
    time_spent_seconds: Optional[int] = Field(
        None, description="Client-measured time spent in seconds"
    )


class CompleteTestRequest(BaseModel):
    """Optional final answered-question count."""

    answered_questions: Optional[int] = Field(
        None, description="Final answered-question count"
    )
