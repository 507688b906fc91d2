"""
Participant test-progress endpoints.

All routes are scoped to a session participant:
/sessions/{session_id}/participants/{participant_id}/test-progress/...

Domain errors raised by ProgressService propagate to the ProgressError handler
registered in app.main, which maps them to 404/400/409/422/503.
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import get_db
from app.schemas.progress import (
    CompleteTestRequest,
    ParticipantProgressListResponse,
    ProgressUpdateRequest,
    TestProgressResponse,
)
from app.services.progress_service import ProgressService

router = APIRouter()

PROGRESS_PATH = "/{session_id}/participants/{participant_id}/test-progress"


def get_progress_service(db: AsyncSession = Depends(get_db)) -> ProgressService:
    return ProgressService(db)


@router.get(PROGRESS_PATH, response_model=ParticipantProgressListResponse)
async def list_participant_progress(
    session_id: int,
    participant_id: int,
    service: ProgressService = Depends(get_progress_service),
):
    """
    Progress of a participant across every test in the session.

    Tests the participant has not started are listed as ``not_started``.
    Overdue in-progress tests are auto-completed before the response is built.
    """
    return await service.list_participant_progress(session_id, participant_id)


@router.get(f"{PROGRESS_PATH}/{{test_id}}", response_model=TestProgressResponse)
async def get_test_progress(
    session_id: int,
    participant_id: int,
    test_id: int,
    service: ProgressService = Depends(get_progress_service),
):
    """Progress of a participant on one test."""
    return await service.get_test_progress(session_id, participant_id, test_id)


@router.post(
    f"{PROGRESS_PATH}/{{test_id}}/start",
    response_model=TestProgressResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_test(
    session_id: int,
    participant_id: int,
    test_id: int,
    response: Response,
    service: ProgressService = Depends(get_progress_service),
):
    """
    Start a test for a participant.

    Returns 201 when the attempt is created and 200 with the existing attempt
    when it was already started.
    """
    result = await service.start_test(session_id, participant_id, test_id)
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return result.response


@router.put(f"{PROGRESS_PATH}/{{test_id}}", response_model=TestProgressResponse)
async def update_test_progress(
    session_id: int,
    participant_id: int,
    test_id: int,
    payload: ProgressUpdateRequest,
    service: ProgressService = Depends(get_progress_service),
):
    """
    Report answered questions and time spent.

    An update received after the deadline auto-completes the test.
    """
    return await service.update_progress(
        session_id,
        participant_id,
        test_id,
        answered_questions=payload.answered_questions,
        time_spent_seconds=payload.time_spent_seconds,
    )


@router.post(
    f"{PROGRESS_PATH}/{{test_id}}/complete", response_model=TestProgressResponse
)
async def complete_test(
    session_id: int,
    participant_id: int,
    test_id: int,
    payload: Optional[CompleteTestRequest] = Body(default=None),
    service: ProgressService = Depends(get_progress_service),
):
    """
    Complete a test.

    A completion received after the deadline is recorded as an
    auto-completion at the deadline.
    """
    answered_questions = payload.answered_questions if payload is not None else None
    return await service.complete_test(
        session_id, participant_id, test_id, answered_questions=answered_questions
    )
