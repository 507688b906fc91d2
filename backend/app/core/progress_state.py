"""
Participant test-progress state machine.

    not_started -> in_progress -> completed
                               -> auto_completed

The functions here apply transitions to a ``ParticipantTestProgress`` instance
in place. They never read a clock or touch the database; the service loads the
record, calls exactly one transition with its ``now``, and persists.

Rules that hold for every transition:

* status only moves forward; a terminal record is never mutated again
* ``completed_at`` is written once, at the terminal transition
* an expiry-driven completion uses the stored ``expected_completion_at`` as
  ``completed_at``, never the moment the expiry was noticed
* ``answered_questions`` stays within ``[0, total_questions]``; out-of-range
  input is rejected before anything on the record changes
"""
from datetime import datetime
from typing import Any, Dict, Optional

from app.core.datetime_utils import ensure_timezone_aware
from app.core.error_responses import ErrorMessages
from app.core.progress_errors import ProgressConflictError, ProgressValidationError
from app.core.progress_timing import (
    elapsed_seconds,
    expected_completion_at,
    is_expired,
)
from app.models.models import ParticipantTestProgress, ProgressStatus

TERMINAL_STATUSES = frozenset(
    {ProgressStatus.COMPLETED, ProgressStatus.AUTO_COMPLETED}
)


def is_terminal(status: Optional[ProgressStatus]) -> bool:
    return status in TERMINAL_STATUSES


def validate_answered_questions(value: Optional[int], total_questions: int) -> None:
    """Reject an answered-question count outside ``[0, total_questions]``."""
    if value is None:
        return
    if value < 0 or value > total_questions:
        raise ProgressValidationError(
            "INVALID_ANSWERED_QUESTIONS",
            ErrorMessages.invalid_answered_questions(total_questions),
            field="answered_questions",
        )


def validate_time_spent(value: Optional[int]) -> None:
    """Reject a negative client-reported time spent."""
    if value is None:
        return
    if value < 0:
        raise ProgressValidationError(
            "INVALID_TIME_SPENT",
            ErrorMessages.NEGATIVE_TIME_SPENT,
            field="time_spent_seconds",
        )


def new_progress_values(
    participant_id: int,
    session_id: int,
    user_id: int,
    test_id: int,
    time_limit_minutes: int,
    total_questions: int,
    now: datetime,
) -> Dict[str, Any]:
    """
    Column values for a record entering ``in_progress``.

    ``time_limit_minutes`` and ``total_questions`` are copied from the test
    definition here and never written again.
    """
    return {
        "participant_id": participant_id,
        "session_id": session_id,
        "user_id": user_id,
        "test_id": test_id,
        "status": ProgressStatus.IN_PROGRESS,
        "started_at": now,
        "expected_completion_at": expected_completion_at(now, time_limit_minutes),
        "time_limit_minutes": time_limit_minutes,
        "total_questions": total_questions,
        "answered_questions": 0,
        "time_spent_seconds": 0,
        "is_auto_completed": False,
        "last_activity_at": now,
        "created_at": now,
        "updated_at": now,
    }


def deadline_of(record: ParticipantTestProgress) -> datetime:
    """Stored deadline of a started record."""
    if record.expected_completion_at is not None:
        return ensure_timezone_aware(record.expected_completion_at)
    return expected_completion_at(record.started_at, record.time_limit_minutes)


def is_overdue(record: ParticipantTestProgress, now: datetime) -> bool:
    """True for an ``in_progress`` record whose deadline has been reached."""
    if record.status != ProgressStatus.IN_PROGRESS or record.started_at is None:
        return False
    return is_expired(record.started_at, record.time_limit_minutes, now)


def _auto_complete(record: ParticipantTestProgress, now: datetime) -> None:
    deadline = deadline_of(record)
    record.status = ProgressStatus.AUTO_COMPLETED
    record.completed_at = deadline
    record.is_auto_completed = True
    record.time_spent_seconds = elapsed_seconds(record.started_at, deadline)
    record.updated_at = now


def apply_auto_completion(record: ParticipantTestProgress, now: datetime) -> bool:
    """
    Lazy expiry: auto-complete an overdue ``in_progress`` record.

    Leaves ``last_activity_at`` alone since no participant action is involved.

    Returns:
        True if the record transitioned, False if nothing changed.
    """
    if not is_overdue(record, now):
        return False
    _auto_complete(record, now)
    return True


def apply_update(
    record: ParticipantTestProgress,
    now: datetime,
    answered_questions: Optional[int] = None,
    time_spent_seconds: Optional[int] = None,
) -> bool:
    """
    Apply a progress update to an ``in_progress`` record.

    Input is validated before anything changes. If the deadline has passed the
    update becomes an auto-completion; the supplied values are still applied
    and a supplied ``time_spent_seconds`` wins over the recomputed one.

    Returns:
        True if the update turned into an auto-completion.

    Raises:
        ProgressConflictError: TEST_ALREADY_COMPLETED for terminal records,
            TEST_NOT_IN_PROGRESS for records that never started.
        ProgressValidationError: Out-of-range input (record unchanged).
    """
    if is_terminal(record.status):
        raise ProgressConflictError(
            "TEST_ALREADY_COMPLETED",
            ErrorMessages.test_already_completed(record.test_id),
        )
    if record.status != ProgressStatus.IN_PROGRESS:
        raise ProgressConflictError(
            "TEST_NOT_IN_PROGRESS",
            ErrorMessages.test_not_in_progress(record.test_id),
        )

    validate_answered_questions(answered_questions, record.total_questions)
    validate_time_spent(time_spent_seconds)

    auto_completed = is_overdue(record, now)
    if auto_completed:
        _auto_complete(record, now)

    if answered_questions is not None:
        record.answered_questions = answered_questions
    if time_spent_seconds is not None:
        record.time_spent_seconds = time_spent_seconds
    record.last_activity_at = now
    record.updated_at = now
    return auto_completed


def apply_completion(
    record: ParticipantTestProgress,
    now: datetime,
    answered_questions: Optional[int] = None,
) -> bool:
    """
    Complete an ``in_progress`` record.

    Past the deadline the outcome is forced to ``auto_completed`` at the
    stored deadline. ``time_spent_seconds`` is always recomputed from
    ``started_at`` to ``completed_at``.

    Returns:
        True if the completion was expiry-driven.

    Raises:
        ProgressConflictError: TEST_ALREADY_COMPLETED for terminal records,
            TEST_NOT_STARTED for records that never started.
        ProgressValidationError: Out-of-range input (record unchanged).
    """
    if is_terminal(record.status):
        raise ProgressConflictError(
            "TEST_ALREADY_COMPLETED",
            ErrorMessages.test_already_completed(record.test_id),
        )
    if record.status != ProgressStatus.IN_PROGRESS or record.started_at is None:
        raise ProgressConflictError(
            "TEST_NOT_STARTED",
            ErrorMessages.test_not_started(record.test_id),
        )

    validate_answered_questions(answered_questions, record.total_questions)

    auto_completed = is_overdue(record, now)
    if auto_completed:
        _auto_complete(record, now)
    else:
        record.status = ProgressStatus.COMPLETED
        record.completed_at = now
        record.is_auto_completed = False
        record.time_spent_seconds = elapsed_seconds(record.started_at, now)

    if answered_questions is not None:
        record.answered_questions = answered_questions
    record.last_activity_at = now
    record.updated_at = now
    return auto_completed
