"""
Participant test-progress service.

Each public method is one operation callers invoke: it reads the clock once,
resolves the session directory, loads the progress record, runs exactly one
state-machine transition, persists, and builds its response, all inside a
single transaction. Display fields (time remaining, progress percentage,
expiry flag) are computed from persisted state at response time and never
stored.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.datetime_utils import optional_aware, utc_now
from app.core.db_error_handling import handle_db_error
from app.core.error_responses import ErrorMessages
from app.core.progress_errors import (
    ProgressNotFoundError,
    ProgressPreconditionError,
)
from app.core.progress_state import (
    apply_auto_completion,
    apply_completion,
    apply_update,
    is_terminal,
    new_progress_values,
)
from app.core.progress_timing import (
    is_expired,
    progress_percentage,
    remaining_seconds,
)
from app.db import progress_store
from app.models.models import (
    ParticipantTestProgress,
    ProgressStatus,
    PsychometricTest,
    SessionParticipant,
)
from app.schemas.progress import (
    ParticipantProgressListResponse,
    ProgressResponse,
    TestProgressResponse,
    TestSummary,
)
from app.services.session_directory import SessionDirectory

logger = logging.getLogger(__name__)


@dataclass
class StartTestResult:
    """Outcome of start_test; ``created`` is False for an idempotent repeat."""

    response: TestProgressResponse
    created: bool


def build_progress_response(
    record: ParticipantTestProgress,
    test: Optional[PsychometricTest],
    now: datetime,
) -> ProgressResponse:
    """Serialise a record and compute its display fields at ``now``."""
    terminal = is_terminal(record.status)
    if terminal or record.started_at is None:
        time_remaining = 0
        time_expired = bool(record.is_auto_completed)
    else:
        time_remaining = remaining_seconds(
            record.started_at, record.time_limit_minutes, now
        )
        time_expired = is_expired(
            record.started_at, record.time_limit_minutes, now
        )

    return ProgressResponse(
        id=record.id,
        participant_id=record.participant_id,
        session_id=record.session_id,
        test_id=record.test_id,
        user_id=record.user_id,
        status=record.status,
        started_at=optional_aware(record.started_at),
        completed_at=optional_aware(record.completed_at),
        expected_completion_at=optional_aware(record.expected_completion_at),
        time_limit_minutes=record.time_limit_minutes,
        answered_questions=record.answered_questions,
        total_questions=record.total_questions,
        time_spent_seconds=record.time_spent_seconds,
        is_auto_completed=record.is_auto_completed,
        last_activity_at=optional_aware(record.last_activity_at),
        created_at=optional_aware(record.created_at),
        updated_at=optional_aware(record.updated_at),
        time_remaining_seconds=time_remaining,
        progress_percentage=progress_percentage(
            record.answered_questions, record.total_questions
        ),
        is_time_expired=time_expired,
        test=TestSummary.model_validate(test) if test is not None else None,
    )


def build_not_started_response(
    participant: SessionParticipant, test: PsychometricTest
) -> ProgressResponse:
    """Placeholder for a session test the participant has not started."""
    return ProgressResponse(
        id=None,
        participant_id=participant.id,
        session_id=participant.session_id,
        test_id=test.id,
        user_id=participant.user_id,
        status=ProgressStatus.NOT_STARTED,
        time_limit_minutes=test.time_limit_minutes,
        total_questions=test.total_questions,
        time_remaining_seconds=test.time_limit_minutes * 60,
        progress_percentage=0,
        is_time_expired=False,
        test=TestSummary.model_validate(test),
    )


def _log_extra(record: ParticipantTestProgress) -> Dict[str, object]:
    status = record.status
    return {
        "participant_id": record.participant_id,
        "session_id": record.session_id,
        "test_id": record.test_id,
        "progress_status": status.value if status is not None else None,
    }


class ProgressService:
    """Start, update, complete and read participant test progress."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.directory = SessionDirectory(db)

    # ------------------------------------------------------------------
    # Resolution helpers
    # ------------------------------------------------------------------

    async def _require_session(self, session_id: int) -> None:
        if not await self.directory.session_exists(session_id):
            raise ProgressNotFoundError(
                "SESSION_NOT_FOUND",
                ErrorMessages.session_not_found(session_id),
                field="session_id",
            )

    async def _require_participant(
        self, session_id: int, participant_id: int
    ) -> SessionParticipant:
        """Participant registered in this session, or PARTICIPANT_NOT_FOUND."""
        await self._require_session(session_id)
        participant = await self.directory.get_participant(participant_id)
        if participant is None or participant.session_id != session_id:
            raise ProgressNotFoundError(
                "PARTICIPANT_NOT_FOUND",
                ErrorMessages.participant_not_found(participant_id, session_id),
                field="participant_id",
            )
        return participant

    async def _require_record(
        self, participant_id: int, session_id: int, test_id: int
    ) -> ParticipantTestProgress:
        record = await progress_store.get_progress(
            self.db, participant_id, session_id, test_id, for_update=True
        )
        if record is None:
            raise ProgressNotFoundError(
                "PROGRESS_NOT_FOUND",
                ErrorMessages.progress_not_found(test_id, participant_id),
                field="test_id",
            )
        return record

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def start_test(
        self, session_id: int, participant_id: int, test_id: int
    ) -> StartTestResult:
        """
        Start a test, or return the existing attempt unchanged.

        Raises:
            ProgressNotFoundError: Unknown session, participant or test.
            ProgressPreconditionError: Participant or test exists but is not
                linked to this session.
        """
        now = utc_now()
        async with handle_db_error(self.db, "start test"):
            await self._require_session(session_id)

            participant = await self.directory.get_participant(participant_id)
            if participant is None:
                raise ProgressNotFoundError(
                    "PARTICIPANT_NOT_FOUND",
                    ErrorMessages.participant_not_found(participant_id, session_id),
                    field="participant_id",
                )
            if participant.session_id != session_id:
                raise ProgressPreconditionError(
                    "PARTICIPANT_NOT_IN_SESSION",
                    ErrorMessages.participant_not_in_session(participant_id, session_id),
                    field="participant_id",
                )

            test = await self.directory.get_session_test(session_id, test_id)
            if test is None:
                if not await self.directory.test_exists(test_id):
                    raise ProgressNotFoundError(
                        "TEST_NOT_FOUND",
                        ErrorMessages.test_not_found(test_id),
                        field="test_id",
                    )
                raise ProgressPreconditionError(
                    "TEST_NOT_IN_SESSION",
                    ErrorMessages.test_not_in_session(test_id, session_id),
                    field="test_id",
                )

            record, created = await progress_store.create_if_absent(
                self.db,
                new_progress_values(
                    participant_id=participant.id,
                    session_id=session_id,
                    user_id=participant.user_id,
                    test_id=test.id,
                    time_limit_minutes=test.time_limit_minutes,
                    total_questions=test.total_questions,
                    now=now,
                ),
            )

            expired_now = False
            if not created:
                expired_now = apply_auto_completion(record, now)
            await self.db.commit()

            progress = build_progress_response(record, test, now)

        if created:
            logger.info(
                f"Participant {participant_id} started test {test_id} "
                f"in session {session_id}",
                extra=_log_extra(record),
            )
            message = ErrorMessages.TEST_STARTED
        else:
            if expired_now:
                logger.info(
                    f"Progress {record.id} auto-completed on repeated start",
                    extra=_log_extra(record),
                )
            message = ErrorMessages.TEST_ALREADY_STARTED

        return StartTestResult(
            response=TestProgressResponse(progress=progress, message=message),
            created=created,
        )

    async def update_progress(
        self,
        session_id: int,
        participant_id: int,
        test_id: int,
        answered_questions: Optional[int] = None,
        time_spent_seconds: Optional[int] = None,
    ) -> TestProgressResponse:
        """
        Record answered questions and time spent for an in-progress test.

        Past the deadline the update is applied as an auto-completion.
        """
        now = utc_now()
        async with handle_db_error(self.db, "update test progress"):
            await self._require_participant(session_id, participant_id)
            record = await self._require_record(participant_id, session_id, test_id)

            auto_completed = apply_update(
                record,
                now,
                answered_questions=answered_questions,
                time_spent_seconds=time_spent_seconds,
            )
            await self.db.commit()

            test = await self.directory.get_test(test_id)
            progress = build_progress_response(record, test, now)

        if auto_completed:
            logger.info(
                f"Progress {record.id} auto-completed on update after time expiry",
                extra=_log_extra(record),
            )
            message = ErrorMessages.TEST_AUTO_COMPLETED
        else:
            logger.debug(
                f"Progress {record.id} updated: "
                f"{record.answered_questions}/{record.total_questions} answered",
                extra=_log_extra(record),
            )
            message = ErrorMessages.PROGRESS_UPDATED
        return TestProgressResponse(progress=progress, message=message)

    async def complete_test(
        self,
        session_id: int,
        participant_id: int,
        test_id: int,
        answered_questions: Optional[int] = None,
    ) -> TestProgressResponse:
        """
        Complete an in-progress test.

        A completion that arrives after the deadline is recorded as an
        auto-completion at the deadline.
        """
        now = utc_now()
        async with handle_db_error(self.db, "complete test"):
            await self._require_participant(session_id, participant_id)
            record = await self._require_record(participant_id, session_id, test_id)

            auto_completed = apply_completion(
                record, now, answered_questions=answered_questions
            )
            await self.db.commit()

            test = await self.directory.get_test(test_id)
            progress = build_progress_response(record, test, now)

        logger.info(
            f"Progress {record.id} {'auto-completed' if auto_completed else 'completed'} "
            f"after {record.time_spent_seconds}s",
            extra=_log_extra(record),
        )
        message = (
            ErrorMessages.TEST_AUTO_COMPLETED
            if auto_completed
            else ErrorMessages.TEST_COMPLETED
        )
        return TestProgressResponse(progress=progress, message=message)

    async def get_test_progress(
        self, session_id: int, participant_id: int, test_id: int
    ) -> TestProgressResponse:
        """Read one record, auto-completing it first if it is overdue."""
        now = utc_now()
        async with handle_db_error(self.db, "get test progress"):
            await self._require_participant(session_id, participant_id)
            record = await self._require_record(participant_id, session_id, test_id)

            expired_now = apply_auto_completion(record, now)
            await self.db.commit()

            test = await self.directory.get_test(test_id)
            progress = build_progress_response(record, test, now)

        if expired_now:
            logger.info(
                f"Progress {record.id} auto-completed on read after time expiry",
                extra=_log_extra(record),
            )
        return TestProgressResponse(
            progress=progress, message=ErrorMessages.PROGRESS_RETRIEVED
        )

    async def list_participant_progress(
        self, session_id: int, participant_id: int
    ) -> ParticipantProgressListResponse:
        """
        Progress for every test configured in the session, in module order.

        Tests without a record are reported as not-started placeholders.
        """
        now = utc_now()
        async with handle_db_error(self.db, "list participant test progress"):
            participant = await self._require_participant(session_id, participant_id)
            session_tests = await self.directory.list_session_tests(session_id)
            records = await progress_store.list_for_participant(
                self.db, participant_id, session_id, for_update=True
            )

            expired: List[ParticipantTestProgress] = [
                record for record in records if apply_auto_completion(record, now)
            ]
            await self.db.commit()

            by_test = {record.test_id: record for record in records}
            entries: List[ProgressResponse] = []
            for _module, test in session_tests:
                record = by_test.get(test.id)
                if record is None:
                    entries.append(build_not_started_response(participant, test))
                else:
                    entries.append(build_progress_response(record, test, now))

        for record in expired:
            logger.info(
                f"Progress {record.id} auto-completed on listing after time expiry",
                extra=_log_extra(record),
            )

        completed = sum(1 for e in entries if is_terminal(e.status))
        in_progress = sum(1 for e in entries if e.status == ProgressStatus.IN_PROGRESS)
        return ParticipantProgressListResponse(
            session_id=session_id,
            participant_id=participant_id,
            progress=entries,
            total_tests=len(entries),
            completed_count=completed,
            in_progress_count=in_progress,
            not_started_count=len(entries) - completed - in_progress,
            message=ErrorMessages.PROGRESS_LIST_RETRIEVED,
        )

    async def expire_overdue(self, limit: Optional[int] = None) -> int:
        """
        Auto-complete every overdue in-progress record.

        Applies the same transition lazy expiry would, so running it is
        idempotent and never changes what a later read would have reported.

        Returns:
            Number of records auto-completed.
        """
        now = utc_now()
        async with handle_db_error(self.db, "expire overdue test progress"):
            overdue = await progress_store.list_overdue(self.db, now, limit=limit)
            expired = [record for record in overdue if apply_auto_completion(record, now)]
            await self.db.commit()

        for record in expired:
            logger.info(
                f"Progress {record.id} auto-completed by sweep",
                extra=_log_extra(record),
            )
        return len(expired)
