"""
Tests for the participant test-progress state machine.

Records here are transient ParticipantTestProgress instances; nothing touches
the database.
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.core.progress_errors import ProgressConflictError, ProgressValidationError
from app.core.progress_state import (
    TERMINAL_STATUSES,
    apply_auto_completion,
    apply_completion,
    apply_update,
    is_overdue,
    new_progress_values,
    validate_answered_questions,
    validate_time_spent,
)
from app.models.models import ParticipantTestProgress, ProgressStatus

T0 = datetime(2025, 3, 10, 9, 0, 0, tzinfo=timezone.utc)


def make_record(time_limit_minutes=30, total_questions=20, started=T0):
    """Fresh in_progress record as start_test would create it."""
    return ParticipantTestProgress(
        id=1,
        **new_progress_values(
            participant_id=11,
            session_id=21,
            user_id=31,
            test_id=41,
            time_limit_minutes=time_limit_minutes,
            total_questions=total_questions,
            now=started,
        ),
    )


class TestNewProgressValues:
    """Tests for the values a started record is created with."""

    def test_initial_values(self):
        """Test that a started record snapshots limits and zeroes counters."""
        values = new_progress_values(
            participant_id=1,
            session_id=2,
            user_id=3,
            test_id=4,
            time_limit_minutes=30,
            total_questions=20,
            now=T0,
        )

        assert values["status"] == ProgressStatus.IN_PROGRESS
        assert values["started_at"] == T0
        assert values["expected_completion_at"] == T0 + timedelta(minutes=30)
        assert values["time_limit_minutes"] == 30
        assert values["total_questions"] == 20
        assert values["answered_questions"] == 0
        assert values["time_spent_seconds"] == 0
        assert values["is_auto_completed"] is False
        assert values["last_activity_at"] == T0


class TestValidation:
    """Tests for input validation helpers."""

    def test_answered_at_total_is_accepted(self):
        """Test that answering every question is valid."""
        validate_answered_questions(20, 20)

    def test_answered_zero_is_accepted(self):
        """Test that zero answered is valid."""
        validate_answered_questions(0, 20)

    def test_answered_above_total_rejected(self):
        """Test that total + 1 is rejected with the offending field."""
        with pytest.raises(ProgressValidationError) as exc_info:
            validate_answered_questions(21, 20)

        assert exc_info.value.code == "INVALID_ANSWERED_QUESTIONS"
        assert exc_info.value.field == "answered_questions"
        assert "between 0 and 20" in exc_info.value.message

    def test_negative_answered_rejected(self):
        """Test that negative answered counts are rejected."""
        with pytest.raises(ProgressValidationError):
            validate_answered_questions(-1, 20)

    def test_none_is_skipped(self):
        """Test that omitted values are not validated."""
        validate_answered_questions(None, 0)
        validate_time_spent(None)

    def test_negative_time_spent_rejected(self):
        """Test that negative time spent is rejected."""
        with pytest.raises(ProgressValidationError) as exc_info:
            validate_time_spent(-5)

        assert exc_info.value.code == "INVALID_TIME_SPENT"
        assert exc_info.value.field == "time_spent_seconds"


class TestApplyAutoCompletion:
    """Tests for lazy expiry."""

    def test_no_change_before_deadline(self):
        """Test that a live attempt is untouched."""
        record = make_record()

        changed = apply_auto_completion(record, T0 + timedelta(minutes=29))

        assert changed is False
        assert record.status == ProgressStatus.IN_PROGRESS
        assert record.completed_at is None

    def test_completes_at_stored_deadline(self):
        """Test that completed_at is the deadline, not the detection time."""
        record = make_record()

        changed = apply_auto_completion(record, T0 + timedelta(hours=5))

        assert changed is True
        assert record.status == ProgressStatus.AUTO_COMPLETED
        assert record.is_auto_completed is True
        assert record.completed_at == T0 + timedelta(minutes=30)
        assert record.time_spent_seconds == 1800

    def test_does_not_touch_last_activity(self):
        """Test that expiry is not recorded as participant activity."""
        record = make_record()

        apply_auto_completion(record, T0 + timedelta(minutes=45))

        assert record.last_activity_at == T0

    def test_terminal_record_untouched(self):
        """Test that a completed record is never re-completed."""
        record = make_record()
        apply_completion(record, T0 + timedelta(minutes=5))
        completed_at = record.completed_at

        changed = apply_auto_completion(record, T0 + timedelta(hours=2))

        assert changed is False
        assert record.status == ProgressStatus.COMPLETED
        assert record.completed_at == completed_at

    def test_same_result_whenever_detected(self):
        """Test that detection at +31 min and +3 days produce identical records."""
        early, late = make_record(), make_record()

        apply_auto_completion(early, T0 + timedelta(minutes=31))
        apply_auto_completion(late, T0 + timedelta(days=3))

        assert early.completed_at == late.completed_at
        assert early.time_spent_seconds == late.time_spent_seconds

    def test_naive_stored_deadline(self):
        """Test expiry of a record whose timestamps came back naive."""
        record = make_record()
        record.started_at = T0.replace(tzinfo=None)
        record.expected_completion_at = (T0 + timedelta(minutes=30)).replace(
            tzinfo=None
        )

        assert is_overdue(record, T0 + timedelta(minutes=30)) is True
        apply_auto_completion(record, T0 + timedelta(minutes=40))
        assert record.completed_at == T0 + timedelta(minutes=30)


class TestApplyUpdate:
    """Tests for progress updates."""

    def test_applies_values_and_activity(self):
        """Test a normal in-time update."""
        record = make_record()
        now = T0 + timedelta(minutes=10)

        auto = apply_update(record, now, answered_questions=8, time_spent_seconds=600)

        assert auto is False
        assert record.status == ProgressStatus.IN_PROGRESS
        assert record.answered_questions == 8
        assert record.time_spent_seconds == 600
        assert record.last_activity_at == now

    def test_partial_update_keeps_other_values(self):
        """Test that omitted fields are left alone."""
        record = make_record()
        apply_update(record, T0 + timedelta(minutes=2), answered_questions=3)

        apply_update(record, T0 + timedelta(minutes=4), time_spent_seconds=240)

        assert record.answered_questions == 3
        assert record.time_spent_seconds == 240

    def test_invalid_input_leaves_record_unmodified(self):
        """Test that validation happens before any mutation."""
        record = make_record()
        apply_update(record, T0 + timedelta(minutes=1), answered_questions=4)

        with pytest.raises(ProgressValidationError):
            apply_update(
                record,
                T0 + timedelta(minutes=2),
                answered_questions=21,
                time_spent_seconds=120,
            )

        assert record.answered_questions == 4
        assert record.time_spent_seconds == 0
        assert record.last_activity_at == T0 + timedelta(minutes=1)

    def test_invalid_input_after_deadline_does_not_expire(self):
        """Test that a rejected update does not auto-complete either."""
        record = make_record()

        with pytest.raises(ProgressValidationError):
            apply_update(record, T0 + timedelta(minutes=40), time_spent_seconds=-1)

        assert record.status == ProgressStatus.IN_PROGRESS

    def test_update_after_deadline_auto_completes(self):
        """Test that a late update becomes an auto-completion with its values."""
        record = make_record()
        now = T0 + timedelta(minutes=35)

        auto = apply_update(record, now, answered_questions=18)

        assert auto is True
        assert record.status == ProgressStatus.AUTO_COMPLETED
        assert record.completed_at == T0 + timedelta(minutes=30)
        assert record.answered_questions == 18
        assert record.time_spent_seconds == 1800
        assert record.last_activity_at == now

    def test_late_update_keeps_supplied_time_spent(self):
        """Test that a time spent supplied with the late update wins."""
        record = make_record()

        apply_update(
            record,
            T0 + timedelta(minutes=35),
            answered_questions=18,
            time_spent_seconds=1750,
        )

        assert record.time_spent_seconds == 1750

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES))
    def test_terminal_record_conflicts(self, terminal):
        """Test that terminal records reject updates."""
        record = make_record()
        record.status = terminal

        with pytest.raises(ProgressConflictError) as exc_info:
            apply_update(record, T0, answered_questions=1)

        assert exc_info.value.code == "TEST_ALREADY_COMPLETED"

    def test_not_started_record_conflicts(self):
        """Test that a not_started record rejects updates."""
        record = make_record()
        record.status = ProgressStatus.NOT_STARTED

        with pytest.raises(ProgressConflictError) as exc_info:
            apply_update(record, T0, answered_questions=1)

        assert exc_info.value.code == "TEST_NOT_IN_PROGRESS"


class TestApplyCompletion:
    """Tests for explicit completion."""

    def test_in_time_completion(self):
        """Test completion before the deadline."""
        record = make_record()
        apply_update(record, T0 + timedelta(minutes=5), time_spent_seconds=300)
        now = T0 + timedelta(minutes=12, seconds=30)

        auto = apply_completion(record, now, answered_questions=20)

        assert auto is False
        assert record.status == ProgressStatus.COMPLETED
        assert record.completed_at == now
        assert record.is_auto_completed is False
        assert record.answered_questions == 20
        assert record.time_spent_seconds == 750

    def test_time_spent_recomputed_over_client_value(self):
        """Test that a client-reported time spent is superseded."""
        record = make_record()
        apply_update(record, T0 + timedelta(minutes=5), time_spent_seconds=42)

        apply_completion(record, T0 + timedelta(minutes=10))

        assert record.time_spent_seconds == 600

    def test_deadline_wins_over_late_completion(self):
        """Test that completing after the deadline yields auto_completed."""
        record = make_record()

        auto = apply_completion(record, T0 + timedelta(minutes=31))

        assert auto is True
        assert record.status == ProgressStatus.AUTO_COMPLETED
        assert record.is_auto_completed is True
        assert record.completed_at == T0 + timedelta(minutes=30)
        assert record.time_spent_seconds == 1800

    def test_invalid_answered_rejected(self):
        """Test that completion validates the final answered count."""
        record = make_record()

        with pytest.raises(ProgressValidationError):
            apply_completion(record, T0 + timedelta(minutes=5), answered_questions=21)

        assert record.status == ProgressStatus.IN_PROGRESS
        assert record.completed_at is None

    def test_repeat_completion_conflicts(self):
        """Test that a second completion is rejected and changes nothing."""
        record = make_record()
        apply_completion(record, T0 + timedelta(minutes=5))
        first_completed_at = record.completed_at

        with pytest.raises(ProgressConflictError) as exc_info:
            apply_completion(record, T0 + timedelta(minutes=6))

        assert exc_info.value.code == "TEST_ALREADY_COMPLETED"
        assert record.completed_at == first_completed_at

    def test_not_started_conflicts(self):
        """Test that a not_started record cannot be completed."""
        record = make_record()
        record.status = ProgressStatus.NOT_STARTED

        with pytest.raises(ProgressConflictError) as exc_info:
            apply_completion(record, T0)

        assert exc_info.value.code == "TEST_NOT_STARTED"
