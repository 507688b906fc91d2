"""
Time-expiry evaluation for participant test progress.

Every function here is pure: the caller supplies ``now``. Nothing in this module
reads a clock, which keeps deadline arithmetic reproducible in tests and lets
the service use one timestamp for a whole operation.

The evaluator is always fed the *snapshot* stored on the progress record
(``started_at`` and ``time_limit_minutes`` copied at Start), never the live
test definition.
"""
import math
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from app.core.datetime_utils import ensure_timezone_aware


def expected_completion_at(started_at: datetime, time_limit_minutes: int) -> datetime:
    """Deadline for an attempt that started at ``started_at``."""
    return ensure_timezone_aware(started_at) + timedelta(minutes=time_limit_minutes)


def is_expired(started_at: datetime, time_limit_minutes: int, now: datetime) -> bool:
    """
    True once ``now`` has reached the deadline.

    The boundary is inclusive: at exactly ``started_at + time_limit`` the
    attempt is already expired.
    """
    deadline = expected_completion_at(started_at, time_limit_minutes)
    return ensure_timezone_aware(now) >= deadline


def remaining_seconds(
    started_at: datetime, time_limit_minutes: int, now: datetime
) -> int:
    """
    Whole seconds left before the deadline, floored and never negative.

    Examples:
        >>> from datetime import datetime, timezone
        >>> t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> remaining_seconds(t0, 30, t0 + timedelta(minutes=10))
        1200
        >>> remaining_seconds(t0, 30, t0 + timedelta(minutes=35))
        0
    """
    deadline = expected_completion_at(started_at, time_limit_minutes)
    delta = (deadline - ensure_timezone_aware(now)).total_seconds()
    return max(0, math.floor(delta))


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds from ``start`` to ``end``, floored and never negative."""
    delta = (ensure_timezone_aware(end) - ensure_timezone_aware(start)).total_seconds()
    return max(0, math.floor(delta))


def progress_percentage(answered: int, total: int) -> int:
    """
    Percentage of questions answered, as an integer in [0, 100].

    Returns 0 when the test has no questions. Halves round up, so 1 of 8
    (12.5%) reports 13.
    """
    if total <= 0:
        return 0
    ratio = Decimal(answered) * 100 / Decimal(total)
    percentage = int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return min(100, max(0, percentage))
