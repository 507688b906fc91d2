"""
Persistence for participant test-progress records.

Start relies on the ``uq_progress_participant_session_test`` unique constraint:
the row is inserted with ``ON CONFLICT DO NOTHING`` and then fetched, so two
concurrent starts for the same triple end up with the same record. Mutating
operations read through ``get_progress(..., for_update=True)`` which takes a
row lock on PostgreSQL (a no-op on SQLite) for the rest of the transaction.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.models import ParticipantTestProgress, ProgressStatus

logger = logging.getLogger(__name__)

TRIPLE_COLUMNS = ["participant_id", "session_id", "test_id"]

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _insert_for(db: AsyncSession):
    dialect_name = db.get_bind().dialect.name
    try:
        return _INSERT_BY_DIALECT[dialect_name]
    except KeyError:
        raise ValueError(
            f"Idempotent progress insert is not supported on dialect {dialect_name!r}"
        ) from None


async def get_progress(
    db: AsyncSession,
    participant_id: int,
    session_id: int,
    test_id: int,
    *,
    for_update: bool = False,
) -> Optional[ParticipantTestProgress]:
    """Load the record for one (participant, session, test) triple."""
    stmt = select(ParticipantTestProgress).where(
        ParticipantTestProgress.participant_id == participant_id,
        ParticipantTestProgress.session_id == session_id,
        ParticipantTestProgress.test_id == test_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    # Refresh rows already present in the identity map
    stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def create_if_absent(
    db: AsyncSession, values: Dict[str, Any]
) -> Tuple[ParticipantTestProgress, bool]:
    """
    Insert a progress record unless one already exists for its triple.

    Returns:
        (record, created) where ``created`` is False when another call got
        there first and the existing record was returned instead.
    """
    insert = _insert_for(db)
    stmt = (
        insert(ParticipantTestProgress.__table__)
        .values(**values)
        .on_conflict_do_nothing(index_elements=TRIPLE_COLUMNS)
    )
    result = await db.execute(stmt)
    created = result.rowcount == 1

    record = await get_progress(
        db,
        values["participant_id"],
        values["session_id"],
        values["test_id"],
        for_update=True,
    )
    if record is None:
        # Conflict reported but the winning row is not visible to us
        raise RuntimeError(
            "Progress record missing after idempotent insert for "
            f"participant={values['participant_id']} session={values['session_id']} "
            f"test={values['test_id']}"
        )
    if not created:
        logger.debug(
            f"Progress for participant {values['participant_id']} / "
            f"test {values['test_id']} already existed"
        )
    return record, created


async def list_for_participant(
    db: AsyncSession,
    participant_id: int,
    session_id: int,
    *,
    for_update: bool = False,
) -> List[ParticipantTestProgress]:
    """All progress records of one participant within one session."""
    stmt = select(ParticipantTestProgress).where(
        ParticipantTestProgress.participant_id == participant_id,
        ParticipantTestProgress.session_id == session_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_overdue(
    db: AsyncSession, now: datetime, limit: Optional[int] = None
) -> List[ParticipantTestProgress]:
    """
    ``in_progress`` records whose stored deadline is at or before ``now``.

    Rows locked by a concurrent request are skipped; the next sweep or the
    next read of that record will expire it.
    """
    stmt = (
        select(ParticipantTestProgress)
        .where(
            ParticipantTestProgress.status == ProgressStatus.IN_PROGRESS,
            ParticipantTestProgress.expected_completion_at <= now,
        )
        .order_by(ParticipantTestProgress.expected_completion_at)
        .with_for_update(skip_locked=True)
    )
    if limit:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())
