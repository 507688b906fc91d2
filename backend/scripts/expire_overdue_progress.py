"""
Cron job: auto-complete overdue participant test progress.

Lazy expiry already auto-completes an overdue attempt the next time anyone
reads or touches it. This sweep does the same for attempts nobody comes back
to, so session dashboards and exports see them as auto_completed. Every record
is completed at its stored deadline, so running the sweep early, late or
twice gives the same result.

Run every few minutes, e.g. ``*/5 * * * *``.

Exit codes:
    0 - Success
    1 - Database error
    2 - Sweep error
    3 - Configuration/import error
"""
import asyncio
import json
import logging
import sys
from typing import Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("expire_overdue_progress_cron")


async def run_sweep(session_factory, limit: Optional[int]) -> int:
    """Open one session, expire overdue records, return how many changed."""
    from app.services.progress_service import ProgressService

    async with session_factory() as db:
        return await ProgressService(db).expire_overdue(limit=limit)


def main(session_factory=None) -> int:
    # Defer imports so config/import failures produce exit code 3
    try:
        from app.core.config import settings
        from app.core.datetime_utils import utc_now
        from app.core.db_error_handling import DatabaseOperationError
        from app.core.progress_errors import StorageUnavailableError

        if session_factory is None:
            from app.models.base import AsyncSessionLocal

            session_factory = AsyncSessionLocal
    except Exception as exc:
        logger.error("Failed to import required modules: %s", exc)
        return 3

    limit = settings.PROGRESS_SWEEP_BATCH_SIZE or None

    try:
        expired = asyncio.run(run_sweep(session_factory, limit))
    except (StorageUnavailableError, DatabaseOperationError) as exc:
        logger.error("Database error during overdue progress sweep: %s", exc)
        return 1
    except Exception as exc:
        logger.error("Overdue progress sweep failed: %s", exc)
        return 2

    logger.info(
        "Overdue progress sweep: auto-completed %d record(s) (batch limit %s)",
        expired,
        limit if limit is not None else "none",
    )

    # Emit heartbeat JSON for log monitoring
    heartbeat = {
        "type": "HEARTBEAT",
        "service": "expire_overdue_progress_cron",
        "auto_completed": expired,
        "batch_limit": limit,
        "swept_at": utc_now().isoformat(),
    }
    print(json.dumps(heartbeat), flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
