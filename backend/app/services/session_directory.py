"""
Read-only lookups against the session directory and the test catalog.

Sessions, participants and test definitions are owned by other parts of the
platform; the progress service only asks membership questions and reads the
time limit and question count of a test when an attempt starts.
"""
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.models import (
    AssessmentSession,
    PsychometricTest,
    SessionModule,
    SessionParticipant,
)


class SessionDirectory:
    """Membership and catalog queries bound to one database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def session_exists(self, session_id: int) -> bool:
        result = await self.db.execute(
            select(AssessmentSession.id).where(AssessmentSession.id == session_id)
        )
        return result.scalar_one_or_none() is not None

    async def get_participant(self, participant_id: int) -> Optional[SessionParticipant]:
        """Participant row by id, regardless of which session it belongs to."""
        return await self.db.get(SessionParticipant, participant_id)

    async def test_exists(self, test_id: int) -> bool:
        result = await self.db.execute(
            select(PsychometricTest.id).where(PsychometricTest.id == test_id)
        )
        return result.scalar_one_or_none() is not None

    async def get_test(self, test_id: int) -> Optional[PsychometricTest]:
        return await self.db.get(PsychometricTest, test_id)

    async def get_session_test(
        self, session_id: int, test_id: int
    ) -> Optional[PsychometricTest]:
        """
        Test definition if it is configured as a module of the session.

        Returns None both for unknown tests and for tests that exist but are
        not part of this session; use test_exists() to tell them apart.
        """
        result = await self.db.execute(
            select(PsychometricTest)
            .join(SessionModule, SessionModule.test_id == PsychometricTest.id)
            .where(
                SessionModule.session_id == session_id,
                PsychometricTest.id == test_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_session_tests(
        self, session_id: int
    ) -> List[Tuple[SessionModule, PsychometricTest]]:
        """Modules of a session with their test definitions, in sequence order."""
        result = await self.db.execute(
            select(SessionModule, PsychometricTest)
            .join(PsychometricTest, SessionModule.test_id == PsychometricTest.id)
            .where(SessionModule.session_id == session_id)
            .order_by(SessionModule.sequence)
        )
        return [(module, test) for module, test in result.all()]
