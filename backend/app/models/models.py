"""
Database models for the Syntegra assessment backend.

Participant test progress is the table this service owns. Users, the test
catalog, sessions, session modules and session participants are owned by other
parts of the platform and are modelled here so membership can be queried and
foreign keys enforced.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModuleType(str, enum.Enum):
    """Psychometric test family."""

    INTELLIGENCE = "intelligence"
    PERSONALITY = "personality"
    APTITUDE = "aptitude"
    INTEREST = "interest"
    PROJECTIVE = "projective"
    COGNITIVE = "cognitive"


class CatalogStatus(str, enum.Enum):
    """Availability of a test definition in the catalog."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class SessionStatus(str, enum.Enum):
    """Assessment session status enumeration."""

    DRAFT = "draft"
    ACTIVE = "active"
    EXPIRED = "expired"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ParticipantStatus(str, enum.Enum):
    """Registration status of a participant within a session."""

    INVITED = "invited"
    REGISTERED = "registered"
    STARTED = "started"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class ProgressStatus(str, enum.Enum):
    """
    Lifecycle of one participant's attempt at one test.

    NOT_STARTED is never persisted: a missing row means not started. It exists
    so responses and the state machine can name the implicit initial state.
    """

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    AUTO_COMPLETED = "auto_completed"


class User(Base):
    """Platform user. Participants reference a user."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    participations = relationship("SessionParticipant", back_populates="user")


class PsychometricTest(Base):
    """Test definition in the catalog (time limit, question count, display)."""

    __tablename__ = "tests"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    module_type = Column(Enum(ModuleType), nullable=False)
    category = Column(String(50), nullable=False)  # wais, mbti, kraepelin, ...
    time_limit_minutes = Column(Integer, nullable=False)
    total_questions = Column(Integer, default=0, nullable=False)
    status = Column(
        Enum(CatalogStatus), default=CatalogStatus.ACTIVE, nullable=False, index=True
    )
    icon = Column(String(50), nullable=True)
    card_color = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("time_limit_minutes > 0", name="ck_tests_time_limit_positive"),
        CheckConstraint(
            "total_questions >= 0", name="ck_tests_total_questions_non_negative"
        ),
    )


class AssessmentSession(Base):
    """Scheduled session in which participants take a set of tests."""

    __tablename__ = "test_sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_name = Column(String(255), nullable=False)
    session_code = Column(String(50), unique=True, nullable=False, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(
        Enum(SessionStatus), default=SessionStatus.DRAFT, nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    modules = relationship(
        "SessionModule",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionModule.sequence",
    )
    participants = relationship(
        "SessionParticipant", back_populates="session", cascade="all, delete-orphan"
    )


class SessionModule(Base):
    """A test configured into a session, in presentation order."""

    __tablename__ = "session_modules"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        Integer,
        ForeignKey("test_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    test_id = Column(
        Integer, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False
    )
    sequence = Column(Integer, nullable=False)
    is_required = Column(Boolean, default=True, nullable=False)

    session = relationship("AssessmentSession", back_populates="modules")
    test = relationship("PsychometricTest")

    __table_args__ = (
        UniqueConstraint("session_id", "test_id", name="uq_session_modules_test"),
        UniqueConstraint("session_id", "sequence", name="uq_session_modules_sequence"),
    )


class SessionParticipant(Base):
    """A user's registration in a session."""

    __tablename__ = "session_participants"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        Integer,
        ForeignKey("test_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(
        Enum(ParticipantStatus),
        default=ParticipantStatus.INVITED,
        nullable=False,
    )
    registered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    session = relationship("AssessmentSession", back_populates="participants")
    user = relationship("User", back_populates="participations")

    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_session_participants_user"),
    )


class ParticipantTestProgress(Base):
    """
    One participant's attempt at one test within one session.

    ``time_limit_minutes``, ``total_questions`` and ``expected_completion_at``
    are copied from the test definition when the attempt starts and are never
    written again; deadline and bounds checks read these snapshots, not the
    live catalog row.
    """

    __tablename__ = "participant_test_progress"

    id = Column(Integer, primary_key=True, index=True)
    participant_id = Column(
        Integer,
        ForeignKey("session_participants.id", ondelete="CASCADE"),
        nullable=False,
    )
    session_id = Column(
        Integer,
        ForeignKey("test_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    test_id = Column(
        Integer, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(
        Enum(ProgressStatus), default=ProgressStatus.IN_PROGRESS, nullable=False
    )

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    expected_completion_at = Column(DateTime(timezone=True), nullable=True)

    # Snapshots taken at start
    time_limit_minutes = Column(Integer, nullable=False)
    total_questions = Column(Integer, default=0, nullable=False)

    answered_questions = Column(Integer, default=0, nullable=False)
    time_spent_seconds = Column(Integer, default=0, nullable=False)
    is_auto_completed = Column(Boolean, default=False, nullable=False)

    last_activity_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    participant = relationship("SessionParticipant")
    test = relationship("PsychometricTest")

    __table_args__ = (
        UniqueConstraint(
            "participant_id",
            "session_id",
            "test_id",
            name="uq_progress_participant_session_test",
        ),
        CheckConstraint(
            "answered_questions >= 0", name="ck_progress_answered_non_negative"
        ),
        CheckConstraint(
            "answered_questions <= total_questions",
            name="ck_progress_answered_within_total",
        ),
        CheckConstraint(
            "time_spent_seconds >= 0", name="ck_progress_time_spent_non_negative"
        ),
        # Overdue sweep: WHERE status = 'in_progress' AND expected_completion_at <= now
        Index("ix_progress_status_expected_completion", "status", "expected_completion_at"),
    )
