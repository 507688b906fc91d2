"""Create session directory, test catalog and participant test progress tables

Revision ID: 3f2a9c1d7b40
Revises:
Create Date: 2025-06-02 09:14:27.418305

participant_test_progress holds one row per (participant, session, test).
time_limit_minutes, total_questions and expected_completion_at are copied from
the test definition when the attempt starts. The composite
(status, expected_completion_at) index serves the overdue-progress sweep.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum columns store member names, matching sqlalchemy.Enum(PyEnum) defaults
module_type = sa.Enum(
    "INTELLIGENCE",
    "PERSONALITY",
    "APTITUDE",
    "INTEREST",
    "PROJECTIVE",
    "COGNITIVE",
    name="moduletype",
)
catalog_status = sa.Enum("ACTIVE", "INACTIVE", "ARCHIVED", name="catalogstatus")
session_status = sa.Enum(
    "DRAFT", "ACTIVE", "EXPIRED", "COMPLETED", "CANCELLED", name="sessionstatus"
)
participant_status = sa.Enum(
    "INVITED",
    "REGISTERED",
    "STARTED",
    "COMPLETED",
    "NO_SHOW",
    name="participantstatus",
)
progress_status = sa.Enum(
    "NOT_STARTED",
    "IN_PROGRESS",
    "COMPLETED",
    "AUTO_COMPLETED",
    name="progressstatus",
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "tests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("module_type", module_type, nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("time_limit_minutes", sa.Integer(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("status", catalog_status, nullable=False),
        sa.Column("icon", sa.String(length=50), nullable=True),
        sa.Column("card_color", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "time_limit_minutes > 0", name="ck_tests_time_limit_positive"
        ),
        sa.CheckConstraint(
            "total_questions >= 0", name="ck_tests_total_questions_non_negative"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_tests_id"), "tests", ["id"], unique=False)
    op.create_index(op.f("ix_tests_status"), "tests", ["status"], unique=False)

    op.create_table(
        "test_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_name", sa.String(length=255), nullable=False),
        sa.Column("session_code", sa.String(length=50), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", session_status, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_test_sessions_id"), "test_sessions", ["id"], unique=False)
    op.create_index(
        op.f("ix_test_sessions_session_code"),
        "test_sessions",
        ["session_code"],
        unique=True,
    )
    op.create_index(
        op.f("ix_test_sessions_status"), "test_sessions", ["status"], unique=False
    )

    op.create_table(
        "session_modules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("test_id", sa.Integer(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ["session_id"], ["test_sessions.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["test_id"], ["tests.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "test_id", name="uq_session_modules_test"),
        sa.UniqueConstraint(
            "session_id", "sequence", name="uq_session_modules_sequence"
        ),
    )
    op.create_index(
        op.f("ix_session_modules_id"), "session_modules", ["id"], unique=False
    )
    op.create_index(
        op.f("ix_session_modules_session_id"),
        "session_modules",
        ["session_id"],
        unique=False,
    )

    op.create_table(
        "session_participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("status", participant_status, nullable=False),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["session_id"], ["test_sessions.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "session_id", "user_id", name="uq_session_participants_user"
        ),
    )
    op.create_index(
        op.f("ix_session_participants_id"),
        "session_participants",
        ["id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_session_participants_session_id"),
        "session_participants",
        ["session_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_session_participants_user_id"),
        "session_participants",
        ["user_id"],
        unique=False,
    )

    op.create_table(
        "participant_test_progress",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("participant_id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("test_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("status", progress_status, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "expected_completion_at", sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column("time_limit_minutes", sa.Integer(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("answered_questions", sa.Integer(), nullable=False),
        sa.Column("time_spent_seconds", sa.Integer(), nullable=False),
        sa.Column("is_auto_completed", sa.Boolean(), nullable=False),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "answered_questions >= 0", name="ck_progress_answered_non_negative"
        ),
        sa.CheckConstraint(
            "answered_questions <= total_questions",
            name="ck_progress_answered_within_total",
        ),
        sa.CheckConstraint(
            "time_spent_seconds >= 0", name="ck_progress_time_spent_non_negative"
        ),
        sa.ForeignKeyConstraint(
            ["participant_id"], ["session_participants.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["session_id"], ["test_sessions.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["test_id"], ["tests.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "participant_id",
            "session_id",
            "test_id",
            name="uq_progress_participant_session_test",
        ),
    )
    op.create_index(
        op.f("ix_participant_test_progress_id"),
        "participant_test_progress",
        ["id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_participant_test_progress_session_id"),
        "participant_test_progress",
        ["session_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_participant_test_progress_test_id"),
        "participant_test_progress",
        ["test_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_participant_test_progress_user_id"),
        "participant_test_progress",
        ["user_id"],
        unique=False,
    )
    op.create_index(
        "ix_progress_status_expected_completion",
        "participant_test_progress",
        ["status", "expected_completion_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(
        "ix_progress_status_expected_completion",
        table_name="participant_test_progress",
    )
    op.drop_index(
        op.f("ix_participant_test_progress_user_id"),
        table_name="participant_test_progress",
    )
    op.drop_index(
        op.f("ix_participant_test_progress_test_id"),
        table_name="participant_test_progress",
    )
    op.drop_index(
        op.f("ix_participant_test_progress_session_id"),
        table_name="participant_test_progress",
    )
    op.drop_index(
        op.f("ix_participant_test_progress_id"),
        table_name="participant_test_progress",
    )
    op.drop_table("participant_test_progress")

    op.drop_index(
        op.f("ix_session_participants_user_id"), table_name="session_participants"
    )
    op.drop_index(
        op.f("ix_session_participants_session_id"), table_name="session_participants"
    )
    op.drop_index(op.f("ix_session_participants_id"), table_name="session_participants")
    op.drop_table("session_participants")

    op.drop_index(op.f("ix_session_modules_session_id"), table_name="session_modules")
    op.drop_index(op.f("ix_session_modules_id"), table_name="session_modules")
    op.drop_table("session_modules")

    op.drop_index(op.f("ix_test_sessions_status"), table_name="test_sessions")
    op.drop_index(op.f("ix_test_sessions_session_code"), table_name="test_sessions")
    op.drop_index(op.f("ix_test_sessions_id"), table_name="test_sessions")
    op.drop_table("test_sessions")

    op.drop_index(op.f("ix_tests_status"), table_name="tests")
    op.drop_index(op.f("ix_tests_id"), table_name="tests")
    op.drop_table("tests")

    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_index(op.f("ix_users_id"), table_name="users")
    op.drop_table("users")

    for enum_type in (
        progress_status,
        participant_status,
        session_status,
        catalog_status,
        module_type,
    ):
        enum_type.drop(op.get_bind(), checkfirst=True)
