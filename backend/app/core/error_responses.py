"""
Standardized user-facing messages for the progress API.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Include relevant IDs when helpful for debugging: "(ID: 123)"
- Use "Please try again later." for transient server errors

Usage:
    from app.core.error_responses import ErrorMessages

    raise ProgressNotFoundError(
        "SESSION_NOT_FOUND", ErrorMessages.session_not_found(session_id)
    )
"""


class ErrorMessages:
    """Centralized error and status message constants and templates.

    Naming Convention:
    - Constants: SCREAMING_SNAKE_CASE for static messages
    - Methods: snake_case for templates that accept parameters
    """

    # ==========================================================================
    # Bad Request Errors (400)
    # ==========================================================================
    NEGATIVE_TIME_SPENT = "Time spent cannot be negative."

    # ==========================================================================
    # Server Errors (500 / 503)
    # ==========================================================================
    STORAGE_UNAVAILABLE = (
        "The progress store is temporarily unavailable. Please try again later."
    )
    INTERNAL_SERVER_ERROR = "Internal server error"

    # ==========================================================================
    # Success Messages
    # ==========================================================================
    TEST_STARTED = "Test started successfully."
    TEST_ALREADY_STARTED = "Test already started. Returning existing progress."
    PROGRESS_UPDATED = "Test progress updated successfully."
    TEST_COMPLETED = "Test completed successfully."
    TEST_AUTO_COMPLETED = "Test auto-completed due to time expiry."
    PROGRESS_RETRIEVED = "Test progress retrieved successfully."
    PROGRESS_LIST_RETRIEVED = "Retrieved test progress for participant in session."

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def session_not_found(session_id: int) -> str:
        """Message for an unknown session."""
        return f"Session not found (ID: {session_id})."

    @staticmethod
    def participant_not_found(participant_id: int, session_id: int) -> str:
        """Message for a participant that is unknown or not in this session."""
        return f"Participant {participant_id} not found in session {session_id}."

    @staticmethod
    def test_not_found(test_id: int) -> str:
        """Message for an unknown test definition."""
        return f"Test not found (ID: {test_id})."

    @staticmethod
    def progress_not_found(test_id: int, participant_id: int) -> str:
        """Message when no progress record exists for the triple."""
        return (
            f"Test progress not found for test {test_id} "
            f"and participant {participant_id}."
        )

    @staticmethod
    def participant_not_in_session(participant_id: int, session_id: int) -> str:
        """Message when the participant is registered in a different session."""
        return (
            f"Participant {participant_id} is not registered in session "
            f"{session_id}."
        )

    @staticmethod
    def test_not_in_session(test_id: int, session_id: int) -> str:
        """Message when the test exists but is not a module of the session."""
        return f"Test {test_id} is not part of session {session_id}."

    @staticmethod
    def test_already_completed(test_id: int) -> str:
        """Message for any mutation of a terminal progress record."""
        return f"Test {test_id} has already been completed."

    @staticmethod
    def test_not_started(test_id: int) -> str:
        """Message for completing a test that was never started."""
        return f"Test {test_id} has not been started yet."

    @staticmethod
    def test_not_in_progress(test_id: int) -> str:
        """Message for updating a test that is not in progress."""
        return f"Test {test_id} is not in progress."

    @staticmethod
    def invalid_answered_questions(total_questions: int) -> str:
        """Message for an answered-question count outside [0, total]."""
        return f"Answered questions must be between 0 and {total_questions}."

    @staticmethod
    def database_operation_failed(operation: str) -> str:
        """Generic message for database operation failures."""
        return f"Failed to {operation}. Please try again later."
