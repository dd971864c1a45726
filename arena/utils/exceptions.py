"""
Custom exceptions for the grading and standings engine.

Every exception carries an internal message for logs and a generic
user_message that is safe to hand back to callers.
"""

class ArenaException(Exception):
    """Base exception for arena errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class ValidationFailure(ArenaException):
    """Raised when input is malformed and rejected before any computation."""
    def __init__(self, reason: str):
        super().__init__(
            f"Validation failed: {reason}",
            "Invalid data"
        )
        self.reason = reason

class IntegrityFailure(ArenaException):
    """Raised when referenced records are missing or an invariant would break."""
    def __init__(self, reason: str):
        super().__init__(
            f"Integrity check failed: {reason}",
            "Invalid data"
        )
        self.reason = reason

class ComputationFailure(ArenaException):
    """Raised when statistics are requested over an empty score set."""
    def __init__(self, reason: str):
        super().__init__(
            f"Computation failed: {reason}",
            "Statistics are not available for this tournament"
        )
        self.reason = reason

class TournamentNotFoundError(ArenaException):
    """Raised when a tournament does not exist."""
    def __init__(self, tournament_id: int):
        super().__init__(
            f"Tournament {tournament_id} not found",
            "Tournament not found"
        )
        self.tournament_id = tournament_id

class SubmissionNotFoundError(ArenaException):
    """Raised when a submission does not exist."""
    def __init__(self, submission_id: int):
        super().__init__(
            f"Submission {submission_id} not found",
            "Submission not found"
        )
        self.submission_id = submission_id

class ForbiddenError(ArenaException):
    """Raised when a user touches a submission they do not own."""
    def __init__(self, user_id: int, submission_id: int):
        super().__init__(
            f"User {user_id} does not own submission {submission_id}",
            "Forbidden"
        )
