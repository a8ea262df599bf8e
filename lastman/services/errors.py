"""Domain error taxonomy.

Every error is caller-visible and synchronous; nothing here is retried.
The route layer maps `status_code` and `code` onto the HTTP response.
"""


class LeagueError(Exception):
    """Base exception for league engine errors"""

    code = "LEAGUE_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(LeagueError):
    code = "UNAUTHENTICATED"
    status_code = 401


class PermissionDenied(LeagueError):
    code = "PERMISSION_DENIED"
    status_code = 403


class NotFound(LeagueError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidStateTransition(LeagueError):
    """Round (or league) is not in the status the operation requires."""

    code = "INVALID_STATE_TRANSITION"
    status_code = 409


class DuplicateSelection(LeagueError):
    code = "DUPLICATE_SELECTION"
    status_code = 409


class DuplicateParticipant(LeagueError):
    code = "DUPLICATE_PARTICIPANT"
    status_code = 409


class EliminatedParticipant(LeagueError):
    code = "ELIMINATED_PARTICIPANT"
    status_code = 403


class ValidationError(LeagueError):
    code = "VALIDATION_ERROR"
    status_code = 422
