"""Domain errors raised by services and mapped to HTTP responses.

Every error carries the HTTP status code the API should answer with so
controllers can stay free of per-endpoint try/except blocks.
"""


class QuizCraftError(Exception):
    """Base class for all domain errors."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(QuizCraftError):
    """A quiz, question, category, result or participant does not exist."""
    status_code = 404


class InvalidQuizState(QuizCraftError):
    """The quiz cannot be taken or scored (e.g. it has no questions)."""
    status_code = 409


class InvalidInput(QuizCraftError, ValueError):
    """Malformed submission or authoring payload."""
    status_code = 400


class Conflict(QuizCraftError):
    """Uniqueness or referential constraint would be violated."""
    status_code = 409


class AuthError(QuizCraftError):
    """Missing, invalid or expired credentials."""
    status_code = 401


class Forbidden(QuizCraftError):
    """Authenticated but not allowed (role, ownership or inactive account)."""
    status_code = 403
