"""Domain error codes and exceptions.

Services raise these; the API layer maps them to JSON error responses.
Messages are user-safe and never include internal details.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Domain error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    REQUEST_NOT_FOUND = "REQUEST_NOT_FOUND"
    BLOCKLIST_ENTRY_NOT_FOUND = "BLOCKLIST_ENTRY_NOT_FOUND"
    EVENT_NOT_ACTIVE = "EVENT_NOT_ACTIVE"
    EVENT_ALREADY_ENDED = "EVENT_ALREADY_ENDED"
    ALREADY_UPVOTED = "ALREADY_UPVOTED"
    INVALID_STATUS = "INVALID_STATUS"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    EMAIL_ALREADY_REGISTERED = "EMAIL_ALREADY_REGISTERED"
    RATE_LIMITED = "RATE_LIMITED"
    SONG_BLOCKED = "SONG_BLOCKED"
    FORBIDDEN = "FORBIDDEN"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    STORAGE_ERROR = "STORAGE_ERROR"


class DomainError(Exception):
    """Base domain error with code, HTTP status and user-safe message."""

    code = ErrorCode.STORAGE_ERROR
    status_code = 500

    def __init__(self, message: str, code: Optional[ErrorCode] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(DomainError):
    code = ErrorCode.VALIDATION_ERROR
    status_code = 400


class NotFoundError(DomainError):
    status_code = 404


class EventNotFoundError(NotFoundError):
    """Raised when no event has the given slug."""

    code = ErrorCode.EVENT_NOT_FOUND

    def __init__(self, slug: str) -> None:
        super().__init__("Event not found")
        self.slug = slug


class RequestNotFoundError(NotFoundError):
    code = ErrorCode.REQUEST_NOT_FOUND

    def __init__(self, request_id: str) -> None:
        super().__init__("Request not found")
        self.request_id = request_id


class BlockListEntryNotFoundError(NotFoundError):
    code = ErrorCode.BLOCKLIST_ENTRY_NOT_FOUND

    def __init__(self, entry_id: str) -> None:
        super().__init__("Block list entry not found")
        self.entry_id = entry_id


class StateConflictError(DomainError):
    """Base for requests that are well-formed but conflict with current state."""

    status_code = 409


class EventNotActiveError(StateConflictError):
    code = ErrorCode.EVENT_NOT_ACTIVE

    def __init__(self) -> None:
        super().__init__("Event has ended")


class EventAlreadyEndedError(StateConflictError):
    code = ErrorCode.EVENT_ALREADY_ENDED

    def __init__(self) -> None:
        super().__init__("Event already ended")


class AlreadyUpvotedError(StateConflictError):
    code = ErrorCode.ALREADY_UPVOTED

    def __init__(self) -> None:
        super().__init__("You have already upvoted this song")


class InvalidStatusError(StateConflictError):
    code = ErrorCode.INVALID_STATUS

    def __init__(self, status: str) -> None:
        super().__init__("Invalid status")
        self.status = status


class InvalidTransitionError(StateConflictError):
    """Raised when a request cannot move from its current status to the target."""

    code = ErrorCode.INVALID_TRANSITION

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot change a {current} request to {target}")
        self.current = current
        self.target = target


class EmailAlreadyRegisteredError(StateConflictError):
    code = ErrorCode.EMAIL_ALREADY_REGISTERED

    def __init__(self) -> None:
        super().__init__("Email already registered")


class RateLimitedError(DomainError):
    """Raised when an identity exceeds the event's hourly request limit.

    Carries the DJ's custom message when one is configured.
    """

    code = ErrorCode.RATE_LIMITED
    status_code = 429


class SongBlockedError(DomainError):
    """Raised when a song matches the DJ's block list.

    The message is fixed so the matching pattern is never revealed.
    """

    code = ErrorCode.SONG_BLOCKED
    status_code = 400

    def __init__(self) -> None:
        super().__init__("This song isn't available for requests at this event.")


class ForbiddenError(DomainError):
    code = ErrorCode.FORBIDDEN
    status_code = 403

    def __init__(self, message: str = "Not authorized") -> None:
        super().__init__(message)


class AuthenticationError(DomainError):
    code = ErrorCode.NOT_AUTHENTICATED
    status_code = 401


class InvalidCredentialsError(AuthenticationError):
    code = ErrorCode.INVALID_CREDENTIALS

    def __init__(self) -> None:
        super().__init__("Invalid email or password")


class StorageError(DomainError):
    """Raised when DynamoDB rejects an operation unexpectedly."""

    code = ErrorCode.STORAGE_ERROR
    status_code = 500
