"""
Domain exceptions. Each carries the HTTP status the API layer answers with.
"""

from fastapi import status


class MediAssistError(Exception):
    """Base class for errors raised by services and surfaced by the API."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(MediAssistError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(MediAssistError):
    status_code = status.HTTP_401_UNAUTHORIZED


class AccessDeniedError(MediAssistError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(MediAssistError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(MediAssistError):
    """A workflow transition or edit is not allowed from the current status."""

    status_code = status.HTTP_409_CONFLICT


class NoteGenerationError(MediAssistError):
    """The text-generation step could not produce a note at all."""
