"""
Error taxonomy for the call service.

Every error carries the HTTP status the API layer answers with, so views can
translate any ``CallServiceError`` without knowing the concrete subclass.
"""
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler


class CallServiceError(Exception):
    """Base class for errors raised by the call service."""
    status_code = 500

    def __init__(self, message: str = ''):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'error': self.message, 'type': self.__class__.__name__}


class ValidationError(CallServiceError):
    """Bad input or an illegal state transition."""
    status_code = 400


class NotFoundError(CallServiceError):
    """A referenced call, schedule, conference or recording does not exist."""
    status_code = 404


class UnsupportedOperationError(CallServiceError):
    """The selected provider lacks the capability the operation needs."""
    status_code = 501


class ProviderError(CallServiceError):
    """A telephony or AI vendor rejected the request or could not be reached."""
    status_code = 502

    def __init__(self, message: str = '', provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.provider:
            data['provider'] = self.provider
        return data


class ConferenceFanOutError(ProviderError):
    """
    Raised after a conference was created but some invitations failed.

    The conference and all participant rows are already persisted; ``failed``
    lists the numbers the provider refused, in the order they were tried.
    """

    def __init__(self, conference, failed: List[str], provider: Optional[str] = None):
        super().__init__(
            f"Failed to add {len(failed)} participant(s) to conference {conference.id}: {', '.join(failed)}",
            provider=provider,
        )
        self.conference = conference
        self.failed = failed

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['conference_id'] = str(self.conference.id)
        data['failed_participants'] = self.failed
        return data


def api_exception_handler(exc, context):
    """
    DRF exception handler that renders ``CallServiceError`` and request body
    validation failures as JSON error responses.
    """
    if isinstance(exc, CallServiceError):
        return Response(exc.to_dict(), status=exc.status_code)
    if isinstance(exc, PydanticValidationError):
        return Response(
            {
                'error': 'Invalid request data',
                'type': 'ValidationError',
                'details': exc.errors(include_url=False, include_context=False),
            },
            status=400,
        )
    return exception_handler(exc, context)
