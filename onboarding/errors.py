"""Exception hierarchy for the onboarding service.

Every error carries the HTTP status the API layer renders it with, so
routes never translate exceptions by hand.
"""

from typing import Optional


class OnboardingError(Exception):
    """Base exception for onboarding errors."""

    status_code = 500

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ValidationError(OnboardingError):
    """Raised when caller input is malformed or incomplete."""

    status_code = 400


class InvalidAction(ValidationError):
    """Raised when a decision action is outside approve/request/reject."""


class NotFoundError(OnboardingError):
    """Raised when a case or one of its records does not exist."""

    status_code = 404


class CaseNotFound(NotFoundError):
    pass


class ClientEmailMissing(NotFoundError):
    pass


class InvalidToken(OnboardingError):
    """Raised when a decision token is malformed, expired or issued for another case."""

    status_code = 403


class TokenAlreadyUsed(OnboardingError):
    status_code = 409


class CaseConflict(OnboardingError):
    """Raised when a submission would overwrite a different applicant record."""

    status_code = 409


class ExternalSourceError(OnboardingError):
    """Raised by screening sources; always recovered inside the check."""


class PersistenceError(OnboardingError):
    """Raised when the case store cannot read or write a record."""


class ObjectNotFound(OnboardingError):
    """Raised by object stores when a key does not exist."""

    status_code = 404


class ConfigurationError(OnboardingError):
    """Raised at startup when a required setting is missing or unsafe."""
