"""Domain error taxonomy shared by the service layer."""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for errors the API layer maps onto HTTP responses."""


class NotFoundError(ServiceError):
    """Raised when a referenced record does not exist."""


class UnauthenticatedError(ServiceError):
    """Raised when credentials are missing, invalid or expired."""


class ForbiddenError(ServiceError):
    """Raised when the actor lacks the capability for an operation."""


class InvalidStateError(ServiceError):
    """Raised when a record is not in the status an operation requires."""


class CampaignEndedError(InvalidStateError):
    """Raised when investing after a crowdfunding end date."""


class InsufficientTokensError(InvalidStateError):
    """Raised when an investment asks for more tokens than remain."""


class ValidationFailedError(ServiceError):
    """Raised for semantically invalid input that passed schema checks."""


class PaymentNotCompletedError(ServiceError):
    """Raised when a payment intent has not succeeded."""


class ConflictError(ServiceError):
    """Raised when a write collides with an existing record."""


class DuplicatePaymentReferenceError(ConflictError):
    """Raised when a payment reference is already attached to a transaction."""


class AlreadyVotedError(ConflictError):
    """Raised when a user casts a second vote in the same voting."""


class WebhookSignatureError(ServiceError):
    """Raised when a payment webhook fails signature verification."""


class ExternalServiceError(ServiceError):
    """Raised when the payment processor rejects or fails a call."""
