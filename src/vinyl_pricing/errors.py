"""
Error taxonomy for the pricing engine.

Every error carries an HTTP-ish status code and a machine-readable code so the
API layer can render it without knowing about individual failure sites.
"""
from typing import Any, Optional


class PricingError(Exception):
    """Base class for all engine errors."""

    status_code = 500
    default_code = "pricing_error"

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = str(message)
        self.code = code or self.default_code
        self.details = details


class ValidationError(PricingError):
    """Bad input: invalid grade, scope, cost basis or policy definition."""

    status_code = 400
    default_code = "validation_error"


class NotFoundError(PricingError):
    """Missing market data, release or policy version."""

    status_code = 404
    default_code = "not_found"


class InternalError(PricingError):
    """Persistence failure or unexpected exception."""

    status_code = 500
    default_code = "internal_error"


class ProviderError(PricingError):
    """A market-data provider failed or returned something unusable."""

    status_code = 502
    default_code = "provider_error"
