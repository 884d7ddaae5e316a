"""
Bond issuer exception hierarchy for vestbond.

Provides typed exceptions for issuer operations so callers can tell an
economically invalid request apart from a permission failure or a broken
collaborator, and log each with consistent context.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class BondError(Exception):
    """Base exception for all issuer-related errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the caller may resubmit the operation unchanged
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Validation Errors ====================


class InvalidAmountError(BondError):
    """Raised when a zero, negative or non-integer quantity is supplied to a
    value-affecting call."""
    pass


class InvalidRangeError(BondError):
    """Raised when bonus bounds violate ``min < max`` or the representable range."""
    pass


class InvalidAddressError(BondError):
    """Raised when an account identity is empty or the zero address."""
    pass


# ==================== Economic Errors ====================


class NotAvailableError(BondError):
    """Raised when an operation is economically or temporally invalid right now.

    Examples: deposit outside the accepted size bounds, deposit exceeding the
    reserve, redemption with nothing unlocked.
    """
    pass


# ==================== Access Control Errors ====================


class UnauthorizedError(BondError):
    """Raised when the caller lacks the required administrative role."""
    pass


class TimerExpiredError(BondError):
    """Raised when an ownership confirmation arrives after its deadline."""
    pass


# ==================== Collaborator Errors ====================


class LedgerError(BondError):
    """Raised by an asset ledger when a transfer, approval or mint is rejected."""
    pass


class TransferFailedError(BondError):
    """Raised when an external asset ledger refuses a transfer.

    Fatal to the enclosing operation, which leaves no trace, so the caller
    may retry once the balance or approval is fixed. The original ledger
    error is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message, details=details, recoverable=recoverable)


# ==================== Configuration Errors ====================


class ConfigurationError(BondError):
    """Raised when issuer configuration is missing or invalid."""
    pass


# ==================== Utility Functions ====================


def is_recoverable_error(exc: Exception) -> bool:
    """Check if an exception represents a recoverable error.

    Args:
        exc: The exception to check

    Returns:
        True if the error is recoverable and the operation can be retried
    """
    if isinstance(exc, BondError):
        return exc.recoverable

    recoverable_types = (
        ConnectionError,
        TimeoutError,
    )
    return isinstance(exc, recoverable_types)


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, BondError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    cause = exc.__cause__
    if isinstance(exc, TransferFailedError) and cause is not None:
        context["ledger_error"] = str(cause)

    return context
