"""Treasury error taxonomy.

Every failure in the treasury core is synchronous, non-retryable and leaves
state unchanged. Failures are grouped into four categories so the service
layer can report them uniformly:

    VALIDATION:  malformed input (zero amount, empty address, bad percent)
    STATE:       the operation is illegal in the current state
    LIMIT:       a configured rate limit rejected the operation
    ENCODING:    a request identifier could not be packed or unpacked

All errors subclass ValueError, so callers that only care about "the
treasury refused" can keep catching ValueError.
"""

from __future__ import annotations

import enum
from typing import Any, Dict


class ErrorCategory(str, enum.Enum):
    """Coarse classification of treasury failures."""
    VALIDATION = "validation"
    STATE = "state"
    LIMIT = "limit"
    ENCODING = "encoding"


class TreasuryError(ValueError):
    """Base class for all treasury failures.

    Attributes:
        code: Stable machine-readable identifier (e.g. "INSUFFICIENT_BALANCE").
        category: The ErrorCategory this failure belongs to.
        context: Extra key/value detail for logs and service results.
    """
    code = "TREASURY_ERROR"
    category = ErrorCategory.STATE

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "context": {k: _jsonable(v) for k, v in self.context.items()},
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


# ------------------------------------------------------------------
# Category bases
# ------------------------------------------------------------------

class ValidationError(TreasuryError):
    code = "VALIDATION_ERROR"
    category = ErrorCategory.VALIDATION


class StateError(TreasuryError):
    code = "STATE_ERROR"
    category = ErrorCategory.STATE


class LimitError(TreasuryError):
    code = "LIMIT_ERROR"
    category = ErrorCategory.LIMIT


class EncodingError(TreasuryError):
    code = "ENCODING_ERROR"
    category = ErrorCategory.ENCODING


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------

class InvalidAmount(ValidationError):
    code = "INVALID_AMOUNT"


class InvalidAddress(ValidationError):
    code = "INVALID_ADDRESS"


class InvalidFeePercent(ValidationError):
    code = "INVALID_FEE_PERCENT"


class InvalidTenant(ValidationError):
    code = "INVALID_TENANT"


class RequestTenantMismatch(ValidationError):
    code = "REQUEST_TENANT_MISMATCH"


# ------------------------------------------------------------------
# State
# ------------------------------------------------------------------

class InsufficientBalance(StateError):
    code = "INSUFFICIENT_BALANCE"


class Overflow(StateError):
    code = "OVERFLOW"


class AlreadyRegistered(StateError):
    code = "ALREADY_REGISTERED"


class NotRegistered(StateError):
    code = "NOT_REGISTERED"


class TokenNotAllowed(StateError):
    code = "TOKEN_NOT_ALLOWED"


class NotInitialized(StateError):
    code = "NOT_INITIALIZED"


class AlreadyInitialized(StateError):
    code = "ALREADY_INITIALIZED"


class EmptyQueue(StateError):
    code = "EMPTY_QUEUE"


class IndexOutOfRange(StateError):
    code = "INDEX_OUT_OF_RANGE"


class NonMonotonicTime(StateError):
    code = "NON_MONOTONIC_TIME"


class UnknownTenant(StateError):
    code = "UNKNOWN_TENANT"


class RequestAlreadyUsed(StateError):
    code = "REQUEST_ALREADY_USED"


class ReentrantCall(StateError):
    code = "REENTRANT_CALL"


class TransferFailed(StateError):
    code = "TRANSFER_FAILED"


class AuditFailure(StateError):
    code = "EVENT_LOG_FAILURE"


# ------------------------------------------------------------------
# Limits
# ------------------------------------------------------------------

class TxLimitExceeded(LimitError):
    code = "TX_LIMIT_EXCEEDED"


class DailyLimitExceeded(LimitError):
    code = "DAILY_LIMIT_EXCEEDED"


class InvalidCapOrdering(LimitError):
    code = "INVALID_CAP_ORDERING"


# ------------------------------------------------------------------
# Encoding
# ------------------------------------------------------------------

class SequenceTooLarge(EncodingError):
    code = "SEQUENCE_TOO_LARGE"


class InvalidRequestId(EncodingError):
    code = "INVALID_REQUEST_ID"

