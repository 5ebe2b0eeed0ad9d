"""
Error taxonomy for the paywall gateway

Every failure carries a kind (what the caller can do about it), a stable code,
a human-readable message and the identifiers involved.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Broad failure categories, mapped to HTTP statuses at the transport edge"""
    VALIDATION = "validation"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UPSTREAM = "upstream"
    PAYMENT = "payment"


class GatewayError(Exception):
    """Base class for all gateway errors"""

    kind: ErrorKind = ErrorKind.VALIDATION
    code: str = "GATEWAY_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, details={self.details!r})"


# ===== VALIDATION =====

class InvalidPrice(GatewayError):
    code = "INVALID_PRICE"


class InvalidAddress(GatewayError):
    code = "INVALID_WALLET"


class MissingPayoutAddress(GatewayError):
    code = "NO_WALLET"


class MalformedProof(GatewayError):
    code = "MALFORMED_PROOF"


class RequirementMismatch(GatewayError):
    code = "REQUIREMENT_MISMATCH"


class ProofExpired(GatewayError):
    code = "PROOF_EXPIRED"


# ===== AUTHORIZATION =====

class Forbidden(GatewayError):
    kind = ErrorKind.FORBIDDEN
    code = "FORBIDDEN"


class OwnershipVerificationFailed(Forbidden):
    code = "NOT_OWNER"


# ===== LOOKUP =====

class PaywallNotFound(GatewayError):
    kind = ErrorKind.NOT_FOUND
    code = "NOT_FOUND"


class UserNotFound(GatewayError):
    kind = ErrorKind.NOT_FOUND
    code = "USER_NOT_FOUND"


# ===== CONSISTENCY =====

class AlreadyExists(GatewayError):
    kind = ErrorKind.CONFLICT
    code = "ALREADY_EXISTS"


class SettlementInProgress(GatewayError):
    kind = ErrorKind.CONFLICT
    code = "SETTLEMENT_IN_PROGRESS"


# ===== PAYMENT OUTCOMES =====

class VerificationFailed(GatewayError):
    kind = ErrorKind.PAYMENT
    code = "VERIFICATION_FAILED"


class SettlementFailed(GatewayError):
    kind = ErrorKind.PAYMENT
    code = "SETTLEMENT_FAILED"


# ===== EXTERNAL DEPENDENCIES =====

class UpstreamError(GatewayError):
    """Upstream content API failure (non-2xx or transport error)"""
    kind = ErrorKind.UPSTREAM
    code = "UPSTREAM_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None, **details: Any):
        super().__init__(message, status_code=status_code, **details)
        self.status_code = status_code
        self.body = body


class OracleUnavailable(GatewayError):
    """Settlement oracle could not be reached or answered garbage"""
    kind = ErrorKind.UPSTREAM
    code = "ORACLE_UNAVAILABLE"
