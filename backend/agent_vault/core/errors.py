"""
Centralized error handling.

Provides:
- Stable numeric error codes for every rejected operation
- ProtocolError carrying the code, a user-facing message and HTTP mapping
- Pre-built constructors for each rejection path
- Error sanitization for production environments
"""

import logging
from enum import Enum
from typing import Any, Optional

from fastapi import status

from .config import get_settings

logger = logging.getLogger(__name__)


class ErrorCode(int, Enum):
    """Stable numeric error codes"""

    # Authorization
    NOT_AUTHORIZED = 100

    # Agent lifecycle
    NOT_REGISTERED = 101
    AGENT_EXISTS = 102  # reserved, never raised
    INSUFFICIENT_BALANCE = 103
    STRATEGY_INACTIVE = 104  # reserved, never raised
    COOLDOWN_ACTIVE = 105
    INVALID_PARAMETERS = 106
    AGENT_PAUSED = 107
    MAX_AGENTS_REACHED = 108

    # External collaborators
    TRANSFER_FAILED = 200
    TOKEN_ISSUE_FAILED = 201


# HTTP status for each code when surfaced through the API
ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.NOT_AUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_REGISTERED: status.HTTP_404_NOT_FOUND,
    ErrorCode.AGENT_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.INSUFFICIENT_BALANCE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.STRATEGY_INACTIVE: status.HTTP_409_CONFLICT,
    ErrorCode.COOLDOWN_ACTIVE: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.INVALID_PARAMETERS: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.AGENT_PAUSED: status.HTTP_409_CONFLICT,
    ErrorCode.MAX_AGENTS_REACHED: status.HTTP_409_CONFLICT,
    ErrorCode.TRANSFER_FAILED: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorCode.TOKEN_ISSUE_FAILED: status.HTTP_409_CONFLICT,
}


class ProtocolError(Exception):
    """
    Rejection of a lifecycle operation.

    Raised before any state is committed; the caller must resubmit a
    corrected request.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        """
        Create a protocol error.

        Args:
            code: Error code enum for machine-readable identification
            message: User-friendly error message (safe to expose)
            details: Additional context (agent id, limits, observed values)
        """
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return ERROR_STATUS.get(self.code, status.HTTP_400_BAD_REQUEST)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "error": self.code.name,
            "message": self.message,
            "details": self.details,
        }


def sanitize_error_message(
    error: Exception,
    user_message: str = "An unexpected error occurred",
    include_type: bool = False,
) -> str:
    """
    Sanitize an error message for client response.

    In production: Returns generic user message
    In development: Returns detailed error information
    """
    settings = get_settings()

    if settings.environment == "production":
        return user_message

    error_str = str(error)
    if include_type:
        return f"{type(error).__name__}: {error_str}"
    return error_str


# ==================== Pre-built Protocol Errors ====================


def not_authorized(agent_id: int, caller: str) -> ProtocolError:
    return ProtocolError(
        ErrorCode.NOT_AUTHORIZED,
        f"Caller is not the owner of agent {agent_id}",
        details={"agent_id": agent_id, "caller": caller},
    )


def not_registered(agent_id: int) -> ProtocolError:
    return ProtocolError(
        ErrorCode.NOT_REGISTERED,
        f"Agent {agent_id} is not registered",
        details={"agent_id": agent_id},
    )


def insufficient_balance(message: str, **details: Any) -> ProtocolError:
    return ProtocolError(ErrorCode.INSUFFICIENT_BALANCE, message, details=details)


def cooldown_active(agent_id: int, elapsed: int, required: int) -> ProtocolError:
    return ProtocolError(
        ErrorCode.COOLDOWN_ACTIVE,
        f"Agent {agent_id} rebalanced {elapsed} blocks ago; {required} required",
        details={"agent_id": agent_id, "elapsed_blocks": elapsed, "cooldown_blocks": required},
    )


def invalid_parameters(message: str, **details: Any) -> ProtocolError:
    return ProtocolError(ErrorCode.INVALID_PARAMETERS, message, details=details)


def agent_paused(agent_id: int) -> ProtocolError:
    return ProtocolError(
        ErrorCode.AGENT_PAUSED,
        f"Agent {agent_id} is paused",
        details={"agent_id": agent_id},
    )


def max_agents_reached(owner: str, count: int, limit: int) -> ProtocolError:
    return ProtocolError(
        ErrorCode.MAX_AGENTS_REACHED,
        f"Owner already holds {count} agents (limit {limit})",
        details={"owner": owner, "count": count, "limit": limit},
    )


def transfer_failed(message: str, **details: Any) -> ProtocolError:
    return ProtocolError(ErrorCode.TRANSFER_FAILED, message, details=details)


def token_issue_failed(token_id: int, message: str) -> ProtocolError:
    return ProtocolError(
        ErrorCode.TOKEN_ISSUE_FAILED,
        message,
        details={"token_id": token_id},
    )
