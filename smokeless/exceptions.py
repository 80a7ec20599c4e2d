"""
Exception hierarchy for smokeless.

Input validation failures surface as ``pydantic.ValidationError`` from the
models and never reach the core. "Not enough data" is a result, not an
exception, and a duplicate achievement unlock is a no-op.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)


class SmokelessError(Exception):
    """
    Base exception for all smokeless errors.

    Carries the failing operation, the user it concerned and the underlying
    cause, and logs itself on creation.

    Example:
        raise DataAccessError(
            message="Failed to query events",
            user_id="u-1",
            operation="find_events",
            cause=exc,
        )
    """

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        self._log_error()

    def _log_error(self) -> None:
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.cause:
            log_data["cause"] = str(self.cause)
        logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for callers at the boundary."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "operation": self.operation,
            "timestamp": self.timestamp.isoformat(),
        }


class DataAccessError(SmokelessError):
    """The event store is unreachable or a query failed."""


class ExternalServiceUnavailable(SmokelessError):
    """
    The text-generation service failed or timed out.

    Always recovered locally with a deterministic template.
    """

    def __init__(self, message: str, service: str = "text-generation", **kwargs):
        self.service = service
        context = kwargs.pop("context", None) or {}
        context["service"] = service
        super().__init__(message=message, context=context, **kwargs)
