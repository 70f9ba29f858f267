"""
Action Results.

Every controller operation returns an ActionResult instead of raising, so
the UI can render success, inline validation, rate limiting and server
rejections from one shape.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Generic, Optional, TypeVar

from gymdesk.core.enums import ErrorKind
from gymdesk.utils.errors import ApiError, DashboardError, FormValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ActionResult(Generic[T]):
    """Result wrapper for controller actions."""

    success: bool
    entity: Optional[T] = None
    message: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    field: Optional[str] = None
    status_code: Optional[int] = None
    retry_after: Optional[str] = None

    @classmethod
    def ok(cls, entity: Optional[T] = None, message: Optional[str] = None) -> "ActionResult[T]":
        return cls(success=True, entity=entity, message=message)

    @classmethod
    def rate_limited(cls, retry_after: Optional[str]) -> "ActionResult[T]":
        return cls(
            success=False,
            error=f"Too many requests. Please try again in {retry_after}.",
            error_kind=ErrorKind.RATE_LIMITED,
            status_code=429,
            retry_after=retry_after,
        )

    @classmethod
    def from_error(cls, error: DashboardError) -> "ActionResult[T]":
        """Fold a client error into a failed result."""
        return cls(
            success=False,
            error=error.message,
            error_kind=error.kind,
            field=getattr(error, "field", None),
            status_code=error.status_code if isinstance(error, ApiError) else None,
        )

    @property
    def is_rate_limited(self) -> bool:
        return self.error_kind == ErrorKind.RATE_LIMITED


async def run_action(action: str, operation: Awaitable[ActionResult[T]]) -> ActionResult[T]:
    """Await a controller operation, folding client errors into a failed result."""
    try:
        return await operation
    except FormValidationError as e:
        logger.debug(f"{action}: validation failed: {e.message}")
        return ActionResult.from_error(e)
    except DashboardError as e:
        logger.warning(f"{action} failed ({e.kind.value}): {e.message}")
        return ActionResult.from_error(e)
