"""Error types raised by dashboard handlers and the guard that wraps them."""

from __future__ import annotations

import functools
import logging
from typing import Callable, Optional, TypeVar

from fastapi import status


log = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., object])


class DashboardError(Exception):
    """Base error carrying the message and HTTP status shown to the caller."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class Forbidden(DashboardError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message)


class NotFound(DashboardError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidRequest(DashboardError):
    status_code = status.HTTP_400_BAD_REQUEST


class OperationFailed(DashboardError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def guarded(message: str) -> Callable[[F], F]:
    """Convert unexpected exceptions from the wrapped call into ``OperationFailed``.

    ``DashboardError`` subclasses pass through untouched; anything else is
    logged with its traceback and replaced by ``message``.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except DashboardError:
                raise
            except Exception as exc:
                log.exception("%s failed", func.__name__)
                raise OperationFailed(message) from exc

        return wrapper  # type: ignore[return-value]

    return decorator


__all__ = [
    "DashboardError",
    "Forbidden",
    "InvalidRequest",
    "NotFound",
    "OperationFailed",
    "guarded",
]
