# src/fanstream_backend/core/result.py
"""
Typed outcome of every service and player operation.

Callers get either a value or an ``AppError`` and decide themselves whether to
retry, fall back or surface the problem.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import wraps
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    NETWORK_UNAVAILABLE = "network_unavailable"
    RESOURCE_ACQUISITION_FAILED = "resource_acquisition_failed"
    PERMISSION_DENIED = "permission_denied"
    VALIDATION_FAILED = "validation_failed"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    BACKEND_REJECTED = "backend_rejected"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class AppError:
    kind: ErrorKind
    message: str
    code: Optional[str] = None


class BackendError(Exception):
    """Raised by the hosted-backend client; converted to ``Result`` by services."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status
        self.code = code


class ResultError(Exception):
    def __init__(self, error: AppError):
        super().__init__(f"{error.kind.value}: {error.message}")
        self.error = error


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[AppError] = None
    stale: bool = False

    @classmethod
    def success(cls, value: T = None, stale: bool = False) -> "Result[T]":
        return cls(value=value, stale=stale)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, code: Optional[str] = None) -> "Result[T]":
        return cls(error=AppError(kind=kind, message=message, code=code))

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise ResultError(self.error)
        return self.value


def returns_result(log: logging.Logger, action: str):
    """Wraps an async service method: plain return values become ``Result.success``,
    ``BackendError`` becomes ``Result.failure`` and is logged."""

    def decorator(func: Callable[..., Awaitable[Any]]):
        @wraps(func)
        async def wrapper(*args, **kwargs) -> Result:
            try:
                value = await func(*args, **kwargs)
            except BackendError as e:
                log.error("%s failed: %s (%s)", action, e.message, e.kind.value)
                return Result.failure(e.kind, e.message, e.code)
            if isinstance(value, Result):
                return value
            return Result.success(value)

        return wrapper

    return decorator
