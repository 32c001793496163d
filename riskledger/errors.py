"""Error taxonomy and the wrappers that attach operation context.

Every layer raises a subclass of ``AppError``:

- ``ValidationError``: malformed input, rejected before any mutation.
- ``ServiceError`` / ``RiskLimitExceeded``: trade rejected by the policy.
- ``RepositoryError``: repository-level failure not caused by storage.
- ``StorageError`` / ``NotFoundError``: backend failures.

The ``*_operation`` context managers log a failure once, re-raise known
``AppError`` subclasses unchanged and wrap anything else in the error type
of their layer.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for all riskledger errors."""

    default_code = "APP_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        cause: BaseException | None = None,
        context: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.cause = cause
        self.context = context

    def __str__(self) -> str:
        if self.context:
            return f"[{self.context}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "code": self.code, "message": self.message}


class ValidationError(AppError):
    default_code = "VALIDATION_ERROR"


class ServiceError(AppError):
    default_code = "SERVICE_ERROR"


class RiskLimitExceeded(ServiceError):
    """A trade was rejected by the risk policy. Nothing was persisted."""

    default_code = "RISK_LIMIT_EXCEEDED"

    def __init__(
        self,
        message: str,
        *,
        limit: str,
        bound: float,
        attempted: float,
        details: dict[str, float] | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.limit = limit
        self.bound = bound
        self.attempted = attempted
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            limit=self.limit,
            bound=round(self.bound, 2),
            attempted=round(self.attempted, 2),
            details={k: round(v, 2) for k, v in self.details.items()},
        )
        return data


class RepositoryError(AppError):
    default_code = "REPOSITORY_ERROR"


class StorageError(AppError):
    default_code = "STORAGE_ERROR"


class NotFoundError(StorageError):
    default_code = "NOT_FOUND"


def _wrap(error_cls: type[AppError], component: str, operation: str, exc: Exception) -> AppError:
    return error_cls(
        f"Failed to {operation}: {exc}",
        cause=exc,
        context=component,
    )


@asynccontextmanager
async def storage_operation(component: str, operation: str):
    """Wrap backend exceptions as ``StorageError``."""
    try:
        yield
    except AppError:
        raise
    except Exception as e:
        logger.error(f"[{component}] Failed to {operation}: {e}")
        raise _wrap(StorageError, component, operation, e) from e


@asynccontextmanager
async def repository_operation(component: str, operation: str):
    """Pass storage errors through, wrap the rest as ``RepositoryError``."""
    try:
        yield
    except AppError:
        raise
    except Exception as e:
        logger.error(f"[{component}] Failed to {operation}: {e}")
        raise _wrap(RepositoryError, component, operation, e) from e


@asynccontextmanager
async def service_operation(component: str, operation: str):
    """Log every failure; known errors propagate, unknown ones become ``ServiceError``."""
    try:
        yield
    except RiskLimitExceeded as e:
        logger.warning(f"[{component}] {operation} rejected: {e.message}")
        raise
    except AppError as e:
        logger.error(f"[{component}] Failed to {operation}: {e}")
        raise
    except Exception as e:
        logger.exception(f"[{component}] Unexpected failure in {operation}")
        raise _wrap(ServiceError, component, operation, e) from e
