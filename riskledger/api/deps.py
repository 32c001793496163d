"""Shared API dependencies."""

from fastapi import Request, status

from riskledger.errors import AppError, NotFoundError, RiskLimitExceeded, ValidationError
from riskledger.services.risk_service import RiskManagementService
from riskledger.storage.app_storage import AppStorage


def get_service(request: Request) -> RiskManagementService:
    return request.app.state.service


def get_storage(request: Request) -> AppStorage:
    return request.app.state.storage


def status_for(exc: AppError) -> int:
    """HTTP status for a domain error."""
    if isinstance(exc, ValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(exc, RiskLimitExceeded):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_500_INTERNAL_SERVER_ERROR
