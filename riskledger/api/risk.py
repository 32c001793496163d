"""Risk API: settings, status, statistics and calculators."""

import logging
import math

from fastapi import APIRouter, Depends

from riskledger.api.deps import get_service
from riskledger.models.risk_policy import RiskPolicy
from riskledger.schemas.risk_settings import (
    PositionSizeRead,
    PositionSizeRequest,
    RiskSettingsRead,
    RiskSettingsUpdate,
)
from riskledger.services.risk_service import RiskManagementService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/risk", tags=["risk"])


def _json_safe(data: dict) -> dict:
    # Replace inf/nan with None so JSON serialization doesn't blow up.
    return {k: None if isinstance(v, float) and not math.isfinite(v) else v for k, v in data.items()}


@router.get("/settings", response_model=RiskSettingsRead)
async def get_settings(service: RiskManagementService = Depends(get_service)):
    return RiskSettingsRead.from_policy(service.policy)


@router.put("/settings", response_model=RiskSettingsRead)
async def update_settings(body: RiskSettingsUpdate, service: RiskManagementService = Depends(get_service)):
    """Replace the policy; running state is recomputed from stored trades."""
    policy = RiskPolicy.create(
        account_balance=body.account_balance,
        max_drawdown=body.max_drawdown,
        loss_per_trade_percentage=body.loss_per_trade_percentage,
        is_dynamic_max_drawdown=body.is_dynamic_max_drawdown,
    )
    service.update_risk_settings(policy)
    await service.initialize_current_balance()
    await service.persist_risk_settings()
    logger.info(f"Risk settings updated: {service.policy}")
    return RiskSettingsRead.from_policy(service.policy)


@router.get("/status")
async def risk_status(service: RiskManagementService = Depends(get_service)):
    policy = service.policy
    return {
        "status": (await service.check_risk_status()).value,
        "current_balance": policy.current_balance,
        "cumulative_pnl": policy.cumulative_pnl,
        "drawdown_threshold": policy.current_drawdown_threshold,
        "drawdown_distance": policy.drawdown_distance,
        "remaining_risk_capacity": policy.remaining_risk_capacity,
    }


@router.get("/statistics")
async def statistics(service: RiskManagementService = Depends(get_service)):
    stats = await service.get_trading_statistics()
    return _json_safe(stats.model_dump(mode="json"))


@router.post("/position-size", response_model=PositionSizeRead)
async def position_size(body: PositionSizeRequest, service: RiskManagementService = Depends(get_service)):
    size = service.calculate_position_size(body.entry_price, body.stop_loss)
    return PositionSizeRead(
        entry_price=body.entry_price,
        stop_loss=body.stop_loss,
        risk_amount=service.policy.max_loss_per_trade,
        position_size=size if math.isfinite(size) else None,
    )


@router.get("/drawdown")
async def drawdown_series(service: RiskManagementService = Depends(get_service)):
    return await service.get_drawdown_series()


@router.post("/clear")
async def clear_trades(service: RiskManagementService = Depends(get_service)):
    """Delete every trade and reset the running state to the initial balance."""
    await service.clear_all_trades()
    await service.persist_risk_settings()
    return {"status": "ok"}
