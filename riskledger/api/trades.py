"""Trade journal API."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from riskledger.api.deps import get_service
from riskledger.schemas.trade import TradeCreate, TradeRead
from riskledger.services.risk_service import RiskManagementService

router = APIRouter(prefix="/api/trades", tags=["trades"])


@router.get("", response_model=list[TradeRead])
async def list_trades(
    start: datetime | None = None,
    end: datetime | None = None,
    service: RiskManagementService = Depends(get_service),
):
    """All trades ascending, or those within [start, end] when both are given."""
    if (start is None) != (end is None):
        raise HTTPException(status_code=422, detail="start and end must be given together")
    if start is not None:
        trades = await service.get_trades_by_date_range(start, end)
    else:
        trades = await service.get_all_trades()
    return [TradeRead.from_trade(t) for t in trades]


@router.get("/recent", response_model=list[TradeRead])
async def recent_trades(
    limit: int = Query(default=10, ge=0, le=1000),
    service: RiskManagementService = Depends(get_service),
):
    return [TradeRead.from_trade(t) for t in await service.get_recent_trades(limit)]


@router.get("/{trade_id}", response_model=TradeRead)
async def get_trade(trade_id: int, service: RiskManagementService = Depends(get_service)):
    trade = await service.get_trade(trade_id)
    if trade is None:
        raise HTTPException(status_code=404, detail="Trade not found")
    return TradeRead.from_trade(trade)


@router.post("", response_model=TradeRead, status_code=status.HTTP_201_CREATED)
async def add_trade(body: TradeCreate, service: RiskManagementService = Depends(get_service)):
    trade = await service.add_trade(body.result, body.timestamp)
    await service.persist_risk_settings()
    return TradeRead.from_trade(trade)


@router.delete("/{trade_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trade(trade_id: int, service: RiskManagementService = Depends(get_service)):
    await service.delete_trade(trade_id)
    await service.persist_risk_settings()
