"""Aggregate statistics over a list of trades. Pure functions, no I/O."""

import math
from enum import Enum

from pydantic import BaseModel

from riskledger.models.trade import Trade


class RiskStatus(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {RiskStatus.LOW: 0, RiskStatus.MEDIUM: 1, RiskStatus.HIGH: 2, RiskStatus.CRITICAL: 3}


class TradeStatistics(BaseModel):
    total_trades: int = 0
    total_pnl: float = 0.0
    win_count: int = 0
    loss_count: int = 0
    win_rate: float = 0.0  # percent
    loss_rate: float = 0.0  # percent
    average_win: float = 0.0
    average_loss: float = 0.0  # negative or zero
    best_win: float = 0.0
    worst_loss: float = 0.0
    profit_factor: float = 0.0  # inf when there are wins and no losses
    risk_reward_ratio: float = 0.0
    max_historical_drawdown: float = 0.0  # deepest peak-to-trough of the equity curve


class TradingStatistics(TradeStatistics):
    """Trade aggregates plus the policy-derived risk figures."""

    current_drawdown: float = 0.0
    max_allowed_drawdown: float = 0.0
    remaining_risk_capacity: float = 0.0
    max_loss_per_trade: float = 0.0
    required_win_rate: float = 0.0  # percent
    drawdown_threshold: float = 0.0
    risk_status: RiskStatus = RiskStatus.LOW


def max_drawdown_of(trades: list[Trade]) -> float:
    peak = 0.0
    equity = 0.0
    deepest = 0.0
    for trade in trades:
        equity += trade.result
        peak = max(peak, equity)
        deepest = max(deepest, peak - equity)
    return deepest


def calculate_statistics(trades: list[Trade]) -> TradeStatistics:
    if not trades:
        return TradeStatistics()

    wins = [t.result for t in trades if t.result > 0]
    losses = [t.result for t in trades if t.result < 0]
    total_wins = sum(wins)
    total_losses = sum(losses)

    average_win = total_wins / len(wins) if wins else 0.0
    average_loss = total_losses / len(losses) if losses else 0.0

    if losses:
        profit_factor = total_wins / abs(total_losses)
    else:
        profit_factor = math.inf if wins else 0.0

    return TradeStatistics(
        total_trades=len(trades),
        total_pnl=sum(t.result for t in trades),
        win_count=len(wins),
        loss_count=len(losses),
        win_rate=len(wins) / len(trades) * 100,
        loss_rate=len(losses) / len(trades) * 100,
        average_win=average_win,
        average_loss=average_loss,
        best_win=max(wins, default=0.0),
        worst_loss=min(losses, default=0.0),
        profit_factor=profit_factor,
        risk_reward_ratio=average_win / abs(average_loss) if average_loss else 0.0,
        max_historical_drawdown=max_drawdown_of(trades),
    )
