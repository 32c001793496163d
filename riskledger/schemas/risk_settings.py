"""Pydantic schemas for the risk settings API."""

from pydantic import BaseModel, Field, model_validator

from riskledger.models.risk_policy import RiskPolicy


class RiskSettingsUpdate(BaseModel):
    account_balance: float = Field(gt=0)
    max_drawdown: float = Field(ge=0)
    loss_per_trade_percentage: float = Field(gt=0, le=1)  # fraction, 0.02 == 2%
    is_dynamic_max_drawdown: bool = False

    @model_validator(mode="after")
    def _check_drawdown(self) -> "RiskSettingsUpdate":
        if self.max_drawdown > self.account_balance:
            raise ValueError("max_drawdown cannot exceed account_balance")
        return self


class RiskSettingsRead(BaseModel):
    account_balance: float
    current_balance: float
    max_drawdown: float
    loss_per_trade_percentage: float
    is_dynamic_max_drawdown: bool
    current_drawdown_threshold: float
    max_loss_per_trade: float
    effective_max_drawdown: float
    remaining_risk_capacity: float

    @classmethod
    def from_policy(cls, policy: RiskPolicy) -> "RiskSettingsRead":
        return cls(
            **policy.model_dump(),
            max_loss_per_trade=policy.max_loss_per_trade,
            effective_max_drawdown=policy.effective_max_drawdown,
            remaining_risk_capacity=policy.remaining_risk_capacity,
        )


class PositionSizeRequest(BaseModel):
    entry_price: float = Field(gt=0)
    stop_loss: float = Field(gt=0)


class PositionSizeRead(BaseModel):
    entry_price: float
    stop_loss: float
    risk_amount: float
    position_size: float | None  # None when entry equals stop
