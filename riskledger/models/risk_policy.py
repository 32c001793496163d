"""RiskPolicy: the account's risk configuration plus its running state.

The model is frozen. Every state change (``update_balance``,
``advance_threshold``, ``reset``, ``copy_with``) returns a new instance so the
previous policy stays valid until the service commits the replacement.

Cumulative P&L is measured against ``account_balance``. The drawdown
threshold is a floor on cumulative P&L. It starts at ``-max_drawdown`` and
ratchets up after profits; in fixed mode it never rises above break-even.
"""

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from riskledger.utils.constants import PNL_TOLERANCE
from riskledger.validation import validate_policy_config

_REQUIRED_JSON_KEYS = ("maxDrawdown", "lossPerTradePercentage", "accountBalance")


def _pop_either(data: dict, name: str):
    """Pop a field given under its python name or its camelCase alias."""
    alias = to_camel(name)
    value = data.pop(alias, None)
    fallback = data.pop(name, None)
    return value if value is not None else fallback


class RiskPolicy(BaseModel):
    account_balance: float
    current_balance: float
    max_drawdown: float
    loss_per_trade_percentage: float  # fraction of current balance, 0 < p <= 1
    is_dynamic_max_drawdown: bool = False
    current_drawdown_threshold: float

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _fill_running_state(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        balance = _pop_either(data, "account_balance")
        drawdown = _pop_either(data, "max_drawdown")
        current = _pop_either(data, "current_balance")
        threshold = _pop_either(data, "current_drawdown_threshold")
        if balance is not None:
            data["accountBalance"] = balance
            data["currentBalance"] = current if current is not None else balance
        if drawdown is not None:
            data["maxDrawdown"] = drawdown
            data["currentDrawdownThreshold"] = threshold if threshold is not None else -float(drawdown)
        return data

    @model_validator(mode="after")
    def _check_bounds(self) -> "RiskPolicy":
        validate_policy_config(self.account_balance, self.max_drawdown, self.loss_per_trade_percentage)
        return self

    @classmethod
    def create(
        cls,
        account_balance: float,
        max_drawdown: float,
        loss_per_trade_percentage: float,
        is_dynamic_max_drawdown: bool = False,
    ) -> "RiskPolicy":
        """Build a fresh policy from user input. Raises ValidationError on bad bounds."""
        balance, drawdown, percentage = validate_policy_config(
            account_balance, max_drawdown, loss_per_trade_percentage
        )
        return cls(
            account_balance=balance,
            max_drawdown=drawdown,
            loss_per_trade_percentage=percentage,
            is_dynamic_max_drawdown=is_dynamic_max_drawdown,
        )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def max_loss_per_trade(self) -> float:
        return self.current_balance * self.loss_per_trade_percentage

    @property
    def cumulative_pnl(self) -> float:
        return self.current_balance - self.account_balance

    @property
    def profit_buffer(self) -> float:
        """Extra drawdown allowance granted in dynamic mode."""
        if self.is_dynamic_max_drawdown and self.current_balance > self.account_balance:
            return self.current_balance - self.account_balance
        return 0.0

    @property
    def effective_max_drawdown(self) -> float:
        return self.max_drawdown + self.profit_buffer

    @property
    def drawdown_distance(self) -> float:
        """How far cumulative P&L sits above the ratcheted threshold."""
        return self.cumulative_pnl - self.current_drawdown_threshold

    @property
    def current_drawdown_amount(self) -> float:
        return max(self.account_balance - self.current_balance, 0.0)

    @property
    def remaining_risk_capacity(self) -> float:
        return max(self.effective_max_drawdown - self.current_drawdown_amount, 0.0)

    # ------------------------------------------------------------------
    # Admission rules
    # ------------------------------------------------------------------

    def is_trade_within_risk_limits(self, result: float) -> bool:
        if result >= 0:
            return True
        return abs(result) <= self.max_loss_per_trade + PNL_TOLERANCE

    def drawdown_floor(self) -> float:
        return self.current_drawdown_threshold - self.profit_buffer

    def would_exceed_max_drawdown(self, result: float) -> bool:
        """True when the trade would bring cumulative P&L to or below the floor."""
        if result >= 0:
            return False
        projected = self.cumulative_pnl + result
        return projected <= self.drawdown_floor() + PNL_TOLERANCE

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def copy_with(self, **changes: Any) -> "RiskPolicy":
        return RiskPolicy.model_validate({**self.model_dump(), **changes})

    def update_balance(self, result: float) -> "RiskPolicy":
        return self.copy_with(current_balance=self.current_balance + result)

    def advance_threshold(self) -> "RiskPolicy":
        """Ratchet the threshold up once profit clears a full max_drawdown of room."""
        cumulative = self.cumulative_pnl
        if cumulative - self.current_drawdown_threshold + PNL_TOLERANCE < self.max_drawdown:
            return self
        threshold = cumulative - self.max_drawdown
        if not self.is_dynamic_max_drawdown and threshold > 0:
            threshold = 0.0
        threshold = max(threshold, self.current_drawdown_threshold)
        if threshold == self.current_drawdown_threshold:
            return self
        return self.copy_with(current_drawdown_threshold=threshold)

    def apply_trade(self, result: float) -> "RiskPolicy":
        """Balance update plus the ratchet step that follows a non-losing trade."""
        updated = self.update_balance(result)
        if result >= 0:
            updated = updated.advance_threshold()
        return updated

    def reset(self) -> "RiskPolicy":
        return self.copy_with(
            current_balance=self.account_balance,
            current_drawdown_threshold=-self.max_drawdown,
        )

    # ------------------------------------------------------------------
    # Calculators
    # ------------------------------------------------------------------

    def calculate_position_size(self, entry_price: float, stop_loss: float) -> float:
        risk_per_unit = abs(entry_price - stop_loss)
        if risk_per_unit == 0:
            return math.inf
        return self.max_loss_per_trade / risk_per_unit

    @staticmethod
    def calculate_required_win_rate(average_win: float, average_loss_abs: float) -> float:
        """Breakeven win rate as a fraction; 0.0 when either side is missing."""
        average_loss_abs = abs(average_loss_abs)
        if not (math.isfinite(average_win) and math.isfinite(average_loss_abs)):
            return 0.0
        if average_win <= 0 or average_loss_abs <= 0:
            return 0.0
        return average_loss_abs / (average_win + average_loss_abs)

    @staticmethod
    def calculate_risk_reward_ratio(risk_amount: float, reward_amount: float) -> float:
        if risk_amount == 0:
            return 0.0
        return reward_amount / risk_amount

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "RiskPolicy":
        missing = [key for key in _REQUIRED_JSON_KEYS if data.get(key) is None]
        if missing:
            raise ValueError(f"risk settings missing keys: {', '.join(missing)}")
        return cls.model_validate(data)

    def __str__(self) -> str:
        return (
            f"RiskPolicy(max_drawdown=${self.max_drawdown:.2f}, "
            f"loss_per_trade={self.loss_per_trade_percentage * 100:.2f}%, "
            f"account_balance=${self.account_balance:.2f}, "
            f"current_balance=${self.current_balance:.2f}, "
            f"dynamic={self.is_dynamic_max_drawdown})"
        )
