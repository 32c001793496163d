"""Domain values and database models."""

from riskledger.models.trade import Trade
from riskledger.models.risk_policy import RiskPolicy
from riskledger.models.trade_record import TradeRecord, AppSetting

__all__ = [
    "Trade",
    "RiskPolicy",
    "TradeRecord",
    "AppSetting",
]
