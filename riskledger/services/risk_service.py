"""Risk management service: admits trades against the policy and tracks its state.

Callers must serialise writes. The service holds one RiskPolicy and replaces
it after each accepted trade; two concurrent ``add_trade`` calls would both
read the same policy and one update would be lost. There is no internal lock.
"""

import logging
from datetime import datetime

from pydantic import BaseModel

from riskledger.config import Settings, settings as default_settings
from riskledger.errors import RiskLimitExceeded, ValidationError, service_operation
from riskledger.models.risk_policy import RiskPolicy
from riskledger.models.trade import Trade
from riskledger.repository.trade_repository import TradeRepository
from riskledger.services.statistics import RiskStatus, TradingStatistics, calculate_statistics
from riskledger.storage.app_storage import AppStorage
from riskledger.storage.base import ConfigStorage
from riskledger.utils.constants import STATUS_HIGH_RATIO, STATUS_MEDIUM_RATIO
from riskledger.utils.result import Result
from riskledger.utils.timeutils import utcnow
from riskledger.validation import validate_date_range, validate_policy_config, validate_trade_result

logger = logging.getLogger(__name__)

COMPONENT = "RiskManagementService"


class DrawdownPoint(BaseModel):
    trade_id: int | None
    timestamp: datetime
    result: float
    balance: float
    cumulative_pnl: float
    threshold: float


def classify_risk(policy: RiskPolicy) -> RiskStatus:
    if policy.max_drawdown == 0:
        return RiskStatus.LOW
    ratio = policy.drawdown_distance / policy.max_drawdown
    if ratio <= 0:
        return RiskStatus.CRITICAL
    if ratio <= STATUS_HIGH_RATIO:
        return RiskStatus.HIGH
    if ratio <= STATUS_MEDIUM_RATIO:
        return RiskStatus.MEDIUM
    return RiskStatus.LOW


class RiskManagementService:
    def __init__(
        self,
        repository: TradeRepository,
        policy: RiskPolicy,
        config_storage: ConfigStorage | None = None,
    ):
        self._repository = repository
        self._policy = policy
        self._config_storage = config_storage

    @property
    def policy(self) -> RiskPolicy:
        return self._policy

    @property
    def repository(self) -> TradeRepository:
        return self._repository

    # ------------------------------------------------------------------
    # Trades
    # ------------------------------------------------------------------

    def _check_admission(self, result: float):
        policy = self._policy
        if result >= 0:
            return
        if not policy.is_trade_within_risk_limits(result):
            raise RiskLimitExceeded(
                f"Trade loss amount ${abs(result):.2f} exceeds maximum allowed loss "
                f"per trade ${policy.max_loss_per_trade:.2f}",
                limit="max_loss_per_trade",
                bound=policy.max_loss_per_trade,
                attempted=abs(result),
                context=COMPONENT,
            )
        if policy.would_exceed_max_drawdown(result):
            raise RiskLimitExceeded(
                f"Adding this trade would exceed maximum drawdown limit. "
                f"Current Balance: ${policy.current_balance:.2f}, "
                f"Effective Max Drawdown: ${policy.effective_max_drawdown:.2f}",
                limit="max_drawdown",
                bound=policy.drawdown_floor(),
                attempted=policy.cumulative_pnl + result,
                details={
                    "current_balance": policy.current_balance,
                    "effective_max_drawdown": policy.effective_max_drawdown,
                    "threshold": policy.current_drawdown_threshold,
                },
                context=COMPONENT,
            )

    async def add_trade(self, result: float, timestamp: datetime | None = None) -> Trade:
        """Validate, admit and persist a trade; then commit the new policy state."""
        async with service_operation(COMPONENT, "add trade"):
            value = validate_trade_result(result)
            self._check_admission(value)

            saved = await self._repository.add_trade(Trade(result=value, timestamp=timestamp or utcnow()))

            # Only reached once the trade is durable
            previous = self._policy
            updated = previous.apply_trade(value)
            self._policy = updated
            if updated.current_drawdown_threshold != previous.current_drawdown_threshold:
                logger.info(
                    f"Drawdown threshold advanced {previous.current_drawdown_threshold:.2f} "
                    f"-> {updated.current_drawdown_threshold:.2f}"
                )
            logger.info(f"Trade {saved.id} accepted: {value:+.2f}, balance ${updated.current_balance:.2f}")
            return saved

    async def get_all_trades(self) -> list[Trade]:
        async with service_operation(COMPONENT, "get all trades"):
            return await self._repository.get_all_trades()

    async def get_trades_by_date_range(self, start: datetime, end: datetime) -> list[Trade]:
        async with service_operation(COMPONENT, "get trades by date range"):
            validate_date_range(start, end)
            return await self._repository.get_trades_by_date_range(start, end)

    async def get_recent_trades(self, limit: int = 10) -> list[Trade]:
        async with service_operation(COMPONENT, "get recent trades"):
            if limit < 0:
                raise ValidationError("limit must not be negative")
            return await self._repository.get_recent_trades(limit)

    async def get_trade(self, trade_id: int) -> Trade | None:
        async with service_operation(COMPONENT, "get trade"):
            return await self._repository.get_trade_by_id(trade_id)

    async def delete_trade(self, trade_id: int):
        """Remove a trade and rebuild balance and threshold from what remains."""
        async with service_operation(COMPONENT, "delete trade"):
            await self._repository.delete_trade(trade_id)
            self._policy = self._replay(await self._repository.get_all_trades())[-1]
            logger.info(
                f"Trade {trade_id} deleted; balance ${self._policy.current_balance:.2f}, "
                f"threshold {self._policy.current_drawdown_threshold:.2f}"
            )

    async def get_total_pnl(self) -> float:
        async with service_operation(COMPONENT, "get total PnL"):
            return await self._repository.get_total_pnl()

    async def clear_all_trades(self):
        async with service_operation(COMPONENT, "clear all trades"):
            await self._repository.clear_all_trades()
            self._policy = self._policy.reset()
            logger.info("All trades cleared; policy reset to initial balance")

    # ------------------------------------------------------------------
    # Policy state
    # ------------------------------------------------------------------

    def _replay(self, trades: list[Trade]) -> list[RiskPolicy]:
        """Policy states from a fresh reset through each trade in order; first entry is the reset."""
        states = [self._policy.reset()]
        for trade in trades:
            states.append(states[-1].apply_trade(trade.result))
        return states

    async def initialize_current_balance(self):
        """Rehydrate current_balance from persisted trades after a restart."""
        async with service_operation(COMPONENT, "initialize current balance"):
            total = await self._repository.get_total_pnl()
            self._policy = self._policy.copy_with(current_balance=self._policy.account_balance + total)

    async def reload(self, policy: RiskPolicy | None = None):
        """Resync after the store was replaced underneath us (e.g. an import)."""
        async with service_operation(COMPONENT, "reload from storage"):
            await self._repository.refresh_cache()
            if policy is not None:
                self.update_risk_settings(policy)
            else:
                self._policy = self._policy.reset()
        await self.initialize_current_balance()

    def check_risk_settings(self, policy: RiskPolicy) -> Result[RiskPolicy]:
        try:
            validate_policy_config(policy.account_balance, policy.max_drawdown, policy.loss_per_trade_percentage)
        except ValidationError as e:
            return Result.failed(e)
        return Result.ok(policy)

    def validate_risk_settings(self, policy: RiskPolicy) -> bool:
        """Non-raising check for hints; the reason is logged."""
        checked = self.check_risk_settings(policy)
        if checked.is_error:
            logger.warning(f"[{COMPONENT}] Risk settings validation failed: {checked.error}")
        return checked.is_ok

    def update_risk_settings(self, policy: RiskPolicy):
        checked = self.check_risk_settings(policy)
        if checked.is_error:
            raise checked.error
        self._policy = policy

    async def persist_risk_settings(self):
        if self._config_storage is None:
            return
        async with service_operation(COMPONENT, "save risk settings"):
            await self._config_storage.save(self._policy)

    async def check_risk_status(self) -> RiskStatus:
        return classify_risk(self._policy)

    def calculate_position_size(self, entry_price: float, stop_loss: float) -> float:
        return self._policy.calculate_position_size(entry_price, stop_loss)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def get_trading_statistics(self) -> TradingStatistics:
        async with service_operation(COMPONENT, "get trading statistics"):
            trades = await self._repository.get_all_trades()
            basic = calculate_statistics(trades)
            policy = self._policy
            return TradingStatistics(
                **basic.model_dump(),
                current_drawdown=policy.current_drawdown_amount,
                max_allowed_drawdown=policy.effective_max_drawdown,
                remaining_risk_capacity=policy.remaining_risk_capacity,
                max_loss_per_trade=policy.max_loss_per_trade,
                required_win_rate=policy.calculate_required_win_rate(basic.average_win, abs(basic.average_loss)) * 100,
                drawdown_threshold=policy.current_drawdown_threshold,
                risk_status=classify_risk(policy),
            )

    async def get_drawdown_series(self) -> list[DrawdownPoint]:
        """Replay the ratchet over persisted trades, one point per trade."""
        async with service_operation(COMPONENT, "get drawdown series"):
            trades = await self._repository.get_all_trades()
            states = self._replay(trades)
            points = []
            for trade, state in zip(trades, states[1:]):
                points.append(
                    DrawdownPoint(
                        trade_id=trade.id,
                        timestamp=trade.timestamp,
                        result=trade.result,
                        balance=state.current_balance,
                        cumulative_pnl=state.cumulative_pnl,
                        threshold=state.current_drawdown_threshold,
                    )
                )
            return points


def default_policy(config: Settings | None = None) -> RiskPolicy:
    config = config or default_settings
    return RiskPolicy.create(
        account_balance=config.default_account_balance,
        max_drawdown=config.default_max_drawdown,
        loss_per_trade_percentage=config.default_loss_per_trade_percentage,
        is_dynamic_max_drawdown=config.default_dynamic_max_drawdown,
    )


async def bootstrap_service(storage: AppStorage, config: Settings | None = None) -> RiskManagementService:
    """Build the service from whatever the storage engine holds."""
    loaded = await storage.config.load()
    if loaded.is_ok:
        policy = loaded.value
    else:
        if loaded.is_error:
            logger.error(f"Stored risk settings unreadable ({loaded.error}); using defaults until saved")
        policy = default_policy(config)

    service = RiskManagementService(TradeRepository(storage.trades), policy, storage.config)
    if loaded.is_absent:
        await service.persist_risk_settings()
    await service.initialize_current_balance()
    return service
