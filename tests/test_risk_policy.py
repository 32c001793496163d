"""Tests for RiskPolicy maths, state transitions and validation."""

import math

import pytest

from riskledger.errors import ValidationError
from riskledger.models.risk_policy import RiskPolicy


# ---------------------------------------------------------------------------
# 1. Construction and validation
# ---------------------------------------------------------------------------

class TestCreate:
    def test_running_state_starts_at_configuration(self, policy):
        assert policy.current_balance == 10000
        assert policy.current_drawdown_threshold == -500
        assert policy.is_dynamic_max_drawdown is False

    @pytest.mark.parametrize("balance", [0, -1, float("nan"), float("inf"), None, "abc"])
    def test_bad_account_balance_rejected(self, balance):
        with pytest.raises(ValidationError):
            RiskPolicy.create(account_balance=balance, max_drawdown=0, loss_per_trade_percentage=0.02)

    def test_drawdown_above_balance_rejected(self):
        with pytest.raises(ValidationError, match="exceed"):
            RiskPolicy.create(account_balance=1000, max_drawdown=1001, loss_per_trade_percentage=0.02)

    def test_negative_drawdown_rejected(self):
        with pytest.raises(ValidationError):
            RiskPolicy.create(account_balance=1000, max_drawdown=-1, loss_per_trade_percentage=0.02)

    @pytest.mark.parametrize("pct", [0, -0.1, 1.5])
    def test_percentage_outside_unit_interval_rejected(self, pct):
        with pytest.raises(ValidationError):
            RiskPolicy.create(account_balance=1000, max_drawdown=100, loss_per_trade_percentage=pct)

    def test_percentage_of_one_allowed(self):
        policy = RiskPolicy.create(account_balance=1000, max_drawdown=100, loss_per_trade_percentage=1)
        assert policy.max_loss_per_trade == 1000

    def test_policy_is_frozen(self, policy):
        with pytest.raises(Exception):
            policy.current_balance = 1

    def test_constructor_enforces_bounds(self):
        with pytest.raises(ValidationError):
            RiskPolicy(account_balance=1000, max_drawdown=100, loss_per_trade_percentage=5)
        with pytest.raises(ValidationError, match="exceed"):
            RiskPolicy(account_balance=1000, max_drawdown=2000, loss_per_trade_percentage=0.02)

    def test_copy_with_enforces_bounds(self, policy):
        with pytest.raises(ValidationError):
            policy.copy_with(max_drawdown=20000)


# ---------------------------------------------------------------------------
# 2. Derived values and admission rules
# ---------------------------------------------------------------------------

class TestDerivedValues:
    def test_max_loss_tracks_current_balance(self, policy):
        assert policy.max_loss_per_trade == pytest.approx(200)
        assert policy.update_balance(-150).max_loss_per_trade == pytest.approx(197)

    def test_profit_buffer_only_in_dynamic_mode(self, policy, dynamic_policy):
        assert policy.update_balance(300).profit_buffer == 0
        assert dynamic_policy.update_balance(300).profit_buffer == pytest.approx(300)
        assert dynamic_policy.update_balance(300).effective_max_drawdown == pytest.approx(800)
        assert dynamic_policy.update_balance(-100).profit_buffer == 0

    def test_remaining_capacity(self, policy):
        assert policy.remaining_risk_capacity == 500
        assert policy.update_balance(-200).remaining_risk_capacity == pytest.approx(300)
        assert policy.update_balance(-900).remaining_risk_capacity == 0


class TestAdmission:
    def test_wins_always_within_limits(self, policy):
        assert policy.is_trade_within_risk_limits(1e9)
        assert not policy.would_exceed_max_drawdown(1e9)

    def test_loss_equal_to_max_loss_allowed(self, policy):
        assert policy.is_trade_within_risk_limits(-200)
        assert not policy.is_trade_within_risk_limits(-200.01)

    def test_landing_on_floor_is_a_breach(self, policy):
        at_edge = policy.update_balance(-400)
        assert at_edge.would_exceed_max_drawdown(-100)
        assert not at_edge.would_exceed_max_drawdown(-99.99)

    def test_accumulated_rounding_tolerated(self, policy):
        state = policy
        for _ in range(10):
            state = state.update_balance(-0.1)
        assert state.cumulative_pnl == pytest.approx(-1.0)
        assert not state.would_exceed_max_drawdown(-498.9)


# ---------------------------------------------------------------------------
# 3. Threshold ratchet
# ---------------------------------------------------------------------------

class TestRatchet:
    def test_fixed_mode_ratchet_clamps_at_break_even(self, policy):
        state = policy.apply_trade(600)
        assert state.current_drawdown_threshold == 0

    def test_fixed_mode_partial_advance(self, policy):
        state = policy.apply_trade(100)
        assert state.current_drawdown_threshold == pytest.approx(-400)

    def test_no_advance_without_full_room(self, policy):
        state = policy.apply_trade(-100).apply_trade(50)
        # cumulative -50 sits only 450 above the threshold
        assert state.current_drawdown_threshold == -500

    def test_dynamic_mode_follows_profit(self, dynamic_policy):
        state = dynamic_policy.apply_trade(1500)
        assert state.current_drawdown_threshold == pytest.approx(1000)

    def test_losses_never_move_threshold(self, policy):
        state = policy.apply_trade(600).apply_trade(-100)
        assert state.current_drawdown_threshold == 0

    def test_fixed_mode_monotonic_and_non_positive(self, policy):
        results = [120, -80, 300, -190, 250, 400, -150, 90, 500, -100]
        state = policy
        previous = state.current_drawdown_threshold
        for result in results:
            if result < 0 and (
                not state.is_trade_within_risk_limits(result) or state.would_exceed_max_drawdown(result)
            ):
                continue
            state = state.apply_trade(result)
            assert state.current_drawdown_threshold >= previous
            assert state.current_drawdown_threshold <= 0
            previous = state.current_drawdown_threshold

    def test_reset_restores_initial_state(self, policy):
        state = policy.apply_trade(600).apply_trade(-100).reset()
        assert state.current_balance == 10000
        assert state.current_drawdown_threshold == -500

    def test_transitions_leave_original_untouched(self, policy):
        policy.apply_trade(600)
        assert policy.current_balance == 10000
        assert policy.current_drawdown_threshold == -500


# ---------------------------------------------------------------------------
# 4. Calculators and serialisation
# ---------------------------------------------------------------------------

class TestCalculators:
    def test_position_size(self, policy):
        assert policy.calculate_position_size(100, 98) == pytest.approx(100)
        assert policy.calculate_position_size(98, 100) == pytest.approx(100)

    def test_position_size_zero_risk_is_infinite(self, policy):
        assert math.isinf(policy.calculate_position_size(100, 100))

    def test_required_win_rate(self):
        assert RiskPolicy.calculate_required_win_rate(200, 100) == pytest.approx(1 / 3)
        assert RiskPolicy.calculate_required_win_rate(0, 100) == 0.0
        assert RiskPolicy.calculate_required_win_rate(200, 0) == 0.0

    def test_risk_reward_ratio(self):
        assert RiskPolicy.calculate_risk_reward_ratio(100, 250) == 2.5
        assert RiskPolicy.calculate_risk_reward_ratio(0, 250) == 0.0


class TestSerialisation:
    def test_json_uses_camel_case(self, policy):
        data = policy.to_json()
        assert data["accountBalance"] == 10000
        assert data["lossPerTradePercentage"] == 0.02
        assert data["currentDrawdownThreshold"] == -500

    def test_from_json_fills_running_state(self):
        policy = RiskPolicy.from_json(
            {"maxDrawdown": 300, "lossPerTradePercentage": 0.01, "accountBalance": 5000}
        )
        assert policy.current_balance == 5000
        assert policy.current_drawdown_threshold == -300

    def test_from_json_keeps_running_state(self, policy):
        state = policy.apply_trade(600)
        assert RiskPolicy.from_json(state.to_json()) == state

    def test_from_json_missing_key(self):
        with pytest.raises(ValueError, match="accountBalance"):
            RiskPolicy.from_json({"maxDrawdown": 300, "lossPerTradePercentage": 0.01})

    def test_from_json_out_of_bounds(self, policy):
        with pytest.raises(ValidationError):
            RiskPolicy.from_json({**policy.to_json(), "lossPerTradePercentage": 5})
