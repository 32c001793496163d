"""Input validation rules. Each rule returns the cleaned value or raises ValidationError."""

import math
from datetime import datetime

from riskledger.config import settings
from riskledger.errors import ValidationError
from riskledger.utils.timeutils import is_valid_range


def validate_numeric(
    field_name: str,
    value,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
    exclusive_minimum: bool = False,
    message: str | None = None,
) -> float:
    if value is None or isinstance(value, bool):
        raise ValidationError(message or f"{field_name} cannot be empty", code="NULL_VALUE")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            message or f"{field_name} must be a valid number", code="INVALID_NUMBER", cause=e
        ) from e
    if not math.isfinite(number):
        raise ValidationError(message or f"{field_name} must be finite", code="INVALID_NUMBER")
    if minimum is not None:
        too_low = number <= minimum if exclusive_minimum else number < minimum
        if too_low:
            raise ValidationError(
                message or f"{field_name} must be {'greater than' if exclusive_minimum else 'at least'} {minimum}",
                code="VALUE_TOO_LOW",
            )
    if maximum is not None and number > maximum:
        raise ValidationError(message or f"{field_name} must be at most {maximum}", code="VALUE_TOO_HIGH")
    return number


def validate_account_balance(value) -> float:
    return validate_numeric(
        "Account balance",
        value,
        minimum=0.0,
        exclusive_minimum=True,
        message="Account balance must be a positive number",
    )


def validate_max_drawdown(value, account_balance: float) -> float:
    drawdown = validate_numeric(
        "Max drawdown", value, minimum=0.0, message="Max drawdown must be zero or a positive number"
    )
    if drawdown > account_balance:
        raise ValidationError("Max drawdown cannot exceed account balance", code="DRAWDOWN_TOO_HIGH")
    return drawdown


def validate_loss_percentage(value) -> float:
    return validate_numeric(
        "Loss per trade percentage",
        value,
        minimum=0.0,
        maximum=1.0,
        exclusive_minimum=True,
        message="Loss per trade percentage must be a fraction in (0, 1]",
    )


def validate_trade_result(value) -> float:
    result = validate_numeric("Trade result", value, message="Trade result must be a finite number")
    if abs(result) > settings.max_trade_magnitude:
        raise ValidationError(
            f"Trade result magnitude exceeds {settings.max_trade_magnitude:g}",
            code="VALUE_TOO_HIGH",
        )
    return result


def validate_date_range(start: datetime, end: datetime):
    if not is_valid_range(start, end):
        raise ValidationError(
            "Invalid date range: start date must be before or equal to end date",
            code="INVALID_DATE_RANGE",
        )


def validate_policy_config(account_balance, max_drawdown, loss_per_trade_percentage) -> tuple[float, float, float]:
    balance = validate_account_balance(account_balance)
    drawdown = validate_max_drawdown(max_drawdown, balance)
    percentage = validate_loss_percentage(loss_per_trade_percentage)
    return balance, drawdown, percentage
