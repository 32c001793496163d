"""Shared constants for storage keys and numeric tolerances."""

# Absolute tolerance for limit comparisons on accumulated float P&L
PNL_TOLERANCE = 1e-9

# Risk status thresholds on distance / max_drawdown
STATUS_HIGH_RATIO = 0.2
STATUS_MEDIUM_RATIO = 0.5

# Config store keys
RISK_SETTINGS_KEY = "risk_settings"
APP_VERSION_KEY = "app_version"

# Preference store keys for trade data
TRADES_KEY = "trades"
TRADES_NEXT_ID_KEY = "trades_next_id"

EXPORT_FILE_PREFIX = "risk_management_backup_"
