"""Application configuration via environment variables."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

PROJECT_ROOT = Path(__file__).resolve().parent.parent

StorageBackend = Literal["sql", "redis", "preferences"]


class Settings(BaseSettings):
    # Storage engine, picked once at process start
    storage_backend: StorageBackend = "sql"
    database_url: str = f"sqlite:///{PROJECT_ROOT / 'data' / 'riskledger.db'}"
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "riskledger"
    preferences_path: Path = PROJECT_ROOT / "data" / "preferences.json"

    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173"]  # Vite dev server
    app_version: str = "1.0.0"

    # Trades beyond this magnitude are treated as input errors
    max_trade_magnitude: float = 1e12

    # Risk policy used when nothing has been stored yet
    default_account_balance: float = 10000.0
    default_max_drawdown: float = 500.0
    default_loss_per_trade_percentage: float = 0.02  # fraction, not percent
    default_dynamic_max_drawdown: bool = False

    model_config = {"env_prefix": "RL_", "env_file": ".env"}


settings = Settings()
