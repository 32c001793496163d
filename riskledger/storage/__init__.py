"""Storage contracts, engines and the per-process storage owner."""

from riskledger.storage.base import ConfigStorage, TradeStorage
from riskledger.storage.app_storage import AppStorage
from riskledger.storage.factory import create_app_storage

__all__ = [
    "ConfigStorage",
    "TradeStorage",
    "AppStorage",
    "create_app_storage",
]
