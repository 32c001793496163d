"""Trade risk ledger: drawdown policy engine over pluggable storage."""

__version__ = "1.0.0"
