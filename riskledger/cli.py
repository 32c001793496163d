"""CLI tool for journal operations.

Usage:
    python -m riskledger.cli <command> [args]
"""

import asyncio
import sys
from pathlib import Path

from riskledger.config import settings
from riskledger.errors import AppError, RiskLimitExceeded
from riskledger.services.backup import decode_bundle, encode_bundle, export_file_name
from riskledger.services.risk_service import bootstrap_service
from riskledger.storage.factory import create_app_storage
from riskledger.utils.logging import setup_logging

COMMANDS = "add <result>, list, stats, status, clear, export [path], import <path>, info, serve [port]"


def _fmt(value: float) -> str:
    if value == float("inf"):
        return "inf"
    return f"{value:,.2f}"


async def add_trade(result: str):
    async with create_app_storage(settings) as storage:
        service = await bootstrap_service(storage, settings)
        try:
            trade = await service.add_trade(result)
        except RiskLimitExceeded as e:
            print(f"Rejected: {e.message}")
            sys.exit(2)
        await service.persist_risk_settings()
        print(f"Trade #{trade.id} recorded: {trade.result:+.2f}")
        print(f"Balance: ${_fmt(service.policy.current_balance)}")


async def list_trades():
    async with create_app_storage(settings) as storage:
        service = await bootstrap_service(storage, settings)
        trades = await service.get_all_trades()
        if not trades:
            print("No trades recorded.")
            return
        for t in trades:
            print(f"{t.id:>6}  {t.timestamp:%Y-%m-%d %H:%M:%S}  {t.result:>+12.2f}")
        print(f"\n{len(trades)} trades, total P&L {_fmt(sum(t.result for t in trades))}")


async def show_stats():
    async with create_app_storage(settings) as storage:
        service = await bootstrap_service(storage, settings)
        stats = await service.get_trading_statistics()
        for name, value in stats.model_dump().items():
            if isinstance(value, float):
                value = _fmt(value)
            elif hasattr(value, "value"):
                value = value.value
            print(f"{name:<26} {value}")


async def show_status():
    async with create_app_storage(settings) as storage:
        service = await bootstrap_service(storage, settings)
        policy = service.policy
        status = await service.check_risk_status()
        print(f"Status:            {status.value.upper()}")
        print(f"Policy:            {policy}")
        print(f"Cumulative P&L:    {_fmt(policy.cumulative_pnl)}")
        print(f"Drawdown floor:    {_fmt(policy.drawdown_floor())}")
        print(f"Max loss / trade:  {_fmt(policy.max_loss_per_trade)}")


async def clear_trades():
    async with create_app_storage(settings) as storage:
        service = await bootstrap_service(storage, settings)
        await service.clear_all_trades()
        await service.persist_risk_settings()
        print("All trades cleared.")


async def export_data(path: str | None):
    async with create_app_storage(settings) as storage:
        bundle = await storage.export_all_data()
        target = Path(path) if path else Path(export_file_name(bundle.export_date))
        target.write_bytes(encode_bundle(bundle))
        print(f"Exported {len(bundle.trades)} trades to {target}")


async def import_data(path: str):
    bundle = decode_bundle(Path(path).read_bytes())
    async with create_app_storage(settings) as storage:
        policy = await storage.import_all_data(bundle)
        service = await bootstrap_service(storage, settings)
        print(f"Imported {len(bundle.trades)} trades (risk settings: {'yes' if policy else 'no'})")
        print(f"Balance: ${_fmt(service.policy.current_balance)}")


async def show_info():
    async with create_app_storage(settings) as storage:
        info = await storage.get_storage_info()
        for key, value in info.items():
            print(f"{key:<14} {value}")


def serve(port: int):
    import uvicorn

    uvicorn.run("riskledger.main:app", host="0.0.0.0", port=port, log_level=settings.log_level.lower())


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m riskledger.cli <command>")
        print(f"Commands: {COMMANDS}")
        sys.exit(1)

    command, args = sys.argv[1], sys.argv[2:]
    if command == "serve" and len(args) <= 1:
        serve(int(args[0]) if args else 8000)
        return

    setup_logging("WARNING")
    if command == "add" and len(args) == 1:
        coro = add_trade(args[0])
    elif command == "list":
        coro = list_trades()
    elif command == "stats":
        coro = show_stats()
    elif command == "status":
        coro = show_status()
    elif command == "clear":
        coro = clear_trades()
    elif command == "export" and len(args) <= 1:
        coro = export_data(args[0] if args else None)
    elif command == "import" and len(args) == 1:
        coro = import_data(args[0])
    elif command == "info":
        coro = show_info()
    else:
        print(f"Unknown command or bad arguments: {' '.join(sys.argv[1:])}")
        print(f"Commands: {COMMANDS}")
        sys.exit(1)

    try:
        asyncio.run(coro)
    except (AppError, OSError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
