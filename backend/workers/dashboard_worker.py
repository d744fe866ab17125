"""Dashboard worker: polls the arcade contracts and logs each published snapshot.

Run from backend dir:
  python -m workers.dashboard_worker
"""

from __future__ import annotations

import asyncio
import os
import sys

_BACKEND = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND not in sys.path:
    sys.path.insert(0, _BACKEND)

from config import settings
from services.dashboard_service import DashboardService
from services.dashboard_state import DashboardSnapshot
from services.poll_scheduler import CycleEvent
from utils.logger import get_logger, setup_logging

logger = get_logger("dashboard_worker")


def _log_snapshot(snapshot: DashboardSnapshot) -> None:
    treasury = snapshot.treasury
    logger.info(
        "Dashboard snapshot published",
        version=snapshot.version,
        tvl=treasury.total_value_locked if treasury else None,
        total_minted=treasury.total_minted if treasury else None,
        active_players=snapshot.activity.active_players,
        recent_activity=len(snapshot.activity.activity),
        leaderboard_top=(
            snapshot.activity.leaderboard[0].actor if snapshot.activity.leaderboard else None
        ),
        governance=snapshot.governance_label,
        proposals=len(snapshot.proposals),
        listings=len(snapshot.listings),
        account_balance=snapshot.account.coin_balance if snapshot.account.account else None,
    )


def _log_cycle(event: CycleEvent) -> None:
    if not event.ok:
        logger.warning("Cycle failed, keeping previous values", task=event.task, error=event.error)


async def _run_loop(service: DashboardService) -> None:
    logger.info(
        "Dashboard worker started",
        rpc_url=settings.RPC_URL,
        intervals={
            "treasury": settings.TREASURY_POLL_INTERVAL_SECONDS,
            "activity": settings.ACTIVITY_POLL_INTERVAL_SECONDS,
            "governance": settings.GOVERNANCE_POLL_INTERVAL_SECONDS,
            "market": settings.MARKET_POLL_INTERVAL_SECONDS,
            "account": settings.ACCOUNT_POLL_INTERVAL_SECONDS,
        },
    )
    await service.start()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await service.stop()


async def main() -> None:
    setup_logging(settings.LOG_LEVEL, json_format=settings.LOG_JSON, log_file=settings.LOG_FILE)
    service = DashboardService()
    service.store.add_listener(_log_snapshot)
    service.scheduler.add_listener(_log_cycle)
    try:
        await _run_loop(service)
    except asyncio.CancelledError:
        logger.info("Dashboard worker shutting down")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Dashboard worker interrupted")


if __name__ == "__main__":
    run()
