"""
Wires the chain reader, the dashboard pollers and the state store.

Tasks:
    treasury    module balances + minted supply   (TREASURY_POLL_INTERVAL_SECONDS)
    activity    recent activity + leaderboard     (ACTIVITY_POLL_INTERVAL_SECONDS)
    governance  proposal list + nearest deadline   (GOVERNANCE_POLL_INTERVAL_SECONDS)
    market      trade hub listings                (MARKET_POLL_INTERVAL_SECONDS)
    account     connected account balance + stake (ACCOUNT_POLL_INTERVAL_SECONDS)
"""

from __future__ import annotations

import asyncio
from typing import Optional

from config import settings
from services.account import AccountReader
from services.activity_aggregator import ActivityAggregator
from services.chain_reader import ChainReader, RpcChainReader
from services.dashboard_state import DashboardStore
from services.deadline_selector import ProposalScanner
from services.errors import ReadError
from services.market import ListingScanner
from services.poll_scheduler import PollScheduler
from services.treasury import TreasuryReader
from utils.logger import get_logger

logger = get_logger("dashboard_service")


class DashboardService:
    def __init__(
        self,
        reader: Optional[ChainReader] = None,
        store: Optional[DashboardStore] = None,
        scheduler: Optional[PollScheduler] = None,
        *,
        context_actor: Optional[str] = None,
        aggregator: Optional[ActivityAggregator] = None,
        treasury: Optional[TreasuryReader] = None,
        proposals: Optional[ProposalScanner] = None,
        market: Optional[ListingScanner] = None,
        account: Optional[AccountReader] = None,
    ):
        self.reader = reader if reader is not None else RpcChainReader()
        self.store = store if store is not None else DashboardStore()
        self.scheduler = scheduler if scheduler is not None else PollScheduler()
        self.context_actor = settings.CONNECTED_ACCOUNT if context_actor is None else context_actor
        self.aggregator = aggregator if aggregator is not None else ActivityAggregator(self.reader)
        self.treasury = treasury if treasury is not None else TreasuryReader(self.reader)
        self.proposals = proposals if proposals is not None else ProposalScanner(self.reader)
        self.market = market if market is not None else ListingScanner(self.reader)
        self.account = (
            account if account is not None else AccountReader(self.reader, self.context_actor)
        )
        self._watch_task: Optional[asyncio.Task] = None

        self.scheduler.register(
            "treasury",
            settings.TREASURY_POLL_INTERVAL_SECONDS,
            self.treasury.refresh,
            self.store.publish_treasury,
        )
        self.scheduler.register(
            "activity",
            settings.ACTIVITY_POLL_INTERVAL_SECONDS,
            self._refresh_activity,
            self.store.publish_activity,
        )
        self.scheduler.register(
            "governance",
            settings.GOVERNANCE_POLL_INTERVAL_SECONDS,
            self.proposals.scan,
            self.store.publish_governance,
        )
        self.scheduler.register(
            "market",
            settings.MARKET_POLL_INTERVAL_SECONDS,
            self.market.scan,
            self.store.publish_listings,
        )
        self.scheduler.register(
            "account",
            settings.ACCOUNT_POLL_INTERVAL_SECONDS,
            self.account.refresh,
            self.store.publish_account,
        )

    async def _refresh_activity(self):
        return await self.aggregator.run_cycle(context_actor=self.context_actor)

    # ==================== LIFECYCLE ====================

    async def start(self, watch_connection: bool = True) -> None:
        await self.scheduler.start()
        if watch_connection and (self._watch_task is None or self._watch_task.done()):
            self._watch_task = asyncio.create_task(
                self._watch_connection_loop(settings.CONNECTION_CHECK_INTERVAL_SECONDS)
            )

    async def stop(self) -> None:
        if self._watch_task and not self._watch_task.done():
            self._watch_task.cancel()
            await asyncio.gather(self._watch_task, return_exceptions=True)
        self._watch_task = None
        await self.scheduler.stop()

    # ==================== CONNECTION WATCH ====================

    async def check_connection(self) -> bool:
        """Check the provider once and flip the scheduler's connectivity."""
        try:
            await self.reader.get_current_height()
        except ReadError as e:
            if self.scheduler.connected:
                logger.warning("Provider check failed", error=str(e))
            self.scheduler.disconnect()
            return False
        self.scheduler.reconnect()
        return True

    async def _watch_connection_loop(self, interval: float) -> None:
        try:
            while True:
                await asyncio.sleep(interval)
                try:
                    await self.check_connection()
                except Exception as e:
                    logger.error(
                        "Provider check raised unexpectedly",
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    self.scheduler.disconnect()
        except asyncio.CancelledError:
            logger.debug("Connection watch cancelled")

    def get_status(self) -> dict:
        return {
            "scheduler": self.scheduler.get_status(),
            "snapshot_version": self.store.snapshot.version,
        }
