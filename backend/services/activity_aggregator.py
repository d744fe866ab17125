"""
Recent activity feed and leaderboard across every arcade contract.

One cycle:
  1. pick the block window ending at the current head,
  2. fetch each source's logs concurrently (a failing source contributes
     nothing and is logged, it never fails the cycle),
  3. normalize sequentially, newest first, and merge,
  4. score the full window for the leaderboard,
  5. count active players over the displayed slice only.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

from config import settings
from models.activity import ActivityDigest, ActivityKind, ActivityRecord, BlockRange, RawEvent
from services.chain_reader import ChainReader
from services.errors import ConfigurationError, ReadError
from services.event_normalizer import (
    BlockTimestampResolver,
    EventNormalizer,
    NORMALIZERS,
    normalizer_for,
)
from services.range_scanner import compute_range
from services.score_accumulator import accumulate, rank_leaderboard
from utils.clock import unix_now
from utils.logger import aggregator_logger as logger


@dataclass(frozen=True)
class ActivitySource:
    """One contract/event feed polled by the aggregator."""

    kind: ActivityKind
    address: Optional[str]

    @property
    def name(self) -> str:
        return self.kind.value


def default_sources() -> list[ActivitySource]:
    """Sources in display tie-break order: loot boxes, staking, harvests, sales."""
    return [
        ActivitySource(ActivityKind.BOX_OPENED, settings.LOOTBOX_ADDRESS),
        ActivitySource(ActivityKind.STAKED, settings.STAKE_BADGE_ADDRESS),
        ActivitySource(ActivityKind.HARVESTED, settings.STAKE_BADGE_ADDRESS),
        ActivitySource(ActivityKind.SOLD, settings.TRADEHUB_ADDRESS),
    ]


class ActivityAggregator:
    def __init__(
        self,
        reader: ChainReader,
        sources: Optional[list[ActivitySource]] = None,
        *,
        lookback: Optional[int] = None,
        display_limit: Optional[int] = None,
        leaderboard_size: Optional[int] = None,
        normalizers: Optional[dict[ActivityKind, EventNormalizer]] = None,
        clock: Callable[[], int] = unix_now,
    ):
        self._reader = reader
        self._sources = list(sources) if sources is not None else default_sources()
        self._lookback = settings.ACTIVITY_LOOKBACK_BLOCKS if lookback is None else lookback
        self._display_limit = (
            settings.ACTIVITY_DISPLAY_LIMIT if display_limit is None else display_limit
        )
        self._leaderboard_size = (
            settings.LEADERBOARD_SIZE if leaderboard_size is None else leaderboard_size
        )
        self._normalizers = NORMALIZERS if normalizers is None else normalizers
        self._clock = clock

    @property
    def sources(self) -> list[ActivitySource]:
        return list(self._sources)

    async def run_cycle(self, context_actor: Optional[str] = None) -> ActivityDigest:
        """Run one full refresh. Raises ReadError only if the chain head is unreadable."""
        height = await self._reader.get_current_height()
        block_range = compute_range(height, self._lookback)

        fetched = await asyncio.gather(
            *(self._fetch_source(source, block_range) for source in self._sources)
        )

        timestamps = BlockTimestampResolver(self._reader, clock=self._clock)
        records: list[ActivityRecord] = []
        failed: list[str] = []
        for source, events in zip(self._sources, fetched):
            if events is None:
                failed.append(source.name)
                continue
            normalizer = normalizer_for(source.kind, self._normalizers)
            for raw in events:
                record = await normalizer.normalize(raw, context_actor, timestamps)
                if record is not None:
                    records.append(record)

        # Stable sort: equal timestamps keep source order, newest emission first.
        recent = sorted(records, key=lambda r: -r.timestamp)[: max(0, self._display_limit)]
        leaderboard = rank_leaderboard(
            accumulate(records, self._normalizers), self._leaderboard_size
        )
        active_players = len({r.actor for r in recent})

        logger.info(
            "Activity cycle complete",
            from_block=block_range.from_block,
            to_block=block_range.to_block,
            records=len(records),
            displayed=len(recent),
            leaderboard=len(leaderboard),
            active_players=active_players,
            sources_failed=failed,
            timestamp_fallbacks=timestamps.failures,
        )
        return ActivityDigest(
            activity=tuple(recent),
            leaderboard=tuple(leaderboard),
            active_players=active_players,
            block_range=block_range,
            sources_failed=tuple(failed),
        )

    async def _fetch_source(
        self, source: ActivitySource, block_range: BlockRange
    ) -> Optional[list[RawEvent]]:
        """Logs for one source, newest emission first; None when the source failed."""
        try:
            if not source.address:
                raise ConfigurationError(f"{source.name} source has no contract address")
            normalizer = normalizer_for(source.kind, self._normalizers)
            events = await self._reader.get_logs_in_range(
                source.address, normalizer.event_name, block_range
            )
        except (ReadError, ConfigurationError) as e:
            logger.warning(
                "Activity source skipped",
                source=source.name,
                address=source.address,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None
        return list(reversed(events))
