"""
Per-source normalization of decoded logs into ActivityRecords.

Each activity kind has exactly one normalizer that knows the positional
layout of its event, how to describe it, and what it contributes to the
leaderboard. Normalizers are looked up by kind, so a source can never be
read with another source's field positions.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Optional

from config import settings
from models.activity import EXACT, ActivityKind, ActivityRecord, RawEvent
from services.errors import ConfigurationError, ReadError
from utils.clock import unix_now
from utils.logger import get_logger
from utils.validation import parse_address, same_address, short_address

logger = get_logger("event_normalizer")


def scale_amount(raw: Any, decimals: int) -> Decimal:
    """Convert a raw token integer into a Decimal with ``decimals`` places."""
    try:
        value = Decimal(int(raw))
    except (TypeError, ValueError):
        return Decimal(0)
    return value.scaleb(-decimals, context=EXACT)


def format_amount(value: Decimal) -> str:
    """Plain (non-scientific) text without trailing zeros: 50, 0.5, 12.25."""
    if value == 0:
        return "0"
    return format(value.normalize(context=EXACT), "f")


def _arg(args: tuple, index: int) -> Any:
    return args[index] if len(args) > index else None


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class BlockTimestampResolver:
    """Resolves block timestamps for one cycle, caching per block number.

    A failed lookup falls back to the current wall-clock second so one bad
    read never aborts the batch. Failures are not cached.
    """

    def __init__(self, reader, clock: Callable[[], int] = unix_now):
        self._reader = reader
        self._clock = clock
        self._cache: dict[int, int] = {}
        self.failures = 0

    async def resolve(self, block_number: int) -> int:
        cached = self._cache.get(block_number)
        if cached is not None:
            return cached
        try:
            timestamp = int(await self._reader.get_block_timestamp(block_number))
        except ReadError as e:
            self.failures += 1
            logger.warning(
                "Block timestamp lookup failed, using wall clock",
                block_number=block_number,
                error=str(e),
            )
            return self._clock()
        self._cache[block_number] = timestamp
        return timestamp


@dataclass(frozen=True)
class EventFields:
    """Fields pulled from one event's positional args."""

    actor: str
    amount: Decimal
    subject_id: Optional[int] = None
    embedded_timestamp: Optional[int] = None


class EventNormalizer(abc.ABC):
    """Maps one source kind's RawEvents onto ActivityRecords."""

    kind: ActivityKind
    event_name: str

    def __init__(
        self,
        decimals: Optional[int] = None,
        currency: Optional[str] = None,
        stake_weight: Optional[Decimal] = None,
    ):
        self.decimals = settings.TOKEN_DECIMALS if decimals is None else decimals
        self.currency = currency or settings.CURRENCY_SYMBOL
        self.stake_weight = (
            Decimal(settings.STAKE_SCORE_WEIGHT) if stake_weight is None else Decimal(stake_weight)
        )

    @abc.abstractmethod
    def extract(self, args: tuple) -> Optional[EventFields]:
        """Read the event's fields; None when the actor is missing or malformed."""

    @abc.abstractmethod
    def describe(self, who: str, fields: EventFields) -> str:
        ...

    @abc.abstractmethod
    def score_contribution(self, fields: EventFields) -> Decimal:
        ...

    def _actor(self, args: tuple) -> Optional[str]:
        return parse_address(_arg(args, 0))

    async def normalize(
        self,
        raw: RawEvent,
        context_actor: Optional[str],
        timestamps: BlockTimestampResolver,
    ) -> Optional[ActivityRecord]:
        fields = self.extract(raw.args)
        if fields is None:
            logger.debug(
                "Dropped event without a usable actor",
                event=raw.event,
                tx_hash=raw.tx_hash,
            )
            return None

        if fields.embedded_timestamp:
            timestamp = fields.embedded_timestamp
        else:
            timestamp = await timestamps.resolve(raw.block_number)

        who = "You" if same_address(context_actor, fields.actor) else short_address(fields.actor)
        return ActivityRecord(
            actor=fields.actor,
            kind=self.kind,
            amount=fields.amount,
            tx_ref=raw.tx_hash,
            timestamp=timestamp,
            description=self.describe(who, fields),
            subject_id=fields.subject_id,
            block_number=raw.block_number,
            log_index=raw.log_index,
        )


class BoxOpenedNormalizer(EventNormalizer):
    kind = ActivityKind.BOX_OPENED
    event_name = "BoxOpened"

    def extract(self, args: tuple) -> Optional[EventFields]:
        actor = self._actor(args)
        if actor is None:
            return None
        raw_count = _arg(args, 3)
        box_count = _optional_int(raw_count)
        if box_count is None:
            box_count = 1
        embedded = _optional_int(_arg(args, 2))
        return EventFields(
            actor=actor,
            amount=Decimal(box_count),
            subject_id=_optional_int(_arg(args, 1)),
            embedded_timestamp=embedded if embedded and embedded > 0 else None,
        )

    def describe(self, who: str, fields: EventFields) -> str:
        trophy = fields.subject_id if fields.subject_id is not None else "?"
        return f"{who} opened {format_amount(fields.amount)} LootBox(es) and won trophy #{trophy}"

    def score_contribution(self, fields: EventFields) -> Decimal:
        return fields.amount


class _TokenAmountNormalizer(EventNormalizer):
    """Events shaped ``(address user, uint256 amount, ...)``."""

    amount_index = 1

    def extract(self, args: tuple) -> Optional[EventFields]:
        actor = self._actor(args)
        if actor is None:
            return None
        return EventFields(
            actor=actor,
            amount=scale_amount(_arg(args, self.amount_index), self.decimals),
        )


class StakedNormalizer(_TokenAmountNormalizer):
    kind = ActivityKind.STAKED
    event_name = "Staked"

    def describe(self, who: str, fields: EventFields) -> str:
        return f"{who} staked {format_amount(fields.amount)} {self.currency}"

    def score_contribution(self, fields: EventFields) -> Decimal:
        return EXACT.multiply(fields.amount, self.stake_weight)


class HarvestedNormalizer(_TokenAmountNormalizer):
    kind = ActivityKind.HARVESTED
    event_name = "Harvested"

    def describe(self, who: str, fields: EventFields) -> str:
        return f"{who} harvested {format_amount(fields.amount)} {self.currency}"

    def score_contribution(self, fields: EventFields) -> Decimal:
        return fields.amount


class SoldNormalizer(_TokenAmountNormalizer):
    """``ListingSold(buyer, listingId, amount, price)``; the buyer is the actor."""

    kind = ActivityKind.SOLD
    event_name = "ListingSold"
    amount_index = 3

    def describe(self, who: str, fields: EventFields) -> str:
        return f"{who} bought item for {format_amount(fields.amount)} {self.currency}"

    def score_contribution(self, fields: EventFields) -> Decimal:
        return fields.amount


NORMALIZER_CLASSES: dict[ActivityKind, type[EventNormalizer]] = {
    ActivityKind.BOX_OPENED: BoxOpenedNormalizer,
    ActivityKind.STAKED: StakedNormalizer,
    ActivityKind.HARVESTED: HarvestedNormalizer,
    ActivityKind.SOLD: SoldNormalizer,
}


def build_normalizers(**options: Any) -> dict[ActivityKind, EventNormalizer]:
    """Instantiate one normalizer per kind with shared formatting options."""
    return {kind: cls(**options) for kind, cls in NORMALIZER_CLASSES.items()}


NORMALIZERS: dict[ActivityKind, EventNormalizer] = build_normalizers()


def normalizer_for(
    kind: ActivityKind, table: Optional[dict[ActivityKind, EventNormalizer]] = None
) -> EventNormalizer:
    table = NORMALIZERS if table is None else table
    try:
        return table[kind]
    except KeyError:
        raise ConfigurationError(f"No normalizer registered for {kind!r}") from None


def contribution_of(record: ActivityRecord, table: Optional[dict[ActivityKind, EventNormalizer]] = None) -> Decimal:
    """Score contribution of an already-normalized record."""
    normalizer = normalizer_for(record.kind, table)
    return normalizer.score_contribution(
        EventFields(actor=record.actor, amount=record.amount, subject_id=record.subject_id)
    )
