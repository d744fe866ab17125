"""
Data model for the arcade dashboard aggregates.

Everything here is immutable: a refresh cycle builds new values and the
dashboard store swaps them in whole, so readers never see a half-updated
leaderboard or activity feed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Context, Decimal
from enum import Enum
from typing import Any, Optional

# Wide enough for any uint256 so scaling and weighting never round.
EXACT = Context(prec=90)


def _plain(value: Decimal) -> str:
    """Decimal as fixed-point text without trailing zeros."""
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


class ActivityKind(str, Enum):
    BOX_OPENED = "box_opened"
    STAKED = "staked"
    HARVESTED = "harvested"
    SOLD = "sold"


@dataclass(frozen=True)
class BlockRange:
    """Inclusive block window ``[from_block, to_block]`` for one log scan."""

    from_block: int
    to_block: int

    def to_dict(self) -> dict:
        return {"from_block": self.from_block, "to_block": self.to_block}


@dataclass(frozen=True)
class RawEvent:
    """A decoded log as handed over by the provider layer.

    ``args`` holds the event parameters in ABI declaration order, so each
    source kind reads its fields by fixed position.
    """

    event: str
    address: str
    args: tuple[Any, ...]
    block_number: int
    tx_hash: str
    log_index: int = 0


@dataclass(frozen=True)
class ActivityRecord:
    """One normalized on-chain action, whatever contract emitted it."""

    actor: str  # lower-case address
    kind: ActivityKind
    amount: Decimal  # box count for BOX_OPENED, token amount otherwise
    tx_ref: str
    timestamp: int  # unix seconds
    description: str
    subject_id: Optional[int] = None  # trophy id
    block_number: int = 0
    log_index: int = 0

    def to_dict(self) -> dict:
        return {
            "actor": self.actor,
            "kind": self.kind.value,
            "amount": _plain(self.amount),
            "subject_id": self.subject_id,
            "tx_ref": self.tx_ref,
            "timestamp": self.timestamp,
            "description": self.description,
            "block_number": self.block_number,
            "log_index": self.log_index,
        }


@dataclass(frozen=True)
class ScoreEntry:
    actor: str
    score: Decimal

    def to_dict(self) -> dict:
        return {"actor": self.actor, "score": _plain(self.score)}


@dataclass(frozen=True)
class ProposalSnapshot:
    """Council proposal state read directly from the contract."""

    id: int
    closes_at: int
    is_finalized: bool
    proposer: Optional[str] = None
    description: str = ""
    starts_at: int = 0
    yes_votes: int = 0
    no_votes: int = 0
    passed: bool = False
    executed: bool = False
    recipient: Optional[str] = None
    amount: int = 0  # raw units requested for the recipient

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "proposer": self.proposer,
            "description": self.description,
            "starts_at": self.starts_at,
            "closes_at": self.closes_at,
            "yes_votes": str(self.yes_votes),
            "no_votes": str(self.no_votes),
            "is_finalized": self.is_finalized,
            "passed": self.passed,
            "executed": self.executed,
            "recipient": self.recipient,
            "amount": str(self.amount),
        }


@dataclass(frozen=True)
class DeadlineSummary:
    proposal_id: int
    closes_at: int

    def to_dict(self) -> dict:
        return {"proposal_id": self.proposal_id, "closes_at": self.closes_at}


@dataclass(frozen=True)
class ActivityDigest:
    """Result of one activity cycle, published as a unit."""

    activity: tuple[ActivityRecord, ...] = ()
    leaderboard: tuple[ScoreEntry, ...] = ()
    active_players: int = 0
    block_range: Optional[BlockRange] = None
    sources_failed: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "activity": [r.to_dict() for r in self.activity],
            "leaderboard": [e.to_dict() for e in self.leaderboard],
            "active_players": self.active_players,
            "block_range": self.block_range.to_dict() if self.block_range else None,
            "sources_failed": list(self.sources_failed),
        }


@dataclass(frozen=True)
class TreasurySnapshot:
    """Token balances held by each arcade module plus minted supply."""

    module_balances: dict[str, Decimal] = field(default_factory=dict)
    total_value_locked: Decimal = Decimal(0)
    total_minted: Optional[Decimal] = None  # None when the mint scan failed
    block_range: Optional[BlockRange] = None

    def to_dict(self) -> dict:
        return {
            "module_balances": {k: _plain(v) for k, v in self.module_balances.items()},
            "total_value_locked": _plain(self.total_value_locked),
            "total_minted": _plain(self.total_minted) if self.total_minted is not None else None,
            "block_range": self.block_range.to_dict() if self.block_range else None,
        }


@dataclass(frozen=True)
class GovernanceDigest:
    """Result of one council scan: every proposal, newest first, plus the next deadline."""

    proposals: tuple[ProposalSnapshot, ...] = ()
    deadline: Optional[DeadlineSummary] = None

    def to_dict(self) -> dict:
        return {
            "proposals": [p.to_dict() for p in self.proposals],
            "deadline": self.deadline.to_dict() if self.deadline else None,
        }


@dataclass(frozen=True)
class MarketListing:
    """One trade hub listing; ``price_per_unit`` is in coin units."""

    id: int
    seller: Optional[str]
    token_address: Optional[str]
    token_id: int
    amount: int
    price_per_unit: Decimal
    active: bool

    @property
    def total_price(self) -> Decimal:
        return EXACT.multiply(self.price_per_unit, Decimal(self.amount))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "seller": self.seller,
            "token_address": self.token_address,
            "token_id": self.token_id,
            "amount": self.amount,
            "price_per_unit": _plain(self.price_per_unit),
            "total_price": _plain(self.total_price),
            "active": self.active,
        }


@dataclass(frozen=True)
class StakePosition:
    amount: Decimal
    started_at: int
    lock_until: int
    reward_claimed: bool

    def to_dict(self) -> dict:
        return {
            "amount": _plain(self.amount),
            "started_at": self.started_at,
            "lock_until": self.lock_until,
            "reward_claimed": self.reward_claimed,
        }


@dataclass(frozen=True)
class AccountSnapshot:
    """Coin balance and stake of the connected account."""

    account: Optional[str] = None
    coin_balance: Decimal = Decimal(0)
    stake: Optional[StakePosition] = None

    def to_dict(self) -> dict:
        return {
            "account": self.account,
            "coin_balance": _plain(self.coin_balance),
            "stake": self.stake.to_dict() if self.stake else None,
        }
