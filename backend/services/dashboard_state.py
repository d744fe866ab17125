"""
In-memory dashboard state shared between the pollers and readers.

The store holds exactly one immutable ``DashboardSnapshot``. Each publish
builds a new snapshot with ``dataclasses.replace`` and swaps the reference,
so a reader either sees the previous complete state or the new complete
state, never a mix. Nothing is persisted; state lives for the process.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Optional

from models.activity import (
    AccountSnapshot,
    ActivityDigest,
    DeadlineSummary,
    GovernanceDigest,
    MarketListing,
    ProposalSnapshot,
    TreasurySnapshot,
)
from services.deadline_selector import NO_ACTIVE_PROPOSALS, describe_deadline
from utils.clock import unix_now, utcnow
from utils.logger import get_logger

logger = get_logger("dashboard_state")


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() + "Z" if dt else None


@dataclass(frozen=True)
class DashboardSnapshot:
    treasury: Optional[TreasurySnapshot] = None
    activity: ActivityDigest = field(default_factory=ActivityDigest)
    deadline: Optional[DeadlineSummary] = None
    proposals: tuple[ProposalSnapshot, ...] = ()
    governance_label: str = NO_ACTIVE_PROPOSALS
    listings: tuple[MarketListing, ...] = ()
    account: AccountSnapshot = field(default_factory=AccountSnapshot)
    treasury_updated_at: Optional[datetime] = None
    activity_updated_at: Optional[datetime] = None
    deadline_updated_at: Optional[datetime] = None
    listings_updated_at: Optional[datetime] = None
    account_updated_at: Optional[datetime] = None
    version: int = 0

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "treasury": self.treasury.to_dict() if self.treasury else None,
            "activity": self.activity.to_dict(),
            "deadline": self.deadline.to_dict() if self.deadline else None,
            "proposals": [p.to_dict() for p in self.proposals],
            "governance_label": self.governance_label,
            "listings": [listing.to_dict() for listing in self.listings],
            "account": self.account.to_dict(),
            "treasury_updated_at": _iso(self.treasury_updated_at),
            "activity_updated_at": _iso(self.activity_updated_at),
            "deadline_updated_at": _iso(self.deadline_updated_at),
            "listings_updated_at": _iso(self.listings_updated_at),
            "account_updated_at": _iso(self.account_updated_at),
        }


class DashboardStore:
    """Single-writer, multi-reader holder of the current snapshot."""

    def __init__(self, clock: Callable[[], int] = unix_now):
        self._snapshot = DashboardSnapshot()
        self._listeners: list[Callable[[DashboardSnapshot], Any]] = []
        self._clock = clock

    @property
    def snapshot(self) -> DashboardSnapshot:
        return self._snapshot

    def add_listener(self, callback: Callable[[DashboardSnapshot], Any]) -> None:
        """Register a sync callable invoked with every newly published snapshot."""
        self._listeners.append(callback)

    def publish_treasury(self, treasury: TreasurySnapshot) -> DashboardSnapshot:
        return self._swap(treasury=treasury, treasury_updated_at=utcnow())

    def publish_activity(self, digest: ActivityDigest) -> DashboardSnapshot:
        return self._swap(activity=digest, activity_updated_at=utcnow())

    def publish_governance(self, digest: GovernanceDigest) -> DashboardSnapshot:
        return self._swap(
            deadline=digest.deadline,
            proposals=digest.proposals,
            governance_label=describe_deadline(digest.deadline, self._clock()),
            deadline_updated_at=utcnow(),
        )

    def publish_listings(self, listings: tuple[MarketListing, ...]) -> DashboardSnapshot:
        return self._swap(listings=tuple(listings), listings_updated_at=utcnow())

    def publish_account(self, account: AccountSnapshot) -> DashboardSnapshot:
        return self._swap(account=account, account_updated_at=utcnow())

    def _swap(self, **changes: Any) -> DashboardSnapshot:
        snapshot = replace(self._snapshot, version=self._snapshot.version + 1, **changes)
        self._snapshot = snapshot
        for callback in self._listeners:
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(
                    "Snapshot listener error",
                    error_type=type(e).__name__,
                    error=str(e),
                    callback=getattr(callback, "__name__", str(callback)),
                )
        return snapshot
