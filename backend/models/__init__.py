from .activity import (
    ActivityDigest,
    ActivityKind,
    AccountSnapshot,
    ActivityRecord,
    BlockRange,
    DeadlineSummary,
    GovernanceDigest,
    MarketListing,
    ProposalSnapshot,
    RawEvent,
    ScoreEntry,
    StakePosition,
    TreasurySnapshot,
)

__all__ = [
    "ActivityDigest",
    "ActivityKind",
    "AccountSnapshot",
    "ActivityRecord",
    "BlockRange",
    "DeadlineSummary",
    "GovernanceDigest",
    "MarketListing",
    "ProposalSnapshot",
    "RawEvent",
    "ScoreEntry",
    "StakePosition",
    "TreasurySnapshot",
]
