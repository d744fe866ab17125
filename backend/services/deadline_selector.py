"""
Governance proposal list and "next vote" summary from council snapshot reads.

Proposals are read one by one from id 1 to the current count on every
cycle. A partial scan could hide a sooner deadline, so any failed read
voids the whole selection and the dashboard shows "No active proposals".
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from config import settings
from models.activity import DeadlineSummary, GovernanceDigest, ProposalSnapshot
from services.chain_reader import ChainReader
from services.errors import ConfigurationError, ReadError
from utils.clock import format_countdown, unix_now
from utils.logger import get_logger
from utils.validation import parse_address

logger = get_logger("deadline_selector")

NO_ACTIVE_PROPOSALS = "No active proposals"


def select_nearest_deadline(
    proposals: Iterable[ProposalSnapshot], now: int
) -> Optional[DeadlineSummary]:
    """Soonest-closing open proposal; ties go to the lowest id."""
    best: Optional[ProposalSnapshot] = None
    for proposal in proposals:
        if proposal.is_finalized or proposal.closes_at <= now:
            continue
        if best is None or (proposal.closes_at, proposal.id) < (best.closes_at, best.id):
            best = proposal
    if best is None:
        return None
    return DeadlineSummary(proposal_id=best.id, closes_at=best.closes_at)


def describe_deadline(summary: Optional[DeadlineSummary], now: int) -> str:
    if summary is None:
        return NO_ACTIVE_PROPOSALS
    label = format_countdown(summary.closes_at - now)
    return f"Next vote: Proposal #{summary.proposal_id} closes in {label}"


def proposal_from_fields(proposal_id: int, fields: tuple) -> ProposalSnapshot:
    """Build a snapshot from ``getProposal`` output.

    Layout: proposer, description, start, end, yes, no, tallied, passed,
    executed, recipient, amount. Only end and tallied drive selection.
    """
    try:
        return ProposalSnapshot(
            id=proposal_id,
            closes_at=int(fields[3]),
            is_finalized=bool(fields[6]),
            proposer=parse_address(fields[0]),
            description=str(fields[1] or ""),
            starts_at=int(fields[2]),
            yes_votes=int(fields[4]),
            no_votes=int(fields[5]),
            passed=bool(fields[7]),
            executed=bool(fields[8]),
            recipient=parse_address(fields[9]),
            amount=int(fields[10]),
        )
    except (IndexError, TypeError, ValueError) as e:
        raise ReadError(
            f"Malformed proposal #{proposal_id}: {e}", method="getProposal"
        ) from e


class ProposalScanner:
    """Reads every proposal snapshot and selects the nearest open deadline."""

    def __init__(
        self,
        reader: ChainReader,
        council_address: Optional[str] = None,
        clock: Callable[[], int] = unix_now,
    ):
        self._reader = reader
        self._council_address = (
            settings.ARCADE_COUNCIL_ADDRESS if council_address is None else council_address
        )
        self._clock = clock
        self._log = logger.with_context(council=self._council_address)

    async def read_proposals(self) -> list[ProposalSnapshot]:
        """Sequential full scan; raises on the first failed read."""
        if not self._council_address:
            raise ConfigurationError("Council contract address is not configured")
        count = int(await self._reader.read_field(self._council_address, "getProposalCount"))
        proposals: list[ProposalSnapshot] = []
        for proposal_id in range(1, count + 1):
            fields = await self._reader.read_field(
                self._council_address, "getProposal", proposal_id
            )
            proposals.append(proposal_from_fields(proposal_id, tuple(fields)))
        return proposals

    async def scan(self) -> GovernanceDigest:
        """Proposal list, newest first, and the nearest open deadline.

        Any failed read empties the whole digest for this cycle.
        """
        try:
            proposals = await self.read_proposals()
        except (ReadError, ConfigurationError) as e:
            self._log.warning(
                "Proposal scan aborted, reporting no active proposals",
                error_type=type(e).__name__,
                error=str(e),
            )
            return GovernanceDigest()
        summary = select_nearest_deadline(proposals, self._clock())
        self._log.debug(
            "Proposal scan complete",
            proposals=len(proposals),
            next_proposal=summary.proposal_id if summary else None,
        )
        return GovernanceDigest(proposals=tuple(reversed(proposals)), deadline=summary)
