"""
Trade hub listings feed.

Listings are read by index from 0 to ``listingsCount() - 1`` on every cycle
and published newest first. A failed read fails the cycle, so the previous
listings stay on the dashboard until the next tick.
"""

from __future__ import annotations

from typing import Optional

from config import settings
from models.activity import MarketListing
from services.chain_reader import ChainReader
from services.errors import ReadError
from services.event_normalizer import scale_amount
from utils.logger import get_logger
from utils.validation import parse_address

logger = get_logger("market")


def listing_from_fields(listing_id: int, fields: tuple, decimals: int) -> MarketListing:
    """Build a listing from ``listings(i)``: seller, token, tokenId, amount, pricePerUnit, active."""
    try:
        return MarketListing(
            id=listing_id,
            seller=parse_address(fields[0]),
            token_address=parse_address(fields[1]),
            token_id=int(fields[2]),
            amount=int(fields[3]),
            price_per_unit=scale_amount(fields[4], decimals),
            active=bool(fields[5]),
        )
    except (IndexError, TypeError, ValueError) as e:
        raise ReadError(f"Malformed listing #{listing_id}: {e}", method="listings") from e


class ListingScanner:
    def __init__(
        self,
        reader: ChainReader,
        tradehub_address: Optional[str] = None,
        *,
        decimals: Optional[int] = None,
        active_only: bool = False,
    ):
        self._reader = reader
        self._tradehub_address = (
            settings.TRADEHUB_ADDRESS if tradehub_address is None else tradehub_address
        )
        self._decimals = settings.TOKEN_DECIMALS if decimals is None else decimals
        self._active_only = active_only

    async def scan(self) -> tuple[MarketListing, ...]:
        """All listings, newest first. Raises ReadError on any failed read."""
        if not self._tradehub_address:
            logger.debug("Trade hub address not configured, market stays empty")
            return ()
        count = int(await self._reader.read_field(self._tradehub_address, "listingsCount"))
        listings: list[MarketListing] = []
        for listing_id in range(count):
            fields = await self._reader.read_field(self._tradehub_address, "listings", listing_id)
            listing = listing_from_fields(listing_id, tuple(fields), self._decimals)
            if listing.active or not self._active_only:
                listings.append(listing)
        logger.debug("Listing scan complete", listings=count, kept=len(listings))
        return tuple(reversed(listings))
