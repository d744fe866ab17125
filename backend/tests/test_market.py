import sys
from decimal import Decimal
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import pytest

from conftest import ALICE, BOB, TOKEN, TRADEHUB, WEI, FakeChainReader
from services.errors import ReadError
from services.market import ListingScanner, listing_from_fields


def _chain(listings):
    chain = FakeChainReader()
    chain.fields[(TRADEHUB, "listingsCount", ())] = len(listings)
    for index, fields in enumerate(listings):
        chain.fields[(TRADEHUB, "listings", (index,))] = fields
    return chain


def test_listing_fields_are_scaled_and_totalled():
    listing = listing_from_fields(4, (ALICE, TOKEN, 7, 3, WEI // 2, True), 18)

    assert listing.id == 4
    assert listing.seller == ALICE
    assert listing.token_address == TOKEN
    assert listing.price_per_unit == Decimal("0.5")
    assert listing.total_price == Decimal("1.5")
    assert listing.to_dict()["total_price"] == "1.5"


def test_short_listing_raises_read_error():
    with pytest.raises(ReadError):
        listing_from_fields(0, (ALICE, TOKEN), 18)


@pytest.mark.asyncio
async def test_scan_reads_every_index_and_returns_newest_first():
    chain = _chain([
        (ALICE, TOKEN, 1, 1, WEI, True),
        (BOB, TOKEN, 2, 5, 2 * WEI, False),
        (ALICE, TOKEN, 3, 2, 3 * WEI, True),
    ])

    listings = await ListingScanner(chain, TRADEHUB, decimals=18).scan()

    assert [listing.id for listing in listings] == [2, 1, 0]
    reads = [c[3] for c in chain.calls if c[0] == "field" and c[2] == "listings"]
    assert reads == [(0,), (1,), (2,)]


@pytest.mark.asyncio
async def test_active_only_hides_closed_listings():
    chain = _chain([(ALICE, TOKEN, 1, 1, WEI, True), (BOB, TOKEN, 2, 5, WEI, False)])

    listings = await ListingScanner(chain, TRADEHUB, decimals=18, active_only=True).scan()

    assert [listing.id for listing in listings] == [0]


@pytest.mark.asyncio
async def test_failed_listing_read_fails_the_scan():
    chain = _chain([(ALICE, TOKEN, 1, 1, WEI, True), (BOB, TOKEN, 2, 5, WEI, True)])
    chain.fields[(TRADEHUB, "listings", (1,))] = ReadError("execution reverted")

    with pytest.raises(ReadError):
        await ListingScanner(chain, TRADEHUB, decimals=18).scan()


@pytest.mark.asyncio
async def test_unset_trade_hub_yields_no_listings():
    chain = FakeChainReader()

    assert await ListingScanner(chain, "").scan() == ()
    assert chain.calls == []
