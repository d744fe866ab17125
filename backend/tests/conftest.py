"""Shared fixtures for the arcade dashboard tests."""

import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import pytest

from models.activity import RawEvent
from services.errors import ReadError

# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------

LOOTBOX = "0x1000000000000000000000000000000000000001"
STAKE_BADGE = "0x2000000000000000000000000000000000000002"
TRADEHUB = "0x3000000000000000000000000000000000000003"
COUNCIL = "0x4000000000000000000000000000000000000004"
TOKEN = "0x5000000000000000000000000000000000000005"

ALICE = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
BOB = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
CAROL = "0xcccccccccccccccccccccccccccccccccccccccc"

WEI = 10**18


def make_event(event, args, block_number=1, tx_hash=None, log_index=0, address=""):
    return RawEvent(
        event=event,
        address=address,
        args=tuple(args),
        block_number=block_number,
        tx_hash=tx_hash or f"0xtx{block_number:04d}{log_index:02d}",
        log_index=log_index,
    )


# ---------------------------------------------------------------------------
# In-memory chain
# ---------------------------------------------------------------------------


class FakeChainReader:
    """ChainReader double backed by dicts.

    Any stored value that is an Exception instance is raised instead of
    returned, which is how tests simulate failed reads.
    """

    def __init__(self, height=10_000):
        self.height = height
        self.logs = {}  # (address, event) -> list[RawEvent] | Exception
        self.fields = {}  # (address, field, args) -> value | Exception
        self.block_timestamps = {}  # block -> int | Exception
        self.calls = []

    @staticmethod
    def _unwrap(value):
        if isinstance(value, Exception):
            raise value
        return value

    async def get_current_height(self):
        self.calls.append(("height",))
        return self._unwrap(self.height)

    async def get_logs_in_range(self, source_address, event_name, block_range):
        self.calls.append(("logs", source_address, event_name, block_range))
        return list(self._unwrap(self.logs.get((source_address, event_name), [])))

    async def read_field(self, contract_address, field_name, *args):
        self.calls.append(("field", contract_address, field_name, args))
        key = (contract_address, field_name, tuple(args))
        if key not in self.fields:
            raise ReadError(f"no value for {key}", method="eth_call", target=contract_address)
        return self._unwrap(self.fields[key])

    async def get_block_timestamp(self, block_number):
        self.calls.append(("block", block_number))
        if block_number not in self.block_timestamps:
            raise ReadError(f"unknown block {block_number}", method="eth_getBlockByNumber")
        return self._unwrap(self.block_timestamps[block_number])


@pytest.fixture
def chain():
    return FakeChainReader()
