import json
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import httpx
import pytest
from eth_abi import encode as abi_encode

from conftest import ALICE, COUNCIL, LOOTBOX, TOKEN
from models.activity import BlockRange
from services import chain_reader as chain_reader_module
from services.chain_reader import RpcChainReader
from services.contracts import (
    BOX_OPENED,
    LISTING_SOLD,
    TRANSFER_SINGLE,
    decode_log,
    encode_call,
    read_field,
)
from services.errors import ConfigurationError, ReadError


def _word(value: int) -> str:
    return f"{value:064x}"


def _topic_address(address: str) -> str:
    return "0x" + "0" * 24 + address[2:]


def test_transfer_single_topic_matches_erc1155():
    assert TRANSFER_SINGLE.topic == (
        "0xc3d58168c5ae7397731d063d5bbf3d657854427343f4c083240f7aacaa2d0f62"
    )


def test_balance_of_calldata_uses_erc1155_selector():
    calldata = encode_call(read_field("balanceOf"), (ALICE, 0))
    assert calldata.startswith("0x00fdd58e")
    assert len(calldata) == 2 + 8 + 128


def test_unknown_field_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        read_field("totalSupply")


def test_decode_box_opened_log():
    log = {
        "address": LOOTBOX.upper().replace("0X", "0x"),
        "topics": [BOX_OPENED.topic, _topic_address(ALICE)],
        "data": "0x" + _word(7) + _word(1_700_000_000) + _word(3),
        "blockNumber": "0x2a",
        "transactionHash": "0xdead",
        "logIndex": "0x1",
    }

    event = decode_log(BOX_OPENED, log)

    assert event.event == "BoxOpened"
    assert event.address == LOOTBOX
    assert event.args == (ALICE, 7, 1_700_000_000, 3)
    assert event.block_number == 42
    assert event.log_index == 1
    assert event.tx_hash == "0xdead"


def test_decode_reads_indexed_uint_from_topics():
    log = {
        "topics": [LISTING_SOLD.topic, _topic_address(ALICE), "0x" + _word(12)],
        "data": "0x" + _word(1) + _word(5 * 10**18),
        "blockNumber": "0x1",
    }

    assert decode_log(LISTING_SOLD, log).args == (ALICE, 12, 1, 5 * 10**18)


def test_decode_rejects_logs_with_missing_words():
    short_data = {"topics": [BOX_OPENED.topic, _topic_address(ALICE)], "data": "0x" + _word(7)}
    missing_topic = {"topics": [BOX_OPENED.topic], "data": "0x" + _word(1) * 3}

    assert decode_log(BOX_OPENED, short_data) is None
    assert decode_log(BOX_OPENED, missing_topic) is None


def _scripted(reader, responses):
    """Replace the transport with canned JSON-RPC responses keyed by method."""
    sent = []

    async def fake_request(payload, *, method):
        sent.append(payload)
        return responses[method]

    reader._rpc_request = fake_request
    return sent


@pytest.mark.asyncio
async def test_height_is_parsed_from_hex():
    reader = RpcChainReader("http://rpc.local")
    _scripted(reader, {"eth_blockNumber": {"jsonrpc": "2.0", "id": 1, "result": "0x1b4"}})

    assert await reader.get_current_height() == 436


@pytest.mark.asyncio
async def test_rpc_error_payload_raises_read_error():
    reader = RpcChainReader("http://rpc.local")
    _scripted(reader, {"eth_getLogs": {"error": {"code": -32005, "message": "range too large"}}})

    with pytest.raises(ReadError) as exc_info:
        await reader.get_logs_in_range(LOOTBOX, "BoxOpened", BlockRange(0, 10))
    assert exc_info.value.method == "eth_getLogs"


@pytest.mark.asyncio
async def test_get_logs_filters_by_topic_and_skips_undecodable_entries():
    reader = RpcChainReader("http://rpc.local")
    good = {
        "address": LOOTBOX,
        "topics": [BOX_OPENED.topic, _topic_address(ALICE)],
        "data": "0x" + _word(1) + _word(100) + _word(2),
        "blockNumber": "0x5",
        "transactionHash": "0x01",
        "logIndex": "0x0",
    }
    sent = _scripted(reader, {"eth_getLogs": {"result": [good, {"topics": []}, "junk"]}})

    events = await reader.get_logs_in_range(LOOTBOX, "BoxOpened", BlockRange(5, 9))

    assert [e.args for e in events] == [(ALICE, 1, 100, 2)]
    params = sent[0]["params"][0]
    assert params["fromBlock"] == "0x5"
    assert params["toBlock"] == "0x9"
    assert params["topics"] == [BOX_OPENED.topic]


@pytest.mark.asyncio
async def test_missing_address_is_a_configuration_error():
    reader = RpcChainReader("http://rpc.local")

    with pytest.raises(ConfigurationError):
        await reader.get_logs_in_range(None, "Staked", BlockRange(0, 1))
    with pytest.raises(ConfigurationError):
        await reader.read_field("", "ARCADE_COIN")


@pytest.mark.asyncio
async def test_read_field_decodes_scalar_and_tuple_results():
    reader = RpcChainReader("http://rpc.local")
    proposal = abi_encode(
        list(read_field("getProposal").outputs),
        [ALICE, "Raise rewards", 10, 20, 3, 1, False, False, False, ALICE, 5],
    )

    _scripted(reader, {"eth_call": {"result": "0x" + _word(4)}})
    assert await reader.read_field(TOKEN, "ARCADE_COIN") == 4

    _scripted(reader, {"eth_call": {"result": "0x" + proposal.hex()}})
    fields = await reader.read_field(COUNCIL, "getProposal", 1)
    assert fields[1] == "Raise rewards"
    assert fields[3] == 20
    assert fields[6] is False


@pytest.mark.asyncio
async def test_empty_call_result_raises_read_error():
    reader = RpcChainReader("http://rpc.local")
    _scripted(reader, {"eth_call": {"result": "0x"}})

    with pytest.raises(ReadError):
        await reader.read_field(TOKEN, "ARCADE_COIN")


@pytest.mark.asyncio
async def test_block_timestamp_missing_block_raises_read_error():
    reader = RpcChainReader("http://rpc.local")
    _scripted(reader, {"eth_getBlockByNumber": {"result": None}})

    with pytest.raises(ReadError):
        await reader.get_block_timestamp(99)

    _scripted(reader, {"eth_getBlockByNumber": {"result": {"timestamp": "0x64"}}})
    assert await reader.get_block_timestamp(99) == 100


def _patch_transport(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(chain_reader_module.httpx, "AsyncClient", client_factory)


@pytest.mark.asyncio
async def test_failover_moves_to_next_endpoint_and_sticks(monkeypatch):
    hosts = []

    def handler(request):
        hosts.append(request.url.host)
        if request.url.host == "primary.local":
            return httpx.Response(503)
        body = json.loads(request.content)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x10"})

    _patch_transport(monkeypatch, handler)
    reader = RpcChainReader("http://primary.local", ("http://backup.local",))

    assert await reader.get_current_height() == 16
    assert reader.endpoint == "http://backup.local"
    assert await reader.get_current_height() == 16
    assert hosts == ["primary.local", "backup.local", "backup.local"]


@pytest.mark.asyncio
async def test_all_endpoints_failing_raises_read_error(monkeypatch):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    _patch_transport(monkeypatch, handler)
    reader = RpcChainReader("http://primary.local", ("http://backup.local",))

    with pytest.raises(ReadError) as exc_info:
        await reader.get_current_height()
    assert "connection refused" in str(exc_info.value)


@pytest.mark.asyncio
async def test_malformed_endpoint_url_becomes_read_error():
    reader = RpcChainReader("http://exa\tmple.com")

    with pytest.raises(ReadError):
        await reader.get_current_height()


@pytest.mark.asyncio
async def test_unexpected_transport_exception_becomes_read_error(monkeypatch):
    def handler(request):
        raise RuntimeError("transport bug")

    _patch_transport(monkeypatch, handler)
    reader = RpcChainReader("http://primary.local")

    with pytest.raises(ReadError) as exc_info:
        await reader.get_current_height()
    assert "transport bug" in str(exc_info.value)


def test_missing_rpc_endpoint_is_a_configuration_error(monkeypatch):
    monkeypatch.setattr(chain_reader_module.settings, "RPC_URL", "")
    monkeypatch.setattr(chain_reader_module.settings, "FALLBACK_RPC_URLS", "")

    with pytest.raises(ConfigurationError):
        RpcChainReader()


@pytest.mark.asyncio
async def test_listing_and_stake_reads_decode_tuples():
    reader = RpcChainReader("http://rpc.local")
    listing = abi_encode(
        list(read_field("listings").outputs), [ALICE, TOKEN, 7, 2, 10**18, True]
    )
    _scripted(reader, {"eth_call": {"result": "0x" + listing.hex()}})

    fields = await reader.read_field("0x" + "3" * 40, "listings", 0)

    assert fields[2:] == (7, 2, 10**18, True)
    assert encode_call(read_field("stakeInfo"), (ALICE,)).startswith("0x")
