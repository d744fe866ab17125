"""
Fixed ABI layouts for the arcade contracts.

The dashboard only needs a handful of events and view functions, so the
layouts are declared here instead of loading full ABI JSON. Event logs are
decoded word by word (every event field is a static 32-byte type); view
function calls go through eth-abi because proposal reads return a string.

Event layouts (positional args as handed to the normalizers):

    BoxOpened(address indexed user, uint256 trophyId, uint256 timestamp, uint256 boxCount)
    Staked(address indexed user, uint256 amount)
    Harvested(address indexed user, uint256 amount)
    ListingSold(address indexed buyer, uint256 indexed listingId, uint256 amount, uint256 price)
    TransferSingle(address indexed operator, address indexed from, address indexed to,
                   uint256 id, uint256 value)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from eth_abi import decode as abi_decode, encode as abi_encode
from eth_utils import function_signature_to_4byte_selector, keccak

from models.activity import RawEvent
from services.errors import ConfigurationError

# ==================== LAYOUT TYPES ====================


@dataclass(frozen=True)
class EventParam:
    name: str
    type: str
    indexed: bool = False


@dataclass(frozen=True)
class EventLayout:
    name: str
    params: tuple[EventParam, ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(p.type for p in self.params)})"

    @property
    def topic(self) -> str:
        """keccak256 of the canonical signature, as used in topic[0]."""
        return "0x" + keccak(text=self.signature).hex()


@dataclass(frozen=True)
class ReadField:
    """A view function: argument types in, return types out."""

    name: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ("uint256",)

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"


# ==================== EVENTS ====================

BOX_OPENED = EventLayout(
    "BoxOpened",
    (
        EventParam("user", "address", indexed=True),
        EventParam("trophyId", "uint256"),
        EventParam("timestamp", "uint256"),
        EventParam("boxCount", "uint256"),
    ),
)

STAKED = EventLayout(
    "Staked",
    (
        EventParam("user", "address", indexed=True),
        EventParam("amount", "uint256"),
    ),
)

HARVESTED = EventLayout(
    "Harvested",
    (
        EventParam("user", "address", indexed=True),
        EventParam("amount", "uint256"),
    ),
)

LISTING_SOLD = EventLayout(
    "ListingSold",
    (
        EventParam("buyer", "address", indexed=True),
        EventParam("listingId", "uint256", indexed=True),
        EventParam("amount", "uint256"),
        EventParam("price", "uint256"),
    ),
)

TRANSFER_SINGLE = EventLayout(
    "TransferSingle",
    (
        EventParam("operator", "address", indexed=True),
        EventParam("from", "address", indexed=True),
        EventParam("to", "address", indexed=True),
        EventParam("id", "uint256"),
        EventParam("value", "uint256"),
    ),
)

EVENT_LAYOUTS: dict[str, EventLayout] = {
    layout.name: layout
    for layout in (BOX_OPENED, STAKED, HARVESTED, LISTING_SOLD, TRANSFER_SINGLE)
}

# ==================== VIEW FUNCTIONS ====================

READ_FIELDS: dict[str, ReadField] = {
    f.name: f
    for f in (
        ReadField("ARCADE_COIN"),
        ReadField("balanceOf", inputs=("address", "uint256")),
        ReadField("getProposalCount"),
        # proposer, description, start, end, yes, no, tallied, passed,
        # executed, recipient, amount
        ReadField(
            "getProposal",
            inputs=("uint256",),
            outputs=(
                "address",
                "string",
                "uint256",
                "uint256",
                "uint256",
                "uint256",
                "bool",
                "bool",
                "bool",
                "address",
                "uint256",
            ),
        ),
        ReadField("listingsCount"),
        # seller, tokenAddress, tokenId, amount, pricePerUnit, active
        ReadField(
            "listings",
            inputs=("uint256",),
            outputs=("address", "address", "uint256", "uint256", "uint256", "bool"),
        ),
        # amount, startAt, lockUntil, rewardClaimed
        ReadField(
            "stakeInfo",
            inputs=("address",),
            outputs=("uint256", "uint256", "uint256", "bool"),
        ),
    )
}


def event_layout(name: str) -> EventLayout:
    try:
        return EVENT_LAYOUTS[name]
    except KeyError:
        raise ConfigurationError(f"Unsupported event: {name}") from None


def read_field(name: str) -> ReadField:
    try:
        return READ_FIELDS[name]
    except KeyError:
        raise ConfigurationError(f"Unsupported contract field: {name}") from None


# ==================== DECODING HELPERS ====================


def _decode_uint256(hex_str: str) -> int:
    """Decode a 256-bit unsigned integer from a hex-encoded ABI word."""
    return int(hex_str, 16)


def _decode_address_from_topic(topic_hex: str) -> str:
    """Extract an Ethereum address from a 32-byte ABI-encoded word.

    Addresses are left-padded with zeros in indexed event topics.
    """
    clean = topic_hex.lower().replace("0x", "")
    return "0x" + clean[-40:]


def _decode_word(param_type: str, word_hex: str) -> Any:
    if param_type == "address":
        return _decode_address_from_topic(word_hex)
    if param_type == "bool":
        return _decode_uint256(word_hex) != 0
    return _decode_uint256(word_hex)


def _parse_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    raise ValueError(f"Not an integer: {value!r}")


def decode_log(layout: EventLayout, log: dict) -> Optional[RawEvent]:
    """Decode one ``eth_getLogs`` entry into a positional RawEvent.

    Returns None when the log does not match the layout (wrong topic count,
    short data), mirroring how a contract with a different ABI would look.
    """
    topics = log.get("topics") or []
    data = log.get("data") or "0x"
    data_hex = data[2:] if data.startswith("0x") else data

    indexed = [p for p in layout.params if p.indexed]
    plain = [p for p in layout.params if not p.indexed]

    if len(topics) < 1 + len(indexed):
        return None
    if len(data_hex) < 64 * len(plain):
        return None

    topic_iter = iter(topics[1:])
    word_iter = iter(data_hex[i * 64 : (i + 1) * 64] for i in range(len(plain)))

    args: list[Any] = []
    try:
        for param in layout.params:
            word = next(topic_iter) if param.indexed else next(word_iter)
            args.append(_decode_word(param.type, word))
        block_number = _parse_int(log.get("blockNumber", 0))
        log_index = _parse_int(log.get("logIndex", 0))
    except (ValueError, TypeError):
        return None

    return RawEvent(
        event=layout.name,
        address=str(log.get("address") or "").lower(),
        args=tuple(args),
        block_number=block_number,
        tx_hash=str(log.get("transactionHash") or ""),
        log_index=log_index,
    )


def encode_call(field: ReadField, args: tuple[Any, ...]) -> str:
    """Build ``eth_call`` calldata for a view function."""
    selector = function_signature_to_4byte_selector(field.signature)
    encoded = abi_encode(list(field.inputs), list(args)) if field.inputs else b""
    return "0x" + (selector + encoded).hex()


def decode_result(field: ReadField, result_hex: str) -> tuple[Any, ...]:
    clean = result_hex[2:] if result_hex.startswith("0x") else result_hex
    return tuple(abi_decode(list(field.outputs), bytes.fromhex(clean)))
