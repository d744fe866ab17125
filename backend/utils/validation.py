import re
from typing import Optional


# Ethereum address regex
ETH_ADDRESS_REGEX = re.compile(r"^0x[a-fA-F0-9]{40}$")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def validate_eth_address(address: str) -> str:
    """Validate Ethereum address format"""
    if not address:
        raise ValueError("Address cannot be empty")

    address = address.strip()

    if not ETH_ADDRESS_REGEX.match(address):
        raise ValueError(f"Invalid Ethereum address format: {address}")

    return address


def normalize_address(address: str) -> str:
    """Validate and lower-case an address so comparisons are case-insensitive."""
    return validate_eth_address(address).lower()


def parse_address(value: object) -> Optional[str]:
    """Best-effort address parsing for decoded event args.

    Returns None for missing, empty or malformed values instead of raising,
    since a bad actor field only drops that one event.
    """
    if value is None:
        return None
    if isinstance(value, bytes):
        if len(value) != 20:
            return None
        value = "0x" + value.hex()
    text = str(value).strip()
    if not ETH_ADDRESS_REGEX.match(text):
        return None
    return text.lower()


def same_address(left: Optional[str], right: Optional[str]) -> bool:
    """Case-insensitive address equality; missing values never match."""
    if not left or not right:
        return False
    return left.lower() == right.lower()


def short_address(address: Optional[str]) -> str:
    """Truncated display form: first 6 chars, "...", last 4 chars."""
    if not address:
        return "0x0"
    return f"{address[:6]}...{address[-4:]}"
