from .logger import setup_logging, get_logger, chain_logger, aggregator_logger, scheduler_logger
from .clock import utcnow, unix_now, format_countdown
from .validation import (
    validate_eth_address,
    normalize_address,
    parse_address,
    same_address,
    short_address,
    ZERO_ADDRESS,
)

__all__ = [
    # Logger
    "setup_logging",
    "get_logger",
    "chain_logger",
    "aggregator_logger",
    "scheduler_logger",

    # Clock
    "utcnow",
    "unix_now",
    "format_countdown",

    # Validation
    "validate_eth_address",
    "normalize_address",
    "parse_address",
    "same_address",
    "short_address",
    "ZERO_ADDRESS",
]
