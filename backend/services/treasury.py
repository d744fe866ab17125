"""
Treasury figures: coin balances held by each arcade module (TVL) and the
total amount of the arcade coin ever minted.

Minting is reconstructed from ERC-1155 ``TransferSingle`` logs whose sender
is the zero address. The scan starts at the known deployment block when one
is configured and close enough to the head, otherwise it falls back to a
wide lookback window.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from config import settings
from models.activity import BlockRange, RawEvent, TreasurySnapshot
from services.chain_reader import ChainReader
from services.errors import ConfigurationError, ReadError
from services.event_normalizer import EXACT, scale_amount
from services.range_scanner import compute_range
from utils.logger import get_logger
from utils.validation import ZERO_ADDRESS, parse_address

logger = get_logger("treasury")


@dataclass(frozen=True)
class TreasuryModule:
    key: str
    address: Optional[str]


def default_modules() -> list[TreasuryModule]:
    return [
        TreasuryModule("stake", settings.STAKE_BADGE_ADDRESS),
        TreasuryModule("loot", settings.LOOTBOX_ADDRESS),
        TreasuryModule("market", settings.TRADEHUB_ADDRESS),
        TreasuryModule("dao", settings.ARCADE_COUNCIL_ADDRESS),
    ]


def minted_amount(events: list[RawEvent], coin_id: int) -> int:
    """Raw units of ``coin_id`` transferred out of the zero address."""
    minted = 0
    for event in events:
        args = event.args
        if len(args) < 5:
            continue
        sender = parse_address(args[1])
        if sender is None:
            continue
        if sender == ZERO_ADDRESS and int(args[3]) == coin_id:
            minted += int(args[4])
    return minted


class TreasuryReader:
    def __init__(
        self,
        reader: ChainReader,
        token_address: Optional[str] = None,
        modules: Optional[list[TreasuryModule]] = None,
        *,
        deploy_block: Optional[int] = None,
        lookback: Optional[int] = None,
        max_span_factor: Optional[int] = None,
        decimals: Optional[int] = None,
    ):
        self._reader = reader
        self._token_address = (
            settings.ARCADE_TOKEN_ADDRESS if token_address is None else token_address
        )
        self._modules = list(modules) if modules is not None else default_modules()
        self._deploy_block = settings.DEPLOY_BLOCK if deploy_block is None else deploy_block
        self._lookback = settings.MINT_LOOKBACK_BLOCKS if lookback is None else lookback
        self._max_span_factor = (
            settings.DEPLOY_BLOCK_MAX_SPAN_FACTOR if max_span_factor is None else max_span_factor
        )
        self._decimals = settings.TOKEN_DECIMALS if decimals is None else decimals

    async def refresh(self) -> TreasurySnapshot:
        """Read balances and minted supply.

        An unset token address yields an empty snapshot. Raises ReadError when
        the coin id cannot be read; per-module and mint-scan failures degrade
        to zero / unknown instead.
        """
        if not self._token_address:
            logger.debug("Arcade token address not configured, treasury stays empty")
            return TreasurySnapshot()
        coin_id = int(await self._reader.read_field(self._token_address, "ARCADE_COIN"))

        balances: dict[str, Decimal] = {}
        total = Decimal(0)
        for module in self._modules:
            balance = await self._module_balance(module, coin_id)
            balances[module.key] = balance
            total = EXACT.add(total, balance)

        total_minted, block_range = await self._total_minted(coin_id)
        return TreasurySnapshot(
            module_balances=balances,
            total_value_locked=total,
            total_minted=total_minted,
            block_range=block_range,
        )

    async def _module_balance(self, module: TreasuryModule, coin_id: int) -> Decimal:
        if not module.address:
            return Decimal(0)
        try:
            raw = await self._reader.read_field(
                self._token_address, "balanceOf", module.address, coin_id
            )
        except ReadError as e:
            logger.warning(
                "Module balance read failed",
                module=module.key,
                address=module.address,
                error=str(e),
            )
            return Decimal(0)
        return scale_amount(raw, self._decimals)

    async def _total_minted(self, coin_id: int) -> tuple[Optional[Decimal], Optional[BlockRange]]:
        try:
            height = await self._reader.get_current_height()
            block_range = compute_range(
                height, self._lookback, self._deploy_block, self._max_span_factor
            )
            events = await self._reader.get_logs_in_range(
                self._token_address, "TransferSingle", block_range
            )
        except (ReadError, ConfigurationError) as e:
            logger.warning(
                "Mint scan failed",
                token=self._token_address,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None, None
        return scale_amount(minted_amount(events, coin_id), self._decimals), block_range
