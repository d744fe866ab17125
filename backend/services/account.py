"""Balance and stake position of the connected account."""

from __future__ import annotations

from typing import Optional

from config import settings
from models.activity import AccountSnapshot, StakePosition
from services.chain_reader import ChainReader
from services.errors import ReadError
from services.event_normalizer import scale_amount
from utils.logger import get_logger

logger = get_logger("account")


class AccountReader:
    """Reads ``balanceOf(account, ARCADE_COIN())`` and ``stakeInfo(account)``.

    Without a connected account the snapshot stays empty. Any ReadError
    fails the whole refresh so the previous values stay published.
    """

    def __init__(
        self,
        reader: ChainReader,
        account: Optional[str] = None,
        *,
        token_address: Optional[str] = None,
        stake_address: Optional[str] = None,
        decimals: Optional[int] = None,
    ):
        self._reader = reader
        self._account = settings.CONNECTED_ACCOUNT if account is None else account
        self._token_address = (
            settings.ARCADE_TOKEN_ADDRESS if token_address is None else token_address
        )
        self._stake_address = (
            settings.STAKE_BADGE_ADDRESS if stake_address is None else stake_address
        )
        self._decimals = settings.TOKEN_DECIMALS if decimals is None else decimals

    async def refresh(self) -> AccountSnapshot:
        if not self._account or not self._token_address:
            return AccountSnapshot(account=self._account or None)

        coin_id = int(await self._reader.read_field(self._token_address, "ARCADE_COIN"))
        raw_balance = await self._reader.read_field(
            self._token_address, "balanceOf", self._account, coin_id
        )
        stake = await self._stake_position() if self._stake_address else None
        snapshot = AccountSnapshot(
            account=self._account,
            coin_balance=scale_amount(raw_balance, self._decimals),
            stake=stake,
        )
        logger.debug(
            "Account refreshed",
            account=self._account,
            balance=snapshot.coin_balance,
            staked=stake.amount if stake else None,
        )
        return snapshot

    async def _stake_position(self) -> StakePosition:
        fields = await self._reader.read_field(self._stake_address, "stakeInfo", self._account)
        try:
            amount, started_at, lock_until, reward_claimed = fields
            return StakePosition(
                amount=scale_amount(amount, self._decimals),
                started_at=int(started_at),
                lock_until=int(lock_until),
                reward_claimed=bool(reward_claimed),
            )
        except (TypeError, ValueError) as e:
            raise ReadError(
                f"Malformed stakeInfo for {self._account}: {e}",
                method="stakeInfo",
                target=self._stake_address,
            ) from e
