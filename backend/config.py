from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

from utils.validation import normalize_address

# Get the directory where this config file is located.
_BACKEND_DIR = Path(__file__).parent.resolve()


def _detect_project_root(backend_dir: Path) -> Path:
    """Resolve project root from the backend directory in the repo layout."""
    return backend_dir.parent.resolve()


_PROJECT_ROOT = _detect_project_root(_BACKEND_DIR)


class Settings(BaseSettings):
    # JSON-RPC provider
    RPC_URL: str = "https://ethereum-sepolia-rpc.publicnode.com"
    FALLBACK_RPC_URLS: str = ""  # Comma-separated, tried in order after RPC_URL
    RPC_TIMEOUT_SECONDS: float = 8.0

    # Arcade contracts (unset addresses disable the matching source)
    ARCADE_TOKEN_ADDRESS: Optional[str] = None
    STAKE_BADGE_ADDRESS: Optional[str] = None
    LOOTBOX_ADDRESS: Optional[str] = None
    TRADEHUB_ADDRESS: Optional[str] = None
    ARCADE_COUNCIL_ADDRESS: Optional[str] = None
    DEPLOY_BLOCK: Optional[int] = None  # Known token deployment block, if any

    # Block ranges
    ACTIVITY_LOOKBACK_BLOCKS: int = 5000
    MINT_LOOKBACK_BLOCKS: int = 100000
    # Deploy block is only trusted while current - deploy <= lookback * factor
    DEPLOY_BLOCK_MAX_SPAN_FACTOR: int = 10

    # Activity / leaderboard
    ACTIVITY_DISPLAY_LIMIT: int = 20
    LEADERBOARD_SIZE: int = 10
    TOKEN_DECIMALS: int = 18
    CURRENCY_SYMBOL: str = "ARC"
    STAKE_SCORE_WEIGHT: str = "0.1"  # Kept as text so it parses into an exact Decimal
    CONNECTED_ACCOUNT: Optional[str] = None  # Rendered as "You" in activity text

    # Poll intervals
    TREASURY_POLL_INTERVAL_SECONDS: float = 15.0
    ACTIVITY_POLL_INTERVAL_SECONDS: float = 30.0
    GOVERNANCE_POLL_INTERVAL_SECONDS: float = 15.0
    MARKET_POLL_INTERVAL_SECONDS: float = 30.0
    ACCOUNT_POLL_INTERVAL_SECONDS: float = 15.0
    CONNECTION_CHECK_INTERVAL_SECONDS: float = 10.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    LOG_FILE: Optional[str] = None

    @field_validator("RPC_URL", mode="before")
    @classmethod
    def _normalize_url_field(cls, value: object) -> object:
        """Trim accidental quotes/whitespace from URL env vars."""
        if value is None:
            return value
        text = str(value).strip().strip('"').strip("'")
        if not text:
            return text
        return text.rstrip("/")

    @field_validator(
        "ARCADE_TOKEN_ADDRESS",
        "STAKE_BADGE_ADDRESS",
        "LOOTBOX_ADDRESS",
        "TRADEHUB_ADDRESS",
        "ARCADE_COUNCIL_ADDRESS",
        "CONNECTED_ACCOUNT",
        mode="before",
    )
    @classmethod
    def _normalize_address_field(cls, value: object) -> object:
        """Blank addresses mean "not deployed"; anything else must be valid hex."""
        if value is None:
            return None
        text = str(value).strip().strip('"').strip("'")
        if not text:
            return None
        return normalize_address(text)

    @field_validator("DEPLOY_BLOCK", mode="before")
    @classmethod
    def _normalize_deploy_block(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, str):
            text = value.strip().strip('"').strip("'")
            if not text:
                return None
            return int(text, 0)
        return value

    @property
    def rpc_urls(self) -> list[str]:
        """Primary RPC endpoint followed by de-duplicated fallbacks."""
        urls: list[str] = []
        for raw in (self.RPC_URL, *self.FALLBACK_RPC_URLS.split(",")):
            text = (raw or "").strip().strip('"').strip("'").rstrip("/")
            if text and text not in urls:
                urls.append(text)
        return urls

    class Config:
        # Load project-root .env first (common workflow), then backend/.env
        # as an override if present.
        env_file = (
            str(_PROJECT_ROOT / ".env"),
            str(_BACKEND_DIR / ".env"),
        )
        env_file_encoding = "utf-8"


settings = Settings()
