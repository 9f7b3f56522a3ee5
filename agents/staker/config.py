from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from web3 import Web3
from shared.config import Settings
from agents.staker.errors import ConfigurationError

AGENT_NAME = "staker"

# Gas estimation
GAS_MAX_ATTEMPTS = 3
GAS_BUFFER_START = Decimal("1.20")   # 20% over the node's estimate
GAS_BUFFER_STEP = Decimal("0.10")    # widened on each failed attempt
GAS_RETRY_BACKOFF = 1.0              # seconds, constant between attempts

# Fee fallbacks when the node reports no EIP-1559 data
FALLBACK_MAX_FEE_GWEI = 30
FALLBACK_PRIORITY_FEE_GWEI = 2

# Session pacing
INTER_PROTOCOL_DELAY = 2.0           # seconds between protocol submissions

# Scheduling
COUNTDOWN_INTERVAL_MINUTES = 10
MAX_DAILY_FREQUENCY = 24

# Receipt status for a successful transaction
TX_STATUS_SUCCESS = 1


@dataclass(frozen=True)
class StakerConfig:
    """Validated runtime configuration, built once at process start."""
    rpc_url: str
    private_key: str = field(repr=False)
    chain_id: int
    amount: int                       # wei per protocol
    protocols: tuple[str, ...]
    frequency: int
    timezone: str
    native_symbol: str = "MON"
    max_fee_per_gas: Optional[int] = None
    rpc_timeout: int = 30
    receipt_timeout: int = 180


def parse_protocols(raw: str) -> tuple[str, ...]:
    return tuple(p.strip().lower() for p in raw.split(",") if p.strip())


def load_staker_config(settings: Settings) -> StakerConfig:
    if not settings.PRIVATE_KEY:
        raise ConfigurationError("PRIVATE_KEY environment variable is required")
    if not settings.RPC_URL:
        raise ConfigurationError("RPC_URL environment variable is required")

    try:
        amount = Web3.to_wei(Decimal(settings.STAKE_AMOUNT), "ether")
    except (InvalidOperation, ValueError) as e:
        raise ConfigurationError(f"Invalid STAKE_AMOUNT '{settings.STAKE_AMOUNT}': {e}") from e
    if amount <= 0:
        raise ConfigurationError("STAKE_AMOUNT must be greater than zero")

    protocols = parse_protocols(settings.ENABLED_PROTOCOLS)
    if not protocols:
        raise ConfigurationError("No protocols enabled. Set ENABLED_PROTOCOLS in .env")
    if len(set(protocols)) != len(protocols):
        raise ConfigurationError(f"Duplicate entries in ENABLED_PROTOCOLS: {settings.ENABLED_PROTOCOLS}")

    if not 1 <= settings.STAKING_FREQUENCY <= MAX_DAILY_FREQUENCY:
        raise ConfigurationError(
            f"STAKING_FREQUENCY must be between 1 and {MAX_DAILY_FREQUENCY}, got {settings.STAKING_FREQUENCY}"
        )

    try:
        ZoneInfo(settings.STAKER_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown STAKER_TIMEZONE '{settings.STAKER_TIMEZONE}'") from e

    max_fee = None
    if settings.MAX_FEE_PER_GAS_GWEI is not None:
        max_fee = Web3.to_wei(Decimal(str(settings.MAX_FEE_PER_GAS_GWEI)), "gwei")

    return StakerConfig(
        rpc_url=settings.RPC_URL,
        private_key=settings.PRIVATE_KEY,
        chain_id=settings.CHAIN_ID,
        amount=amount,
        protocols=protocols,
        frequency=settings.STAKING_FREQUENCY,
        timezone=settings.STAKER_TIMEZONE,
        native_symbol=settings.NATIVE_SYMBOL,
        max_fee_per_gas=max_fee,
        rpc_timeout=settings.RPC_TIMEOUT,
        receipt_timeout=settings.RECEIPT_TIMEOUT,
    )
