from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, computed_field
from shared.chain import FeeData


class GasEstimate(BaseModel):
    gas_limit: int
    raw_gas: int
    buffer: Decimal
    attempts: int


class StakeOutcome(BaseModel):
    protocol: str
    success: bool
    tx_hash: Optional[str] = None
    gas_used: int = 0
    block_number: Optional[int] = None
    explorer_url: Optional[str] = None
    error_type: Optional[str] = None
    reason: Optional[str] = None

    model_config = {"frozen": True}

    @classmethod
    def succeeded(
        cls,
        protocol: str,
        tx_hash: str,
        gas_used: int,
        block_number: Optional[int] = None,
        explorer_url: Optional[str] = None,
    ) -> "StakeOutcome":
        return cls(
            protocol=protocol,
            success=True,
            tx_hash=tx_hash,
            gas_used=gas_used,
            block_number=block_number,
            explorer_url=explorer_url,
        )

    @classmethod
    def failed(cls, protocol: str, error: BaseException, tx_hash: Optional[str] = None) -> "StakeOutcome":
        return cls(
            protocol=protocol,
            success=False,
            tx_hash=tx_hash,
            error_type=type(error).__name__,
            reason=str(error) or type(error).__name__,
        )


class ProtocolBalance(BaseModel):
    protocol: str
    token: str
    balance: Optional[int] = None
    error: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.balance is not None


class SessionResult(BaseModel):
    session_id: str
    protocols: list[str]
    amount_per_protocol: int
    outcomes: list[StakeOutcome] = []
    balances: list[ProtocolBalance] = []
    error_type: Optional[str] = None
    error: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None

    @computed_field
    @property
    def aborted(self) -> bool:
        return self.error is not None

    @computed_field
    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @computed_field
    @property
    def total_attempted(self) -> int:
        return len(self.outcomes)

    @computed_field
    @property
    def total_gas_used(self) -> int:
        return sum(o.gas_used for o in self.outcomes if o.success)

    @computed_field
    @property
    def total_staked(self) -> int:
        return self.amount_per_protocol * self.success_count


class ScheduleEntry(BaseModel):
    hour: int
    minute: int

    model_config = {"frozen": True}

    @property
    def cron(self) -> str:
        return f"{self.minute} {self.hour} * * *"

    def next_after(self, now: datetime) -> datetime:
        """Next wall-clock occurrence strictly after `now` (same tzinfo)."""
        candidate = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate


class DryRunCheck(BaseModel):
    protocol: str
    ok: bool
    gas_limit: Optional[int] = None
    buffer: Optional[Decimal] = None
    error_type: Optional[str] = None
    reason: Optional[str] = None


class DryRunReport(BaseModel):
    checks: list[DryRunCheck] = []
    fee_data: Optional[FeeData] = None
    balances: list[ProtocolBalance] = []
    error: Optional[str] = None

    @computed_field
    @property
    def ok(self) -> bool:
        return self.error is None and all(c.ok for c in self.checks)


class ScheduleResponse(BaseModel):
    frequency: int
    timezone: str
    entries: list[str]
    next_run_at: Optional[datetime] = None
    seconds_until_next: Optional[int] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    agent: str = "staker"
    version: str = "1.0.0"
    chain_id: int = 0
    protocols: list[str] = []
    session_running: bool = False
    last_session_at: Optional[datetime] = None
