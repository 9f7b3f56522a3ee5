"""
Session Orchestrator — one staking pass over every enabled protocol.

Preconditions (network, wallet balance) are checked once per session and
abort only that session. Protocols then run strictly one after another,
a short pause between them, and one protocol's failure never stops the
next. Sessions are serialized: a trigger that fires while a session is
running waits for it to finish.
"""
import asyncio
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional
from web3 import Web3
import structlog
from shared.chain import ChainClient
from agents.staker.config import INTER_PROTOCOL_DELAY, StakerConfig
from agents.staker.errors import BalanceQueryFailed, InsufficientBalance, WrongNetwork
from agents.staker.models.schemas import (
    DryRunCheck, DryRunReport, ProtocolBalance, SessionResult,
)
from agents.staker.services.executor import StakeExecutor
from agents.staker.services.registry import ProtocolDescriptor

logger = structlog.get_logger()


def format_amount(wei: int, symbol: str = "MON") -> str:
    return f"{Web3.from_wei(wei, 'ether')} {symbol}"


class SessionOrchestrator:
    def __init__(
        self,
        chain: ChainClient,
        protocols: list[ProtocolDescriptor],
        config: StakerConfig,
        executor: Optional[StakeExecutor] = None,
        inter_protocol_delay: float = INTER_PROTOCOL_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.chain = chain
        self.protocols = list(protocols)
        self.config = config
        self.executor = executor or StakeExecutor(chain, max_fee_per_gas=config.max_fee_per_gas)
        self.inter_protocol_delay = inter_protocol_delay
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self.latest: Optional[SessionResult] = None

    @property
    def running(self) -> bool:
        return self._lock.locked()

    @property
    def required_balance(self) -> int:
        return self.config.amount * len(self.protocols)

    async def check_network(self) -> None:
        actual = await self.chain.get_network_id()
        if actual != self.config.chain_id:
            raise WrongNetwork(self.config.chain_id, actual)
        logger.info("network_ok", chain_id=actual)

    async def check_balance(self) -> int:
        balance = await self.chain.get_balance(self.chain.address)
        logger.info(
            "wallet_balance",
            balance=format_amount(balance, self.config.native_symbol),
            required=format_amount(self.required_balance, self.config.native_symbol),
        )
        if balance < self.required_balance:
            raise InsufficientBalance(self.required_balance, balance, len(self.protocols))
        return balance

    async def report_balances(self) -> list[ProtocolBalance]:
        """Best-effort staked balance per protocol; failures are recorded, not raised."""
        balances = []
        for protocol in self.protocols:
            try:
                value = await protocol.balance(self.chain, protocol, self.chain.address)
            except Exception as e:
                error = BalanceQueryFailed(f"{protocol.name} balance unavailable: {e}")
                logger.warning("balance_query_failed", protocol=protocol.key, error=str(error))
                balances.append(
                    ProtocolBalance(protocol=protocol.key, token=protocol.reward_token, error=str(error))
                )
                continue
            logger.info(
                "protocol_balance",
                protocol=protocol.key,
                balance=format_amount(value, protocol.reward_token),
            )
            balances.append(
                ProtocolBalance(protocol=protocol.key, token=protocol.reward_token, balance=value)
            )
        return balances

    async def run_session(self) -> SessionResult:
        async with self._lock:
            session_id = uuid.uuid4().hex[:12]
            with structlog.contextvars.bound_contextvars(session_id=session_id):
                result = await self._run(session_id)
            self.latest = result
            return result

    async def _run(self, session_id: str) -> SessionResult:
        result = SessionResult(
            session_id=session_id,
            protocols=[p.key for p in self.protocols],
            amount_per_protocol=self.config.amount,
            started_at=datetime.now(timezone.utc),
        )
        logger.info(
            "session_started",
            protocols=result.protocols,
            amount_per_protocol=format_amount(self.config.amount, self.config.native_symbol),
        )

        try:
            await self.check_network()
            await self.check_balance()
        except Exception as e:
            result.error_type = type(e).__name__
            result.error = str(e)
            result.finished_at = datetime.now(timezone.utc)
            logger.error("session_aborted", error_type=result.error_type, error=result.error)
            return result

        for index, protocol in enumerate(self.protocols):
            if index > 0:
                await self._sleep(self.inter_protocol_delay)
            outcome = await self.executor.run(protocol, self.config.amount)
            result.outcomes.append(outcome)

        result.balances = await self.report_balances()
        result.finished_at = datetime.now(timezone.utc)

        logger.info(
            "session_completed",
            successful=f"{result.success_count}/{len(self.protocols)}",
            total_gas_used=result.total_gas_used,
            total_staked=format_amount(result.total_staked, self.config.native_symbol),
            failed=[o.protocol for o in result.outcomes if not o.success],
        )
        return result

    async def dry_run(self) -> DryRunReport:
        """Preconditions, fees and per-protocol preflight without submitting anything."""
        async with self._lock:
            report = DryRunReport()
            try:
                await self.check_network()
                await self.check_balance()
                report.fee_data = await self.executor.fee_data()
            except Exception as e:
                report.error = f"{type(e).__name__}: {e}"
                logger.error("dry_run_aborted", error=report.error)
                return report

            for protocol in self.protocols:
                try:
                    estimate = await self.executor.preflight(protocol, self.config.amount)
                except Exception as e:
                    report.checks.append(DryRunCheck(
                        protocol=protocol.key,
                        ok=False,
                        error_type=type(e).__name__,
                        reason=str(e),
                    ))
                    logger.warning("dry_run_protocol_failed", protocol=protocol.key, error=str(e))
                    continue
                report.checks.append(DryRunCheck(
                    protocol=protocol.key,
                    ok=True,
                    gas_limit=estimate.gas_limit,
                    buffer=estimate.buffer,
                ))
                logger.info("dry_run_protocol_ready", protocol=protocol.key, gas_limit=estimate.gas_limit)

            report.balances = await self.report_balances()
            logger.info("dry_run_completed", ok=report.ok)
            return report
