"""
Gas Estimator — bounded retry around a single gas estimate.

Policy:
  attempt 1 → buffer 1.20
  attempt 2 → buffer 1.30   (after a fixed 1s wait)
  attempt 3 → buffer 1.40   (after a fixed 1s wait)
  then EstimationFailed carrying the last RPC error.

The policy lives in buffer_for_attempt/apply_buffer; tenacity only drives
the loop and the constant backoff.
"""
from decimal import Decimal, ROUND_CEILING
from tenacity import AsyncRetrying, RetryError, RetryCallState, stop_after_attempt, wait_fixed
from shared.chain import ChainClient
from agents.staker.config import (
    GAS_BUFFER_START, GAS_BUFFER_STEP, GAS_MAX_ATTEMPTS, GAS_RETRY_BACKOFF,
)
from agents.staker.errors import EstimationFailed
from agents.staker.models.schemas import GasEstimate
from agents.staker.services.registry import ProtocolDescriptor
import structlog

logger = structlog.get_logger()


def buffer_for_attempt(attempt: int) -> Decimal:
    """Safety multiplier for a 1-based attempt number."""
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return GAS_BUFFER_START + GAS_BUFFER_STEP * (attempt - 1)


def apply_buffer(raw_gas: int, buffer: Decimal) -> int:
    """Scale a raw estimate, rounding up to a whole gas unit."""
    return int((Decimal(raw_gas) * buffer).to_integral_value(rounding=ROUND_CEILING))


class GasEstimator:
    def __init__(
        self,
        chain: ChainClient,
        max_attempts: int = GAS_MAX_ATTEMPTS,
        backoff: float = GAS_RETRY_BACKOFF,
    ):
        self.chain = chain
        self.max_attempts = max_attempts
        self.backoff = backoff

    def _log_retry(self, protocol: ProtocolDescriptor):
        def _before_sleep(state: RetryCallState):
            logger.warning(
                "gas_estimate_retry",
                protocol=protocol.key,
                attempt=state.attempt_number,
                max_attempts=self.max_attempts,
                next_buffer=str(buffer_for_attempt(state.attempt_number + 1)),
                error=str(state.outcome.exception()),
            )
        return _before_sleep

    async def estimate(self, protocol: ProtocolDescriptor, amount: int, sender: str) -> GasEstimate:
        call = protocol.deposit(amount, sender)
        attempt_number = 0
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_fixed(self.backoff),
                before_sleep=self._log_retry(protocol),
            ):
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    buffer = buffer_for_attempt(attempt_number)
                    raw_gas = await self.chain.estimate_gas(
                        protocol.contract_address, call.function, call.args, value=amount
                    )
        except RetryError as e:
            last_error = e.last_attempt.exception()
            logger.error(
                "gas_estimate_failed",
                protocol=protocol.key,
                attempts=attempt_number,
                error=str(last_error),
            )
            raise EstimationFailed(attempt_number, last_error) from last_error

        estimate = GasEstimate(
            gas_limit=apply_buffer(raw_gas, buffer),
            raw_gas=raw_gas,
            buffer=buffer,
            attempts=attempt_number,
        )
        logger.info(
            "gas_estimated",
            protocol=protocol.key,
            raw_gas=raw_gas,
            gas_limit=estimate.gas_limit,
            buffer_pct=int((buffer - 1) * 100),
            attempts=attempt_number,
        )
        return estimate
