"""
Stake Executor — runs one protocol's stake pipeline end to end.

status check → gas estimate → fee lookup → submit → wait for receipt.
Every failure becomes a failed StakeOutcome; nothing raises out of run().
Once a transaction is broadcast it is never retried.
"""
from typing import Optional
from web3 import Web3
from shared.chain import ChainClient, FeeData, TxParams
from agents.staker.config import (
    FALLBACK_MAX_FEE_GWEI, FALLBACK_PRIORITY_FEE_GWEI, TX_STATUS_SUCCESS,
)
from agents.staker.errors import (
    GasPriceTooHigh, ProtocolUnavailable, StakerError, TransactionFailed,
)
from agents.staker.models.schemas import GasEstimate, StakeOutcome
from agents.staker.services.gas import GasEstimator
from agents.staker.services.registry import ProtocolDescriptor
import structlog

logger = structlog.get_logger()


class StakeExecutor:
    def __init__(
        self,
        chain: ChainClient,
        estimator: Optional[GasEstimator] = None,
        max_fee_per_gas: Optional[int] = None,
    ):
        self.chain = chain
        self.estimator = estimator or GasEstimator(chain)
        self.max_fee_per_gas = max_fee_per_gas

    async def check_status(self, protocol: ProtocolDescriptor) -> None:
        if protocol.status_check is None:
            return
        try:
            await protocol.status_check(self.chain, protocol)
        except StakerError:
            raise
        except Exception as e:
            raise ProtocolUnavailable(f"{protocol.name} status check failed: {e}") from e

    async def fee_data(self) -> FeeData:
        """Current EIP-1559 fees, or fixed defaults when the node omits them."""
        fees = await self.chain.get_fee_data()
        if fees is None:
            fees = FeeData(
                max_fee_per_gas=Web3.to_wei(FALLBACK_MAX_FEE_GWEI, "gwei"),
                max_priority_fee_per_gas=Web3.to_wei(FALLBACK_PRIORITY_FEE_GWEI, "gwei"),
                is_fallback=True,
            )
            logger.warning("fee_data_fallback", max_fee_gwei=FALLBACK_MAX_FEE_GWEI)
        if self.max_fee_per_gas is not None and fees.max_fee_per_gas > self.max_fee_per_gas:
            raise GasPriceTooHigh(fees.max_fee_per_gas, self.max_fee_per_gas)
        return fees

    async def preflight(self, protocol: ProtocolDescriptor, amount: int) -> GasEstimate:
        """Everything before submission: status check and gas estimate."""
        await self.check_status(protocol)
        return await self.estimator.estimate(protocol, amount, self.chain.address)

    async def run(self, protocol: ProtocolDescriptor, amount: int) -> StakeOutcome:
        tx_hash = None
        log = logger.bind(protocol=protocol.key)
        try:
            estimate = await self.preflight(protocol, amount)
            fees = await self.fee_data()
            log.debug(
                "fee_data",
                max_fee_gwei=str(Web3.from_wei(fees.max_fee_per_gas, "gwei")),
                priority_fee_gwei=str(Web3.from_wei(fees.max_priority_fee_per_gas, "gwei")),
            )

            call = protocol.deposit(amount, self.chain.address)
            tx_hash = await self.chain.submit(
                protocol.contract_address,
                call.function,
                call.args,
                TxParams(
                    value=amount,
                    gas_limit=estimate.gas_limit,
                    max_fee_per_gas=fees.max_fee_per_gas,
                    max_priority_fee_per_gas=fees.max_priority_fee_per_gas,
                ),
            )
            log.info("stake_submitted", tx_hash=tx_hash, explorer=protocol.explorer_link(tx_hash))

            receipt = await self.chain.wait(tx_hash)
            if receipt.status != TX_STATUS_SUCCESS:
                raise TransactionFailed(tx_hash, receipt.status)
        except Exception as e:
            log.error("stake_failed", error_type=type(e).__name__, error=str(e), tx_hash=tx_hash)
            return StakeOutcome.failed(protocol.key, e, tx_hash=tx_hash)

        log.info(
            "stake_confirmed",
            tx_hash=tx_hash,
            gas_used=receipt.gas_used,
            block=receipt.block_number,
        )
        return StakeOutcome.succeeded(
            protocol=protocol.key,
            tx_hash=tx_hash,
            gas_used=receipt.gas_used,
            block_number=receipt.block_number,
            explorer_url=protocol.explorer_link(tx_hash),
        )
