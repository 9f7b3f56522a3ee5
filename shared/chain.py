"""
Chain client — the single boundary between the staker and the JSON-RPC node.

Wraps an AsyncWeb3 connection and a local signing account. Contract
bindings are registered once by address and then addressed by
(address, function name, args) so callers never hold web3 objects.
"""
from typing import Any, Optional
from eth_account import Account
from pydantic import BaseModel
from web3 import AsyncWeb3, Web3
from shared.web3_client import get_web3
import structlog

logger = structlog.get_logger()


class FeeData(BaseModel):
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    is_fallback: bool = False


class TxParams(BaseModel):
    value: int
    gas_limit: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int


class TxReceipt(BaseModel):
    tx_hash: str
    status: int
    gas_used: int
    block_number: int
    logs: list[dict[str, Any]] = []


class ChainClient:
    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        chain_id: int,
        rpc_timeout: int = 30,
        receipt_timeout: int = 180,
        w3: Optional[AsyncWeb3] = None,
    ):
        self.w3 = w3 or get_web3(rpc_url, rpc_timeout)
        self.account = Account.from_key(private_key)
        self.chain_id = chain_id
        self.receipt_timeout = receipt_timeout
        self._contracts: dict[str, Any] = {}

    @property
    def address(self) -> str:
        return self.account.address

    def register_contract(self, address: str, abi: list) -> None:
        checksum = Web3.to_checksum_address(address)
        if checksum not in self._contracts:
            self._contracts[checksum] = self.w3.eth.contract(address=checksum, abi=abi)

    def _function(self, address: str, function: str, args: tuple):
        contract = self._contracts.get(Web3.to_checksum_address(address))
        if contract is None:
            raise KeyError(f"No contract registered at {address}")
        return contract.functions[function](*args)

    async def get_network_id(self) -> int:
        return await self.w3.eth.chain_id

    async def get_balance(self, address: str) -> int:
        return await self.w3.eth.get_balance(Web3.to_checksum_address(address))

    async def get_fee_data(self) -> Optional[FeeData]:
        """EIP-1559 fee data, or None when the node reports no base fee."""
        block = await self.w3.eth.get_block("latest")
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            return None
        priority_fee = await self.w3.eth.max_priority_fee
        return FeeData(
            max_fee_per_gas=base_fee * 2 + priority_fee,
            max_priority_fee_per_gas=priority_fee,
        )

    async def call(self, address: str, function: str, args: tuple = ()) -> Any:
        return await self._function(address, function, args).call()

    async def estimate_gas(self, address: str, function: str, args: tuple, value: int = 0) -> int:
        return await self._function(address, function, args).estimate_gas(
            {"from": self.address, "value": value}
        )

    async def submit(self, address: str, function: str, args: tuple, params: TxParams) -> str:
        """Sign and broadcast a contract call. Returns the 0x-prefixed tx hash."""
        nonce = await self.w3.eth.get_transaction_count(self.address, "pending")
        tx = await self._function(address, function, args).build_transaction({
            "from": self.address,
            "value": params.value,
            "gas": params.gas_limit,
            "maxFeePerGas": params.max_fee_per_gas,
            "maxPriorityFeePerGas": params.max_priority_fee_per_gas,
            "nonce": nonce,
            "chainId": self.chain_id,
        })
        signed = self.account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.debug("tx_broadcast", to=address, function=function, nonce=nonce)
        return Web3.to_hex(tx_hash)

    async def wait(self, tx_hash: str) -> TxReceipt:
        receipt = await self.w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self.receipt_timeout
        )
        return TxReceipt(
            tx_hash=tx_hash,
            status=receipt["status"],
            gas_used=receipt["gasUsed"],
            block_number=receipt["blockNumber"],
            logs=[dict(log) for log in receipt.get("logs", [])],
        )

    async def close(self) -> None:
        await self.w3.provider.disconnect()
