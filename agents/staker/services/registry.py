"""
Protocol registry — static table of every supported staking protocol.

Each descriptor carries its own call shape as plain callables, so the
executor and orchestrator never branch on the protocol key. Adding a
protocol means adding a descriptor here and an ABI under shared/abis.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Awaitable, Callable, Iterable, Optional
from shared.chain import ChainClient
from shared.config import Settings
from shared.contracts import load_abi
from agents.staker.errors import ProtocolUnavailable, UnknownProtocol
import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class ContractCall:
    """A contract function and its arguments, shared by estimation and submission."""
    function: str
    args: tuple = ()


DepositFn = Callable[[int, str], ContractCall]
BalanceFn = Callable[[ChainClient, "ProtocolDescriptor", str], Awaitable[int]]
StatusFn = Callable[[ChainClient, "ProtocolDescriptor"], Awaitable[None]]


@dataclass(frozen=True)
class ProtocolDescriptor:
    key: str
    name: str
    contract_address: str
    abi_name: str
    reward_token: str
    explorer_url: str
    deposit: DepositFn
    balance: BalanceFn
    status_check: Optional[StatusFn] = None

    def explorer_link(self, tx_hash: str) -> str:
        return self.explorer_url.format(tx_hash=tx_hash)


def vault_deposit(amount: int, receiver: str) -> ContractCall:
    """ERC-4626 style deposit(assets, receiver), payable with the same amount."""
    return ContractCall("deposit", (amount, receiver))


def referral_deposit(referral_id: int) -> DepositFn:
    def _deposit(amount: int, receiver: str) -> ContractCall:
        return ContractCall("depositMon", (referral_id,))
    return _deposit


async def share_balance(chain: ChainClient, protocol: ProtocolDescriptor, owner: str) -> int:
    return await chain.call(protocol.contract_address, "balanceOf", (owner,))


async def redeemable_balance(chain: ChainClient, protocol: ProtocolDescriptor, owner: str) -> int:
    return await chain.call(protocol.contract_address, "maxRedeem", (owner,))


async def receipt_token_balance(chain: ChainClient, protocol: ProtocolDescriptor, owner: str) -> int:
    """Balance of the liquid token the staking contract mints (Magma's gMON)."""
    token = await chain.call(protocol.contract_address, "gMON")
    chain.register_contract(token, load_abi("ERC20"))
    return await chain.call(token, "balanceOf", (owner,))


async def not_paused(chain: ChainClient, protocol: ProtocolDescriptor) -> None:
    if await chain.call(protocol.contract_address, "paused"):
        raise ProtocolUnavailable(f"{protocol.name} staking contract is currently paused")


class ProtocolRegistry:
    def __init__(self, descriptors: Iterable[ProtocolDescriptor]):
        table: dict[str, ProtocolDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.key in table:
                raise ValueError(f"Duplicate protocol key: {descriptor.key}")
            table[descriptor.key] = descriptor
        self._table = MappingProxyType(table)

    def keys(self) -> list[str]:
        return list(self._table)

    def get(self, key: str) -> ProtocolDescriptor:
        try:
            return self._table[key]
        except KeyError:
            raise UnknownProtocol(key, self.keys()) from None

    def resolve(self, keys: Iterable[str]) -> list[ProtocolDescriptor]:
        """Resolve enabled keys in order. Any unknown key fails the whole set."""
        keys = list(keys)
        for key in keys:
            if key not in self._table:
                raise UnknownProtocol(key, self.keys())
        return [self._table[key] for key in keys]

    def bind(self, chain: ChainClient, descriptors: Iterable[ProtocolDescriptor]) -> None:
        """Register a live contract binding for each descriptor on the chain client."""
        for descriptor in descriptors:
            chain.register_contract(descriptor.contract_address, load_abi(descriptor.abi_name))
            logger.info(
                "protocol_bound",
                protocol=descriptor.key,
                contract=descriptor.contract_address,
            )


def build_registry(settings: Settings) -> ProtocolRegistry:
    """Build the protocol table from settings. No network access."""
    explorer = settings.EXPLORER_TX_URL
    return ProtocolRegistry([
        ProtocolDescriptor(
            key="kintsu",
            name="Kintsu",
            contract_address=settings.KINTSU_CONTRACT_ADDRESS,
            abi_name="Kintsu",
            reward_token="Kintsu Shares",
            explorer_url=explorer,
            deposit=vault_deposit,
            balance=share_balance,
        ),
        ProtocolDescriptor(
            key="magma",
            name="Magma",
            contract_address=settings.MAGMA_CONTRACT_ADDRESS,
            abi_name="Magma",
            reward_token="gMON",
            explorer_url=explorer,
            deposit=referral_deposit(settings.MAGMA_REFERRAL_ID),
            balance=receipt_token_balance,
            status_check=not_paused,
        ),
        ProtocolDescriptor(
            key="apriori",
            name="aPriori",
            contract_address=settings.APRIORI_CONTRACT_ADDRESS,
            abi_name="Apriori",
            reward_token="sMON",
            explorer_url=explorer,
            deposit=vault_deposit,
            balance=redeemable_balance,
        ),
    ])
