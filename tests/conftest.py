"""
Pytest configuration and shared fixtures for the staker tests.

StubChainClient stands in for shared.chain.ChainClient: it answers every
chain call deterministically and records what the staker asked for, so
tests can assert that nothing was submitted when it should not be.
"""
import pytest
import structlog
from shared.chain import FeeData, TxParams, TxReceipt
from agents.staker.config import StakerConfig
from agents.staker.services.executor import StakeExecutor
from agents.staker.services.gas import GasEstimator
from agents.staker.services.orchestrator import SessionOrchestrator
from agents.staker.services.registry import (
    ProtocolDescriptor, not_paused, share_balance, vault_deposit,
)

WALLET = "0x00000000000000000000000000000000000000aa"
ALPHA = "0x00000000000000000000000000000000000000a1"
BETA = "0x00000000000000000000000000000000000000b2"
GAMMA = "0x00000000000000000000000000000000000000c3"
TEST_PRIVATE_KEY = "0x" + "11" * 32


class StubChainClient:
    def __init__(
        self,
        chain_id: int = 10143,
        balance: int = 10**18,
        fee_data: FeeData | None = None,
        gas: int = 100_000,
        gas_used: int = 80_000,
    ):
        self.address = WALLET
        self.chain_id = chain_id
        self.balance = balance
        self.fee_data = fee_data or FeeData(max_fee_per_gas=50 * 10**9, max_priority_fee_per_gas=2 * 10**9)
        self.gas = gas
        self.gas_used = gas_used

        # address -> failures before estimate_gas succeeds (-1 = always fails)
        self.estimate_failures: dict[str, int] = {}
        # (address, function) -> value, or an exception instance to raise
        self.call_results: dict[tuple[str, str], object] = {}
        # address -> receipt status
        self.receipt_status: dict[str, int] = {}

        self.registered: dict[str, list] = {}
        self.estimate_calls: list[tuple] = []
        self.submitted: list[tuple] = []
        self.waited: list[str] = []
        self._tx_to: dict[str, str] = {}
        self.closed = False

    def register_contract(self, address: str, abi: list) -> None:
        self.registered.setdefault(address, abi)

    async def get_network_id(self) -> int:
        return self.chain_id

    async def get_balance(self, address: str) -> int:
        return self.balance

    async def get_fee_data(self) -> FeeData | None:
        return self.fee_data

    async def call(self, address: str, function: str, args: tuple = ()):
        result = self.call_results.get((address, function), 0)
        if isinstance(result, Exception):
            raise result
        return result

    async def estimate_gas(self, address: str, function: str, args: tuple, value: int = 0) -> int:
        self.estimate_calls.append((address, function, args, value))
        remaining = self.estimate_failures.get(address, 0)
        if remaining:
            if remaining > 0:
                self.estimate_failures[address] = remaining - 1
            raise RuntimeError("execution reverted: estimate unavailable")
        return self.gas

    async def submit(self, address: str, function: str, args: tuple, params: TxParams) -> str:
        self.submitted.append((address, function, args, params))
        tx_hash = "0x" + f"{len(self.submitted):064x}"
        self._tx_to[tx_hash] = address
        return tx_hash

    async def wait(self, tx_hash: str) -> TxReceipt:
        self.waited.append(tx_hash)
        status = self.receipt_status.get(self._tx_to[tx_hash], 1)
        return TxReceipt(tx_hash=tx_hash, status=status, gas_used=self.gas_used, block_number=1234)

    async def close(self) -> None:
        self.closed = True

    def estimate_attempts(self, address: str) -> int:
        return sum(1 for call in self.estimate_calls if call[0] == address)


def make_protocol(key: str, address: str, status_check=None) -> ProtocolDescriptor:
    return ProtocolDescriptor(
        key=key,
        name=key.capitalize(),
        contract_address=address,
        abi_name="Kintsu",
        reward_token=f"{key}-shares",
        explorer_url="https://explorer.test/tx/{tx_hash}",
        deposit=vault_deposit,
        balance=share_balance,
        status_check=status_check,
    )


@pytest.fixture
def chain():
    return StubChainClient()


@pytest.fixture
def alpha():
    return make_protocol("alpha", ALPHA)


@pytest.fixture
def beta():
    return make_protocol("beta", BETA)


@pytest.fixture
def pausable():
    return make_protocol("gamma", GAMMA, status_check=not_paused)


@pytest.fixture
def staker_config():
    def _make(amount: int = 10, protocols: tuple[str, ...] = ("alpha", "beta"), **overrides) -> StakerConfig:
        values = dict(
            rpc_url="http://localhost:8545",
            private_key=TEST_PRIVATE_KEY,
            chain_id=10143,
            amount=amount,
            protocols=protocols,
            frequency=4,
            timezone="UTC",
        )
        values.update(overrides)
        return StakerConfig(**values)
    return _make


@pytest.fixture
def make_orchestrator(staker_config):
    """Orchestrator over the stub chain with zero-length waits; records inter-protocol sleeps."""
    def _make(chain, protocols, amount: int = 10, sleeps: list | None = None, **config_overrides):
        async def _sleep(seconds: float) -> None:
            if sleeps is not None:
                sleeps.append(seconds)

        config = staker_config(amount=amount, protocols=tuple(p.key for p in protocols), **config_overrides)
        executor = StakeExecutor(
            chain,
            estimator=GasEstimator(chain, backoff=0),
            max_fee_per_gas=config.max_fee_per_gas,
        )
        return SessionOrchestrator(chain, protocols, config, executor=executor, sleep=_sleep)
    return _make


@pytest.fixture(autouse=True)
def reset_structlog():
    """setup_logging() binds the current stderr; undo it so later tests never write to a closed capture."""
    yield
    structlog.reset_defaults()


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
