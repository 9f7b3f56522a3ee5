"""
Tests for agents/staker/services/executor.py

Tests cover:
- Successful pipeline and the submitted transaction parameters
- Fee data fallback and fee ceiling
- Each failure kind becoming a failed outcome
- No resubmission after a broadcast transaction fails
"""
import pytest

from conftest import ALPHA, GAMMA
from agents.staker.services.executor import StakeExecutor
from agents.staker.services.gas import GasEstimator


def _executor(chain, **kwargs):
    return StakeExecutor(chain, estimator=GasEstimator(chain, backoff=0), **kwargs)


class TestSuccessfulStake:
    """Happy path."""

    @pytest.mark.asyncio
    async def test_returns_success_outcome(self, chain, alpha):
        outcome = await _executor(chain).run(alpha, 10)

        assert outcome.success
        assert outcome.protocol == "alpha"
        assert outcome.gas_used == 80_000
        assert outcome.block_number == 1234
        assert outcome.tx_hash == chain.waited[0]
        assert outcome.explorer_url == f"https://explorer.test/tx/{outcome.tx_hash}"

    @pytest.mark.asyncio
    async def test_submits_buffered_gas_and_fees(self, chain, alpha):
        await _executor(chain).run(alpha, 10)

        address, function, args, params = chain.submitted[0]
        assert address == ALPHA
        assert function == "deposit"
        assert args == (10, chain.address)
        assert params.value == 10
        assert params.gas_limit == 120_000
        assert params.max_fee_per_gas == 50 * 10**9
        assert params.max_priority_fee_per_gas == 2 * 10**9


class TestFeeData:
    """Fee lookup step."""

    @pytest.mark.asyncio
    async def test_fallback_when_node_has_no_fee_data(self, chain, alpha):
        chain.fee_data = None

        outcome = await _executor(chain).run(alpha, 10)

        params = chain.submitted[0][3]
        assert outcome.success
        assert params.max_fee_per_gas == 30 * 10**9
        assert params.max_priority_fee_per_gas == 2 * 10**9

    @pytest.mark.asyncio
    async def test_fee_ceiling_blocks_submission(self, chain, alpha):
        outcome = await _executor(chain, max_fee_per_gas=40 * 10**9).run(alpha, 10)

        assert not outcome.success
        assert outcome.error_type == "GasPriceTooHigh"
        assert chain.submitted == []

    @pytest.mark.asyncio
    async def test_fee_under_ceiling_passes(self, chain, alpha):
        outcome = await _executor(chain, max_fee_per_gas=60 * 10**9).run(alpha, 10)
        assert outcome.success


class TestFailures:
    """Every failure is returned, never raised."""

    @pytest.mark.asyncio
    async def test_paused_protocol_is_unavailable(self, chain, pausable):
        chain.call_results[(GAMMA, "paused")] = True

        outcome = await _executor(chain).run(pausable, 10)

        assert not outcome.success
        assert outcome.error_type == "ProtocolUnavailable"
        assert "paused" in outcome.reason
        assert chain.estimate_calls == []
        assert chain.submitted == []

    @pytest.mark.asyncio
    async def test_status_check_rpc_error_is_unavailable(self, chain, pausable):
        chain.call_results[(GAMMA, "paused")] = ConnectionError("rpc down")

        outcome = await _executor(chain).run(pausable, 10)

        assert outcome.error_type == "ProtocolUnavailable"
        assert "rpc down" in outcome.reason

    @pytest.mark.asyncio
    async def test_estimation_failure(self, chain, alpha):
        chain.estimate_failures[ALPHA] = -1

        outcome = await _executor(chain).run(alpha, 10)

        assert outcome.error_type == "EstimationFailed"
        assert chain.submitted == []

    @pytest.mark.asyncio
    async def test_reverted_transaction_is_not_retried(self, chain, alpha):
        chain.receipt_status[ALPHA] = 0

        outcome = await _executor(chain).run(alpha, 10)

        assert not outcome.success
        assert outcome.error_type == "TransactionFailed"
        assert outcome.tx_hash == chain.waited[0]
        assert len(chain.submitted) == 1

    @pytest.mark.asyncio
    async def test_submit_error_is_captured(self, chain, alpha):
        async def broken_submit(*args, **kwargs):
            raise ValueError("nonce too low")

        chain.submit = broken_submit

        outcome = await _executor(chain).run(alpha, 10)

        assert outcome.error_type == "ValueError"
        assert outcome.reason == "nonce too low"
        assert outcome.tx_hash is None


class TestPreflight:
    """Dry-run half of the pipeline."""

    @pytest.mark.asyncio
    async def test_preflight_never_submits(self, chain, alpha):
        estimate = await _executor(chain).preflight(alpha, 10)

        assert estimate.gas_limit == 120_000
        assert chain.submitted == []
