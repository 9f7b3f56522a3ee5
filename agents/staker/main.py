"""
Multi-protocol Staker Agent — CLI and FastAPI application (port 8010)

Stakes a fixed amount of native MON into every enabled liquid-staking
protocol (Kintsu, Magma, aPriori) on Monad, N times per day.

Usage:
    python -m agents.staker.main --dry-run     # checks + gas estimates, no transactions
    python -m agents.staker.main --stake-now   # one session, then exit
    python -m agents.staker.main --schedule    # serve status API and stake on schedule
"""
import asyncio
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from fastapi import FastAPI
from shared.chain import ChainClient
from shared.config import Settings, settings
from shared.utils.logging import setup_logging
from shared.utils.scheduler import start_scheduler, stop_scheduler
from agents.staker.config import AGENT_NAME, StakerConfig, load_staker_config
from agents.staker.errors import ConfigurationError
from agents.staker.routes.api import router
from agents.staker.services.orchestrator import SessionOrchestrator, format_amount
from agents.staker.services.registry import ProtocolRegistry, build_registry
from agents.staker.services.scheduler import StakingScheduler
import structlog

logger = structlog.get_logger()


@dataclass
class StakerRuntime:
    config: StakerConfig
    registry: ProtocolRegistry
    chain: ChainClient
    orchestrator: SessionOrchestrator
    scheduler: StakingScheduler


def build_runtime(settings: Settings, chain: ChainClient | None = None) -> StakerRuntime:
    """Validate config and wire the staker. Fails before any network access."""
    config = load_staker_config(settings)
    registry = build_registry(settings)
    protocols = registry.resolve(config.protocols)

    if chain is None:
        try:
            chain = ChainClient(
                config.rpc_url,
                config.private_key,
                config.chain_id,
                rpc_timeout=config.rpc_timeout,
                receipt_timeout=config.receipt_timeout,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid PRIVATE_KEY: {e}") from e
    registry.bind(chain, protocols)

    orchestrator = SessionOrchestrator(chain, protocols, config)
    return StakerRuntime(
        config=config,
        registry=registry,
        chain=chain,
        orchestrator=orchestrator,
        scheduler=StakingScheduler(orchestrator, config.frequency, config.timezone),
    )


def create_app(runtime: StakerRuntime, start_jobs: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "staker_starting",
            wallet=runtime.chain.address,
            protocols=list(runtime.config.protocols),
            frequency=runtime.config.frequency,
        )
        if start_jobs:
            start_scheduler(runtime.config.timezone)
            runtime.scheduler.start()

        yield

        if start_jobs:
            runtime.scheduler.stop()
            stop_scheduler()
        await runtime.chain.close()
        logger.info("staker_stopped")

    app = FastAPI(
        title="Multi-protocol Staker",
        description="Scheduled native staking across Monad liquid-staking protocols.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.runtime = runtime
    app.include_router(router)
    return app


async def dry_run(runtime: StakerRuntime) -> int:
    try:
        report = await runtime.orchestrator.dry_run()
    finally:
        await runtime.chain.close()
    print(report.model_dump_json(indent=2))
    return 0 if report.ok else 1


async def stake_now(runtime: StakerRuntime) -> int:
    try:
        result = await runtime.orchestrator.run_session()
    finally:
        await runtime.chain.close()
    print(result.model_dump_json(indent=2))
    return 0 if not result.aborted and result.success_count > 0 else 1


def serve(runtime: StakerRuntime, port: int) -> None:
    import uvicorn
    # uvicorn owns SIGINT/SIGTERM; shutdown runs the lifespan teardown
    uvicorn.run(create_app(runtime), host="0.0.0.0", port=port, log_level=settings.LOG_LEVEL.lower())


def usage(config: StakerConfig) -> str:
    return f"""
Multi-protocol Staker

Usage:
  python -m agents.staker.main --dry-run     Check every protocol without staking
  python -m agents.staker.main --stake-now   Stake on every enabled protocol once
  python -m agents.staker.main --schedule    Stake {config.frequency}x per day and serve the status API

Current configuration:
  Chain ID:            {config.chain_id}
  Enabled protocols:   {', '.join(config.protocols)}
  Amount per protocol: {format_amount(config.amount, config.native_symbol)}
  Frequency:           {config.frequency}x per day ({config.timezone})
"""


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    setup_logging()

    try:
        runtime = build_runtime(settings)
    except ConfigurationError as e:
        logger.error("configuration_error", agent=AGENT_NAME, error=str(e))
        return 1

    if "--dry-run" in argv:
        return asyncio.run(dry_run(runtime))
    if "--stake-now" in argv:
        return asyncio.run(stake_now(runtime))
    if "--schedule" in argv:
        serve(runtime, settings.PORT)
        return 0

    print(usage(runtime.config))
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
