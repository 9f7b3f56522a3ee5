"""
Staker REST API routes — read-only status plus a guarded manual trigger.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from shared.auth import verify_api_key
from agents.staker.models.schemas import (
    HealthResponse, ScheduleResponse, SessionResult,
)

router = APIRouter(prefix="/api/v1/staker", tags=["staker"])


def _runtime(request: Request):
    return request.app.state.runtime


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    runtime = _runtime(request)
    orchestrator = runtime.orchestrator
    return HealthResponse(
        chain_id=runtime.config.chain_id,
        protocols=list(runtime.config.protocols),
        session_running=orchestrator.running,
        last_session_at=orchestrator.latest.started_at if orchestrator.latest else None,
    )


@router.get("/protocols")
async def list_protocols(request: Request):
    return [
        {
            "key": p.key,
            "name": p.name,
            "contract_address": p.contract_address,
            "reward_token": p.reward_token,
            "status_check": p.status_check is not None,
        }
        for p in _runtime(request).orchestrator.protocols
    ]


@router.get("/schedule", response_model=ScheduleResponse)
async def schedule(request: Request):
    staking_scheduler = _runtime(request).scheduler
    now = staking_scheduler.now()
    next_run = staking_scheduler.next_run(now)
    return ScheduleResponse(
        frequency=staking_scheduler.frequency,
        timezone=staking_scheduler.timezone,
        entries=[e.cron for e in staking_scheduler.entries],
        next_run_at=next_run,
        seconds_until_next=int((next_run - now).total_seconds()) if next_run else None,
    )


@router.get("/sessions/latest", response_model=SessionResult)
async def latest_session(request: Request):
    latest = _runtime(request).orchestrator.latest
    if latest is None:
        raise HTTPException(status_code=404, detail="No session has run yet")
    return latest


@router.post("/stake-now", response_model=SessionResult)
async def stake_now(request: Request, _key: bool = Depends(verify_api_key)):
    return await _runtime(request).orchestrator.run_session()
