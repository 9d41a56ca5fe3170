"""Payout status, admin trigger and live payout events."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from snake402.schemas import PayoutRunResponse, PayoutStatusResponse
from snake402.services.broadcaster import Subscription

from ..dependencies import AdminDep, ServicesDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payouts"])


@router.get("/payouts/status", response_model=PayoutStatusResponse)
async def get_payout_status(services: ServicesDep) -> PayoutStatusResponse:
    """Return the last/next cycle timestamps and the last settlement reference."""
    return PayoutStatusResponse.model_validate(services.scheduler.status())


@router.post(
    "/admin/run-payout",
    response_model=PayoutRunResponse,
    dependencies=[AdminDep],
)
async def run_payout(services: ServicesDep) -> PayoutRunResponse:
    """Force an out-of-cycle payout run.

    Rejected with 409 while another cycle is running.
    """
    report = await services.scheduler.trigger(reason="admin")
    return PayoutRunResponse(
        **services.scheduler.status(),
        cycle_id=report.cycle_id,
        pool=str(report.plan.pool),
        winners=len(report.plan.allocations),
        settlement_status=report.settlement.status.value,
    )


def format_sse(event: dict[str, object]) -> str:
    """Encode one event as a Server-Sent Events frame."""
    return f"data: {json.dumps(event, separators=(',', ':'))}\n\n"


async def payout_event_stream(
    subscription: Subscription,
    is_disconnected: Callable[[], Awaitable[bool]],
    *,
    keepalive_seconds: float,
) -> AsyncIterator[str]:
    """Relay broadcaster events to one client until it goes away."""
    try:
        yield ": connected\n\n"
        while not subscription.closed:
            event = await subscription.get(timeout=keepalive_seconds)
            if await is_disconnected():
                break
            if event is None:
                yield ": keepalive\n\n"
                continue
            yield format_sse(event)
    finally:
        subscription.close()


@router.get("/events/payouts")
async def stream_payout_events(request: Request, services: ServicesDep) -> StreamingResponse:
    """Subscribe to payout notices as a Server-Sent Events stream."""
    subscription = services.broadcaster.subscribe()
    logger.info("Payout event stream opened (%d subscribers)", services.broadcaster.subscriber_count)
    return StreamingResponse(
        payout_event_stream(
            subscription,
            request.is_disconnected,
            keepalive_seconds=services.config.event_keepalive_seconds,
        ),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
