"""System and transparency endpoints for the Snake402 API."""

from __future__ import annotations

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from snake402.core.errors import StoreUnavailable
from snake402.db.time import utcnow

from ..dependencies import ServicesDep, SessionDep

router = APIRouter(prefix="/system", tags=["system", "transparency"])


@router.get("/config")
async def get_public_config(services: ServicesDep) -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets, keys and connection strings.
    """
    config = services.config
    return {
        "app": {
            "name": config.app_name,
            "version": config.app_version,
            "debug": config.debug,
        },
        "payments": {
            "entry_fee_usdc": config.entry_fee_usdc,
            "network": config.cdp_network,
            "recipient": config.prize_pool_contract or config.cdp_recipient_address,
            "sandbox_mode": config.sandbox_mode,
        },
        "payouts": {
            "interval_seconds": config.payout_interval_seconds,
            "scheduler_enabled": config.payout_scheduler_enabled,
            "onchain_enabled": services.settlement.enabled,
            "prize_pool_contract": config.prize_pool_contract,
            "treasury": config.treasury_address,
            "usdc_decimals": config.usdc_decimals,
            "settlement_timeout_seconds": config.settlement_timeout_seconds,
        },
        "events": {
            "subscribers": services.broadcaster.subscriber_count,
        },
    }


@router.get("/health")
def get_storage_health(db: SessionDep) -> dict[str, object]:
    """Probe the database with a trivial query."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise StoreUnavailable("Database health check failed") from exc
    return {"status": "ok", "database": "ok", "timestamp": utcnow().isoformat()}
