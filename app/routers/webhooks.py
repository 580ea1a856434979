from typing import Any

from fastapi import APIRouter, Body, Depends, Header

from app.core.config import Settings
from app.core.logging import get_logger
from app.core.security import verify_webhook_auth
from app.deps import get_app_settings, get_settlement_engine
from app.services import webhooks as webhooks_service
from app.services.settlement import SettlementEngine

router = APIRouter()
log = get_logger(__name__)


@router.post("/solana-inbound")
async def solana_inbound(
    records: list[Any] = Body(...),
    authorization: str | None = Header(None),
    engine: SettlementEngine = Depends(get_settlement_engine),
    settings: Settings = Depends(get_app_settings),
):
    """Helius webhook: record transfers to the presale wallet (indexer-trusted, no chain re-check)."""
    verify_webhook_auth(authorization, settings.helius_webhook_auth)
    log.info("webhook_received", records=len(records))
    summary = await webhooks_service.process_batch(records, engine, settings)
    log.info("webhook_processed", **summary.as_dict())
    return {"message": "Webhook processed", **summary.as_dict()}
