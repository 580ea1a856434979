"""Shared FastAPI dependencies."""

from fastapi import Request

from app.core.config import Settings, get_settings
from app.services.chain_verifier import ChainVerifier
from app.services.settlement import SettlementEngine


def build_services(settings: Settings) -> tuple[ChainVerifier, SettlementEngine]:
    verifier = ChainVerifier(
        rpc_url=settings.solana_rpc_url,
        presale_wallet=settings.presale_wallet,
        commitment=settings.solana_commitment,
        timeout_seconds=settings.solana_rpc_timeout_seconds,
    )
    return verifier, SettlementEngine(verifier, settings)


async def get_settlement_engine(request: Request) -> SettlementEngine:
    """Dependency: the engine built at startup (tests override this)."""
    return request.app.state.settlement_engine


def get_app_settings() -> Settings:
    return get_settings()
