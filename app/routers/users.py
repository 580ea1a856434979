from fastapi import APIRouter, Depends, Query
from pydantic import AliasChoices, BaseModel, Field

from app.core.config import Settings
from app.core.pagination import paginate
from app.deps import get_app_settings
from app.services import accounts as accounts_service

router = APIRouter()


class UpdateProfileRequest(BaseModel):
    wallet: str = Field(min_length=1, validation_alias=AliasChoices("wallet", "walletAddress"))
    display_name: str | None = Field(default=None, max_length=64, validation_alias=AliasChoices("displayName", "display_name"))


@router.get("/user/{wallet}")
async def get_user(wallet: str):
    """Account for wallet; created with a fresh referral code on first sight."""
    account = await accounts_service.get_or_create_account(wallet)
    return accounts_service.account_payload(account)


@router.post("/update-profile")
async def update_profile(body: UpdateProfileRequest):
    if body.display_name is None:
        await accounts_service.get_or_create_account(body.wallet)
    else:
        await accounts_service.update_display_name(body.wallet, body.display_name)
    return {"message": "Profile updated"}


@router.get("/leaderboard")
async def leaderboard(
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    settings: Settings = Depends(get_app_settings),
):
    """Top referrers by earnings, capped at the configured leaderboard size."""
    limit, offset = paginate(limit, offset, max_limit=settings.leaderboard_limit)
    accounts = await accounts_service.leaderboard(limit, offset)
    return {"leaderboard": [accounts_service.account_payload(a) for a in accounts]}
