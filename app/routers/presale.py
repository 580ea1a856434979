from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.core.exceptions import DuplicateError, ValidationError, VerificationFailure
from app.deps import get_settlement_engine
from app.services import ledger
from app.services.chain_verifier import Verdict
from app.services.settlement import Outcome, SettlementEngine

router = APIRouter()


class PurchaseRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    wallet: str = Field(min_length=1, validation_alias=AliasChoices("wallet", "walletAddress"))
    amount_spent: float = Field(gt=0, allow_inf_nan=False, validation_alias=AliasChoices("amountSpent", "usdSpent"))
    tokens_received: float = Field(gt=0, allow_inf_nan=False, validation_alias=AliasChoices("tokensReceived", "tokens_received"))
    transaction_id: str = Field(min_length=1, validation_alias=AliasChoices("transactionId", "transaction_id"))
    referral_code: str | None = Field(default=None, validation_alias=AliasChoices("referralCode", "referral_code"))


@router.get("/raised-amount")
async def raised_amount():
    """Total USD raised across all recorded purchases."""
    return {"totalUSD": await ledger.total_raised()}


@router.post("/purchase")
async def purchase(body: PurchaseRequest, engine: SettlementEngine = Depends(get_settlement_engine)):
    """Verify a client-submitted purchase on chain and record it once."""
    result = await engine.record_purchase(
        wallet=body.wallet,
        amount_spent=body.amount_spent,
        tokens_received=body.tokens_received,
        transaction_id=body.transaction_id,
        referral_code_used=body.referral_code or None,
    )
    if result.outcome is Outcome.DUPLICATE:
        raise DuplicateError()
    if result.outcome is Outcome.REJECTED:
        if result.verdict is Verdict.INDETERMINATE:
            raise VerificationFailure("Unable to validate transaction.", code="UNVERIFIABLE_TRANSACTION")
        if result.verdict is Verdict.REJECTED:
            raise VerificationFailure()
        raise ValidationError("Missing data")
    return {"message": "Purchase recorded successfully", "transactionId": body.transaction_id}


@router.get("/user-purchases/{wallet}")
async def user_purchases(wallet: str):
    """USD invested and tokens received by one wallet."""
    totals = await ledger.wallet_totals(wallet)
    return {"totalInvested": totals["total_invested"], "totalTokens": totals["total_tokens"]}
