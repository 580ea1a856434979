"""Helius webhook batches: pick out transfers to the presale wallet and record them."""

import math
from dataclasses import asdict, dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pymongo.errors import PyMongoError

from app.core.config import Settings
from app.core.logging import get_logger
from app.services.settlement import Outcome, SettlementEngine

log = get_logger(__name__)


class HeliusInstruction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    program: str | None = None
    # {"type": "transfer", "info": {...}} for parsed programs, a plain string for memos
    parsed: dict[str, Any] | str | None = None


class HeliusTokenTransfer(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    from_user_account: str | None = Field(default=None, alias="fromUserAccount")
    to_user_account: str | None = Field(default=None, alias="toUserAccount")
    to_token_account: str | None = Field(default=None, alias="toTokenAccount")
    token_amount: float | None = Field(default=None, alias="tokenAmount")  # UI units
    mint: str | None = None


class HeliusTransaction(BaseModel):
    """One envelope of a Helius webhook delivery (raw or enhanced format)."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    signature: str = Field(min_length=1)
    signers: list[str] = Field(default_factory=list)
    fee_payer: str | None = Field(default=None, alias="feePayer")
    instructions: list[HeliusInstruction] = Field(default_factory=list)
    token_transfers: list[HeliusTokenTransfer] = Field(default_factory=list, alias="tokenTransfers")

    @property
    def payer(self) -> str | None:
        if self.signers:
            return self.signers[0]
        return self.fee_payer


@dataclass
class BatchSummary:
    recorded: int = 0
    duplicates: int = 0
    ignored: int = 0
    failed: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def _decimal(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"unparsable amount {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"unparsable amount {value!r}")
    return amount


def presale_payment_usd(
    tx: HeliusTransaction,
    presale_wallet: str,
    decimals: int,
    payment_mint: str | None = None,
) -> Decimal | None:
    """USD paid to the presale wallet in tx, or None if nothing was sent there.

    Parsed instruction transfers (amount in base units) take precedence; the
    enhanced tokenTransfers list (UI units) is used only when no instruction
    matched, so one transfer is never counted twice.

    With payment_mint set, transfers of other mints are skipped. Plain
    `transfer` instructions carry no mint and are accepted as-is.
    """
    scale = Decimal(10) ** decimals
    total = Decimal(0)
    matched = False
    for inst in tx.instructions:
        if not isinstance(inst.parsed, dict):
            continue
        info = inst.parsed.get("info")
        if not isinstance(info, dict) or info.get("destination") != presale_wallet:
            continue
        if info.get("amount") is None:
            continue
        if payment_mint and info.get("mint") not in (None, payment_mint):
            continue
        total += _decimal(info["amount"]) / scale
        matched = True
    if matched:
        return total

    for transfer in tx.token_transfers:
        if presale_wallet not in (transfer.to_user_account, transfer.to_token_account):
            continue
        if transfer.token_amount is None:
            continue
        if payment_mint and transfer.mint != payment_mint:
            continue
        total += _decimal(transfer.token_amount)
        matched = True
    return total if matched else None


async def process_batch(records: list, engine: SettlementEngine, settings: Settings) -> BatchSummary:
    """Record every presale payment in the batch; one bad record never stops the rest."""
    summary = BatchSummary()
    price = _decimal(settings.token_price_usd)
    for raw in records:
        try:
            tx = HeliusTransaction.model_validate(raw)
            usd = presale_payment_usd(
                tx, settings.presale_wallet, settings.payment_token_decimals, settings.payment_mint
            )
        except ValueError as e:
            log.warning("webhook_record_failed", reason="malformed", error=str(e))
            summary.failed += 1
            continue
        if usd is None:
            summary.ignored += 1
            continue
        if not tx.payer or usd <= 0:
            log.warning("webhook_record_failed", transaction_id=tx.signature, reason="no_payer_or_amount")
            summary.failed += 1
            continue

        amount_spent, tokens_received = float(usd), float(usd / price)
        if not (math.isfinite(amount_spent) and math.isfinite(tokens_received)):
            log.warning("webhook_record_failed", transaction_id=tx.signature, reason="amount_out_of_range")
            summary.failed += 1
            continue

        try:
            result = await engine.record_indexed_purchase(
                wallet=tx.payer,
                amount_spent=amount_spent,
                tokens_received=tokens_received,
                transaction_id=tx.signature,
            )
        except PyMongoError:
            log.exception("webhook_record_failed", transaction_id=tx.signature, reason="storage")
            summary.failed += 1
            continue

        if result.outcome is Outcome.RECORDED:
            summary.recorded += 1
        elif result.outcome is Outcome.DUPLICATE:
            summary.duplicates += 1
        else:
            summary.failed += 1
    return summary
