"""Settlement: verify a purchase, record it exactly once, credit the referrer.

Two entry points share the record step. record_purchase (direct client
submissions) verifies on chain first; record_indexed_purchase (indexer
webhook) trusts the indexer and skips verification and referral credit.
"""

import math
from dataclasses import dataclass
from enum import Enum

from pymongo.errors import PyMongoError

from app.core.config import Settings
from app.core.logging import get_logger
from app.models.purchase import Purchase
from app.services import accounts as accounts_service
from app.services import ledger
from app.services.chain_verifier import ChainVerifier, Verdict

log = get_logger(__name__)

MISSING_OR_INVALID_DATA = "missing-or-invalid-data"
INVALID_TRANSACTION = "invalid-transaction"


class Outcome(str, Enum):
    RECORDED = "recorded"
    REJECTED = "rejected"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class SettlementResult:
    outcome: Outcome
    reason: str | None = None
    verdict: Verdict | None = None
    purchase: Purchase | None = None

    @classmethod
    def rejected(cls, reason: str, verdict: Verdict | None = None) -> "SettlementResult":
        return cls(Outcome.REJECTED, reason=reason, verdict=verdict)


def _positive(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value) and value > 0


class SettlementEngine:
    def __init__(self, verifier: ChainVerifier, settings: Settings):
        self.verifier = verifier
        self.bonus_rate = settings.referral_bonus_rate
        self.allow_self_referral = settings.allow_self_referral

    async def record_purchase(
        self,
        wallet: str,
        amount_spent: float,
        tokens_received: float,
        transaction_id: str,
        referral_code_used: str | None = None,
    ) -> SettlementResult:
        if not (wallet and transaction_id and _positive(amount_spent) and _positive(tokens_received)):
            log.info("purchase_rejected", transaction_id=transaction_id, reason=MISSING_OR_INVALID_DATA)
            return SettlementResult.rejected(MISSING_OR_INVALID_DATA)

        verdict = await self.verifier.verify(transaction_id, wallet, amount_spent)
        if verdict is not Verdict.CONFIRMED:
            log.info("purchase_rejected", transaction_id=transaction_id, reason=INVALID_TRANSACTION, verdict=verdict.value)
            return SettlementResult.rejected(INVALID_TRANSACTION, verdict=verdict)

        purchase = Purchase(
            transaction_id=transaction_id,
            wallet=wallet,
            amount_spent=amount_spent,
            tokens_received=tokens_received,
            referral_code_used=referral_code_used or None,
            source="direct",
        )
        result = await self._insert(purchase)
        if result.outcome is Outcome.RECORDED and purchase.referral_code_used:
            await self._credit_referrer(purchase)
        return result

    async def record_indexed_purchase(
        self,
        wallet: str,
        amount_spent: float,
        tokens_received: float,
        transaction_id: str,
    ) -> SettlementResult:
        """Record a purchase reported by the indexer; no chain re-verification."""
        if not (wallet and transaction_id and _positive(amount_spent) and _positive(tokens_received)):
            return SettlementResult.rejected(MISSING_OR_INVALID_DATA)
        purchase = Purchase(
            transaction_id=transaction_id,
            wallet=wallet,
            amount_spent=amount_spent,
            tokens_received=tokens_received,
            source="webhook",
        )
        return await self._insert(purchase)

    async def _insert(self, purchase: Purchase) -> SettlementResult:
        if not await ledger.insert_if_absent(purchase):
            log.info("purchase_duplicate", transaction_id=purchase.transaction_id, source=purchase.source)
            return SettlementResult(Outcome.DUPLICATE)
        log.info(
            "purchase_recorded",
            transaction_id=purchase.transaction_id,
            wallet=purchase.wallet,
            amount_spent=purchase.amount_spent,
            source=purchase.source,
        )
        return SettlementResult(Outcome.RECORDED, purchase=purchase)

    def referral_bonus(self, amount_spent: float) -> float:
        return round(self.bonus_rate * amount_spent, 6)

    async def _credit_referrer(self, purchase: Purchase) -> None:
        # The purchase is already durable; nothing here may fail it.
        code = purchase.referral_code_used
        bonus = self.referral_bonus(purchase.amount_spent)
        try:
            if not self.allow_self_referral:
                referrer = await accounts_service.find_by_referral_code(code)
                if referrer is None:
                    log.info("referral_code_unresolved", transaction_id=purchase.transaction_id, code=code)
                    return
                if referrer.wallet == purchase.wallet:
                    log.info("referral_self_skipped", transaction_id=purchase.transaction_id, code=code)
                    return
            if bonus <= 0:
                return
            referrer = await accounts_service.credit_referral_earnings(code, bonus)
        except PyMongoError:
            log.exception("referral_credit_failed", transaction_id=purchase.transaction_id, code=code)
            return
        if referrer is None:
            log.info("referral_code_unresolved", transaction_id=purchase.transaction_id, code=code)
            return
        log.info(
            "referral_credited",
            transaction_id=purchase.transaction_id,
            code=code,
            referrer=referrer.wallet,
            bonus=bonus,
        )
