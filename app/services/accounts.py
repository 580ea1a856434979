"""Per-wallet accounts: lazy creation, referral lookup, atomic earnings credit."""

import secrets
from datetime import datetime

from beanie.odm.queries.update import UpdateResponse
from beanie.operators import Inc, Set
from pymongo.errors import DuplicateKeyError

from app.core.config import get_settings
from app.core.exceptions import InternalError
from app.core.logging import get_logger
from app.models.account import Account

log = get_logger(__name__)


def generate_referral_code() -> str:
    # Small code space; uniqueness is enforced by the index and retried on collision.
    return f"REF{secrets.randbelow(100000)}"


async def find_by_wallet(wallet: str) -> Account | None:
    return await Account.find_one(Account.wallet == wallet)


async def find_by_referral_code(code: str) -> Account | None:
    return await Account.find_one(Account.referral_code == code)


async def get_or_create_account(wallet: str) -> Account:
    """Return the wallet's account, creating it with a fresh referral code if absent.

    Safe against concurrent first lookups: a duplicate key on wallet means
    another request won, so its document is returned; a duplicate on the
    referral code retries with a new code.
    """
    account = await find_by_wallet(wallet)
    if account:
        return account
    attempts = get_settings().referral_code_attempts
    for _ in range(attempts):
        account = Account(wallet=wallet, referral_code=generate_referral_code())
        try:
            await account.insert()
        except DuplicateKeyError:
            existing = await find_by_wallet(wallet)
            if existing:
                return existing
            log.info("referral_code_collision", wallet=wallet, code=account.referral_code)
            continue
        log.info("account_created", wallet=wallet, referral_code=account.referral_code)
        return account
    raise InternalError("Could not generate unique referral code")


async def credit_referral_earnings(code: str, amount: float) -> Account | None:
    """Atomically add amount to the earnings of the account owning code.

    Single-document $inc; returns the updated account, or None if no account
    has this code.
    """
    return await Account.find_one(Account.referral_code == code).update(
        Inc({Account.referral_earnings: amount}),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )


async def leaderboard(limit: int, offset: int = 0) -> list[Account]:
    """Accounts by referral_earnings, highest first; ties broken by wallet."""
    return (
        await Account.find_all()
        .sort(-Account.referral_earnings, +Account.wallet)
        .skip(offset)
        .limit(limit)
        .to_list()
    )


async def update_display_name(wallet: str, display_name: str) -> Account:
    account = await get_or_create_account(wallet)
    await account.update(
        Set({Account.display_name: display_name.strip(), Account.updated_at: datetime.utcnow()})
    )
    return account


def account_payload(account: Account) -> dict:
    settings = get_settings()
    return {
        "walletAddress": account.wallet,
        "referralCode": account.referral_code or None,
        "referralEarnings": account.referral_earnings or 0,
        "avatarUrl": account.avatar_url or settings.default_avatar_url,
        "displayName": account.display_name or "",
    }
