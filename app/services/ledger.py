"""Purchase ledger: idempotent insert and aggregate sums."""

from pymongo.errors import DuplicateKeyError

from app.models.purchase import Purchase


async def insert_if_absent(purchase: Purchase) -> bool:
    """Insert purchase; False if its transaction_id is already recorded.

    The unique index on transaction_id decides, so concurrent callers for the
    same transaction get exactly one True.
    """
    try:
        await purchase.insert()
    except DuplicateKeyError:
        return False
    return True


async def total_raised() -> float:
    """Sum of amount_spent over every purchase (0 when there are none)."""
    total = await Purchase.find_all().sum(Purchase.amount_spent)
    return total or 0


async def wallet_totals(wallet: str) -> dict:
    rows = await Purchase.find(Purchase.wallet == wallet).aggregate(
        [
            {
                "$group": {
                    "_id": None,
                    "total_invested": {"$sum": "$amount_spent"},
                    "total_tokens": {"$sum": "$tokens_received"},
                }
            }
        ]
    ).to_list()
    if not rows:
        return {"total_invested": 0, "total_tokens": 0}
    return {"total_invested": rows[0]["total_invested"], "total_tokens": rows[0]["total_tokens"]}
