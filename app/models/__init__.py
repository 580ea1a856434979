from app.models.account import Account
from app.models.purchase import Purchase

__all__ = [
    "Account",
    "Purchase",
]
