from datetime import datetime
from typing import Literal

from beanie import Document, Indexed
from pydantic import Field


class Purchase(Document):
    """A settled presale purchase. transaction_id is unique at the index level."""
    transaction_id: Indexed(str, unique=True)
    wallet: Indexed(str)
    amount_spent: float  # USD
    tokens_received: float
    referral_code_used: str | None = None  # verbatim, may not resolve to an account
    source: Literal["direct", "webhook"] = "direct"
    recorded_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "purchases"
