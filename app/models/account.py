from datetime import datetime

from beanie import Document, Indexed
from pydantic import Field


class Account(Document):
    """One per wallet. referral_earnings only moves through an atomic $inc."""
    wallet: Indexed(str, unique=True)
    referral_code: Indexed(str, unique=True)
    referral_earnings: float = 0.0
    display_name: str = ""
    avatar_url: str = ""
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "accounts"
        indexes = [[("referral_earnings", -1)]]
