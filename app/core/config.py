from functools import lru_cache
from typing import Any, List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173"]


def _parse_cors_origins(v: Any) -> List[str]:
    try:
        if v is None or v == "":
            return _DEFAULT_CORS.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return _DEFAULT_CORS.copy()
        if s == "*":
            return ["*"]
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()
    except ValueError:
        return _DEFAULT_CORS.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="presale", alias="MONGODB_DB_NAME")

    # Solana RPC (direct purchase verification)
    solana_rpc_url: str = Field(default="https://api.mainnet-beta.solana.com", alias="SOLANA_RPC_URL")
    solana_commitment: Literal["confirmed", "finalized"] = Field(default="confirmed", alias="SOLANA_COMMITMENT")
    solana_rpc_timeout_seconds: float = Field(default=10.0, gt=0, alias="SOLANA_RPC_TIMEOUT_SECONDS")

    # Presale
    presale_wallet: str = Field(default="4qdqnmNxUTjKTJMhVztPxtgwVuU7p2aoJMCJVFEQ6Wzw", alias="PRESALE_WALLET")
    token_price_usd: float = Field(default=0.00851, gt=0, alias="TOKEN_PRICE_USD")
    payment_token_decimals: int = Field(default=6, ge=0, alias="PAYMENT_TOKEN_DECIMALS")
    # SPL mint accepted as payment (USDC); empty accepts any mint
    payment_mint: str = Field(default="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", alias="PAYMENT_MINT")

    # Referrals
    referral_bonus_rate: float = Field(default=0.05, ge=0, alias="REFERRAL_BONUS_RATE")
    allow_self_referral: bool = Field(default=True, alias="ALLOW_SELF_REFERRAL")
    referral_code_attempts: int = Field(default=10, ge=1, alias="REFERRAL_CODE_ATTEMPTS")
    leaderboard_limit: int = Field(default=1000, ge=1, alias="LEADERBOARD_LIMIT")

    # Helius webhook shared secret (Authorization header); unset disables the check
    helius_webhook_auth: str | None = Field(default=None, alias="HELIUS_WEBHOOK_AUTH")

    # Profile
    default_avatar_url: str = Field(default="/images/avatarmain.png", alias="DEFAULT_AVATAR_URL")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(getattr(self, "cors_origins_raw", None))


@lru_cache
def get_settings() -> Settings:
    return Settings()
