import hmac

from app.core.exceptions import UnauthorizedError


def verify_webhook_auth(header_value: str | None, expected: str | None) -> None:
    """Check the indexer's Authorization header against the configured shared secret.

    No-op when no secret is configured.
    """
    if not expected:
        return
    if not header_value or not hmac.compare_digest(header_value.encode("utf-8"), expected.encode("utf-8")):
        raise UnauthorizedError("Invalid webhook authorization")
