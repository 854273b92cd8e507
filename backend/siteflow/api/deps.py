import hmac

from fastapi import Header

from siteflow.config import settings
from siteflow.core.exceptions import AuthenticationError


async def require_token(authorization: str = Header(None)) -> None:
    """
    Check the dispatch token when API_TOKEN is configured:
    Authorization: Bearer <API_TOKEN>
    """
    if not settings.API_TOKEN:
        return

    if not authorization:
        raise AuthenticationError("Missing Authorization header")

    if not authorization.startswith("Bearer "):
        raise AuthenticationError("Invalid authorization format. Use: Bearer <token>")

    token = authorization[7:]  # Remove "Bearer "
    if not hmac.compare_digest(token.encode("utf-8"), settings.API_TOKEN.encode("utf-8")):
        raise AuthenticationError("Invalid token")
