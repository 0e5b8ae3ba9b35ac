"""Service key authentication and acting-user dependencies."""

from fastapi import Depends, Header, HTTPException


async def require_api_key(
    x_replygate_api_key: str = Header(..., alias="X-ReplyGate-Api-Key"),
) -> str:
    """FastAPI dependency that validates the service API key from header."""
    from replygate.common.config import get_settings

    settings = get_settings()
    if x_replygate_api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Invalid API key")
    return x_replygate_api_key


async def current_user_id(
    x_user_id: str = Header(..., alias="X-User-Id", min_length=1),
    _=Depends(require_api_key),
) -> str:
    """Resolve the acting user's id.

    Session handling lives in the front end; it forwards the authenticated
    user's id alongside the service key.
    """
    return x_user_id
