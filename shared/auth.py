import secrets
from typing import Optional
from fastapi import HTTPException, Header
from shared.config import settings


async def verify_api_key(x_api_key: Optional[str] = Header(default=None)) -> bool:
    """Guard for endpoints that move funds. A missing header is a 401, not a 422."""
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing X-API-Key header")
    if not secrets.compare_digest(x_api_key, settings.API_SECRET_KEY):
        raise HTTPException(status_code=401, detail="Invalid API key")
    return True
