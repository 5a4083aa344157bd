from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pinquiz.database import get_supabase_client
from typing import Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

async def verify_supabase_token(token: str):
    """Verify Supabase JWT token"""
    try:
        client = await get_supabase_client()
        user = await client.auth.get_user(token)
        if user and user.user:
            return user.user
        return None
    except Exception as e:
        logger.error(f"Supabase token verification failed: {e}")
        return None

async def get_current_user_from_token(token: str) -> Optional[dict]:
    """Get current user from a raw JWT token string"""
    if not token:
        return None
    if token.startswith('Bearer '):
        token = token[7:]

    user = await verify_supabase_token(token)
    if user:
        return {
            "id": user.id,
            "email": user.email,
        }
    return None

async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    """Get current (host) user from Supabase JWT token"""
    if credentials:
        user = await get_current_user_from_token(credentials.credentials)
        if user:
            return user

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials"
    )
