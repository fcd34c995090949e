"""
Authentication for the voice turn endpoint

Bearer tokens are Supabase-issued JWTs. With SUPABASE_JWT_SECRET set they
are verified locally; otherwise Supabase is asked to resolve the token.
When VOICE_REQUIRE_AUTH is off, requests without a token are served as an
anonymous learner.
"""
import logging
import os
from typing import Optional

from fastapi import HTTPException, Header
from jose import JWTError, jwt
from dotenv import load_dotenv

from .supabase_client import get_supabase_client

load_dotenv()
load_dotenv('../.env')

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"

ANONYMOUS_LEARNER = {"id": "anonymous", "email": None, "role": "student", "anonymous": True}


def auth_required() -> bool:
    return os.getenv("VOICE_REQUIRE_AUTH", "false").strip().lower() in ("1", "true", "yes", "on")


def _learner_from_claims(claims: dict) -> dict:
    metadata = claims.get("user_metadata") or {}
    return {
        "id": claims.get("sub"),
        "email": claims.get("email"),
        "role": metadata.get("role", "student"),
        "anonymous": False,
    }


def verify_token(token: str) -> dict:
    """
    Resolve a bearer token to a learner.

    Raises:
        HTTPException: 401 for a bad token, 503 when no way to verify is configured
    """
    secret = os.getenv("SUPABASE_JWT_SECRET")
    if secret:
        try:
            claims = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE)
        except JWTError as e:
            logger.warning(f"🔐 Token rejected: {e}")
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        if not claims.get("sub"):
            raise HTTPException(status_code=401, detail="Token has no subject")
        return _learner_from_claims(claims)

    supabase = get_supabase_client()
    if supabase is None:
        raise HTTPException(status_code=503, detail="Authentication is not configured")

    try:
        user_response = supabase.auth.get_user(token)
    except Exception as e:
        logger.warning(f"🔐 Supabase token lookup failed: {e}")
        raise HTTPException(status_code=401, detail="Could not validate credentials")

    if not user_response or not user_response.user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = user_response.user
    return {
        "id": user.id,
        "email": user.email,
        "role": (user.user_metadata or {}).get("role", "student"),
        "anonymous": False,
    }


async def get_current_learner(authorization: Optional[str] = Header(None)) -> dict:
    """
    FastAPI dependency returning the calling learner.

    Returns:
        dict: id, email, role and whether the learner is anonymous
    """
    if not authorization:
        if auth_required():
            raise HTTPException(status_code=401, detail="Authorization header required")
        return dict(ANONYMOUS_LEARNER)

    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    return verify_token(authorization[len("Bearer "):].strip())
