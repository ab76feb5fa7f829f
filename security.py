"""Local JWT issuing and the authenticated-manager dependency."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

import config
from database import collection

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    user_id: str
    supabase_id: str
    email: str
    name: str
    hotel_name: str


def create_access_token(user: Dict[str, Any]) -> str:
    if not config.JWT_SECRET:
        raise RuntimeError("JWT_SECRET is not defined")
    now = datetime.now(timezone.utc)
    claims = {
        "user_id": str(user["_id"]),
        "supabase_id": user["supabase_id"],
        "email": user["email"],
        "name": user["name"],
        "hotel_name": user["hotel_name"],
        "iat": now,
        "exp": now + timedelta(days=config.JWT_EXPIRES_DAYS),
    }
    return jwt.encode(claims, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Return the token claims; raises ``jwt.InvalidTokenError`` when invalid or expired."""
    return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="No token, authorization denied")

    try:
        claims = decode_access_token(credentials.credentials)
        user_id = ObjectId(claims["user_id"])
    except (jwt.InvalidTokenError, KeyError, InvalidId) as exc:
        logger.info("JWT verification failed: %s", exc)
        raise HTTPException(status_code=401, detail="Invalid or expired token") from exc

    user = collection("users").find_one({"_id": user_id, "is_active": True})
    if not user:
        raise HTTPException(status_code=401, detail="User not found or account is inactive")

    return CurrentUser(
        user_id=str(user["_id"]),
        supabase_id=user["supabase_id"],
        email=user["email"],
        name=user["name"],
        hotel_name=user["hotel_name"],
    )
