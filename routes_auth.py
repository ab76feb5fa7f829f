"""Manager registration and login, backed by Supabase credentials."""

import logging
import re
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AfterValidator, BaseModel, Field, field_validator
from pymongo.errors import PyMongoError

import config
from database import collection, create_document, get_document, utcnow
from responses import ok
from schemas import Email, User
from security import CurrentUser, create_access_token, get_current_user
from supabase_auth import SupabaseAuth, SupabaseError, get_supabase

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _check_password(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", value):
        raise ValueError("Password must contain at least one number")
    return value


Password = Annotated[str, AfterValidator(_check_password)]


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    hotel_name: str = Field(..., min_length=2, max_length=100)
    email: Email
    password: Password

    @field_validator("name", "hotel_name", mode="before")
    @classmethod
    def strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginRequest(BaseModel):
    email: Email
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: Email


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: Password


def _public_user(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "name": user["name"],
        "hotel_name": user["hotel_name"],
        "email": user["email"],
    }


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, supabase: SupabaseAuth = Depends(get_supabase)):
    users = collection("users")
    if users.find_one({"email": payload.email}):
        raise HTTPException(status_code=400, detail="User already exists with this email")

    try:
        auth_user = supabase.sign_up(
            payload.email,
            payload.password,
            {"name": payload.name, "hotel_name": payload.hotel_name},
        )
    except SupabaseError as exc:
        logger.warning("Supabase sign-up failed for %s: %s", payload.email, exc.message)
        raise HTTPException(status_code=400, detail=exc.message) from exc

    try:
        user_id = create_document(
            "users",
            User(
                name=payload.name,
                hotel_name=payload.hotel_name,
                email=payload.email,
                supabase_id=auth_user["id"],
            ),
        )
    except PyMongoError:
        logger.exception("Registration failed after Supabase sign-up for %s", payload.email)
        try:
            supabase.delete_user(auth_user["id"])
        except SupabaseError as exc:
            logger.error("Could not remove Supabase user %s: %s", auth_user["id"], exc.message)
        raise HTTPException(status_code=500, detail="Server error during registration")

    user = get_document("users", user_id)
    return {
        "success": True,
        "user": _public_user(user),
        "token": create_access_token(user),
        "message": "Registration successful!",
    }


@router.post("/login")
def login(payload: LoginRequest, supabase: SupabaseAuth = Depends(get_supabase)):
    try:
        supabase.sign_in(payload.email, payload.password)
    except SupabaseError as exc:
        logger.info("Login rejected for %s: %s", payload.email, exc.message)
        if exc.status_code >= 500:
            raise HTTPException(status_code=503, detail=exc.message) from exc
        raise HTTPException(status_code=401, detail="Invalid email or password") from exc

    user = collection("users").find_one({"email": payload.email})
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.get("is_active", True):
        raise HTTPException(status_code=401, detail="User not found or account is inactive")

    collection("users").update_one({"_id": user["_id"]}, {"$set": {"last_login_at": utcnow()}})
    return {
        "success": True,
        "user": _public_user(user),
        "token": create_access_token(user),
        "message": "Login successful!",
    }


@router.post("/logout")
def logout(current: CurrentUser = Depends(get_current_user)):
    # API tokens are stateless; the client drops its copy.
    logger.info("Manager %s logged out", current.email)
    return {"success": True, "message": "Successfully logged out"}


@router.get("/me")
def me(current: CurrentUser = Depends(get_current_user)):
    user = get_document("users", current.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    data = _public_user(user)
    data["is_active"] = user.get("is_active", True)
    return ok(data)


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordRequest, supabase: SupabaseAuth = Depends(get_supabase)):
    redirect_to = f"{config.FRONTEND_URL or 'http://localhost:3000'}/reset-password"
    try:
        supabase.recover(payload.email, redirect_to=redirect_to)
    except SupabaseError as exc:
        logger.warning("Forgot password failed for %s: %s", payload.email, exc.message)
        raise HTTPException(status_code=400, detail=exc.message) from exc
    return {"success": True, "message": "Password reset email sent. Please check your inbox."}


@router.post("/reset-password")
def reset_password(payload: ResetPasswordRequest, supabase: SupabaseAuth = Depends(get_supabase)):
    try:
        supabase.update_password(payload.token, payload.password)
    except SupabaseError as exc:
        logger.warning("Password reset rejected: %s", exc.message)
        raise HTTPException(status_code=400, detail=exc.message) from exc
    return {"success": True, "message": "Password has been reset successfully"}
