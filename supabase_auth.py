"""
Thin client for the Supabase auth (GoTrue) REST API.

Supabase only verifies credentials; the API issues its own JWTs afterwards.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import HTTPException

import config

logger = logging.getLogger(__name__)


class SupabaseError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Supabase returned {response.status_code}"
    for key in ("msg", "error_description", "message", "error"):
        if body.get(key):
            return str(body[key])
    return f"Supabase returned {response.status_code}"


class SupabaseAuth:
    def __init__(
        self,
        url: str,
        anon_key: str,
        service_role_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = url.rstrip("/") + "/auth/v1"
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self._http = httpx.Client(timeout=timeout, transport=transport)

    def _headers(self, bearer: Optional[str] = None, key: Optional[str] = None) -> Dict[str, str]:
        key = key or self.anon_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {bearer or key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._http.request(method, self.base_url + path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Supabase %s %s failed: %s", method, path, exc)
            raise SupabaseError("Authentication service unavailable", 503) from exc
        if response.status_code >= 400:
            raise SupabaseError(_error_message(response), response.status_code)
        if not response.content:
            return {}
        return response.json()

    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Create the auth user and return it (with or without a session)."""
        data = self._request(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": metadata or {}},
            headers=self._headers(),
        )
        user = data.get("user") or data
        if not user.get("id"):
            raise SupabaseError("Supabase did not return a user id")
        return user

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(),
        )

    def recover(self, email: str, redirect_to: Optional[str] = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._request("POST", "/recover", params=params, json={"email": email}, headers=self._headers())

    def update_password(self, access_token: str, password: str) -> Dict[str, Any]:
        return self._request(
            "PUT",
            "/user",
            json={"password": password},
            headers=self._headers(bearer=access_token),
        )

    def delete_user(self, user_id: str) -> bool:
        if not self.service_role_key:
            logger.warning("Cannot delete Supabase user %s: no service role key", user_id)
            return False
        self._request("DELETE", f"/admin/users/{user_id}", headers=self._headers(key=self.service_role_key))
        return True


_client: Optional[SupabaseAuth] = None


def get_supabase() -> SupabaseAuth:
    global _client
    if not (config.SUPABASE_URL and config.SUPABASE_ANON_KEY):
        raise HTTPException(status_code=503, detail="Authentication service is not configured")
    if _client is None:
        _client = SupabaseAuth(
            config.SUPABASE_URL,
            config.SUPABASE_ANON_KEY,
            service_role_key=config.SUPABASE_SERVICE_ROLE_KEY,
        )
    return _client
