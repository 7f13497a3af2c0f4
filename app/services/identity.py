"""Client for the GoTrue-compatible identity provider.

The provider owns credentials and token issuance; this service only relays
password and refresh grants and manages principals for new profiles.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.errors import ApiError, Conflict, Unauthorized
from app.settings import get_settings

logger = logging.getLogger("app.identity")


class IdentityProviderError(ApiError):
    kind = "upstream_error"
    default_status_code = 502
    default_code = "IDENTITY_PROVIDER_ERROR"

    def __init__(self, message: str = "Identity provider request failed."):
        super().__init__(message=message)


class IdentityClient:
    def __init__(
        self,
        base_url: str,
        *,
        anon_key: str,
        service_key: str,
        timeout: float = 15.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.service_key = service_key
        self.timeout = timeout

    def _headers(self, *, admin: bool = False, bearer: str | None = None) -> dict[str, str]:
        key = self.service_key if admin else self.anon_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {bearer or key}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str],
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                return client.request(method, url, headers=headers, json=json, params=params)
        except httpx.RequestError as exc:
            logger.exception("identity_request_failed", extra={"method": method, "path": path})
            raise IdentityProviderError() from exc

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or "Identity provider request failed."
        if isinstance(body, dict):
            for key in ("error_description", "msg", "message", "error"):
                value = body.get(key)
                if isinstance(value, str) and value:
                    return value
        return "Identity provider request failed."

    def _token_grant(self, grant_type: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = self._request(
            "POST",
            "token",
            headers=self._headers(),
            params={"grant_type": grant_type},
            json=payload,
        )
        if response.status_code in (400, 401, 403):
            raise Unauthorized(self._error_message(response), code="INVALID_CREDENTIALS")
        if response.is_error:
            logger.error(
                "identity_token_grant_failed",
                extra={"grant_type": grant_type, "status_code": response.status_code},
            )
            raise IdentityProviderError(self._error_message(response))
        return response.json()

    def sign_in_with_password(self, email: str, password: str) -> dict[str, Any]:
        return self._token_grant("password", {"email": email, "password": password})

    def refresh_session(self, refresh_token: str) -> dict[str, Any]:
        return self._token_grant("refresh_token", {"refresh_token": refresh_token})

    def sign_out(self, access_token: str) -> None:
        response = self._request("POST", "logout", headers=self._headers(bearer=access_token))
        if response.is_error and response.status_code not in (401, 404):
            logger.warning("identity_sign_out_failed", extra={"status_code": response.status_code})

    def admin_create_user(
        self,
        *,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        response = self._request(
            "POST",
            "admin/users",
            headers=self._headers(admin=True),
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": metadata or {},
            },
        )
        if response.status_code == 422:
            raise Conflict("IDENTITY_EXISTS", self._error_message(response))
        if response.is_error:
            raise IdentityProviderError(self._error_message(response))
        body = response.json()
        user_id = body.get("id") or (body.get("user") or {}).get("id")
        if not user_id:
            raise IdentityProviderError("Identity provider returned no user id.")
        return str(user_id)

    def admin_delete_user(self, user_id: str) -> None:
        response = self._request("DELETE", f"admin/users/{user_id}", headers=self._headers(admin=True))
        if response.is_error and response.status_code != 404:
            raise IdentityProviderError(self._error_message(response))


def get_identity_client() -> IdentityClient:
    settings = get_settings()
    return IdentityClient(
        settings.identity_base_url,
        anon_key=settings.identity_anon_key,
        service_key=settings.identity_service_key,
        timeout=settings.identity_timeout_seconds,
    )
