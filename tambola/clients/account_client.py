"""Client for the hosted authentication service (GoTrue-style REST API)."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import requests

from tambola.clients.http import build_http_session
from tambola.errors import AuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user_id: str
    email: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
            "user": {"id": self.user_id, "email": self.email},
        }


def _error_message(resp: requests.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text or "Authentication failed"
    if isinstance(payload, dict):
        for key in ("error_description", "msg", "message", "error"):
            if payload.get(key):
                return str(payload[key])
    return "Authentication failed"


class AccountClient:
    """Sign-up, sign-in, sign-out, password reset and session lookup."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        http: requests.Session | None = None,
        timeout: float = 10.0,
        retries: int = 3,
        backoff_factor: float = 0.5,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._http = http or build_http_session(retries, backoff_factor)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> AccountClient:
        return cls(
            str(config.get("AUTH_URL") or ""),
            str(config.get("AUTH_API_KEY") or ""),
            timeout=float(config.get("HTTP_TIMEOUT", 10)),
            retries=int(config.get("HTTP_RETRIES", 3)),
            backoff_factor=float(config.get("HTTP_BACKOFF", 0.5)),
        )

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        token: str | None = None,
    ) -> dict[str, Any]:
        if not self._base_url:
            raise AuthError("Account service is not configured")

        headers = {"apikey": self._api_key}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            resp = self._http.request(
                method,
                f"{self._base_url}{path}",
                json=json,
                params=params,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Account service unreachable: %s", exc)
            raise AuthError("Account service unreachable") from exc

        if resp.status_code == 429:
            raise AuthError("Too many attempts, try again later", details={"status": 429})
        if resp.status_code >= 400:
            raise AuthError(_error_message(resp), details={"status": resp.status_code})

        if not resp.content:
            return {}
        try:
            payload = resp.json()
        except ValueError as exc:
            raise AuthError("Account service returned an invalid response") from exc
        return payload if isinstance(payload, dict) else {}

    @staticmethod
    def _session_from(payload: dict[str, Any]) -> AuthSession:
        user = payload.get("user") or {}
        token = payload.get("access_token")
        if not token or not user.get("id"):
            raise AuthError("Account service returned no session")
        return AuthSession(
            access_token=str(token),
            user_id=str(user["id"]),
            email=user.get("email"),
            refresh_token=payload.get("refresh_token"),
            expires_in=int(payload["expires_in"]) if payload.get("expires_in") is not None else None,
        )

    def sign_up(self, email: str, password: str, username: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"email": email, "password": password}
        if username:
            body["data"] = {"username": username}
        payload = self._request("POST", "/signup", json=body)
        user = payload.get("user") or payload
        return {"id": user.get("id"), "email": user.get("email", email)}

    def sign_in(self, email: str, password: str) -> AuthSession:
        payload = self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return self._session_from(payload)

    def sign_out(self, access_token: str) -> None:
        self._request("POST", "/logout", token=access_token)

    def reset_password(self, email: str) -> None:
        self._request("POST", "/recover", json={"email": email})

    def current_session(self, access_token: str | None) -> AuthSession | None:
        """Session for ``access_token``, or None when it is missing or expired."""

        if not access_token:
            return None
        try:
            user = self._request("GET", "/user", token=access_token)
        except AuthError as exc:
            if isinstance(exc.details, dict) and exc.details.get("status") in (401, 403):
                return None
            raise
        if not user.get("id"):
            return None
        return AuthSession(access_token=access_token, user_id=str(user["id"]), email=user.get("email"))
