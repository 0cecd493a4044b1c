"""
Auth abstraction for the hosted auth platform and an in-memory test implementation.

The hosted implementation talks to the platform's GoTrue REST API; nothing here
issues or verifies tokens on its own.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import requests
from werkzeug.security import check_password_hash, generate_password_hash

from sikuwat.db import utc_now_iso

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Raised when the auth platform rejects a request."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class AuthUser:
    id: str
    email: str
    user_metadata: dict = field(default_factory=dict)
    created_at: str = field(default_factory=utc_now_iso)

    @property
    def role(self) -> Optional[str]:
        return self.user_metadata.get("role")

    @property
    def name(self) -> Optional[str]:
        return self.user_metadata.get("name")

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "user_metadata": dict(self.user_metadata),
            "created_at": self.created_at,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "AuthUser":
        return cls(
            id=payload["id"],
            email=payload.get("email") or "",
            user_metadata=payload.get("user_metadata") or {},
            created_at=payload.get("created_at") or utc_now_iso(),
        )


@dataclass
class AuthSession:
    access_token: str
    user: AuthUser


class AuthClient(Protocol):
    """Operations the API needs from the auth platform."""

    def sign_up(
        self, email: str, password: str, metadata: dict
    ) -> AuthUser:
        ...

    def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        ...

    def sign_out(self, access_token: str) -> None:
        ...


class InMemoryAuthClient:
    """Test double for the auth platform."""

    def __init__(self):
        self.users: Dict[str, AuthUser] = {}
        self.password_hashes: Dict[str, str] = {}
        self.sessions: Dict[str, str] = {}

    def reset(self) -> None:
        self.users.clear()
        self.password_hashes.clear()
        self.sessions.clear()

    def _find_by_email(self, email: str) -> Optional[AuthUser]:
        normalized = email.strip().lower()
        for user in self.users.values():
            if user.email == normalized:
                return user
        return None

    def sign_up(self, email: str, password: str, metadata: dict) -> AuthUser:
        if self._find_by_email(email):
            raise AuthError("A user with this email address has already been registered")
        if len(password) < 6:
            raise AuthError("Password should be at least 6 characters.")
        user = AuthUser(
            id=str(uuid.uuid4()),
            email=email.strip().lower(),
            user_metadata=dict(metadata),
        )
        self.users[user.id] = user
        self.password_hashes[user.id] = generate_password_hash(password)
        return user

    def sign_in(self, email: str, password: str) -> AuthSession:
        user = self._find_by_email(email)
        if not user or not check_password_hash(
            self.password_hashes[user.id], password
        ):
            raise AuthError("Invalid login credentials", status_code=401)
        token = secrets.token_urlsafe(32)
        self.sessions[token] = user.id
        return AuthSession(access_token=token, user=user)

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        user_id = self.sessions.get(access_token)
        if not user_id:
            return None
        return self.users.get(user_id)

    def sign_out(self, access_token: str) -> None:
        self.sessions.pop(access_token, None)


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"Auth request failed ({response.status_code})"
    for key in ("msg", "error_description", "message", "error"):
        if payload.get(key):
            return str(payload[key])
    return f"Auth request failed ({response.status_code})"


@dataclass
class SupabaseAuthClient:
    """
    Client for the hosted platform's GoTrue REST API.
    """

    url: str
    anon_key: str
    service_role_key: str
    timeout: float = 15.0

    def __post_init__(self):
        self._auth_url = f"{self.url.rstrip('/')}/auth/v1"
        self._session = requests.Session()

    def _headers(self, key: str, bearer: str | None = None) -> dict:
        return {
            "apikey": key,
            "Authorization": f"Bearer {bearer or key}",
            "Content-Type": "application/json",
        }

    def sign_up(self, email: str, password: str, metadata: dict) -> AuthUser:
        # Admin endpoint so the email is confirmed without a mail server.
        response = self._session.post(
            f"{self._auth_url}/admin/users",
            headers=self._headers(self.service_role_key),
            json={
                "email": email,
                "password": password,
                "user_metadata": metadata,
                "email_confirm": True,
            },
            timeout=self.timeout,
        )
        if not response.ok:
            raise AuthError(_error_message(response), status_code=400)
        return AuthUser.from_payload(response.json())

    def sign_in(self, email: str, password: str) -> AuthSession:
        response = self._session.post(
            f"{self._auth_url}/token",
            params={"grant_type": "password"},
            headers=self._headers(self.anon_key),
            json={"email": email, "password": password},
            timeout=self.timeout,
        )
        if not response.ok:
            raise AuthError(_error_message(response), status_code=401)
        payload = response.json()
        return AuthSession(
            access_token=payload["access_token"],
            user=AuthUser.from_payload(payload["user"]),
        )

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        try:
            response = self._session.get(
                f"{self._auth_url}/user",
                headers=self._headers(self.anon_key, bearer=access_token),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Auth platform unreachable during token check: %s", exc)
            return None
        if not response.ok:
            return None
        return AuthUser.from_payload(response.json())

    def sign_out(self, access_token: str) -> None:
        try:
            response = self._session.post(
                f"{self._auth_url}/logout",
                headers=self._headers(self.anon_key, bearer=access_token),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Auth platform unreachable during sign out: %s", exc)
            return
        if not response.ok:
            logger.warning(
                "Sign out failed (%s): %s",
                response.status_code,
                _error_message(response),
            )
