"""
HTTP client for the Sikuwat API with a local JSON mirror.

Reads of market prices, articles and tips are mirrored to a JSON file so they
can still be shown while the service is unreachable. Admin writes that fail
for connectivity reasons are kept in the mirror under a ``temp_`` id and
flagged ``local``. Mirrored rows are never replayed to the service.
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from pathlib import Path
from typing import Any, Optional

import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from shared.constants import LOCAL_MODEL_NAME
from shared.types import ChatDetail
from sikuwat.chat import generate_local_answer
from sikuwat.db import utc_now_iso

logger = logging.getLogger(__name__)

TEMP_ID_PREFIX = "temp_"
MAX_BACKOFF_SECONDS = 8

# Mirror key -> API path segment.
RESOURCES = {
    "market_prices": "market-prices",
    "articles": "articles",
    "tips": "tips",
}


class SikuwatClientError(Exception):
    """Raised when the service rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def is_temp_id(record_id: Any) -> bool:
    return str(record_id or "").startswith(TEMP_ID_PREFIX)


class LocalMirror:
    """A JSON file mapping a key to a list of rows."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable mirror %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    def get(self, key: str) -> list[dict]:
        rows = self._load().get(key)
        return list(rows) if isinstance(rows, list) else []

    def put(self, key: str, rows: list[dict]) -> None:
        data = self._load()
        data[key] = list(rows)
        self._save(data)

    def prepend(self, key: str, row: dict) -> None:
        self.put(key, [row, *self.get(key)])


def _is_client_error(exc: requests.RequestException) -> bool:
    response = getattr(exc, "response", None)
    return response is not None and 400 <= response.status_code < 500


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, requests.RequestException) and not _is_client_error(exc)


def _error_detail(exc: requests.RequestException) -> str:
    response = exc.response
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = None
    return str(detail or response.text or exc)


class SikuwatClient:
    def __init__(
        self,
        base_url: str,
        *,
        mirror: LocalMirror | None = None,
        access_token: str | None = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        backoff: float = 0.5,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.mirror = mirror
        self.access_token = access_token
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    def _request(self, method: str, path: str, **kwargs) -> dict:
        response = self.session.request(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(),
            timeout=self.timeout,
            **kwargs,
        )
        response.raise_for_status()
        return response.json()

    def _get_with_retry(self, path: str, **kwargs) -> dict:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff, max=MAX_BACKOFF_SECONDS),
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(self._request, "GET", path, **kwargs)

    # Auth

    def sign_in(self, email: str, password: str) -> dict:
        try:
            payload = self._request(
                "POST", "/auth/signin", json={"email": email, "password": password}
            )
        except requests.HTTPError as exc:
            raise SikuwatClientError(
                _error_detail(exc), exc.response.status_code
            ) from exc
        data = payload["data"]
        self.access_token = data["access_token"]
        return data

    def sign_out(self) -> None:
        if not self.access_token:
            return
        try:
            self._request("POST", "/auth/signout")
        except requests.RequestException as exc:
            logger.warning("Sign out request failed: %s", exc)
        self.access_token = None

    # Content reads

    def _list(self, key: str) -> list[dict]:
        try:
            rows = self._get_with_retry(f"/{RESOURCES[key]}")["data"]
        except (requests.RequestException, ValueError, KeyError) as exc:
            logger.warning("Using mirrored %s: %s", key, exc)
            return self.mirror.get(key) if self.mirror else []

        if self.mirror is None:
            return rows
        local_only = [row for row in self.mirror.get(key) if is_temp_id(row.get("id"))]
        merged = rows + local_only
        self.mirror.put(key, merged)
        return merged

    def list_market_prices(self) -> list[dict]:
        return self._list("market_prices")

    def list_articles(self) -> list[dict]:
        return self._list("articles")

    def list_tips(self) -> list[dict]:
        return self._list("tips")

    # Admin writes

    def _create(self, key: str, payload: dict) -> dict:
        try:
            response = self._request(
                "POST", f"/admin/{RESOURCES[key]}", json=payload
            )
        except requests.RequestException as exc:
            if _is_client_error(exc):
                raise SikuwatClientError(
                    _error_detail(exc), exc.response.status_code
                ) from exc
            if self.mirror is None:
                raise
            logger.warning("Storing %s locally after failed write: %s", key, exc)
            row = {
                **payload,
                "id": new_temp_id(),
                "created_at": utc_now_iso(),
                "local": True,
            }
            self.mirror.prepend(key, row)
            return row

        row = response["data"]
        if self.mirror is not None:
            self.mirror.prepend(key, row)
        return row

    def create_market_price(self, payload: dict) -> dict:
        return self._create("market_prices", payload)

    def create_article(self, payload: dict) -> dict:
        return self._create("articles", payload)

    def create_tip(self, payload: dict) -> dict:
        return self._create("tips", payload)

    # Chat

    def ask(
        self,
        message: str,
        *,
        detail: ChatDetail = ChatDetail.DETAILED,
        context: dict | None = None,
    ) -> dict:
        """
        Ask the chatbot. If the service cannot be reached the question is
        answered from the local knowledge base.
        """
        body = {"message": message, "detail": str(detail)}
        if context:
            body["context"] = context
        try:
            return self._request("POST", "/chat", json=body)
        except requests.RequestException as exc:
            if _is_client_error(exc):
                raise SikuwatClientError(
                    _error_detail(exc), exc.response.status_code
                ) from exc
            logger.warning("Chat service unreachable, answering locally: %s", exc)
        context = context or {}
        return {
            "success": True,
            "response": generate_local_answer(
                message, context.get("articles"), context.get("tips"), detail
            ),
            "is_local": True,
            "model": LOCAL_MODEL_NAME,
        }
