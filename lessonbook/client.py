"""HTTP client for the marketplace REST backend."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

import httpx

from lessonbook.config import AppConfig, settings
from lessonbook.errors import NetworkError

logger = logging.getLogger(__name__)


class BackendConnectionError(NetworkError):
    """Raised when the backend cannot be reached or times out."""


class BackendAuthError(NetworkError):
    """Raised when the backend rejects credentials or the session token."""


class BackendNotFoundError(NetworkError):
    """Raised when a backend resource is not found."""


class BackendRequestError(NetworkError):
    """Raised for any other non-2xx backend response."""


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("message") or body.get("error")
    return None


class BackendClient:
    """Async client for the endpoints the checkout core consumes.

    Every response uses the ``{success, data, message}`` envelope; methods
    return the envelope as a dict and raise a ``NetworkError`` subclass for
    transport failures, non-2xx responses, and ``success: false`` bodies.
    """

    def __init__(
        self,
        config: AppConfig = settings,
        http: httpx.AsyncClient | None = None,
        token: Optional[str] = None,
    ) -> None:
        self.config = config
        self.token = token
        self.http = http or httpx.AsyncClient(
            base_url=config.backend.api_base_url.rstrip("/") + "/",
            timeout=httpx.Timeout(config.backend.timeout_seconds, connect=10.0),
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    async def call(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        auth: bool = False,
        headers: dict[str, str] | None = None,
    ) -> dict:
        request_headers = {"Content-Type": "application/json"}
        if auth and self.token:
            request_headers["Authorization"] = f"Bearer {self.token}"
        if headers:
            request_headers.update(headers)

        try:
            response = await self.http.request(
                method,
                path.lstrip("/"),
                params=params,
                json=json,
                headers=request_headers,
            )
        except httpx.TimeoutException as exc:
            raise BackendConnectionError(f"Request to {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise BackendConnectionError(f"Could not reach the server: {exc}") from exc

        message = None
        if response.status_code >= 400:
            message = _error_message(response)
        if response.status_code in {401, 403}:
            raise BackendAuthError(message or "Not authorised", response.status_code)
        if response.status_code == 404:
            raise BackendNotFoundError(message or "Not found", response.status_code)
        if response.status_code >= 400:
            raise BackendRequestError(
                message or f"Request failed ({response.status_code})", response.status_code
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise BackendRequestError(
                f"Unexpected response from {path}", response.status_code
            ) from exc

        if isinstance(body, dict) and body.get("success") is False:
            raise BackendRequestError(
                body.get("message") or body.get("error") or f"Request to {path} failed",
                response.status_code,
            )
        logger.debug("%s %s -> %s", method, path, response.status_code)
        return body

    # ------------------------------------------------------------------ #
    # Instructors, availability, bookings
    # ------------------------------------------------------------------ #

    async def get_instructor(self, instructor_id: str) -> dict:
        return await self.call("GET", f"instructors/{instructor_id}")

    async def get_availability(self, instructor_user_id: str, start: date, end: date) -> dict:
        return await self.call(
            "GET",
            f"availability/instructor/{instructor_user_id}",
            params={"startDate": start.isoformat(), "endDate": end.isoformat()},
        )

    async def get_instructor_bookings(self, instructor_id: str) -> dict:
        return await self.call("GET", f"bookings/instructor/{instructor_id}", auth=True)

    async def get_learner_upcoming(self, learner_id: str) -> dict:
        return await self.call("GET", f"bookings/learner/{learner_id}/upcoming", auth=True)

    async def get_learner_history(self, learner_id: str) -> dict:
        return await self.call("GET", f"bookings/learner/{learner_id}/history", auth=True)

    async def create_booking(
        self, payload: dict[str, Any], idempotency_key: Optional[str] = None
    ) -> dict:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        return await self.call("POST", "bookings", json=payload, auth=True, headers=headers)

    # ------------------------------------------------------------------ #
    # Auth
    # ------------------------------------------------------------------ #

    async def register(self, payload: dict[str, Any]) -> dict:
        return await self.call("POST", "auth/register", json=payload)

    async def login(self, email: str, password: str, role: str = "learner") -> dict:
        return await self.call(
            "POST", "auth/login", json={"email": email, "password": password, "role": role}
        )

    async def me(self) -> dict:
        return await self.call("GET", "auth/me", auth=True)

    async def resend_verification(self, email: str) -> dict:
        return await self.call("POST", "auth/resend-verification", json={"email": email})

    # ------------------------------------------------------------------ #
    # Payments
    # ------------------------------------------------------------------ #

    async def create_payment_intent(
        self, amount: Decimal, currency: str, metadata: dict[str, Any]
    ) -> dict:
        return await self.call(
            "POST",
            "payment/create-payment-intent",
            json={"amount": float(amount), "currency": currency, "metadata": metadata},
        )
