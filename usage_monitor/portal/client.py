"""httpx-based client for the billing portal's token-authenticated API.

Every endpoint takes the bare portal token as a query parameter. All methods
return the decoded JSON document or raise PortalOfflineError / PortalError.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class PortalOfflineError(Exception):
    """Raised when the billing portal is unreachable."""


class PortalError(Exception):
    """Raised when the billing portal returns an error."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Portal error {status_code}: {detail}")


class PortalClient:
    """Synchronous httpx client for the billing portal."""

    def __init__(
        self,
        base_url: str,
        user_agent: str = "",
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._user_agent = user_agent
        self._timeout = timeout

    @property
    def _headers(self) -> dict[str, str]:
        h: dict[str, str] = {}
        if self._user_agent:
            h["User-Agent"] = self._user_agent
        return h

    def _get(
        self,
        path: str,
        params: dict[str, str],
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Perform a GET request and decode the JSON body."""
        try:
            with httpx.Client(timeout=timeout or self._timeout) as client:
                resp = client.get(
                    f"{self._base_url}{path}",
                    headers=self._headers,
                    params=params,
                )
        except httpx.ConnectError:
            raise PortalOfflineError("Billing portal is offline or unreachable")
        except httpx.TimeoutException:
            raise PortalOfflineError("Billing portal request timed out")
        except httpx.TransportError as e:
            raise PortalOfflineError(f"Billing portal transport error: {e}")

        if resp.status_code >= 400:
            detail = resp.text
            try:
                detail = resp.json().get("detail", resp.text)
            except Exception:
                pass
            raise PortalError(resp.status_code, str(detail))

        try:
            body = resp.json()
        except ValueError:
            raise PortalError(resp.status_code, "Response body is not valid JSON")
        if not isinstance(body, dict):
            raise PortalError(resp.status_code, "Response body is not a JSON object")
        return body

    # ── High-level methods ───────────────────────────────────────────────

    def subscription(self, token: str) -> dict[str, Any]:
        """GET /subscriptions_from_link?token=..."""
        return self._get("/subscriptions_from_link", {"token": token})

    def customer(self, token: str) -> dict[str, Any]:
        """GET /customer_from_link?token=..."""
        return self._get("/customer_from_link", {"token": token})

    def ledger_summary(
        self, customer_id: str, pricing_unit_id: str, token: str
    ) -> dict[str, Any]:
        """GET /customers/{id}/ledger_summary?pricing_unit_id=...&token=..."""
        return self._get(
            f"/customers/{customer_id}/ledger_summary",
            {"pricing_unit_id": pricing_unit_id, "token": token},
        )

    def usage(self, subscription_id: str, price_id: str, token: str) -> dict[str, Any]:
        """GET /subscriptions/{id}/usage?price_id=...&token=..."""
        return self._get(
            f"/subscriptions/{subscription_id}/usage",
            {"price_id": price_id, "token": token},
        )
