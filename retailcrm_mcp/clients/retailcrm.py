"""Shared async RetailCRM API v5 client."""

from __future__ import annotations

import json
import logging
from typing import Any

import aiohttp

from retailcrm_mcp.constants import ALLOWED_PAGE_LIMITS
from retailcrm_mcp.models import Customer, CustomersPage, Order, OrdersPage
from retailcrm_mcp.normalization import clean_str, digits_only

logger = logging.getLogger(__name__)

_REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=20)


class RetailCRMClientError(RuntimeError):
    """Raised for RetailCRM request/response errors with structured metadata."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status = status
        self.details = details or {}

    @property
    def transient(self) -> bool:
        return self.code in {"TIMEOUT", "NETWORK_ERROR"} or (
            self.status is not None and self.status >= 500
        )


def _validate_limit(limit: int) -> int:
    if limit not in ALLOWED_PAGE_LIMITS:
        raise ValueError(
            f"limit must be one of {', '.join(str(v) for v in ALLOWED_PAGE_LIMITS)}, got {limit}"
        )
    return limit


def _filter_params(filters: dict[str, Any]) -> dict[str, str]:
    """Render ``{"customerId": 5}`` as ``{"filter[customerId]": "5"}``, dropping blanks."""
    params: dict[str, str] = {}
    for key, value in filters.items():
        if value is None or value == "":
            continue
        params[f"filter[{key}]"] = str(value)
    return params


class RetailCRMClient:
    """Async client for the RetailCRM REST API (v5)."""

    API_PREFIX = "/api/v5"

    def __init__(self, base_url: str, api_key: str) -> None:
        self.base_url = base_url.strip().rstrip("/")
        self.api_key = api_key.strip()
        self.session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> RetailCRMClient:
        if not self.base_url or not self.api_key:
            raise RetailCRMClientError(
                "RETAILCRM_URL and RETAILCRM_API_KEY must be configured.",
                code="MISSING_CREDENTIALS",
            )
        self.session = aiohttp.ClientSession(headers={"X-API-KEY": self.api_key})
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self.session:
            await self.session.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        if not self.session:
            raise RuntimeError("Client not entered as context manager")

        url = f"{self.base_url}{self.API_PREFIX}{path}"
        try:
            async with self.session.request(
                method,
                url,
                params=params,
                data=data,
                timeout=_REQUEST_TIMEOUT,
            ) as resp:
                raw_text = await resp.text()
                payload: Any
                if raw_text:
                    try:
                        payload = json.loads(raw_text)
                    except json.JSONDecodeError:
                        payload = {"raw": raw_text}
                else:
                    payload = {}
                if not isinstance(payload, dict):
                    payload = {"response": payload}

                if resp.status == 404:
                    raise RetailCRMClientError(
                        str(payload.get("errorMsg") or "Not found"),
                        code="NOT_FOUND",
                        status=404,
                        details={"path": path},
                    )
                if resp.status >= 400:
                    raise RetailCRMClientError(
                        str(
                            payload.get("errorMsg")
                            or f"RetailCRM request failed with HTTP {resp.status}."
                        ),
                        code="HTTP_ERROR",
                        status=resp.status,
                        details={"path": path, "errors": payload.get("errors")},
                    )
                if payload.get("success") is False:
                    raise RetailCRMClientError(
                        str(payload.get("errorMsg") or "RetailCRM reported an unknown error."),
                        code="API_ERROR",
                        status=resp.status,
                        details={"path": path, "errors": payload.get("errors")},
                    )
                return payload
        except RetailCRMClientError:
            raise
        except TimeoutError as exc:
            raise RetailCRMClientError(
                "RetailCRM request timed out.",
                code="TIMEOUT",
                details={"path": path},
            ) from exc
        except aiohttp.ClientError as exc:
            logger.error("RetailCRM client error (%s %s): %s", method, path, exc)
            raise RetailCRMClientError(
                "RetailCRM request failed due to a network/client error.",
                code="NETWORK_ERROR",
                details={"path": path, "error": str(exc)},
            ) from exc

    # ── Orders ──────────────────────────────────────────────────────

    async def list_orders(
        self,
        *,
        page: int = 1,
        limit: int = 100,
        customer_id: int | None = None,
        email: str | None = None,
        number: str | None = None,
    ) -> OrdersPage:
        """Fetch one page of orders, optionally filtered by customer, email or number."""
        params = {"limit": str(_validate_limit(limit)), "page": str(page)}
        params.update(_filter_params({"customerId": customer_id, "email": email}))
        if number:
            params["filter[numbers][]"] = number
        data = await self._request("GET", "/orders", params=params)
        raw_orders = data.get("orders")
        if not isinstance(raw_orders, list):
            raw_orders = []
        orders = [
            order
            for order in (
                Order.from_payload(o) for o in raw_orders
                if isinstance(o, dict)
            )
            if order is not None
        ]
        if len(orders) < len(raw_orders):
            logger.warning(
                "Orders page %d: dropped %d unparseable row(s)", page, len(raw_orders) - len(orders)
            )
        return OrdersPage(orders=orders, page=page, raw_count=len(raw_orders))

    async def get_order(self, order_id: int) -> Order | None:
        """Fetch a single order by internal id; ``None`` when it does not exist."""
        try:
            data = await self._request("GET", f"/orders/{order_id}", params={"by": "id"})
        except RetailCRMClientError as exc:
            if exc.code == "NOT_FOUND":
                return None
            raise
        raw = data.get("order")
        return Order.from_payload(raw) if isinstance(raw, dict) else None

    async def get_order_by_number(self, number: str) -> Order | None:
        """Fetch the first order carrying ``number``; ``None`` when absent."""
        number = number.strip()
        if not number:
            raise ValueError("order number must not be blank")
        result = await self.list_orders(page=1, limit=20, number=number)
        return result.orders[0] if result.orders else None

    # ── Customers ───────────────────────────────────────────────────

    async def list_customers(
        self,
        *,
        page: int = 1,
        limit: int = 20,
        phone: str | None = None,
        email: str | None = None,
    ) -> CustomersPage:
        """Fetch one page of customers; ``phone`` is reduced to digits before filtering."""
        params = {"limit": str(_validate_limit(limit)), "page": str(page)}
        params.update(
            _filter_params({
                "phone": digits_only(phone) if phone else None,
                "email": email,
            })
        )
        data = await self._request("GET", "/customers", params=params)
        raw_customers = data.get("customers")
        if not isinstance(raw_customers, list):
            raw_customers = []
        customers = [
            Customer.from_payload(c)
            for c in raw_customers
            if isinstance(c, dict)
        ]
        return CustomersPage(customers=customers, page=page, raw_count=len(raw_customers))

    async def get_customer(self, customer_id: int, site: str | None = None) -> Customer | None:
        """Fetch a customer by internal id, scoped to ``site`` when given.

        Returns ``None`` when the CRM has no such record under that site.
        Transport and server errors propagate as ``RetailCRMClientError``.
        """
        params = {"by": "id"}
        if site:
            params["site"] = site
        try:
            data = await self._request("GET", f"/customers/{customer_id}", params=params)
        except RetailCRMClientError as exc:
            if exc.code == "NOT_FOUND":
                return None
            raise
        raw = data.get("customer")
        if not isinstance(raw, dict):
            return None
        customer = Customer.from_payload(raw)
        return customer if customer.id is not None else None

    async def update_customer_fields(
        self,
        identifier: int | str,
        *,
        by: str,
        site: str,
        fields: dict[str, Any],
    ) -> None:
        """Set custom fields on one customer record.

        ``by`` is ``"id"`` or ``"externalId"``.  Raises ``RetailCRMClientError``
        unless the CRM acknowledges the edit.
        """
        if by not in {"id", "externalId"}:
            raise ValueError(f"by must be 'id' or 'externalId', got {by!r}")
        identifier_text = clean_str(identifier)
        if identifier_text is None:
            raise ValueError("customer identifier must not be blank")

        body = {"customer": json.dumps({"customFields": fields}, ensure_ascii=False)}
        await self._request(
            "POST",
            f"/customers/{identifier_text}/edit",
            params={"by": by, "site": site},
            data=body,
        )
