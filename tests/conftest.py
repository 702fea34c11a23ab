"""Shared test fixtures — in-memory RetailCRM fake, settings, client patching."""

from __future__ import annotations

from typing import Any

import pytest

from retailcrm_mcp.clients.retailcrm import RetailCRMClientError
from retailcrm_mcp.config import Settings
from retailcrm_mcp.models import Customer, CustomersPage, Order, OrdersPage
from retailcrm_mcp.normalization import digits_only
from retailcrm_mcp.server import set_settings_override

SITES = ("site-a", "site-b", "site-c")


class FakeCRM:
    """Stands in for ``RetailCRMClient``; records every call it receives."""

    def __init__(self) -> None:
        self.customers: list[Customer] = []
        self.records: dict[tuple[int, str], Customer] = {}
        self.orders: list[Order] = []

        self.error_sites: set[str] = set()
        self.failing_order_pages: set[int] = set()
        self.failing_customer_pages: set[int] = set()
        self.rejected_writes: set[tuple[str, str, str]] = set()
        self.reject_all_writes = False

        self.get_customer_calls: list[tuple[int, str | None]] = []
        self.order_calls: list[dict[str, Any]] = []
        self.customer_list_calls: list[dict[str, Any]] = []
        self.write_calls: list[tuple[str, str, str, dict[str, Any]]] = []

    # ── seeding helpers ─────────────────────────────────────────────

    def add_customer(self, customer: Customer, *, listed: bool = True) -> Customer:
        if listed:
            self.customers.append(customer)
        if customer.id is not None and customer.site:
            self.records[(customer.id, customer.site)] = customer
        return customer

    def add_orders(self, customer_id: int | None, statuses: list[str], **extra: Any) -> None:
        start = len(self.orders) + 1
        for offset, status in enumerate(statuses):
            self.orders.append(
                Order(
                    id=start + offset,
                    status=status,
                    number=f"{start + offset}A",
                    customer_id=customer_id,
                    **extra,
                )
            )

    # ── gateway surface ─────────────────────────────────────────────

    async def get_customer(self, customer_id: int, site: str | None = None) -> Customer | None:
        self.get_customer_calls.append((customer_id, site))
        if site in self.error_sites:
            raise RetailCRMClientError("connection reset", code="NETWORK_ERROR")
        return self.records.get((customer_id, site))

    async def list_orders(
        self,
        *,
        page: int = 1,
        limit: int = 100,
        customer_id: int | None = None,
        email: str | None = None,
        number: str | None = None,
    ) -> OrdersPage:
        self.order_calls.append(
            {"page": page, "limit": limit, "customer_id": customer_id, "email": email}
        )
        if page in self.failing_order_pages:
            raise RetailCRMClientError("Bad gateway", code="HTTP_ERROR", status=502)
        matching = [
            o
            for o in self.orders
            if (customer_id is None or o.customer_id == customer_id)
            and (email is None or o.email == email)
            and (number is None or o.number == number)
        ]
        start = (page - 1) * limit
        return OrdersPage(orders=matching[start:start + limit], page=page)

    async def get_order(self, order_id: int) -> Order | None:
        return next((o for o in self.orders if o.id == order_id), None)

    async def get_order_by_number(self, number: str) -> Order | None:
        return next((o for o in self.orders if o.number == number), None)

    async def list_customers(
        self,
        *,
        page: int = 1,
        limit: int = 20,
        phone: str | None = None,
        email: str | None = None,
    ) -> CustomersPage:
        self.customer_list_calls.append({"page": page, "limit": limit, "phone": phone})
        if page in self.failing_customer_pages:
            raise RetailCRMClientError("Service unavailable", code="HTTP_ERROR", status=503)
        matching = [
            c
            for c in self.customers
            if phone is None or (c.phone and digits_only(c.phone) == digits_only(phone))
        ]
        start = (page - 1) * limit
        return CustomersPage(customers=matching[start:start + limit], page=page)

    async def update_customer_fields(
        self,
        identifier: int | str,
        *,
        by: str,
        site: str,
        fields: dict[str, Any],
    ) -> None:
        key = (by, str(identifier), site)
        self.write_calls.append((by, str(identifier), site, dict(fields)))
        if self.reject_all_writes or key in self.rejected_writes:
            raise RetailCRMClientError("Not found", code="API_ERROR", status=400)


class ClientContext:
    """Async context manager returned in place of ``RetailCRMClient(...)``."""

    def __init__(self, crm: FakeCRM) -> None:
        self.crm = crm

    async def __aenter__(self) -> FakeCRM:
        return self.crm

    async def __aexit__(self, *args: Any) -> bool:
        return False


@pytest.fixture()
def fake_crm() -> FakeCRM:
    return FakeCRM()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        base_url="https://crm.example.test",
        api_key="test-key",
        sites=SITES,
        order_page_size=20,
        customer_page_size=20,
        page_delay=0,
    )


@pytest.fixture()
def patch_client(monkeypatch, fake_crm: FakeCRM):
    """Route ``RetailCRMClient(...)`` in the given module to ``fake_crm``."""

    def _patch(module_path: str) -> FakeCRM:
        monkeypatch.setattr(
            f"{module_path}.RetailCRMClient",
            lambda *_args, **_kwargs: ClientContext(fake_crm),
        )
        return fake_crm

    return _patch


@pytest.fixture(autouse=True)
def _inject_settings(settings: Settings):
    """Auto-inject test settings into the server singleton for every test."""
    set_settings_override(settings)
    yield
    set_settings_override(None)
