"""Single-customer and full-base buyout entry points.

Identity precedence when several are given: customer_id > order_id >
order_number > phone.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Any

from retailcrm_mcp.buyout.aggregator import OrderHistoryAggregator
from retailcrm_mcp.buyout.batch import BatchRecomputeDriver
from retailcrm_mcp.buyout.calculator import percent_for
from retailcrm_mcp.buyout.errors import IdentityNotFound, InvalidIdentity, TransientFetchError
from retailcrm_mcp.buyout.models import BatchSummary, BuyoutCounts, BuyoutReport
from retailcrm_mcp.buyout.sites import SiteResolver
from retailcrm_mcp.buyout.writer import ReconciliationWriter
from retailcrm_mcp.clients.retailcrm import RetailCRMClient, RetailCRMClientError
from retailcrm_mcp.config import Settings
from retailcrm_mcp.models import Customer, Order
from retailcrm_mcp.normalization import clean_str, digits_only

logger = logging.getLogger(__name__)


class BuyoutService:
    def __init__(self, client: RetailCRMClient, settings: Settings) -> None:
        sites = settings.require_sites()
        self.client = client
        self.settings = settings
        self.resolver = SiteResolver(client, sites)
        self.aggregator = OrderHistoryAggregator(client, page_size=settings.order_page_size)
        self.writer = ReconciliationWriter(client, sites, field_code=settings.buyout_field)
        self.driver = BatchRecomputeDriver(
            client,
            self.aggregator,
            self.writer,
            page_delay=settings.page_delay,
        )

    # ── Identity resolution ─────────────────────────────────────────

    async def resolve_customer(
        self,
        *,
        phone: str | None = None,
        customer_id: int | None = None,
        order_id: int | None = None,
        order_number: str | None = None,
    ) -> Customer:
        """Turn one of the supported identities into a customer record.

        Raises ``InvalidIdentity`` before any request when nothing usable was
        given, ``IdentityNotFound`` when the CRM has no match and
        ``TransientFetchError`` when a lookup request fails.
        """
        phone_digits = digits_only(phone) if phone else ""
        order_number = clean_str(order_number)
        if customer_id is None and order_id is None and not order_number and not phone_digits:
            raise InvalidIdentity(
                "Provide phone, customer_id, order_id or order_number.",
                details={"phone": phone},
            )

        if customer_id is not None:
            return await self._customer_by_id(customer_id)
        if order_id is not None:
            order = await self._lookup(self.client.get_order(order_id), f"order {order_id}")
            return await self._customer_for_order(order, f"order id {order_id}")
        if order_number:
            order = await self._lookup(
                self.client.get_order_by_number(order_number), f"order {order_number}"
            )
            return await self._customer_for_order(order, f"order number {order_number}")
        return await self._customer_by_phone(phone_digits)

    async def _lookup(self, call: Awaitable[Any], label: str) -> Any:
        try:
            return await call
        except RetailCRMClientError as exc:
            raise TransientFetchError(
                f"Lookup of {label} failed: {exc}",
                details={"code": exc.code, "status": exc.status, "transient": exc.transient},
            ) from exc

    async def _customer_by_id(self, customer_id: int) -> Customer:
        resolution = await self.resolver.resolve(customer_id)
        if not resolution.found or resolution.customer is None:
            raise IdentityNotFound(
                f"Customer {customer_id} was not found on any configured site.",
                details={"customer_id": customer_id, "sites_tried": list(resolution.tried)},
            )
        return resolution.customer

    async def _customer_by_phone(self, phone_digits: str) -> Customer:
        page = await self._lookup(
            self.client.list_customers(page=1, limit=20, phone=phone_digits),
            f"phone {phone_digits}",
        )
        if not page.customers:
            raise IdentityNotFound(
                f"No customer found with phone {phone_digits}.",
                details={"phone": phone_digits},
            )
        if len(page.customers) > 1:
            logger.warning(
                "Phone %s matches %d customers; using the first", phone_digits, len(page.customers)
            )
        return page.customers[0]

    async def _customer_for_order(self, order: Order | None, label: str) -> Customer:
        if order is None or order.customer_id is None:
            raise IdentityNotFound(
                f"No customer is attached to {label}.",
                details={"reference": label},
            )
        if order.site:
            customer = await self._lookup(
                self.client.get_customer(order.customer_id, site=order.site),
                f"customer {order.customer_id}",
            )
            if customer is not None:
                return customer if customer.site else customer.with_site(order.site)
        return await self._customer_by_id(order.customer_id)

    # ── Buyout ──────────────────────────────────────────────────────

    async def counts_for(self, customer: Customer) -> BuyoutCounts:
        return await self.aggregator.aggregate(customer_id=customer.id, email=customer.email)

    async def compute_for_customer(
        self,
        *,
        phone: str | None = None,
        customer_id: int | None = None,
        order_id: int | None = None,
        order_number: str | None = None,
        dry_run: bool = False,
    ) -> BuyoutReport:
        """Recompute one customer's buyout percent and write it back.

        Customers with no completed, canceled or returned orders are reported
        with ``percent=0`` and nothing is written.
        """
        customer = await self.resolve_customer(
            phone=phone,
            customer_id=customer_id,
            order_id=order_id,
            order_number=order_number,
        )
        counts = await self.counts_for(customer)
        percent = percent_for(counts)

        report = BuyoutReport(
            customer_id=customer.id,
            percent=percent,
            completed=counts.completed,
            canceled=counts.canceled,
            returned=counts.returned,
            total_orders=counts.total_fetched,
            site=customer.site,
            dry_run=dry_run,
        )
        if dry_run or not counts.has_history:
            return report

        result = await self.writer.write_back(customer, customer.site, percent)
        report.updated = result.success
        if result.success:
            report.site = result.site
        else:
            report.error = result.last_error
        return report

    async def recompute_all(
        self,
        max_customers: int | None = None,
        page_size: int | None = None,
        *,
        dry_run: bool = False,
    ) -> BatchSummary:
        return await self.driver.run(
            self.settings.max_customers if max_customers is None else max_customers,
            self.settings.customer_page_size if page_size is None else page_size,
            dry_run=dry_run,
        )
