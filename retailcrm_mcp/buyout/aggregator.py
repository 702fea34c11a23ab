"""Walk a customer's full order history and bucket orders by status."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from retailcrm_mcp.buyout.errors import InvalidIdentity, TransientFetchError
from retailcrm_mcp.buyout.models import BuyoutCounts
from retailcrm_mcp.clients.retailcrm import RetailCRMClient, RetailCRMClientError
from retailcrm_mcp.constants import STATUS_CANCEL_OTHER, STATUS_COMPLETED, STATUS_RETURNED
from retailcrm_mcp.models import Order

logger = logging.getLogger(__name__)


def classify(orders: Iterable[Order]) -> BuyoutCounts:
    """Count completed / canceled / returned orders; other statuses are ignored."""
    completed = canceled = returned = total = 0
    for order in orders:
        total += 1
        if order.status == STATUS_COMPLETED:
            completed += 1
        elif order.status == STATUS_CANCEL_OTHER:
            canceled += 1
        elif order.status == STATUS_RETURNED:
            returned += 1
    return BuyoutCounts(
        completed=completed,
        canceled=canceled,
        returned=returned,
        total_fetched=total,
    )


class OrderHistoryAggregator:
    """Exhaustive, sequential pagination over one customer's orders.

    A page shorter than ``page_size`` (including an empty one) ends the walk;
    the provider's ``totalPageCount`` is not consulted because it disagrees
    with the row count under some filters.
    """

    def __init__(self, client: RetailCRMClient, *, page_size: int = 100) -> None:
        self.client = client
        self.page_size = page_size

    async def fetch_orders(
        self,
        *,
        customer_id: int | None = None,
        email: str | None = None,
    ) -> list[Order]:
        if customer_id is None and not email:
            raise InvalidIdentity("customer_id or email is required to list orders.")
        # The id filter wins when both are known.
        filter_kwargs = {"customer_id": customer_id} if customer_id is not None else {"email": email}

        orders: list[Order] = []
        page = 1
        while True:
            try:
                result = await self.client.list_orders(
                    page=page,
                    limit=self.page_size,
                    **filter_kwargs,
                )
            except RetailCRMClientError as exc:
                logger.error("Order page %d failed for %s: %s", page, filter_kwargs, exc)
                raise TransientFetchError(
                    f"Failed to fetch order page {page}: {exc}",
                    details={
                        "page": page,
                        "code": exc.code,
                        "transient": exc.transient,
                        **filter_kwargs,
                    },
                ) from exc

            orders.extend(result.orders)
            if result.row_count < self.page_size:
                break
            page += 1

        logger.debug("Fetched %d orders over %d page(s) for %s", len(orders), page, filter_kwargs)
        return orders

    async def aggregate(
        self,
        *,
        customer_id: int | None = None,
        email: str | None = None,
    ) -> BuyoutCounts:
        orders = await self.fetch_orders(customer_id=customer_id, email=email)
        return classify(orders)
