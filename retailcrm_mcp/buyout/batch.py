"""Recompute the buyout percent for every customer in the CRM."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from retailcrm_mcp.buyout.aggregator import OrderHistoryAggregator
from retailcrm_mcp.buyout.calculator import percent_for
from retailcrm_mcp.buyout.errors import BuyoutError
from retailcrm_mcp.buyout.models import BatchSummary
from retailcrm_mcp.buyout.writer import ReconciliationWriter
from retailcrm_mcp.clients.retailcrm import RetailCRMClient, RetailCRMClientError
from retailcrm_mcp.models import Customer

logger = logging.getLogger(__name__)


class BatchRecomputeDriver:
    """Sequential customer walk: fetch page, process each customer, pause, repeat.

    Per-customer failures are tallied and never abort the run.  The run ends
    on a short customer page, after ``max_customers`` customers, or when a
    customer page itself cannot be fetched.
    """

    def __init__(
        self,
        client: RetailCRMClient,
        aggregator: OrderHistoryAggregator,
        writer: ReconciliationWriter,
        *,
        page_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.aggregator = aggregator
        self.writer = writer
        self.page_delay = page_delay
        self._sleep = sleep

    async def run(
        self,
        max_customers: int,
        page_size: int,
        *,
        dry_run: bool = False,
    ) -> BatchSummary:
        if max_customers <= 0:
            raise ValueError("max_customers must be greater than 0")
        if page_size <= 0:
            raise ValueError("page_size must be greater than 0")

        summary = BatchSummary(dry_run=dry_run)
        logger.info("Recomputing buyout for up to %d customers", max_customers)

        page = 1
        while summary.processed < max_customers:
            logger.info("Fetching customers page %d", page)
            try:
                result = await self.client.list_customers(page=page, limit=page_size)
            except RetailCRMClientError as exc:
                logger.error("Customer page %d failed, ending run: %s", page, exc)
                summary.errors += 1
                summary.error_details.append(f"customers page {page}: {exc.code}: {exc}")
                break

            if result.row_count == 0:
                break

            for customer in result.customers:
                if summary.processed >= max_customers:
                    break
                summary.processed += 1
                await self._process_customer(customer, summary)

            if result.row_count < page_size or summary.processed >= max_customers:
                break
            page += 1
            await self._sleep(self.page_delay)

        logger.info(
            "Buyout run finished: processed=%d updated=%d skipped=%d errors=%d",
            summary.processed,
            summary.updated,
            summary.skipped,
            summary.errors,
        )
        return summary

    async def _process_customer(self, customer: Customer, summary: BatchSummary) -> None:
        label = f"[{summary.processed}] customer {customer.id}"
        if not customer.has_identity:
            logger.info("%s: no id or email, skipping", label)
            summary.skipped += 1
            return

        try:
            counts = await self.aggregator.aggregate(
                customer_id=customer.id,
                email=customer.email,
            )
            if not counts.has_history:
                logger.info("%s: no relevant orders, skipping", label)
                summary.skipped += 1
                return

            percent = percent_for(counts)
            logger.info(
                "%s: orders=%d completed=%d canceled=%d returned=%d buyout=%d%%",
                label,
                counts.total_fetched,
                counts.completed,
                counts.canceled,
                counts.returned,
                percent,
            )
            if summary.dry_run:
                summary.would_update += 1
                return

            result = await self.writer.write_back(customer, customer.site, percent)
            result.raise_for_failure(customer.id)
            summary.updated += 1
        except BuyoutError as exc:
            logger.error("%s: %s", label, exc)
            summary.errors += 1
            summary.error_details.append(f"customer {customer.id}: {exc.code}: {exc}")
        except Exception as exc:
            logger.exception("%s: unexpected failure", label)
            summary.errors += 1
            summary.error_details.append(f"customer {customer.id}: {exc}")
