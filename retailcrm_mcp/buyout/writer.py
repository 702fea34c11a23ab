"""Persist the buyout percent onto the CRM customer record.

Strategies, first success wins:

1. ``(externalId, site)`` when both are known
2. ``(id, site)`` when the site is known
3. ``(id, s)`` for every configured site ``s`` when the site is unknown

A failed attempt is never retried in place; the cascade simply moves on.
"""

from __future__ import annotations

import logging

from retailcrm_mcp.buyout.models import WriteAttempt, WriteBackResult
from retailcrm_mcp.clients.retailcrm import RetailCRMClient, RetailCRMClientError
from retailcrm_mcp.models import Customer

logger = logging.getLogger(__name__)

STRATEGY_EXTERNAL_ID = "external_id"
STRATEGY_INTERNAL_ID = "internal_id"
STRATEGY_SITE_SCAN = "site_scan"


class ReconciliationWriter:
    def __init__(
        self,
        client: RetailCRMClient,
        sites: tuple[str, ...],
        *,
        field_code: str,
    ) -> None:
        self.client = client
        self.sites = tuple(sites)
        self.field_code = field_code

    def plan(self, customer: Customer, site: str | None) -> list[tuple[str, str, str, str]]:
        """Return ``(strategy, by, identifier, site)`` tuples in cascade order."""
        site = site or customer.site
        steps: list[tuple[str, str, str, str]] = []
        if site:
            if customer.external_id:
                steps.append((STRATEGY_EXTERNAL_ID, "externalId", customer.external_id, site))
            if customer.id is not None:
                steps.append((STRATEGY_INTERNAL_ID, "id", str(customer.id), site))
        elif customer.id is not None:
            steps.extend(
                (STRATEGY_SITE_SCAN, "id", str(customer.id), candidate)
                for candidate in self.sites
            )
        return steps

    async def write_back(
        self,
        customer: Customer,
        site: str | None,
        percent: int,
    ) -> WriteBackResult:
        attempts: list[WriteAttempt] = []
        fields = {self.field_code: percent}

        for strategy, by, identifier, target_site in self.plan(customer, site):
            try:
                await self.client.update_customer_fields(
                    identifier,
                    by=by,
                    site=target_site,
                    fields=fields,
                )
            except RetailCRMClientError as exc:
                error = f"{exc.code}: {exc}"
                logger.warning(
                    "Write %s=%s site=%s failed for customer %s: %s",
                    by,
                    identifier,
                    target_site,
                    customer.id,
                    error,
                )
                attempts.append(WriteAttempt(strategy, identifier, target_site, error=error))
                continue

            attempts.append(WriteAttempt(strategy, identifier, target_site))
            logger.info(
                "Customer %s %s=%s written via %s (site %s)",
                customer.id,
                self.field_code,
                percent,
                strategy,
                target_site,
            )
            return WriteBackResult(success=True, attempts=tuple(attempts))

        last_error = attempts[-1].error if attempts else "no applicable write strategy"
        logger.error(
            "All %d write attempt(s) failed for customer %s: %s",
            len(attempts),
            customer.id,
            last_error,
        )
        return WriteBackResult(success=False, attempts=tuple(attempts), last_error=last_error)
