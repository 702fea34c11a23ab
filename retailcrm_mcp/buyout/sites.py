"""Site partition discovery for customers whose site is not known.

The CRM has no endpoint that reports which site owns a customer id, so the
configured site list is probed in order and the first site that returns the
record wins.  Probes are sequential; a failed probe only advances the cursor.
"""

from __future__ import annotations

import logging

from retailcrm_mcp.buyout.models import SiteResolution
from retailcrm_mcp.clients.retailcrm import RetailCRMClient, RetailCRMClientError
from retailcrm_mcp.models import Customer

logger = logging.getLogger(__name__)


class SiteProbe:
    """Ordered-candidate state machine: ``Probing -> Found | Exhausted``."""

    PROBING = "probing"
    FOUND = "found"
    EXHAUSTED = "exhausted"

    def __init__(self, candidates: tuple[str, ...]) -> None:
        self._remaining = list(candidates)
        self._tried: list[str] = []
        self._customer: Customer | None = None
        self._site: str | None = None
        self.state = self.PROBING if self._remaining else self.EXHAUSTED

    def next_candidate(self) -> str | None:
        if self.state != self.PROBING:
            return None
        site = self._remaining.pop(0)
        self._tried.append(site)
        return site

    def reject(self, site: str, reason: str) -> None:
        logger.debug("Site %s rejected: %s", site, reason)
        if self.state == self.PROBING and not self._remaining:
            self.state = self.EXHAUSTED

    def accept(self, site: str, customer: Customer) -> None:
        self._customer = customer if customer.site == site else customer.with_site(site)
        self._site = site
        self.state = self.FOUND

    def result(self) -> SiteResolution:
        return SiteResolution(
            customer=self._customer,
            site=self._site,
            tried=tuple(self._tried),
        )


class SiteResolver:
    """Find the site partition that holds a customer id."""

    def __init__(self, client: RetailCRMClient, sites: tuple[str, ...]) -> None:
        self.client = client
        self.sites = tuple(sites)

    async def resolve(self, customer_id: int) -> SiteResolution:
        probe = SiteProbe(self.sites)
        site = probe.next_candidate()
        while site is not None:
            try:
                customer = await self.client.get_customer(customer_id, site=site)
            except RetailCRMClientError as exc:
                probe.reject(site, f"{exc.code}: {exc}")
            else:
                if customer is None:
                    probe.reject(site, "not found")
                else:
                    probe.accept(site, customer)
            site = probe.next_candidate()

        resolution = probe.result()
        if resolution.found:
            logger.info(
                "Customer %s resolved to site %s after %d probe(s)",
                customer_id,
                resolution.site,
                len(resolution.tried),
            )
        else:
            logger.warning(
                "Customer %s not found on any of %d site(s)", customer_id, len(resolution.tried)
            )
        return resolution
