"""Result types produced by the buyout core."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from retailcrm_mcp.buyout.errors import WriteCascadeExhausted
from retailcrm_mcp.models import Customer


@dataclass(frozen=True)
class BuyoutCounts:
    completed: int = 0
    canceled: int = 0
    returned: int = 0
    total_fetched: int = 0

    @property
    def relevant(self) -> int:
        return self.completed + self.canceled + self.returned

    @property
    def has_history(self) -> bool:
        return self.relevant > 0


@dataclass(frozen=True)
class SiteResolution:
    """Outcome of probing the site list: ``Found`` when ``site`` is set, else ``Exhausted``."""

    customer: Customer | None
    site: str | None
    tried: tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return self.customer is not None and self.site is not None


@dataclass(frozen=True)
class WriteAttempt:
    strategy: str
    identifier: str
    site: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class WriteBackResult:
    success: bool
    attempts: tuple[WriteAttempt, ...] = ()
    last_error: str | None = None

    @property
    def strategy(self) -> str | None:
        return self.attempts[-1].strategy if self.success and self.attempts else None

    @property
    def site(self) -> str | None:
        return self.attempts[-1].site if self.success and self.attempts else None

    def raise_for_failure(self, customer_id: int | None) -> None:
        if self.success:
            return
        raise WriteCascadeExhausted(
            f"Could not write buyout for customer {customer_id}: {self.last_error}",
            last_error=self.last_error,
            details={
                "customer_id": customer_id,
                "attempts": [
                    {"strategy": a.strategy, "site": a.site, "error": a.error}
                    for a in self.attempts
                ],
            },
        )


@dataclass
class BuyoutReport:
    customer_id: int | None
    percent: int
    completed: int
    canceled: int
    returned: int
    total_orders: int
    site: str | None = None
    updated: bool = False
    dry_run: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BatchSummary:
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    would_update: int = 0
    dry_run: bool = False
    error_details: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
