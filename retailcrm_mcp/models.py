"""Typed views of the CRM payloads the buyout core consumes.

The gateway parses raw JSON into these once; nothing past the gateway touches
untyped response dicts.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from retailcrm_mcp.normalization import clean_str, normalize_status, parse_int


@dataclass(frozen=True)
class Customer:
    id: int | None
    external_id: str | None = None
    site: str | None = None
    email: str | None = None
    phone: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> Customer:
        phone = None
        phones = raw.get("phones")
        if isinstance(phones, list):
            for entry in phones:
                if isinstance(entry, dict) and clean_str(entry.get("number")):
                    phone = clean_str(entry.get("number"))
                    break

        return cls(
            id=parse_int(raw.get("id")),
            external_id=clean_str(raw.get("externalId")),
            site=clean_str(raw.get("site")),
            email=clean_str(raw.get("email")),
            phone=phone,
            first_name=clean_str(raw.get("firstName")),
            last_name=clean_str(raw.get("lastName")),
        )

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or "Unknown"

    @property
    def has_identity(self) -> bool:
        return self.id is not None or self.email is not None

    def with_site(self, site: str) -> Customer:
        return Customer(**{**asdict(self), "site": site})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Order:
    id: int
    status: str
    number: str | None = None
    customer_id: int | None = None
    customer_external_id: str | None = None
    email: str | None = None
    site: str | None = None

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> Order | None:
        order_id = parse_int(raw.get("id"))
        if order_id is None:
            return None

        customer = raw.get("customer") if isinstance(raw.get("customer"), dict) else {}
        return cls(
            id=order_id,
            status=normalize_status(raw.get("status")),
            number=clean_str(raw.get("number")),
            customer_id=parse_int(customer.get("id")),
            customer_external_id=clean_str(customer.get("externalId")),
            email=clean_str(raw.get("email")) or clean_str(customer.get("email")),
            site=clean_str(raw.get("site")) or clean_str(customer.get("site")),
        )


@dataclass(frozen=True)
class OrdersPage:
    """One list page; ``raw_count`` is the provider's row count before parsing."""

    orders: list[Order] = field(default_factory=list)
    page: int = 1
    raw_count: int | None = None

    @property
    def row_count(self) -> int:
        return len(self.orders) if self.raw_count is None else self.raw_count


@dataclass(frozen=True)
class CustomersPage:
    customers: list[Customer] = field(default_factory=list)
    page: int = 1
    raw_count: int | None = None

    @property
    def row_count(self) -> int:
        return len(self.customers) if self.raw_count is None else self.raw_count
