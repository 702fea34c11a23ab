"""Customer lookup tool implementations — read-only, no writes."""

from __future__ import annotations

from collections import Counter
from typing import Any

from retailcrm_mcp.buyout.aggregator import classify
from retailcrm_mcp.buyout.calculator import percent_for
from retailcrm_mcp.buyout.errors import BuyoutError
from retailcrm_mcp.buyout.service import BuyoutService
from retailcrm_mcp.clients.retailcrm import RetailCRMClient, RetailCRMClientError
from retailcrm_mcp.config import ConfigError, Settings
from retailcrm_mcp.tools.responses import build_response, format_error

_TOOL_FIND = "find_customer"
_TOOL_ORDERS = "get_customer_orders"


def _error_from(tool_name: str, exc: Exception) -> str:
    if isinstance(exc, (BuyoutError, RetailCRMClientError)):
        return format_error(
            tool_name=tool_name,
            code=exc.code,
            message=str(exc),
            details=exc.details,
        )
    return format_error(tool_name=tool_name, code="CONFIG_ERROR", message=str(exc))


async def find_customer_impl(
    settings: Settings,
    *,
    phone: str | None = None,
    customer_id: int | None = None,
) -> str:
    """Look up a customer by phone or by id, reporting the site that owns it."""
    if not phone and customer_id is None:
        return format_error(
            tool_name=_TOOL_FIND,
            code="INVALID_IDENTITY",
            message="Provide phone or customer_id.",
        )

    try:
        async with RetailCRMClient(settings.base_url, settings.api_key) as client:
            service = BuyoutService(client, settings)
            customer = await service.resolve_customer(phone=phone, customer_id=customer_id)
    except (BuyoutError, RetailCRMClientError, ConfigError) as exc:
        return _error_from(_TOOL_FIND, exc)

    data: dict[str, Any] = customer.to_dict()
    data["name"] = customer.display_name
    return build_response(_TOOL_FIND, data)


async def get_customer_orders_impl(
    settings: Settings,
    *,
    customer_id: int | None = None,
    email: str | None = None,
) -> str:
    """Summarize a customer's order history by status without writing anything."""
    if customer_id is None and not email:
        return format_error(
            tool_name=_TOOL_ORDERS,
            code="INVALID_IDENTITY",
            message="Provide customer_id or email.",
        )

    try:
        async with RetailCRMClient(settings.base_url, settings.api_key) as client:
            service = BuyoutService(client, settings)
            orders = await service.aggregator.fetch_orders(customer_id=customer_id, email=email)
    except (BuyoutError, RetailCRMClientError, ConfigError) as exc:
        return _error_from(_TOOL_ORDERS, exc)

    counts = classify(orders)
    by_status = Counter(order.status or "unknown" for order in orders)
    return build_response(
        _TOOL_ORDERS,
        {
            "customer_id": customer_id,
            "email": email,
            "total_orders": counts.total_fetched,
            "completed": counts.completed,
            "canceled": counts.canceled,
            "returned": counts.returned,
            "buyout_percent": percent_for(counts),
            "by_status": dict(by_status.most_common()),
        },
    )
