"""Buyout tool implementations (single customer and full recompute)."""

from __future__ import annotations

from retailcrm_mcp.buyout.errors import BuyoutError
from retailcrm_mcp.buyout.service import BuyoutService
from retailcrm_mcp.clients.retailcrm import RetailCRMClient, RetailCRMClientError
from retailcrm_mcp.config import ConfigError, Settings
from retailcrm_mcp.constants import ALLOWED_PAGE_LIMITS
from retailcrm_mcp.tools.responses import build_response, format_error

_TOOL_COMPUTE = "compute_customer_buyout"
_TOOL_RECOMPUTE = "recompute_all_customers"

MAX_CUSTOMERS_LIMIT = 10_000


async def compute_customer_buyout_impl(
    settings: Settings,
    *,
    phone: str | None = None,
    customer_id: int | None = None,
    order_id: int | None = None,
    order_number: str | None = None,
    dry_run: bool = False,
) -> str:
    """Recompute and store the buyout percent for one customer."""
    if not any((phone, customer_id is not None, order_id is not None, order_number)):
        return format_error(
            tool_name=_TOOL_COMPUTE,
            code="INVALID_IDENTITY",
            message="Provide phone, customer_id, order_id or order_number.",
        )

    try:
        async with RetailCRMClient(settings.base_url, settings.api_key) as client:
            service = BuyoutService(client, settings)
            report = await service.compute_for_customer(
                phone=phone,
                customer_id=customer_id,
                order_id=order_id,
                order_number=order_number,
                dry_run=dry_run,
            )
    except ConfigError as exc:
        return format_error(tool_name=_TOOL_COMPUTE, code="CONFIG_ERROR", message=str(exc))
    except BuyoutError as exc:
        return format_error(
            tool_name=_TOOL_COMPUTE,
            code=exc.code,
            message=str(exc),
            details=exc.details,
        )
    except RetailCRMClientError as exc:
        return format_error(
            tool_name=_TOOL_COMPUTE,
            code=exc.code,
            message=str(exc),
            details=exc.details,
        )

    return build_response(_TOOL_COMPUTE, report.to_dict())


async def recompute_all_customers_impl(
    settings: Settings,
    *,
    max_customers: int | None = None,
    page_size: int | None = None,
    dry_run: bool = False,
) -> str:
    """Walk the customer base and refresh every buyout percent."""
    if max_customers is not None and not (1 <= max_customers <= MAX_CUSTOMERS_LIMIT):
        return format_error(
            tool_name=_TOOL_RECOMPUTE,
            code="INVALID_INPUT",
            message=f"max_customers must be between 1 and {MAX_CUSTOMERS_LIMIT}.",
            details={"max_customers": max_customers},
        )
    if page_size is not None and page_size not in ALLOWED_PAGE_LIMITS:
        return format_error(
            tool_name=_TOOL_RECOMPUTE,
            code="INVALID_INPUT",
            message=f"page_size must be one of {', '.join(map(str, ALLOWED_PAGE_LIMITS))}.",
            details={"page_size": page_size},
        )

    try:
        async with RetailCRMClient(settings.base_url, settings.api_key) as client:
            service = BuyoutService(client, settings)
            summary = await service.recompute_all(
                max_customers,
                page_size,
                dry_run=dry_run,
            )
    except ConfigError as exc:
        return format_error(tool_name=_TOOL_RECOMPUTE, code="CONFIG_ERROR", message=str(exc))
    except RetailCRMClientError as exc:
        return format_error(
            tool_name=_TOOL_RECOMPUTE,
            code=exc.code,
            message=str(exc),
            details=exc.details,
        )

    return build_response(_TOOL_RECOMPUTE, summary.to_dict())
