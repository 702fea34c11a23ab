"""RetailCRM MCP server — FastMCP entry point for buyout tooling."""

from __future__ import annotations

import logging

from mcp.server.fastmcp import FastMCP

from retailcrm_mcp.config import Settings, load_env_file, load_settings
from retailcrm_mcp.tools.buyout import (
    compute_customer_buyout_impl,
    recompute_all_customers_impl,
)
from retailcrm_mcp.tools.customers import find_customer_impl, get_customer_orders_impl
from retailcrm_mcp.tools.responses import log_and_return_tool_error

load_env_file()

mcp = FastMCP("RetailCRM")
logger = logging.getLogger(__name__)

_settings_override: Settings | None = None


def set_settings_override(settings: Settings | None) -> None:
    """Inject fixed settings (e.g. in tests) instead of reading the environment."""
    global _settings_override  # noqa: PLW0603
    _settings_override = settings


def _get_settings() -> Settings:
    if _settings_override is not None:
        return _settings_override
    return load_settings()


# ── Tool registrations ──────────────────────────────────────────────


@mcp.tool()
async def compute_customer_buyout(
    phone: str = "",
    customer_id: int | None = None,
    order_id: int | None = None,
    order_number: str = "",
    dry_run: bool = False,
) -> str:
    """Recompute a customer's buyout percent (vykup) from order history and save it.

    Identify the customer by phone, customer_id, order_id or order_number.
    dry_run=true computes without writing to the CRM.
    """
    try:
        return await compute_customer_buyout_impl(
            _get_settings(),
            phone=phone or None,
            customer_id=customer_id,
            order_id=order_id,
            order_number=order_number or None,
            dry_run=dry_run,
        )
    except ValueError as exc:
        return str(exc)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="compute_customer_buyout",
            exc=exc,
            user_message=(
                "I am having trouble computing the buyout rate right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
async def recompute_all_customers(
    max_customers: int | None = None,
    page_size: int | None = None,
    dry_run: bool = False,
) -> str:
    """Refresh the buyout percent for every customer, page by page.

    Returns processed/updated/skipped/errors counters for the run.
    """
    try:
        return await recompute_all_customers_impl(
            _get_settings(),
            max_customers=max_customers,
            page_size=page_size,
            dry_run=dry_run,
        )
    except ValueError as exc:
        return str(exc)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="recompute_all_customers",
            exc=exc,
            user_message=(
                "I am having trouble recomputing buyout rates right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
async def find_customer(phone: str = "", customer_id: int | None = None) -> str:
    """Find a customer by phone or id and report which site owns the record."""
    try:
        return await find_customer_impl(
            _get_settings(),
            phone=phone or None,
            customer_id=customer_id,
        )
    except ValueError as exc:
        return str(exc)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="find_customer",
            exc=exc,
            user_message=(
                "I am having trouble looking up that customer right now. "
                "Please try again in a moment."
            ),
        )


@mcp.tool()
async def get_customer_orders(customer_id: int | None = None, email: str = "") -> str:
    """Break down a customer's orders by status, with the buyout percent they imply."""
    try:
        return await get_customer_orders_impl(
            _get_settings(),
            customer_id=customer_id,
            email=email or None,
        )
    except ValueError as exc:
        return str(exc)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="get_customer_orders",
            exc=exc,
            user_message=(
                "I am having trouble retrieving orders right now. "
                "Please try again in a moment."
            ),
        )


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
