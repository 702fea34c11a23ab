"""Command-line runner for the buyout jobs (batch recompute and single customer)."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from retailcrm_mcp.buyout.errors import BuyoutError
from retailcrm_mcp.buyout.service import BuyoutService
from retailcrm_mcp.clients.retailcrm import RetailCRMClient, RetailCRMClientError
from retailcrm_mcp.config import ConfigError, Settings, load_env_file, load_settings

logger = logging.getLogger(__name__)


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}") from exc
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RetailCRM buyout (vykup) jobs")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    top = parser.add_subparsers(dest="command", required=True)

    recompute = top.add_parser("recompute", help="Recompute buyout for the customer base")
    recompute.add_argument("--max-customers", type=_positive_int, default=None)
    recompute.add_argument("--page-size", type=int, default=None, choices=[20, 50, 100])
    recompute.add_argument("--dry-run", action="store_true", help="Compute without writing")

    buyout = top.add_parser("buyout", help="Recompute buyout for one customer")
    identity = buyout.add_mutually_exclusive_group(required=True)
    identity.add_argument("--phone")
    identity.add_argument("--customer-id", type=int)
    identity.add_argument("--order-id", type=int)
    identity.add_argument("--order-number")
    buyout.add_argument("--dry-run", action="store_true", help="Compute without writing")

    return parser


async def _run(args: argparse.Namespace, settings: Settings) -> dict[str, Any]:
    async with RetailCRMClient(settings.base_url, settings.api_key) as client:
        service = BuyoutService(client, settings)
        if args.command == "recompute":
            summary = await service.recompute_all(
                args.max_customers,
                args.page_size,
                dry_run=args.dry_run,
            )
            return summary.to_dict()

        report = await service.compute_for_customer(
            phone=args.phone,
            customer_id=args.customer_id,
            order_id=args.order_id,
            order_number=args.order_number,
            dry_run=args.dry_run,
        )
        return report.to_dict()


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    load_env_file()
    try:
        settings = load_settings()
        result = asyncio.run(_run(args, settings))
    except ConfigError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 1
    except (BuyoutError, RetailCRMClientError) as exc:
        print(json.dumps({"error": True, "code": exc.code, "message": str(exc)}, ensure_ascii=False))
        return 1
    except ValueError as exc:
        print(json.dumps({"error": True, "code": "INVALID_INPUT", "message": str(exc)}))
        return 1

    print(json.dumps(result, ensure_ascii=False, indent=2))
    if args.command == "buyout" and result.get("error"):
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
