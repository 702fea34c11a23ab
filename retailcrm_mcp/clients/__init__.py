"""Shared external API clients."""

from retailcrm_mcp.clients.retailcrm import RetailCRMClient, RetailCRMClientError

__all__ = [
    "RetailCRMClient",
    "RetailCRMClientError",
]
