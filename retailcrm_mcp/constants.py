"""Shared constants used across the gateway, buyout core and tool modules.

Single source of truth for order status codes and provider limits.
"""

from __future__ import annotations

STATUS_COMPLETED = "completed"
STATUS_CANCEL_OTHER = "cancel-other"
STATUS_RETURNED = "vozvrat-im"

# RetailCRM rejects any other `limit` on list endpoints.
ALLOWED_PAGE_LIMITS: tuple[int, ...] = (20, 50, 100)

DEFAULT_BUYOUT_FIELD = "vykup"
