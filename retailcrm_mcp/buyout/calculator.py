"""Buyout rate ("vykup") formula.

Two-bucket rule: returns (``vozvrat-im``) count against the customer exactly
like other cancellations.  With ``lost = canceled + returned``:

* ``lost > 0``  ->  ``ceil(completed / lost * 100)``, capped at 100
* ``lost == 0`` and ``completed > 0``  ->  100
* no relevant orders  ->  0

Rounding is always upward.
"""

from __future__ import annotations

from retailcrm_mcp.buyout.models import BuyoutCounts

MAX_PERCENT = 100


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def compute_percent(completed: int, canceled: int, returned: int = 0) -> int:
    """Return the buyout percentage in ``[0, 100]``."""
    if completed < 0 or canceled < 0 or returned < 0:
        raise ValueError("order counts must not be negative")

    lost = canceled + returned
    if lost > 0:
        # exact integer ceiling
        return min(MAX_PERCENT, _ceil_div(completed * 100, lost))
    if completed > 0:
        return MAX_PERCENT
    return 0


def percent_for(counts: BuyoutCounts) -> int:
    return compute_percent(counts.completed, counts.canceled, counts.returned)
