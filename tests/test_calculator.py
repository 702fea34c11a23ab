"""Buyout percent formula tests."""

from __future__ import annotations

import pytest

from retailcrm_mcp.buyout.calculator import compute_percent, percent_for
from retailcrm_mcp.buyout.models import BuyoutCounts


class TestComputePercent:
    def test_no_history_is_zero(self):
        assert compute_percent(0, 0) == 0

    def test_only_completed_is_full(self):
        assert compute_percent(5, 0) == 100

    def test_only_canceled_is_zero(self):
        assert compute_percent(0, 4) == 0

    def test_more_completed_than_canceled_is_capped(self):
        # ceil(7 / 3 * 100) = 234 before the cap
        assert compute_percent(7, 3) == 100

    def test_rounds_up(self):
        assert compute_percent(1, 3) == 34
        assert compute_percent(2, 3) == 67

    def test_exact_quotient_not_bumped(self):
        assert compute_percent(7, 100) == 7
        assert compute_percent(1, 2) == 50

    def test_returns_count_as_cancellations(self):
        assert compute_percent(1, 1, 1) == 50
        assert compute_percent(1, 0, 4) == 25

    def test_always_within_bounds(self):
        for completed in range(0, 12):
            for canceled in range(0, 12):
                for returned in range(0, 4):
                    assert 0 <= compute_percent(completed, canceled, returned) <= 100

    def test_negative_counts_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            compute_percent(-1, 2)


class TestPercentFor:
    def test_uses_all_three_buckets(self):
        counts = BuyoutCounts(completed=1, canceled=2, returned=2, total_fetched=9)
        assert percent_for(counts) == 20

    def test_empty_counts(self):
        assert percent_for(BuyoutCounts()) == 0
