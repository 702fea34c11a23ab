"""Batch recompute driver tests."""

from __future__ import annotations

import pytest

from retailcrm_mcp.buyout.aggregator import OrderHistoryAggregator
from retailcrm_mcp.buyout.batch import BatchRecomputeDriver
from retailcrm_mcp.buyout.writer import ReconciliationWriter
from retailcrm_mcp.models import Customer

from conftest import SITES


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _driver(fake_crm, sleep=None, page_delay: float = 0.5) -> BatchRecomputeDriver:
    return BatchRecomputeDriver(
        fake_crm,
        OrderHistoryAggregator(fake_crm, page_size=20),
        ReconciliationWriter(fake_crm, SITES, field_code="vykup"),
        page_delay=page_delay,
        sleep=sleep or SleepRecorder(),
    )


def _seed(fake_crm, count: int, statuses: list[str] | None = None) -> None:
    for cid in range(1, count + 1):
        fake_crm.add_customer(Customer(id=cid, site="site-a"))
        fake_crm.add_orders(cid, statuses or ["completed", "cancel-other"])


class TestLimits:
    async def test_processes_exactly_max_customers(self, fake_crm):
        _seed(fake_crm, 25)

        summary = await _driver(fake_crm).run(max_customers=10, page_size=20)

        assert summary.processed == 10
        assert summary.updated == 10
        assert len(fake_crm.customer_list_calls) == 1
        assert {c[1] for c in fake_crm.write_calls} == {str(i) for i in range(1, 11)}

    async def test_limit_spanning_pages(self, fake_crm):
        _seed(fake_crm, 45)
        sleep = SleepRecorder()

        summary = await _driver(fake_crm, sleep=sleep).run(max_customers=30, page_size=20)

        assert summary.processed == 30
        assert [c["page"] for c in fake_crm.customer_list_calls] == [1, 2]
        assert sleep.delays == [0.5]

    async def test_short_page_ends_run(self, fake_crm):
        _seed(fake_crm, 5)
        sleep = SleepRecorder()

        summary = await _driver(fake_crm, sleep=sleep).run(max_customers=100, page_size=20)

        assert summary.processed == 5
        assert len(fake_crm.customer_list_calls) == 1
        assert sleep.delays == []

    async def test_full_pages_then_empty_page(self, fake_crm):
        _seed(fake_crm, 40)
        sleep = SleepRecorder()

        summary = await _driver(fake_crm, sleep=sleep, page_delay=0.1).run(
            max_customers=100, page_size=20
        )

        assert summary.processed == 40
        assert [c["page"] for c in fake_crm.customer_list_calls] == [1, 2, 3]
        assert sleep.delays == [0.1, 0.1]

    @pytest.mark.parametrize("max_customers,page_size", [(0, 20), (10, 0), (-1, 20)])
    async def test_rejects_non_positive_arguments(self, fake_crm, max_customers, page_size):
        with pytest.raises(ValueError):
            await _driver(fake_crm).run(max_customers=max_customers, page_size=page_size)


class TestPerCustomerOutcomes:
    async def test_customer_without_identity_is_skipped(self, fake_crm):
        fake_crm.add_customer(Customer(id=None, first_name="Anon"))
        _seed(fake_crm, 1)

        summary = await _driver(fake_crm).run(max_customers=10, page_size=20)

        assert summary.processed == 2
        assert summary.skipped == 1
        assert summary.updated == 1

    async def test_email_only_customer_is_processed(self, fake_crm):
        fake_crm.add_customer(Customer(id=None, email="solo@example.com", site="site-a"))
        fake_crm.add_orders(None, ["completed"], email="solo@example.com")

        summary = await _driver(fake_crm).run(max_customers=10, page_size=20)

        assert summary.processed == 1
        assert summary.skipped == 0
        # no id means no write strategy applies
        assert summary.errors == 1
        assert fake_crm.order_calls[0]["email"] == "solo@example.com"

    async def test_customer_without_history_is_skipped(self, fake_crm):
        fake_crm.add_customer(Customer(id=1, site="site-a"))
        fake_crm.add_orders(1, ["new", "assembling"])

        summary = await _driver(fake_crm).run(max_customers=10, page_size=20)

        assert summary.skipped == 1
        assert summary.updated == 0
        assert fake_crm.write_calls == []

    async def test_order_fetch_failure_counts_error_and_continues(self, fake_crm):
        _seed(fake_crm, 3)
        fake_crm.add_orders(2, ["completed"] * 30)
        fake_crm.failing_order_pages.add(2)

        summary = await _driver(fake_crm).run(max_customers=10, page_size=20)

        assert summary.processed == 3
        assert summary.errors == 1
        assert summary.updated == 2
        assert "TRANSIENT_FETCH_ERROR" in summary.error_details[0]

    async def test_failed_write_counts_as_error(self, fake_crm):
        _seed(fake_crm, 2)
        fake_crm.rejected_writes.add(("id", "1", "site-a"))

        summary = await _driver(fake_crm).run(max_customers=10, page_size=20)

        assert summary.errors == 1
        assert summary.updated == 1
        assert summary.error_details[0].startswith("customer 1: WRITE_CASCADE_EXHAUSTED")

    async def test_unexpected_exception_is_contained(self, fake_crm, monkeypatch):
        _seed(fake_crm, 2)
        calls = {"n": 0}
        real_update = fake_crm.update_customer_fields

        async def flaky(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise KeyError("boom")
            return await real_update(*args, **kwargs)

        monkeypatch.setattr(fake_crm, "update_customer_fields", flaky)

        summary = await _driver(fake_crm).run(max_customers=10, page_size=20)

        assert summary.errors == 1
        assert summary.updated == 1

    async def test_dry_run_writes_nothing(self, fake_crm):
        _seed(fake_crm, 3)
        fake_crm.add_customer(Customer(id=99, site="site-a"))

        summary = await _driver(fake_crm).run(max_customers=10, page_size=20, dry_run=True)

        assert summary.dry_run is True
        assert summary.would_update == 3
        assert summary.skipped == 1
        assert summary.updated == 0
        assert fake_crm.write_calls == []


class TestPageFailures:
    async def test_customer_page_failure_ends_run(self, fake_crm):
        _seed(fake_crm, 30)
        fake_crm.failing_customer_pages.add(2)

        summary = await _driver(fake_crm).run(max_customers=100, page_size=20)

        assert summary.processed == 20
        assert summary.updated == 20
        assert summary.errors == 1
        assert "customers page 2" in summary.error_details[0]

    async def test_first_page_failure_processes_nothing(self, fake_crm):
        fake_crm.failing_customer_pages.add(1)

        summary = await _driver(fake_crm).run(max_customers=100, page_size=20)

        assert summary.to_dict()["processed"] == 0
        assert summary.errors == 1
