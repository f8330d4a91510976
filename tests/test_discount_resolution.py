"""
Unit tests for discount resolution across overlapping sale occasions.
"""

from decimal import Decimal

import pytest

from app.services.discount_resolution import (
    ActiveCampaign,
    ResolutionMode,
    SaleEntry,
    campaign_product_ids,
    resolve_discount,
    resolve_discounts,
    select_campaign,
)
from tests.conftest import utc


def campaign(sale_id, start, end, **percents):
    entries = {
        int(pid[1:]): SaleEntry(product_id=int(pid[1:]), sale_quantity=10, sale_percent=Decimal(p))
        for pid, p in percents.items()
    }
    return ActiveCampaign(sale_id=sale_id, name=f"Sale {sale_id}", start_at=start, end_at=end, entries=entries)


@pytest.fixture
def overlapping():
    # A starts earlier with the higher percent, B starts later with the lower one
    a = campaign(1, utc(2024, 1, 1), utc(2024, 1, 31), p7="40")
    b = campaign(2, utc(2024, 1, 15), utc(2024, 2, 15), p7="10", p8="25")
    return a, b


class TestMaxPercent:
    def test_highest_percent_wins(self, overlapping):
        discount = resolve_discount(7, overlapping, ResolutionMode.MAX_PERCENT)
        assert discount.sale_percent == Decimal("40")
        assert discount.sale_id == 1

    def test_storage_order_does_not_matter(self, overlapping):
        a, b = overlapping
        forward = resolve_discount(7, [a, b], ResolutionMode.MAX_PERCENT)
        backward = resolve_discount(7, [b, a], ResolutionMode.MAX_PERCENT)
        assert forward == backward

    def test_equal_percent_tie_goes_to_latest_start(self):
        a = campaign(1, utc(2024, 1, 1), utc(2024, 1, 31), p7="20")
        b = campaign(2, utc(2024, 1, 10), utc(2024, 1, 31), p7="20")
        assert resolve_discount(7, [b, a]).sale_id == 2
        assert resolve_discount(7, [a, b]).sale_id == 2

    def test_unlisted_product_resolves_to_none(self, overlapping):
        assert resolve_discount(99, overlapping) is None

    def test_spec_scenario_twenty_vs_thirty(self):
        a = campaign(1, utc(2024, 1, 1), utc(2024, 1, 31), p5="20")
        b = campaign(2, utc(2024, 1, 15), utc(2024, 2, 15), p5="30")
        assert resolve_discount(5, [a, b]).sale_percent == Decimal("30")


class TestLatestStart:
    def test_latest_start_wins_even_with_lower_percent(self, overlapping):
        discount = resolve_discount(7, overlapping, ResolutionMode.LATEST_START)
        assert discount.sale_percent == Decimal("10")
        assert discount.sale_id == 2

    def test_select_campaign_picks_latest_start(self, overlapping):
        a, b = overlapping
        assert select_campaign([b, a]).sale_id == 2
        assert select_campaign([]) is None

    def test_modes_disagree_on_overlap(self, overlapping):
        by_percent = resolve_discount(7, overlapping, ResolutionMode.MAX_PERCENT)
        by_start = resolve_discount(7, overlapping, ResolutionMode.LATEST_START)
        assert by_percent.sale_id != by_start.sale_id


def test_resolve_discounts_skips_products_without_campaign(overlapping):
    resolved = resolve_discounts([7, 8, 9], overlapping)
    assert set(resolved) == {7, 8}
    assert resolved[8].sale_percent == Decimal("25")


def test_campaign_product_ids_keeps_first_seen_order(overlapping):
    assert campaign_product_ids(overlapping) == [7, 8]
