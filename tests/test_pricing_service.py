"""
Tests for the catalog pricing decorator and the time-window resolver behind it.
"""

from decimal import Decimal

import pytest
from sqlalchemy import inspect, select

from app.core.errors import InvalidTimestampError
from app.models.catalog_models import Category, Product
from app.models.sale_models import SaleOccasion, SaleProduct
from app.services.pricing_service import apply_percent, decorate_products
from app.services.sale_window_service import find_active_campaigns, parse_timestamp
from tests.conftest import utc


async def add_sale(db_session, name, start, end, *entries):
    sale = SaleOccasion(
        name=name,
        slug=name.lower().replace(" ", "-"),
        start_at=start,
        end_at=end,
        products=[
            SaleProduct(product_id=pid, sale_quantity=10, sale_percent=Decimal(percent), position=i)
            for i, (pid, percent) in enumerate(entries)
        ],
    )
    db_session.add(sale)
    await db_session.commit()
    return sale


async def load(db_session, *ids):
    result = await db_session.execute(select(Product).where(Product.id.in_(ids)).order_by(Product.id))
    return result.scalars().all()


def test_apply_percent_rounds_half_up():
    assert apply_percent(Decimal("99.99"), Decimal("12.5")) == Decimal("87.49")
    assert apply_percent(Decimal("100"), Decimal("0")) == Decimal("100.00")


class TestParseTimestamp:
    def test_z_suffix_is_utc(self):
        assert parse_timestamp("2024-01-20T00:00:00Z") == utc(2024, 1, 20)

    def test_offsets_are_normalised(self):
        assert parse_timestamp("2024-01-20T07:00:00+07:00") == utc(2024, 1, 20)

    @pytest.mark.parametrize("raw", ["", "yesterday", "2024-13-01", None])
    def test_garbage_is_rejected(self, raw):
        with pytest.raises(InvalidTimestampError):
            parse_timestamp(raw)


class TestDecorate:
    async def test_overlapping_campaigns_highest_percent_wins(self, db_session, make_product):
        product = await make_product(price="100", discount_percent="5")
        await add_sale(db_session, "Campaign A", utc(2024, 1, 1), utc(2024, 1, 31), (product.id, "20"))
        await add_sale(db_session, "Campaign B", utc(2024, 1, 15), utc(2024, 2, 15), (product.id, "30"))

        [view] = await decorate_products(db_session, await load(db_session, product.id), utc(2024, 1, 20))

        assert view.discount_percent == Decimal("30.00")
        assert view.is_in_sale is True
        assert view.final_price == Decimal("70.00")
        assert view.original_price == Decimal("100.00")

    async def test_no_campaign_falls_back_to_static_discount(self, db_session, make_product):
        product = await make_product(price="100", discount_percent="5")
        await add_sale(db_session, "Past", utc(2023, 1, 1), utc(2023, 1, 31), (product.id, "50"))

        [view] = await decorate_products(db_session, await load(db_session, product.id), utc(2024, 1, 20))

        assert view.discount_percent == Decimal("5.00")
        assert view.is_in_sale is False
        assert view.sale_id is None
        assert view.final_price == Decimal("95.00")

    async def test_decoration_leaves_stored_row_untouched(self, db_session, make_product):
        product = await make_product(price="100", discount_percent="5")
        await add_sale(db_session, "Now", utc(2024, 1, 1), utc(2024, 1, 31), (product.id, "40"))

        rows = await load(db_session, product.id)
        [view] = await decorate_products(db_session, rows, utc(2024, 1, 20))
        assert view.discount_percent == Decimal("40.00")
        assert rows[0].discount_percent == Decimal("5")
        assert not db_session.dirty

        await db_session.refresh(rows[0])
        assert rows[0].discount_percent == Decimal("5")

    async def test_window_edges_are_inclusive(self, db_session, make_product):
        product = await make_product()
        await add_sale(db_session, "Edges", utc(2024, 1, 1), utc(2024, 1, 31), (product.id, "10"))
        rows = await load(db_session, product.id)

        for at in (utc(2024, 1, 1), utc(2024, 1, 31)):
            [view] = await decorate_products(db_session, rows, at)
            assert view.is_in_sale

    async def test_batch_is_resolved_per_product(self, db_session, make_product):
        on_sale = await make_product(price="200")
        regular = await make_product(price="50", discount_percent="10")
        await add_sale(db_session, "Batch", utc(2024, 1, 1), utc(2024, 1, 31), (on_sale.id, "25"))

        views = await decorate_products(db_session, await load(db_session, on_sale.id, regular.id), utc(2024, 1, 20))

        assert [(v.id, v.is_in_sale, v.final_price) for v in views] == [
            (on_sale.id, True, Decimal("150.00")),
            (regular.id, False, Decimal("45.00")),
        ]

    async def test_zero_percent_entry_is_not_a_sale(self, db_session, make_product):
        product = await make_product(price="100", discount_percent="5")
        await add_sale(db_session, "Zero", utc(2024, 1, 1), utc(2024, 1, 31), (product.id, "0"))

        [view] = await decorate_products(db_session, await load(db_session, product.id), utc(2024, 1, 20))
        assert view.is_in_sale is False
        assert view.discount_percent == Decimal("5.00")


async def test_find_active_campaigns_attaches_only_requested_entries(db_session, make_product):
    p1 = await make_product()
    p2 = await make_product()
    sale = await add_sale(db_session, "Mixed", utc(2024, 1, 1), utc(2024, 1, 31), (p1.id, "10"), (p2.id, "20"))

    campaigns = await find_active_campaigns(db_session, [p2.id], "2024-01-10T00:00:00Z")
    assert len(campaigns) == 1
    assert campaigns[0].sale_id == sale.id
    assert list(campaigns[0].entries) == [p2.id]

    assert await find_active_campaigns(db_session, [], utc(2024, 1, 10)) == []


def test_category_does_not_load_its_products():
    # products reach their category, never the other way round
    assert "products" not in inspect(Category).relationships
    assert inspect(Product).relationships["category"].lazy == "selectin"


def test_apply_percent_rounds_the_whole_line():
    assert apply_percent(Decimal("0.99"), Decimal("33"), 1000) == Decimal("663.30")
