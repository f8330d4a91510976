"""
Tests for the sale occasion lifecycle (create / update / delete gated by phase)
and the storefront read paths.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError as SchemaError

from app.core.errors import ConflictError, NotFoundError, StateError, ValidationError
from app.schemas.sale_schemas import SaleOccasionCreate, SaleOccasionUpdate
from app.services import sale_occasion_service
from app.services.sale_occasion_service import (
    SalePhase,
    create_sale_occasion,
    delete_sale_occasion,
    get_sale_categories,
    get_sale_detail,
    get_sale_phase,
    get_sale_products,
    list_sale_occasions,
    update_sale_occasion,
)
from tests.conftest import FIXED_NOW, utc


def sale_payload(name, start, end, *entries) -> SaleOccasionCreate:
    return SaleOccasionCreate(
        name=name,
        start_at=start,
        end_at=end,
        products=[
            {"product_id": pid, "sale_quantity": qty, "sale_percent": percent}
            for pid, qty, percent in entries
        ],
    )


@pytest.fixture
def create_sale(db_session, users):
    async def _create(name, start, end, *entries):
        return await create_sale_occasion(db_session, sale_payload(name, start, end, *entries), users["admin"])
    return _create


# ============================================================================
# PHASE
# ============================================================================


class TestPhase:
    async def test_phase_follows_the_clock(self, create_sale, make_product):
        product = await make_product()
        sale = await create_sale("January", utc(2024, 1, 1), utc(2024, 1, 31), (product.id, 5, "20"))

        assert get_sale_phase(sale, utc(2023, 12, 31)) is SalePhase.NOT_STARTED
        assert get_sale_phase(sale, utc(2024, 1, 1)) is SalePhase.ACTIVE
        assert get_sale_phase(sale, utc(2024, 1, 31)) is SalePhase.ACTIVE
        assert get_sale_phase(sale, utc(2024, 1, 31) + timedelta(seconds=1)) is SalePhase.ENDED


# ============================================================================
# CREATE
# ============================================================================


class TestCreate:
    async def test_create_generates_slug_and_keeps_order(self, create_sale, make_product):
        p1 = await make_product()
        p2 = await make_product()
        sale = await create_sale(
            "Tết Sale 2024", utc(2024, 2, 1), utc(2024, 2, 10), (p2.id, 3, "15"), (p1.id, 0, "0")
        )
        assert sale.slug == "tet-sale-2024"
        assert [e.product_id for e in sale.products] == [p2.id, p1.id]

    @pytest.mark.parametrize("offset", [timedelta(0), timedelta(seconds=-1), timedelta(days=-30)])
    async def test_end_not_after_start_is_rejected(self, create_sale, make_product, offset):
        product = await make_product()
        start = utc(2024, 3, 1)
        with pytest.raises(ValidationError):
            await create_sale("Broken", start, start + offset, (product.id, 1, "10"))

    async def test_duplicate_products_rejected(self, create_sale, make_product):
        product = await make_product()
        with pytest.raises(ValidationError) as exc:
            await create_sale(
                "Dupes", utc(2024, 3, 1), utc(2024, 3, 5), (product.id, 1, "10"), (product.id, 2, "20")
            )
        assert exc.value.details == {"duplicate_product_ids": [product.id]}

    async def test_unknown_product_rejected(self, create_sale):
        with pytest.raises(ValidationError):
            await create_sale("Ghost", utc(2024, 3, 1), utc(2024, 3, 5), (9999, 1, "10"))

    async def test_duplicate_name_conflicts(self, create_sale, make_product):
        product = await make_product()
        await create_sale("Flash", utc(2024, 3, 1), utc(2024, 3, 5), (product.id, 1, "10"))
        with pytest.raises(ConflictError):
            await create_sale("Flash", utc(2024, 4, 1), utc(2024, 4, 5), (product.id, 1, "10"))

    async def test_unique_index_is_the_final_guard(self, db_session, create_sale, make_product, monkeypatch):
        product = await make_product()
        await create_sale("Flash", utc(2024, 3, 1), utc(2024, 3, 5), (product.id, 1, "10"))
        product_id = product.id

        async def lost_race(*args, **kwargs):
            return None

        # the row appears between the availability check and the commit
        monkeypatch.setattr(sale_occasion_service, "_ensure_name_free", lost_race)
        with pytest.raises(ConflictError) as exc:
            await create_sale("Flash", utc(2024, 4, 1), utc(2024, 4, 5), (product_id, 1, "10"))
        assert exc.value.status_code == 409

        # the session was rolled back and keeps working
        total, sales = await list_sale_occasions(db_session)
        assert total == 1
        assert sales[0].name == "Flash"

    def test_percent_outside_range_rejected_at_the_boundary(self):
        with pytest.raises(SchemaError):
            sale_payload("Bad", utc(2024, 3, 1), utc(2024, 3, 5), (1, 1, "120"))
        with pytest.raises(SchemaError):
            sale_payload("Bad", utc(2024, 3, 1), utc(2024, 3, 5), (1, -1, "10"))


# ============================================================================
# UPDATE
# ============================================================================


class TestUpdate:
    async def test_active_sale_cannot_change_start(self, db_session, users, create_sale, make_product):
        product = await make_product()
        sale = await create_sale("Running", utc(2024, 1, 1), utc(2024, 1, 31), (product.id, 5, "20"))
        with pytest.raises(StateError):
            await update_sale_occasion(
                db_session, sale.id, SaleOccasionUpdate(start_at=utc(2024, 1, 5)), users["admin"], FIXED_NOW
            )

    async def test_active_sale_can_extend_end_and_patch_entries(self, db_session, users, create_sale, make_product):
        product = await make_product()
        sale = await create_sale("Running", utc(2024, 1, 1), utc(2024, 1, 31), (product.id, 5, "20"))
        updated = await update_sale_occasion(
            db_session,
            sale.id,
            SaleOccasionUpdate(end_at=utc(2024, 2, 5), products=[{"product_id": product.id, "sale_percent": "25"}]),
            users["admin"],
            FIXED_NOW,
        )
        assert updated.products[0].sale_percent == Decimal("25")
        assert updated.products[0].sale_quantity == 5

    async def test_ended_sale_is_frozen(self, db_session, users, create_sale, make_product):
        product = await make_product()
        sale = await create_sale("Old", utc(2023, 12, 1), utc(2023, 12, 31), (product.id, 5, "20"))
        with pytest.raises(StateError):
            await update_sale_occasion(
                db_session, sale.id, SaleOccasionUpdate(name="Renamed"), users["admin"], FIXED_NOW
            )

    async def test_empty_update_rejected(self, db_session, users, create_sale, make_product):
        product = await make_product()
        sale = await create_sale("Later", utc(2024, 3, 1), utc(2024, 3, 5), (product.id, 5, "20"))
        with pytest.raises(ValidationError):
            await update_sale_occasion(db_session, sale.id, SaleOccasionUpdate(), users["admin"], FIXED_NOW)

    async def test_duplicate_and_unknown_entries_rejected(self, db_session, users, create_sale, make_product):
        product = await make_product()
        other = await make_product()
        sale = await create_sale("Later", utc(2024, 3, 1), utc(2024, 3, 5), (product.id, 5, "20"))

        with pytest.raises(ValidationError):
            await update_sale_occasion(
                db_session,
                sale.id,
                SaleOccasionUpdate(products=[
                    {"product_id": product.id, "sale_percent": "10"},
                    {"product_id": product.id, "sale_quantity": 1},
                ]),
                users["admin"],
                FIXED_NOW,
            )
        with pytest.raises(ValidationError):
            await update_sale_occasion(
                db_session,
                sale.id,
                SaleOccasionUpdate(products=[{"product_id": other.id, "sale_percent": "10"}]),
                users["admin"],
                FIXED_NOW,
            )

    async def test_moving_window_onto_another_sale_conflicts(self, db_session, users, create_sale, make_product):
        product = await make_product()
        await create_sale("January", utc(2024, 1, 1), utc(2024, 1, 31), (product.id, 5, "20"))
        february = await create_sale("February", utc(2024, 2, 5), utc(2024, 2, 28), (product.id, 5, "30"))

        with pytest.raises(ConflictError) as exc:
            await update_sale_occasion(
                db_session, february.id, SaleOccasionUpdate(start_at=utc(2024, 1, 31)), users["admin"], FIXED_NOW
            )
        assert exc.value.details["overlaps"][0]["sale_name"] == "January"

        moved = await update_sale_occasion(
            db_session, february.id, SaleOccasionUpdate(start_at=utc(2024, 2, 1)), users["admin"], FIXED_NOW
        )
        assert moved.start_at.replace(tzinfo=None) == utc(2024, 2, 1).replace(tzinfo=None)

    async def test_end_before_start_after_merge_rejected(self, db_session, users, create_sale, make_product):
        product = await make_product()
        sale = await create_sale("Later", utc(2024, 3, 1), utc(2024, 3, 5), (product.id, 5, "20"))
        with pytest.raises(ValidationError):
            await update_sale_occasion(
                db_session, sale.id, SaleOccasionUpdate(end_at=utc(2024, 2, 28)), users["admin"], FIXED_NOW
            )


# ============================================================================
# DELETE
# ============================================================================


class TestDelete:
    async def test_only_not_started_sales_can_be_deleted(self, db_session, users, create_sale, make_product):
        product = await make_product()
        ended = await create_sale("Ended", utc(2023, 12, 1), utc(2023, 12, 31), (product.id, 1, "10"))
        active = await create_sale("Active", utc(2024, 1, 1), utc(2024, 1, 31), (product.id, 1, "10"))
        upcoming = await create_sale("Upcoming", utc(2024, 3, 1), utc(2024, 3, 31), (product.id, 1, "10"))

        with pytest.raises(StateError):
            await delete_sale_occasion(db_session, ended.id, users["admin"], FIXED_NOW)
        with pytest.raises(StateError):
            await delete_sale_occasion(db_session, active.id, users["admin"], FIXED_NOW)

        await delete_sale_occasion(db_session, upcoming.id, users["admin"], FIXED_NOW)
        with pytest.raises(NotFoundError):
            await delete_sale_occasion(db_session, upcoming.id, users["admin"], FIXED_NOW)


# ============================================================================
# STOREFRONT READS
# ============================================================================


class TestStorefrontReads:
    @pytest.fixture
    async def overlapping(self, create_sale, make_product, category):
        serum = await make_product(name="Serum", price="200", category=category)
        mask = await make_product(name="Mask", price="80")
        early = await create_sale(
            "Early Bird", utc(2024, 1, 1), utc(2024, 1, 31), (serum.id, 10, "40"), (mask.id, 10, "0")
        )
        late = await create_sale("Late Deal", utc(2024, 1, 15), utc(2024, 2, 15), (serum.id, 5, "10"))
        return serum, mask, early, late

    async def test_listing_uses_highest_percent(self, db_session, overlapping):
        serum, mask, early, _ = overlapping
        total, items = await get_sale_products(db_session, FIXED_NOW)
        # a 0% entry does not put the mask on sale
        assert total == 1
        assert items[0].product_id == serum.id
        assert items[0].sale_percent == Decimal("40.00")
        assert items[0].sale_price == Decimal("120.00")
        assert items[0].sale_id == early.id

    async def test_listing_filters_by_category(self, db_session, overlapping, category):
        total, _ = await get_sale_products(db_session, FIXED_NOW, category_id=category.id + 1)
        assert total == 0
        total, _ = await get_sale_products(db_session, FIXED_NOW, category_id=category.id)
        assert total == 1

    async def test_nothing_on_sale_outside_windows(self, db_session, overlapping):
        assert await get_sale_products(db_session, utc(2025, 1, 1)) == (0, [])
        assert await get_sale_categories(db_session, utc(2025, 1, 1)) == []

    async def test_categories_on_sale(self, db_session, overlapping, category):
        categories = await get_sale_categories(db_session, FIXED_NOW)
        assert [c.id for c in categories] == [category.id]

    async def test_detail_prefers_latest_start(self, db_session, overlapping):
        serum, _, _, late = overlapping
        detail = await get_sale_detail(db_session, FIXED_NOW)
        assert detail.sale.id == late.id
        assert detail.sale.phase == SalePhase.ACTIVE.value
        assert [(i.product_id, i.sale_percent) for i in detail.products] == [(serum.id, Decimal("10.00"))]

    async def test_detail_for_a_specific_sale(self, db_session, overlapping):
        _, _, early, _ = overlapping
        detail = await get_sale_detail(db_session, FIXED_NOW, sale_id=early.id)
        assert detail.sale.id == early.id

    async def test_detail_when_nothing_runs(self, db_session, overlapping):
        with pytest.raises(NotFoundError):
            await get_sale_detail(db_session, utc(2025, 1, 1))

    async def test_zero_percent_campaign_lists_nothing(self, db_session, create_sale, make_product, category):
        product = await make_product(name="Cleanser", price="60", category=category)
        await create_sale("Placeholder", utc(2024, 1, 1), utc(2024, 1, 31), (product.id, 10, "0"))

        # the campaign is running, but a 0% entry is not a sale
        assert await get_sale_products(db_session, FIXED_NOW) == (0, [])
        assert await get_sale_products(db_session, FIXED_NOW, category_id=category.id) == (0, [])
        assert await get_sale_categories(db_session, FIXED_NOW) == []
