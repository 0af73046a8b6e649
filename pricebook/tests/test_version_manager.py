"""
Version lifecycle tests - open for editing, wholesale save, derived versions
"""
from datetime import date
from decimal import Decimal

import pytest

from pricebook.models.price_list import PriceListKind, PriceListStatus
from pricebook.services.errors import (
    DuplicateProductInList,
    EffectiveDateConflict,
    EmptyPriceList,
    InvalidPrice,
    PriceListLocked,
)
from pricebook.services.price_list_store import price_list_store as store
from pricebook.services.version_manager import ItemInput, version_manager as manager

PURCHASE = PriceListKind.PURCHASE
GENERAL = PriceListKind.SALES_GENERAL
CUSTOMER = PriceListKind.SALES_CUSTOMER


def prices_of(pl):
    return {item.product_id: item.price for item in pl.items}


# ===================== OPEN FOR EDITING =====================


class TestOpenForEditing:

    async def test_open_is_idempotent(self, db_session, seed_data):
        first = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 1), "Jan")
        second = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 1), "Jan")
        assert first.id == second.id
        assert first.status == PriceListStatus.DRAFT

    async def test_default_title_uses_registry_name(self, db_session, seed_data):
        pl = await manager.open_for_editing(db_session, CUSTOMER, "C", date(2024, 1, 5))
        assert pl.title == "Price list Restaurant Prime from 05.01.2024"
        general = await manager.open_for_editing(db_session, GENERAL, None, date(2024, 1, 5))
        assert general.title == "General price list from 05.01.2024"

    async def test_open_moves_draft_to_new_date(self, db_session):
        draft = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 1))
        moved = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 15))
        assert moved.id == draft.id
        assert moved.effective_date == date(2024, 1, 15)

    async def test_open_never_returns_current(self, db_session, make_list):
        current = await make_list(PURCHASE, "A", date(2024, 1, 1), {"P100": 50}, make_current=True)
        opened = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 1))
        assert opened.id != current.id
        assert opened.is_current is False

    async def test_new_draft_is_seeded_from_current(self, db_session, make_list):
        await make_list(PURCHASE, "A", date(2024, 1, 1), {"P100": 50, "P101": 70}, make_current=True)
        opened = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 2, 1))
        assert prices_of(opened) == {"P100": Decimal("50"), "P101": Decimal("70")}
        assert opened.status == PriceListStatus.DRAFT

    async def test_saved_non_current_is_reopened(self, db_session, make_list):
        saved = await make_list(PURCHASE, "A", date(2024, 1, 1), {"P100": 50})
        opened = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 1))
        assert opened.id == saved.id
        assert opened.status == PriceListStatus.SAVED


# ===================== SAVE =====================


class TestSave:

    async def test_save_replaces_items_wholesale(self, db_session):
        pl = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 1))
        await manager.save(db_session, pl.id, [ItemInput("P100", 50), ItemInput("P101", 60)])
        saved = await manager.save(
            db_session,
            pl.id,
            [ItemInput("P101", 65), ItemInput("P200", "30.5")],
            effective_date=date(2024, 1, 2),
            title="Updated",
        )
        assert prices_of(saved) == {"P101": Decimal("65"), "P200": Decimal("30.50")}
        assert saved.effective_date == date(2024, 1, 2)
        assert saved.title == "Updated"
        assert saved.status == PriceListStatus.SAVED
        assert saved.is_current is False

    async def test_save_make_current(self, db_session):
        pl = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 1))
        saved = await manager.save(db_session, pl.id, [ItemInput("P100", 50)], make_current=True)
        assert saved.is_current is True
        assert (await store.get_current(db_session, PURCHASE, "A")).id == pl.id

    async def test_empty_items_rejected(self, db_session):
        pl = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 1))
        with pytest.raises(EmptyPriceList):
            await manager.save(db_session, pl.id, [])

    async def test_duplicate_product_in_payload(self, db_session):
        pl = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 1))
        with pytest.raises(DuplicateProductInList):
            await manager.save(db_session, pl.id, [ItemInput("P100", 50), ItemInput("P100", 51)])

    async def test_nan_price_rejected(self, db_session):
        pl = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 1))
        with pytest.raises(InvalidPrice) as exc:
            await manager.save(db_session, pl.id, [ItemInput("P100", 50), ItemInput("P101", "nan")])
        assert exc.value.product_ids == ["P101"]
        assert (await store.get(db_session, pl.id)).items == []

    async def test_zero_price_saves_without_promotion(self, db_session):
        pl = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 1))
        saved = await manager.save(db_session, pl.id, [ItemInput("P100", 0), ItemInput("P101", None)])
        assert prices_of(saved) == {"P100": Decimal("0"), "P101": Decimal("0")}

    async def test_failed_promotion_leaves_list_untouched(self, db_session):
        pl = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 1))
        await manager.save(db_session, pl.id, [ItemInput("P100", 50), ItemInput("P101", 60)])

        with pytest.raises(InvalidPrice) as exc:
            await manager.save(
                db_session,
                pl.id,
                [ItemInput("P100", 52), ItemInput("P200", 0), ItemInput("P201", None)],
                effective_date=date(2024, 1, 20),
                make_current=True,
            )
        assert set(exc.value.product_ids) == {"P200", "P201"}

        after = await store.get(db_session, pl.id)
        assert prices_of(after) == {"P100": Decimal("50"), "P101": Decimal("60")}
        assert after.effective_date == date(2024, 1, 1)
        assert after.is_current is False
        assert await store.get_current(db_session, PURCHASE, "A") is None

    async def test_current_list_cannot_be_saved(self, db_session, make_list):
        current = await make_list(PURCHASE, "A", date(2024, 1, 1), {"P100": 50}, make_current=True)
        with pytest.raises(PriceListLocked):
            await manager.save(db_session, current.id, [ItemInput("P100", 60)])

    async def test_date_collision_rejected(self, db_session):
        jan = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 1, 1))
        await manager.save(db_session, jan.id, [ItemInput("P100", 50)])
        feb = await manager.open_for_editing(db_session, PURCHASE, "A", date(2024, 2, 1))
        with pytest.raises(EffectiveDateConflict):
            await manager.save(db_session, feb.id, [ItemInput("P100", 55)], effective_date=date(2024, 1, 1))
        assert (await store.get(db_session, feb.id)).effective_date == date(2024, 2, 1)

    async def test_single_current_after_many_promotions(self, db_session):
        ids = []
        for month in (1, 2, 3, 4):
            pl = await manager.open_for_editing(db_session, GENERAL, None, date(2024, month, 1))
            pl = await manager.save(
                db_session, pl.id, [ItemInput("P100", 80 + month)], make_current=True
            )
            ids.append(pl.id)

        lists = await store.list_versions(db_session, kind=GENERAL)
        assert len(lists) == 4
        current = [pl for pl in lists if pl.is_current]
        assert [pl.id for pl in current] == [ids[-1]]
        assert all(pl.superseded_at is not None for pl in lists if pl.id != ids[-1])


# ===================== DERIVED VERSIONS / COMPARE =====================


class TestDeriveAndCompare:

    async def test_derive_copies_items(self, db_session, make_list):
        source = await make_list(CUSTOMER, "C", date(2024, 1, 1), {"P100": 75, "P200": 40}, make_current=True)
        derived = await manager.derive_version(db_session, source.id, date(2024, 3, 1))
        assert derived.id != source.id
        assert derived.scope_key == "C"
        assert derived.status == PriceListStatus.DRAFT
        assert prices_of(derived) == prices_of(source)

    async def test_compare(self, db_session, make_list):
        old = await make_list(PURCHASE, "A", date(2024, 1, 1), {"P100": 50, "P101": 60, "P200": 30})
        new = await make_list(PURCHASE, "A", date(2024, 2, 1), {"P100": 55, "P101": 60, "P300": 20})
        result = await manager.compare(db_session, old.id, new.id)

        by_product = {c["product_id"]: c for c in result["comparisons"]}
        assert by_product["P100"]["status"] == "increased"
        assert by_product["P100"]["change_percent"] == 10.0
        assert by_product["P101"]["status"] == "unchanged"
        assert by_product["P200"]["status"] == "removed"
        assert by_product["P300"]["status"] == "new"
        assert result["comparisons"][0]["product_id"] == "P100"
        assert result["summary"]["total_products"] == 4
