from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from sitebuilder import storage
from sitebuilder.models import Analytics, Order, Product


@pytest.fixture
def owner_site(db, template_id):
    storage.upsert_user(db, "owner-1", email="dono@acai.com")
    return storage.create_site(db, "owner-1", {
        "template_id": template_id,
        "name": "Açaí da Praia",
        "slug": "acai-da-praia",
        "config": {},
    })


def test_upsert_user_updates_existing(db):
    storage.upsert_user(db, "u1", email="a@a.com", first_name="Ana")
    user = storage.upsert_user(db, "u1", email="ana@a.com", first_name=None)

    assert user.email == "ana@a.com"
    assert user.first_name == "Ana"


def test_slug_unique_at_store_layer(db, owner_site, template_id):
    with pytest.raises(IntegrityError):
        storage.create_site(db, "owner-1", {
            "template_id": template_id, "name": "Outro", "slug": "acai-da-praia", "config": {},
        })
    db.rollback()


def test_update_analytics_overwrites_instead_of_summing(db, owner_site):
    # comportamento legado: o segundo views=1 substitui, não soma
    day = date(2024, 5, 10)
    storage.update_analytics(db, {"site_id": owner_site.id, "date": day, "views": 1})
    row = storage.update_analytics(db, {"site_id": owner_site.id, "date": day, "views": 1})

    assert row.views == 1


def test_update_analytics_keeps_existing_on_missing_fields(db, owner_site):
    day = date(2024, 5, 10)
    storage.update_analytics(db, {"site_id": owner_site.id, "date": day, "views": 7, "orders": 3})
    row = storage.update_analytics(db, {"site_id": owner_site.id, "date": day, "orders": None, "revenue": Decimal("50.00")})

    assert row.views == 7
    assert row.orders == 3
    assert Decimal(row.revenue) == Decimal("50.00")


def test_increment_analytics_accumulates(db, owner_site):
    day = date(2024, 5, 10)
    storage.increment_analytics(db, owner_site.id, day, views=1)
    storage.increment_analytics(db, owner_site.id, day, views=1)
    row = storage.increment_analytics(db, owner_site.id, day, views=1, orders=1, revenue=Decimal("12.50"))

    assert row.views == 3
    assert row.orders == 1
    assert Decimal(row.revenue) == Decimal("12.50")
    assert db.query(Analytics).filter(Analytics.site_id == owner_site.id).count() == 1


def test_increment_analytics_recovers_from_insert_race(db, owner_site, monkeypatch):
    day = date(2024, 5, 10)
    storage.increment_analytics(db, owner_site.id, day, views=1)

    real_lookup = storage._analytics_row
    calls = {"n": 0}

    def stale_lookup(session, site_id, d):
        calls["n"] += 1
        if calls["n"] == 1:
            return None  # como se a outra requisição ainda não tivesse gravado
        return real_lookup(session, site_id, d)

    monkeypatch.setattr(storage, "_analytics_row", stale_lookup)
    row = storage.increment_analytics(db, owner_site.id, day, views=1)

    assert row.views == 2
    assert db.query(Analytics).filter(Analytics.site_id == owner_site.id).count() == 1


def test_get_analytics_inclusive_range_ascending(db, owner_site):
    for d in (date(2024, 5, 12), date(2024, 5, 10), date(2024, 5, 11), date(2024, 5, 13)):
        storage.increment_analytics(db, owner_site.id, d, views=1)

    rows = storage.get_analytics(db, owner_site.id, date(2024, 5, 10), date(2024, 5, 12))
    assert [r.date for r in rows] == [date(2024, 5, 10), date(2024, 5, 11), date(2024, 5, 12)]


def _order_data(total="10.00"):
    return {
        "customer_name": "Bruno",
        "customer_phone": "1199999",
        "delivery_type": "pickup",
        "items": [{"name": "X", "price": total, "quantity": 1}],
        "total_amount": Decimal(total),
    }


def test_create_order_defaults_status_new(db, owner_site):
    order = storage.create_order(db, owner_site.id, _order_data())

    assert order.status == "new"
    assert order.created_at == order.updated_at


def test_update_order_status_is_unconstrained(db, owner_site):
    order = storage.create_order(db, owner_site.id, _order_data())
    storage.update_order_status(db, order, "delivered")
    order = storage.update_order_status(db, order, "new")

    assert order.status == "new"
    assert order.updated_at >= order.created_at


def test_dashboard_stats_without_sites(db):
    stats = storage.get_dashboard_stats(db, "nobody")
    assert stats == {"total_sites": 0, "total_orders": 0, "total_revenue": Decimal("0"), "total_views": 0}


def test_dashboard_stats_sums_across_sites(db, owner_site, template_id):
    second = storage.create_site(db, "owner-1", {
        "template_id": template_id, "name": "Burger", "slug": "burger", "config": {},
    })
    storage.create_order(db, owner_site.id, _order_data("10.00"))
    storage.create_order(db, owner_site.id, _order_data("5.50"))
    storage.create_order(db, second.id, _order_data("20.00"))
    storage.increment_analytics(db, owner_site.id, date(2024, 5, 10), views=4)
    storage.increment_analytics(db, second.id, date(2024, 5, 10), views=6)

    stats = storage.get_dashboard_stats(db, "owner-1")

    assert stats["total_sites"] == 2
    assert stats["total_orders"] == 3
    assert stats["total_revenue"] == Decimal("35.50")
    assert stats["total_views"] == 10


def test_delete_site_cascades(db, owner_site):
    storage.create_product(db, owner_site.id, {"name": "Açaí", "price": Decimal("10.00")})
    storage.create_order(db, owner_site.id, _order_data())
    storage.increment_analytics(db, owner_site.id, date(2024, 5, 10), views=1)

    site_id = owner_site.id
    storage.delete_site(db, owner_site)

    assert storage.get_site(db, site_id) is None
    assert db.query(Product).filter(Product.site_id == site_id).count() == 0
    assert db.query(Order).filter(Order.site_id == site_id).count() == 0
    assert db.query(Analytics).filter(Analytics.site_id == site_id).count() == 0


def test_get_owned_site_hides_foreign_sites(db, owner_site):
    assert storage.get_owned_site(db, owner_site.id, "owner-1") is owner_site
    assert storage.get_owned_site(db, owner_site.id, "owner-2") is None
    assert storage.get_owned_site(db, "missing", "owner-1") is None
