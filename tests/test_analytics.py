from decimal import Decimal

import pytest

from app.core.permissions import MemberRole, Permission
from app.services.analytics_service import AnalyticsService
from app.services.cart_service import CartService
from app.services.order_service import OrderService
from app.utils.exceptions import ValidationError

ADDRESS = {"line1": "1 Main St"}


async def _buy(db, user_id, product_id, quantity):
    await CartService(db).add_item(user_id, product_id, quantity)
    await OrderService(db).checkout(user_id, ADDRESS)


async def test_store_analytics(db, make_user, make_store, make_product):
    owner = await make_user()
    store = await make_store(owner)
    tea = await make_product(store, price="4.00", stock=50, name="Green Tea")
    cake = await make_product(store, price="10.00", stock=50, name="Cheesecake")
    elsewhere = await make_product(await make_store(await make_user()), price="1.00", stock=50)
    store_id, owner_id = store.id, owner.id
    tea_id, cake_id, elsewhere_id = tea.id, cake.id, elsewhere.id
    first_id, second_id = (await make_user()).id, (await make_user()).id

    await _buy(db, first_id, tea_id, 5)
    await _buy(db, second_id, cake_id, 1)
    await _buy(db, second_id, tea_id, 1)
    await _buy(db, second_id, elsewhere_id, 3)

    report = await AnalyticsService(db).store_analytics(store_id, days=7, top=5)

    summary = report["summary"]
    assert summary["total_orders"] == 3
    assert summary["total_revenue"] == Decimal("34.00")
    assert summary["average_order_value"] == Decimal("11.33")
    assert summary["unique_customers"] == 2
    assert summary["timeframe_days"] == 7

    assert len(report["sales_trend"]) == 1
    assert report["sales_trend"][0]["orders"] == 3

    top = report["top_products"]
    assert [p["product_id"] for p in top] == [tea_id, cake_id]
    assert top[0]["units_sold"] == 6
    assert top[0]["revenue"] == Decimal("24.00")


async def test_empty_store_analytics(db, make_user, make_store):
    owner = await make_user()
    store = await make_store(owner)

    report = await AnalyticsService(db).store_analytics(store.id)

    assert report["summary"]["total_orders"] == 0
    assert report["summary"]["average_order_value"] == Decimal("0.00")
    assert report["sales_trend"] == []
    assert report["top_products"] == []


async def test_analytics_route_needs_view_stats(client, make_user, make_store, add_member, auth_headers):
    owner = await make_user()
    store = await make_store(owner)
    staff = await make_user()
    manager = await make_user()
    await add_member(store, staff, role=MemberRole.staff, permissions=[Permission.view_products])
    await add_member(store, manager, role=MemberRole.manager, permissions=[Permission.view_stats])

    response = await client.get(f"/stores/{store.id}/analytics", headers=auth_headers(staff))
    assert response.status_code == 403
    assert response.json()["error_code"] == "PERMISSION_DENIED"

    response = await client.get(f"/stores/{store.id}/analytics", headers=auth_headers(manager))
    assert response.status_code == 200
    assert response.json()["store_id"] == store.id


@pytest.mark.parametrize("days, top", [(0, 5), (181, 5), (30, 0), (30, 51)])
async def test_analytics_bounds(db, make_user, make_store, days, top):
    owner = await make_user()
    store = await make_store(owner)

    with pytest.raises(ValidationError):
        await AnalyticsService(db).store_analytics(store.id, days=days, top=top)
