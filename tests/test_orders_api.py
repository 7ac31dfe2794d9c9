import pytest

from conftest import bearer, make_product, make_user, order_payload
from storefront.models.enums import OrderStatus
from storefront.models.orm import Order, Product
from storefront.services import orders_service
from storefront.services.payments import get_payment_gateway


@pytest.fixture
def roll(db, category):
    return make_product(db, category, name="Roll", price="450.00", stock=10)


@pytest.fixture
def nigiri(db, category):
    return make_product(db, category, name="Nigiri", price="120.00", stock=3)


def _stock(db, product):
    db.expire_all()
    return db.get(Product, product.id).stock_quantity


def _place(client, headers, *items):
    resp = client.post("/api/orders", json=order_payload(*items), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["order"]


def _set_status(db, order_id, status):
    db.expire_all()
    db.get(Order, order_id).status = status
    db.commit()


def test_guest_checkout(client, db, roll, nigiri):
    order = _place(client, {}, (roll.id, 2), (nigiri.id, 1))

    assert order["userId"] is None
    assert order["orderNumber"].startswith("SW-")
    assert order["status"] == "PENDING"
    assert order["paymentStatus"] == "PENDING"
    assert order["subtotal"] == 1020.0
    assert order["deliveryFee"] == 0.0
    assert order["total"] == 1020.0
    assert [(i["productName"], i["price"], i["quantity"]) for i in order["items"]] == [
        ("Roll", 450.0, 2), ("Nigiri", 120.0, 1),
    ]
    assert _stock(db, roll) == 8
    assert _stock(db, nigiri) == 2


def test_order_belongs_to_logged_in_customer(client, user, user_headers, roll):
    order = _place(client, user_headers, (roll.id, 1))
    assert order["userId"] == user.id
    assert order["deliveryFee"] == 150.0
    assert order["total"] == 600.0


def test_insufficient_stock_rejects_whole_order(client, db, roll, nigiri):
    resp = client.post("/api/orders", json=order_payload((roll.id, 1), (nigiri.id, 5)))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Insufficient stock for Nigiri. Available: 3"
    assert _stock(db, roll) == 10
    assert _stock(db, nigiri) == 3
    assert db.query(Order).count() == 0


def test_unknown_product(client):
    resp = client.post("/api/orders", json=order_payload(("no-such-product", 1)))
    assert resp.status_code == 404


def test_order_validation(client, roll):
    resp = client.post("/api/orders", json=order_payload((roll.id, 1), address="short"))
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["path"] == "address"

    resp = client.post("/api/orders", json=order_payload())
    assert resp.status_code == 400


def test_order_numbers_increase(client, roll):
    first = _place(client, {}, (roll.id, 1))["orderNumber"]
    second = _place(client, {}, (roll.id, 1))["orderNumber"]
    assert second > first
    assert int(second[-4:]) == int(first[-4:]) + 1


def test_owner_cancel_restores_stock_once(client, db, user_headers, roll):
    order = _place(client, user_headers, (roll.id, 4))
    assert _stock(db, roll) == 6

    resp = client.post(f"/api/orders/{order['id']}/cancel", headers=user_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["order"]["status"] == "CANCELLED"
    assert _stock(db, roll) == 10

    again = client.post(f"/api/orders/{order['id']}/cancel", headers=user_headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Order is already cancelled"
    assert _stock(db, roll) == 10


def test_delivered_order_cannot_be_cancelled(client, db, admin_headers, user_headers, roll):
    order = _place(client, user_headers, (roll.id, 1))
    _set_status(db, order["id"], OrderStatus.DELIVERED)

    resp = client.post(f"/api/orders/{order['id']}/cancel", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Cannot cancel delivered order"
    db.expire_all()
    assert db.get(Order, order["id"]).status == OrderStatus.DELIVERED
    assert _stock(db, roll) == 9


def test_owner_cannot_cancel_once_preparing(client, db, user_headers, admin_headers, roll):
    order = _place(client, user_headers, (roll.id, 1))
    _set_status(db, order["id"], OrderStatus.PREPARING)

    resp = client.post(f"/api/orders/{order['id']}/cancel", headers=user_headers)
    assert resp.status_code == 400
    assert client.post(f"/api/orders/{order['id']}/cancel", headers=admin_headers).status_code == 200


def test_other_customers_cannot_touch_an_order(client, db, settings, user_headers, roll):
    order = _place(client, user_headers, (roll.id, 1))
    stranger = bearer(make_user(db, email="stranger@example.com"), settings)

    view = client.get(f"/api/orders/{order['id']}", headers=stranger)
    assert view.status_code == 403
    assert view.json()["message"] == "Not authorized to view this order"

    cancel = client.post(f"/api/orders/{order['id']}/cancel", headers=stranger)
    assert cancel.status_code == 403
    assert cancel.json()["message"] == "Not authorized to cancel this order"

    pay = client.post(f"/api/orders/{order['id']}/pay", headers=stranger)
    assert pay.status_code == 403


def test_get_order(client, user_headers, admin_headers, roll):
    order = _place(client, user_headers, (roll.id, 1))
    for headers in (user_headers, admin_headers):
        resp = client.get(f"/api/orders/{order['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["order"]["orderNumber"] == order["orderNumber"]
    assert client.get("/api/orders/missing", headers=admin_headers).status_code == 404


def test_pay_confirms_pending_order(client, user_headers, roll):
    order = _place(client, user_headers, (roll.id, 1))

    resp = client.post(f"/api/orders/{order['id']}/pay", headers=user_headers)
    assert resp.status_code == 200
    paid = resp.json()["data"]["order"]
    assert paid["paymentStatus"] == "PAID"
    assert paid["status"] == "CONFIRMED"

    again = client.post(f"/api/orders/{order['id']}/pay", headers=user_headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Order is already paid"


def test_cancelled_order_cannot_be_paid(client, user_headers, roll):
    order = _place(client, user_headers, (roll.id, 1))
    client.post(f"/api/orders/{order['id']}/cancel", headers=user_headers)
    resp = client.post(f"/api/orders/{order['id']}/pay", headers=user_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Cannot pay for a cancelled order"


def test_failed_payment(app, client, db, user_headers, roll):
    class DecliningGateway:
        def charge(self, order):
            return False

    app.dependency_overrides[get_payment_gateway] = DecliningGateway
    order = _place(client, user_headers, (roll.id, 1))

    resp = client.post(f"/api/orders/{order['id']}/pay", headers=user_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Payment failed"
    db.expire_all()
    assert db.get(Order, order["id"]).payment_status.value == "FAILED"


def test_my_orders_and_admin_listing(client, db, settings, user_headers, admin_headers, roll):
    other = bearer(make_user(db, email="other@example.com"), settings)
    mine = [_place(client, user_headers, (roll.id, 1)) for _ in range(3)]
    _place(client, other, (roll.id, 1))

    resp = client.get("/api/orders/my-orders", params={"limit": 2}, headers=user_headers)
    body = resp.json()
    assert body["meta"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}
    assert [o["id"] for o in body["data"]] == [mine[2]["id"], mine[1]["id"]]

    assert client.get("/api/orders", headers=user_headers).status_code == 403

    client.post(f"/api/orders/{mine[0]['id']}/cancel", headers=user_headers)
    resp = client.get("/api/orders", params={"status": "CANCELLED"}, headers=admin_headers)
    assert resp.json()["meta"]["total"] == 1
    resp = client.get("/api/orders", params={"paymentStatus": "PENDING"}, headers=admin_headers)
    assert resp.json()["meta"]["total"] == 4


def test_admin_update_lax_mode(client, db, user_headers, admin_headers, roll):
    order = _place(client, user_headers, (roll.id, 2))
    url = f"/api/orders/{order['id']}"

    resp = client.put(url, json={"status": "READY", "adminNote": "left at door"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["order"]["adminNote"] == "left at door"

    # backwards moves are allowed without strict transitions
    resp = client.put(url, json={"status": "PREPARING"}, headers=admin_headers)
    assert resp.json()["data"]["order"]["status"] == "PREPARING"

    resp = client.put(url, json={"status": "CANCELLED"}, headers=admin_headers)
    assert resp.json()["data"]["order"]["status"] == "CANCELLED"
    assert _stock(db, roll) == 10

    reopen = client.put(url, json={"status": "PENDING"}, headers=admin_headers)
    assert reopen.status_code == 400
    assert _stock(db, roll) == 10


def test_admin_cannot_cancel_delivered_order(client, db, user_headers, admin_headers, roll):
    order = _place(client, user_headers, (roll.id, 2))
    url = f"/api/orders/{order['id']}"
    assert client.put(url, json={"status": "DELIVERED"}, headers=admin_headers).status_code == 200

    resp = client.put(url, json={"status": "CANCELLED"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Cannot cancel delivered order"
    db.expire_all()
    assert db.get(Order, order["id"]).status == OrderStatus.DELIVERED
    assert _stock(db, roll) == 8


def test_admin_update_requires_admin(client, user_headers, roll):
    order = _place(client, user_headers, (roll.id, 1))
    resp = client.put(f"/api/orders/{order['id']}", json={"status": "CONFIRMED"}, headers=user_headers)
    assert resp.status_code == 403
    assert resp.json()["message"] == "Insufficient permissions"


def test_admin_discount(client, user_headers, admin_headers, roll):
    order = _place(client, user_headers, (roll.id, 1))
    url = f"/api/orders/{order['id']}"

    resp = client.put(url, json={"discount": 100}, headers=admin_headers)
    updated = resp.json()["data"]["order"]
    assert updated["discount"] == 100.0
    assert updated["total"] == 500.0

    too_much = client.put(url, json={"discount": 601}, headers=admin_headers)
    assert too_much.status_code == 400


@pytest.fixture
def strict_settings(settings):
    settings.STRICT_ADMIN_TRANSITIONS = True
    return settings


def test_admin_update_strict_mode(strict_settings, client, db, user_headers, admin_headers, roll):
    order = _place(client, user_headers, (roll.id, 1))
    url = f"/api/orders/{order['id']}"

    assert client.put(url, json={"status": "READY"}, headers=admin_headers).status_code == 200
    back = client.put(url, json={"status": "CONFIRMED"}, headers=admin_headers)
    assert back.status_code == 400
    assert back.json()["message"] == "Cannot change order status from READY to CONFIRMED"

    assert client.put(url, json={"status": "CANCELLED"}, headers=admin_headers).status_code == 200
    assert _stock(db, roll) == 10


def test_order_number_clash_retries_whole_order(client, db, monkeypatch, roll):
    first = _place(client, {}, (roll.id, 1))
    real = orders_service.next_order_number
    calls = []

    def clashing_once(session, now):
        calls.append(now)
        if len(calls) == 1:
            return first["orderNumber"]
        return real(session, now)

    monkeypatch.setattr(orders_service, "next_order_number", clashing_once)
    second = _place(client, {}, (roll.id, 2))

    assert len(calls) == 2
    assert second["orderNumber"] != first["orderNumber"]
    assert _stock(db, roll) == 7


def test_order_number_clash_gives_up_after_max_retries(settings, client, db, monkeypatch, roll):
    settings.ORDER_NUMBER_MAX_RETRIES = 3
    first = _place(client, {}, (roll.id, 1))
    calls = []

    def always_clashing(session, now):
        calls.append(now)
        return first["orderNumber"]

    monkeypatch.setattr(orders_service, "next_order_number", always_clashing)
    resp = client.post("/api/orders", json=order_payload((roll.id, 2)))

    assert resp.status_code == 409
    assert len(calls) == 3
    assert _stock(db, roll) == 9
    assert db.query(Order).count() == 1
