"""
Tests for order status rules and the back-office order endpoints.
"""

from decimal import Decimal

import pytest
from django.test import Client

from apps.orders.models import Order, OrderItem, OrderStatusError


@pytest.mark.django_db
class TestOrderModel:
    def test_totals_from_items(self, make_order, cheese):
        order = make_order(quantity=2, delivery_fee=Decimal("7.5"))
        OrderItem.objects.create(order=order, product=cheese, quantity=Decimal("0.250"), is_price_by_weight=True)
        totals = order.calculate_totals(save=True)
        # 2 x 25.90 + 0.250 kg x 59.90
        assert totals["subtotal"] == Decimal("66.78")
        assert totals["delivery_fee"] == Decimal("7.50")
        assert totals["total_amount"] == Decimal("74.28")

    def test_item_snapshots_product(self, make_order, burger):
        order = make_order()
        item = order.items.get()
        burger.price = Decimal("99.00")
        burger.save()
        item.refresh_from_db()
        assert item.unit_price == Decimal("25.90")
        assert item.product_name == "X-Burger"

    def test_update_status_records_history(self, make_order, owner):
        order = make_order()
        order.update_status(Order.STATUS_CONFIRMED, changed_by=owner, notes="ok")
        history = order.history.get()
        assert (history.status_from, history.status_to) == (Order.STATUS_PENDING, Order.STATUS_CONFIRMED)
        assert history.changed_by == owner
        assert order.confirmed_at is not None

    @pytest.mark.parametrize("start, target", [
        (Order.STATUS_PENDING, Order.STATUS_DELIVERED),
        (Order.STATUS_DELIVERED, Order.STATUS_CANCELLED),
        (Order.STATUS_CANCELLED, Order.STATUS_PENDING),
        (Order.STATUS_CONFIRMED, "teleported"),
    ])
    def test_rejected_moves(self, make_order, start, target):
        order = make_order(status=start)
        with pytest.raises(OrderStatusError):
            order.update_status(target)
        order.refresh_from_db()
        assert order.status == start
        assert not order.history.exists()

    def test_full_lifecycle(self, make_order):
        order = make_order()
        for status in (Order.STATUS_CONFIRMED, Order.STATUS_PREPARING, Order.STATUS_READY,
                       Order.STATUS_DELIVERING, Order.STATUS_DELIVERED):
            order.update_status(status)
        assert order.delivered_at is not None
        assert order.history.count() == 5


@pytest.mark.django_db
class TestOrdersManagement:
    def test_anonymous(self, client):
        assert client.get("/orders/manage/").status_code == 401

    def test_customer_is_refused(self, customer_client):
        assert customer_client.get("/orders/manage/").status_code == 403

    def test_lists_only_own_restaurant(self, owner_client, make_order, other_admin):
        make_order()
        make_order(status=Order.STATUS_DELIVERED)
        data = owner_client.get("/orders/manage/").json()
        assert data["count"] == 2

        rival = Client()
        rival.force_login(other_admin)
        assert rival.get("/orders/manage/").json()["count"] == 0

    def test_status_filter(self, owner_client, make_order):
        make_order()
        make_order(status=Order.STATUS_DELIVERED)
        data = owner_client.get("/orders/manage/?status=delivered").json()
        assert data["count"] == 1
        assert data["orders"][0]["status"] == Order.STATUS_DELIVERED

    def test_unknown_status_filter(self, owner_client):
        assert owner_client.get("/orders/manage/?status=lost").status_code == 400

    @pytest.mark.parametrize("page_size", ["0", "-3", "abc"])
    def test_bad_page_size(self, owner_client, page_size):
        assert owner_client.get(f"/orders/manage/?page_size={page_size}").status_code == 400

    def test_page_size(self, owner_client, make_order):
        make_order()
        make_order()
        data = owner_client.get("/orders/manage/?page_size=1").json()
        assert len(data["orders"]) == 1
        assert data["num_pages"] == 2

    def test_system_admin_with_malformed_restaurant(self, client, django_user_model):
        admin = django_user_model.objects.create_user(
            username="root", email="root@example.com", password="pw", role="system_admin",
        )
        client.force_login(admin)
        assert client.get("/orders/manage/?restaurant=not-a-uuid").status_code == 400

    def test_other_restaurant_order_is_404(self, make_order, other_admin):
        order = make_order()
        rival = Client()
        rival.force_login(other_admin)
        assert rival.get(f"/orders/manage/{order.id}/").status_code == 404
        assert rival.post(f"/orders/manage/{order.id}/accept/").status_code == 404

    def test_accept(self, owner_client, make_order):
        order = make_order()
        response = owner_client.post(f"/orders/manage/{order.id}/accept/")
        assert response.status_code == 200
        order.refresh_from_db()
        assert order.status == Order.STATUS_CONFIRMED

    def test_accept_only_pending(self, owner_client, make_order):
        order = make_order(status=Order.STATUS_PENDING_PAYMENT)
        assert owner_client.post(f"/orders/manage/{order.id}/accept/").status_code == 400

    def test_decline_with_reason(self, owner_client, post_json, make_order):
        order = make_order()
        response = post_json(owner_client, f"/orders/manage/{order.id}/decline/", {"reason": "Sem estoque"})
        assert response.status_code == 200
        order.refresh_from_db()
        assert order.status == Order.STATUS_CANCELLED
        assert order.history.get().notes == "Sem estoque"

    def test_update_status(self, owner_client, post_json, make_order):
        order = make_order(status=Order.STATUS_CONFIRMED)
        response = post_json(owner_client, f"/orders/manage/{order.id}/status/", {"status": "preparing"})
        assert response.json()["order"]["status"] == Order.STATUS_PREPARING

    def test_update_status_invalid_move(self, owner_client, post_json, make_order):
        order = make_order(status=Order.STATUS_DELIVERED)
        response = post_json(owner_client, f"/orders/manage/{order.id}/status/", {"status": "preparing"})
        assert response.status_code == 400

    def test_update_status_missing(self, owner_client, post_json, make_order):
        order = make_order()
        response = post_json(owner_client, f"/orders/manage/{order.id}/status/", {})
        assert response.status_code == 400

    def test_manage_detail_has_history_and_document(self, owner_client, make_order):
        order = make_order(customer_cpf_cnpj="12345678909")
        data = owner_client.get(f"/orders/manage/{order.id}/").json()
        assert data["customer_cpf_cnpj"] == "12345678909"
        assert data["history"] == []
