"""
Tests for checkout: the form, order placement and the checkout endpoint.
"""

from decimal import Decimal
from unittest.mock import patch

import pytest
from django.core import mail
from django.test import Client

from apps.orders.forms import CheckoutForm
from apps.orders.models import Customer, Order
from apps.payments.models import PaymentMethod
from apps.restaurants.models import BusinessHour

from conftest import STORE_COORDS

NEAR = (STORE_COORDS[0] + 0.018, STORE_COORDS[1])
OUTSIDE = (STORE_COORDS[0] + 0.1, STORE_COORDS[1])


def checkout_data(payment_method, **overrides):
    data = {
        "name": "Joao Silva",
        "phone": "(11) 98888-7777",
        "delivery_option": "delivery",
        "street": "Rua Augusta",
        "number": "500",
        "neighborhood": "Consolação",
        "city": "São Paulo",
        "state": "sp",
        "latitude": NEAR[0],
        "longitude": NEAR[1],
        "payment_method": str(payment_method.id),
    }
    data.update(overrides)
    return data


@pytest.fixture
def cart_with_burgers(customer_client, post_json, restaurant, burger):
    post_json(customer_client, f"/orders/cart/{restaurant.id}/add/", {"product_id": str(burger.id), "quantity": 2})
    return customer_client


@pytest.fixture
def checkout(post_json, restaurant):
    def _checkout(client, data):
        return post_json(client, f"/orders/checkout/{restaurant.id}/", data)
    return _checkout


@pytest.mark.django_db
class TestCheckoutForm:
    def test_phone_and_state_normalised(self, cash_method):
        form = CheckoutForm(checkout_data(cash_method))
        assert form.is_valid(), form.errors
        assert form.cleaned_data["phone"] == "11988887777"
        assert form.cleaned_data["state"] == "SP"
        assert (form.cleaned_data["latitude"], form.cleaned_data["longitude"]) == NEAR

    def test_short_phone(self, cash_method):
        form = CheckoutForm(checkout_data(cash_method, phone="98888"))
        assert not form.is_valid()
        assert "phone" in form.errors

    @pytest.mark.parametrize("value, valid", [
        ("123.456.789-09", True),
        ("12.345.678/0001-95", True),
        ("1234", False),
    ])
    def test_cpf_cnpj_length(self, cash_method, value, valid):
        form = CheckoutForm(checkout_data(cash_method, cpf_cnpj=value))
        assert form.is_valid() is valid

    def test_delivery_requires_address(self, cash_method):
        form = CheckoutForm(checkout_data(cash_method, street="", city=""))
        assert not form.is_valid()
        assert "street" in form.errors
        assert "city" in form.errors

    def test_pickup_needs_no_address(self, cash_method):
        data = checkout_data(cash_method, delivery_option="pickup", street="", number="", neighborhood="", city="")
        assert CheckoutForm(data).is_valid()

    def test_latitude_without_longitude(self, cash_method):
        form = CheckoutForm(checkout_data(cash_method, longitude=None))
        assert not form.is_valid()

    def test_change_for_accepts_comma(self, cash_method):
        form = CheckoutForm(checkout_data(cash_method, change_for="100,00"))
        assert form.is_valid()
        assert form.cleaned_data["change_for"] == Decimal("100.00")


@pytest.mark.django_db
class TestCheckout:
    def test_requires_sign_in(self, client, checkout, cash_method):
        response = checkout(client, checkout_data(cash_method))
        assert response.status_code == 401

    def test_cash_delivery_order(self, cart_with_burgers, checkout, customer_user, cash_method, zones):
        response = checkout(cart_with_burgers, checkout_data(cash_method, change_for="100"))

        assert response.status_code == 201
        body = response.json()
        assert body["requires_payment"] is False
        order = Order.objects.get(id=body["order"]["id"])
        assert order.status == Order.STATUS_PENDING
        assert order.subtotal == Decimal("51.80")
        assert order.delivery_fee == Decimal("5.00")
        assert order.total_amount == Decimal("56.80")
        assert order.change_for == Decimal("100.00")
        assert (order.min_delivery_time_minutes, order.max_delivery_time_minutes) == (20, 35)
        assert order.items.count() == 1
        assert order.history.get().status_to == Order.STATUS_PENDING
        assert order.delivery_address.startswith("Rua Augusta, 500")

        customer = Customer.objects.get(user=customer_user)
        assert customer.phone == "11988887777"
        assert customer.street == "Rua Augusta"

    def test_cart_is_emptied(self, cart_with_burgers, checkout, restaurant, cash_method):
        checkout(cart_with_burgers, checkout_data(cash_method))
        cart = cart_with_burgers.get(f"/orders/cart/{restaurant.id}/").json()
        assert cart["is_empty"] is True

    def test_exact_change_is_not_stored(self, cart_with_burgers, checkout, cash_method):
        response = checkout(cart_with_burgers, checkout_data(cash_method, change_for="51.80"))
        assert response.json()["order"]["change_for"] is None

    def test_change_below_total(self, cart_with_burgers, checkout, cash_method):
        response = checkout(cart_with_burgers, checkout_data(cash_method, change_for="50"))
        assert response.status_code == 400
        assert response.json()["field"] == "change_for"
        assert not Order.objects.exists()

    def test_online_payment_waits_for_payment(self, cart_with_burgers, checkout, online_method):
        response = checkout(cart_with_burgers, checkout_data(online_method))
        body = response.json()
        assert body["requires_payment"] is True
        assert body["order"]["status"] == Order.STATUS_PENDING_PAYMENT

    def test_pickup_is_free(self, cart_with_burgers, checkout, cash_method, zones):
        response = checkout(cart_with_burgers, checkout_data(cash_method, delivery_option="pickup"))
        order = response.json()["order"]
        assert order["delivery_fee"] == "0.00"
        assert order["delivery_address"] == ""
        assert (order["min_delivery_time_minutes"], order["max_delivery_time_minutes"]) == (15, 30)

    def test_pickup_keeps_saved_address(self, cart_with_burgers, checkout, post_json, restaurant, burger,
                                        customer_user, cash_method):
        checkout(cart_with_burgers, checkout_data(cash_method))
        post_json(cart_with_burgers, f"/orders/cart/{restaurant.id}/add/", {"product_id": str(burger.id)})
        checkout(cart_with_burgers, checkout_data(cash_method, delivery_option="pickup", street=""))
        assert Customer.objects.get(user=customer_user).street == "Rua Augusta"

    def test_outside_delivery_area(self, cart_with_burgers, checkout, cash_method, zones):
        response = checkout(cart_with_burgers, checkout_data(cash_method, latitude=OUTSIDE[0], longitude=OUTSIDE[1]))
        assert response.status_code == 400
        assert "outside" in response.json()["error"]

    @patch("apps.restaurants.location.geocode_address", return_value=NEAR)
    def test_address_geocoded_when_no_coordinates(self, mock_geocode, cart_with_burgers, checkout,
                                                  cash_method, zones):
        response = checkout(cart_with_burgers, checkout_data(cash_method, latitude=None, longitude=None))
        assert response.status_code == 201
        assert response.json()["order"]["delivery_fee"] == "5.00"
        mock_geocode.assert_called_once()

    def test_inactive_payment_method(self, cart_with_burgers, checkout, cash_method):
        cash_method.is_active = False
        cash_method.save()
        response = checkout(cart_with_burgers, checkout_data(cash_method))
        assert response.status_code == 400
        assert response.json()["field"] == "payment_method"

    def test_payment_method_of_another_restaurant(self, cart_with_burgers, checkout, other_admin):
        rival = other_admin.restaurants.get()
        method = PaymentMethod.objects.create(restaurant=rival, name="Dinheiro", method_type="cash")
        response = checkout(cart_with_burgers, checkout_data(method))
        assert response.status_code == 400

    def test_empty_cart(self, customer_client, checkout, cash_method):
        response = checkout(customer_client, checkout_data(cash_method))
        assert response.status_code == 400
        assert "empty" in response.json()["error"]

    def test_closed_restaurant(self, cart_with_burgers, checkout, restaurant, cash_method):
        for day in range(7):
            BusinessHour.objects.create(restaurant=restaurant, day_of_week=day, is_open=False)
        response = checkout(cart_with_burgers, checkout_data(cash_method))
        assert response.status_code == 409

    def test_invalid_form(self, cart_with_burgers, checkout, cash_method):
        response = checkout(cart_with_burgers, checkout_data(cash_method, name=""))
        assert response.status_code == 400
        assert "name" in response.json()["errors"]

    def test_owner_is_emailed(self, cart_with_burgers, checkout, cash_method, owner,
                              django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            checkout(cart_with_burgers, checkout_data(cash_method))
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == [owner.email]
        assert "X-Burger" in mail.outbox[0].body

    def test_owner_notified_in_app(self, cart_with_burgers, checkout, cash_method, owner):
        checkout(cart_with_burgers, checkout_data(cash_method))
        notification = owner.notifications.get()
        assert notification.notification_type == "new_order"


@pytest.mark.django_db
class TestCustomerOrders:
    def test_my_orders(self, customer_client, make_order):
        make_order()
        make_order(status=Order.STATUS_DELIVERED)
        response = customer_client.get("/orders/mine/")
        assert response.json()["total_orders"] == 2

    def test_my_orders_limit(self, customer_client, make_order):
        make_order()
        make_order()
        data = customer_client.get("/orders/mine/?limit=1").json()
        assert len(data["orders"]) == 1
        assert data["total_orders"] == 2

    @pytest.mark.parametrize("query", ["limit=abc", "limit=-1", "restaurant=nope"])
    def test_my_orders_bad_query(self, customer_client, query):
        assert customer_client.get(f"/orders/mine/?{query}").status_code == 400

    def test_detail_includes_history(self, customer_client, make_order, owner):
        order = make_order()
        order.update_status(Order.STATUS_CONFIRMED, changed_by=owner)
        data = customer_client.get(f"/orders/{order.id}/").json()
        assert data["status"] == Order.STATUS_CONFIRMED
        assert data["history"][0]["status_to"] == Order.STATUS_CONFIRMED
        assert data["restaurant_name"] == "Cantina São João"

    def test_detail_hidden_from_other_customers(self, make_order, django_user_model):
        order = make_order()
        stranger = django_user_model.objects.create_user(username="x", email="x@example.com", password="pw")
        client = Client()
        client.force_login(stranger)
        assert client.get(f"/orders/{order.id}/").status_code == 403

    def test_restaurant_admin_can_see_detail(self, owner_client, make_order):
        order = make_order()
        assert owner_client.get(f"/orders/{order.id}/").status_code == 200

    def test_cancel_pending(self, customer_client, make_order):
        order = make_order()
        response = customer_client.post(f"/orders/{order.id}/cancel/")
        assert response.status_code == 200
        order.refresh_from_db()
        assert order.status == Order.STATUS_CANCELLED
        assert order.cancelled_at is not None

    def test_cannot_cancel_once_confirmed(self, customer_client, make_order):
        order = make_order(status=Order.STATUS_CONFIRMED)
        response = customer_client.post(f"/orders/{order.id}/cancel/")
        assert response.status_code == 409
