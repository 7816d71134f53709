"""
Tests for Mercado Pago payments: client, preference building and the payments API.
"""

import hashlib
import hmac
import json
from decimal import Decimal
from unittest.mock import patch, MagicMock

import pytest
import requests
from django.test import Client

from apps.orders.models import Order, OrderItem
from apps.payments.mercado_pago import MercadoPagoClient, MercadoPagoError, verify_webhook_signature
from apps.payments.models import Payment, PaymentMethod, PaymentSettings, PaymentWebhook
from apps.payments.services import (
    build_preference_payload,
    payer_identification,
    sanitize_statement_descriptor,
)

CLIENT_URL = "https://shop.example.com/"


def mp_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


@pytest.fixture
def mp_credentials(restaurant):
    return PaymentSettings.objects.create(
        restaurant=restaurant, public_key="APP_USR-public", access_token="APP_USR-secret", token_verified=True,
    )


@pytest.fixture
def awaiting_payment(make_order, online_method):
    return make_order(
        status=Order.STATUS_PENDING_PAYMENT, payment_method=online_method, payment_method_name=online_method.name,
    )


class TestHelpers:
    @pytest.mark.parametrize("name, expected", [
        ("Cantina São João", "CANTINA SAO JOAO"),
        ("Pão & Cia!", "PAO  CIA"),
        ("A very long restaurant name indeed", "A VERY LONG RESTAURANT"),
        ("!!!", "PEDIDO123"),
    ])
    def test_statement_descriptor(self, name, expected):
        assert sanitize_statement_descriptor(name) == expected

    def test_payer_identification(self):
        assert payer_identification("123.456.789-09") == {"type": "CPF", "number": "12345678909"}
        assert payer_identification("12.345.678/0001-95")["type"] == "CNPJ"
        assert payer_identification("") is None


class TestMercadoPagoClient:
    def test_requires_token(self):
        with pytest.raises(MercadoPagoError):
            MercadoPagoClient("")

    @patch("apps.payments.mercado_pago.requests.request")
    def test_bearer_token_and_idempotency_key(self, mock_request):
        mock_request.return_value = mp_response({"id": 1, "status": "approved"})
        MercadoPagoClient("secret").create_payment({"token": "tok"}, idempotency_key="key-1")

        method, url = mock_request.call_args.args
        headers = mock_request.call_args.kwargs["headers"]
        assert (method, url) == ("POST", "https://api.mercadopago.com/v1/payments")
        assert headers["Authorization"] == "Bearer secret"
        assert headers["X-Idempotency-Key"] == "key-1"

    @patch("apps.payments.mercado_pago.requests.request")
    def test_error_status_raises(self, mock_request):
        mock_request.return_value = mp_response({"message": "invalid token"}, status_code=400)
        with pytest.raises(MercadoPagoError) as exc:
            MercadoPagoClient("secret").get_payment(1)
        assert exc.value.status_code == 400
        assert exc.value.message == "invalid token"

    @patch("apps.payments.mercado_pago.requests.request")
    def test_network_failure(self, mock_request):
        mock_request.side_effect = requests.Timeout("slow")
        with pytest.raises(MercadoPagoError):
            MercadoPagoClient("secret").get_payment(1)

    @patch("apps.payments.mercado_pago.requests.request")
    def test_search_newest_first(self, mock_request):
        mock_request.return_value = mp_response({"results": [{"id": 2}, {"id": 1}]})
        assert MercadoPagoClient("secret").search_payments("ref")[0]["id"] == 2
        params = mock_request.call_args.kwargs["params"]
        assert params == {"sort": "date_created", "criteria": "desc", "external_reference": "ref"}

    @patch("apps.payments.mercado_pago.requests.request")
    def test_verify_credentials(self, mock_request):
        mock_request.return_value = mp_response({"id": 99})
        assert MercadoPagoClient("secret").verify_credentials() is True
        mock_request.return_value = mp_response({"message": "unauthorized"}, status_code=401)
        assert MercadoPagoClient("secret").verify_credentials() is False


@pytest.mark.django_db
class TestPreferencePayload:
    def test_items_delivery_fee_and_urls(self, awaiting_payment):
        payload = build_preference_payload(awaiting_payment, CLIENT_URL)

        assert payload["items"][0]["title"] == "X-Burger"
        assert payload["items"][0]["quantity"] == 2
        assert payload["items"][0]["unit_price"] == 25.9
        assert payload["items"][-1] == {
            "title": "Taxa de Entrega", "quantity": 1, "unit_price": 5.0, "currency_id": "BRL",
        }
        assert payload["external_reference"] == str(awaiting_payment.id)
        assert payload["back_urls"]["success"] == (
            f"https://shop.example.com/#/order-success/{awaiting_payment.id}?status=approved"
        )
        assert payload["payment_methods"]["excluded_payment_types"] == [{"id": "ticket"}]
        assert payload["statement_descriptor"] == "CANTINA SAO JOAO"

    def test_weighed_item_sent_as_one_unit(self, awaiting_payment, cheese):
        OrderItem.objects.create(
            order=awaiting_payment, product=cheese, quantity=Decimal("0.250"), is_price_by_weight=True,
        )
        awaiting_payment.calculate_totals(save=True)

        items = build_preference_payload(awaiting_payment, CLIENT_URL)["items"]

        weighed = next(i for i in items if i["title"].startswith("Queijo"))
        assert weighed["title"] == "Queijo Minas (0.25 kg)"
        assert weighed["quantity"] == 1
        assert weighed["unit_price"] == 14.98

    def test_no_delivery_fee_item_for_pickup(self, make_order):
        order = make_order(status=Order.STATUS_PENDING_PAYMENT, delivery_fee=Decimal("0.00"))
        titles = [i["title"] for i in build_preference_payload(order, CLIENT_URL)["items"]]
        assert "Taxa de Entrega" not in titles

    def test_total_mismatch(self, awaiting_payment):
        Order.objects.filter(id=awaiting_payment.id).update(total_amount=Decimal("10.00"))
        awaiting_payment.refresh_from_db()
        with pytest.raises(MercadoPagoError) as exc:
            build_preference_payload(awaiting_payment, CLIENT_URL)
        assert exc.value.status_code == 400

    def test_no_valid_items(self, awaiting_payment):
        awaiting_payment.items.all().delete()
        with pytest.raises(MercadoPagoError):
            build_preference_payload(awaiting_payment, CLIENT_URL)


@pytest.mark.django_db
class TestCustomerPaymentApi:
    @patch("apps.payments.mercado_pago.requests.request")
    def test_create_preference(self, mock_request, customer_client, post_json, awaiting_payment, mp_credentials):
        mock_request.return_value = mp_response({"id": "pref-1", "init_point": "https://mp.example/init"})

        response = post_json(
            customer_client, f"/api/payments/orders/{awaiting_payment.id}/preference/", {"client_url": CLIENT_URL}
        )

        assert response.status_code == 201
        assert response.json()["init_point"] == "https://mp.example/init"
        payment = Payment.objects.get(order=awaiting_payment)
        assert payment.preference_id == "pref-1"
        assert payment.amount == Decimal("56.80")
        sent = mock_request.call_args.kwargs["json"]
        assert sent["notification_url"].endswith(f"/api/payments/webhook/{awaiting_payment.restaurant_id}/")
        assert mock_request.call_args.kwargs["headers"]["Authorization"] == "Bearer APP_USR-secret"

    def test_create_preference_needs_client_url(self, customer_client, post_json, awaiting_payment):
        response = post_json(customer_client, f"/api/payments/orders/{awaiting_payment.id}/preference/", {})
        assert response.status_code == 400

    def test_order_not_awaiting_payment(self, customer_client, post_json, make_order):
        order = make_order()
        response = post_json(
            customer_client, f"/api/payments/orders/{order.id}/preference/", {"client_url": CLIENT_URL}
        )
        assert response.status_code == 409

    def test_someone_elses_order(self, owner_client, post_json, awaiting_payment):
        response = post_json(
            owner_client, f"/api/payments/orders/{awaiting_payment.id}/preference/", {"client_url": CLIENT_URL}
        )
        assert response.status_code == 404

    def test_anonymous(self, client, post_json, awaiting_payment):
        response = post_json(client, f"/api/payments/orders/{awaiting_payment.id}/preference/", {"client_url": "x"})
        assert response.status_code == 403

    @patch("apps.payments.mercado_pago.requests.request")
    def test_provider_rejects_preference(self, mock_request, customer_client, post_json, awaiting_payment,
                                         mp_credentials):
        mock_request.return_value = mp_response({"message": "internal error"}, status_code=500)
        response = post_json(
            customer_client, f"/api/payments/orders/{awaiting_payment.id}/preference/", {"client_url": CLIENT_URL}
        )
        assert response.status_code == 502
        assert not Payment.objects.exists()

    def test_restaurant_without_credentials(self, customer_client, post_json, awaiting_payment):
        response = post_json(
            customer_client, f"/api/payments/orders/{awaiting_payment.id}/preference/", {"client_url": CLIENT_URL}
        )
        assert response.status_code == 502

    @patch("apps.payments.mercado_pago.requests.request")
    def test_card_payment_approved(self, mock_request, customer_client, post_json, awaiting_payment, mp_credentials):
        mock_request.return_value = mp_response({"id": 1234, "status": "approved", "status_detail": "accredited"})

        response = post_json(customer_client, f"/api/payments/orders/{awaiting_payment.id}/card/", {
            "token": "card-token", "payment_method_id": "visa", "installments": 1,
        })

        assert response.status_code == 200
        assert response.json()["order_status"] == Order.STATUS_CONFIRMED
        sent = mock_request.call_args.kwargs["json"]
        assert sent["transaction_amount"] == 56.8
        assert sent["description"] == f"Pedido #{awaiting_payment.order_number}"
        assert "X-Idempotency-Key" in mock_request.call_args.kwargs["headers"]
        payment = Payment.objects.get(order=awaiting_payment)
        assert payment.status == "completed"
        assert payment.transaction_id == "1234"

    @patch("apps.payments.mercado_pago.requests.request")
    def test_card_payment_rejected(self, mock_request, customer_client, post_json, awaiting_payment, mp_credentials):
        mock_request.return_value = mp_response(
            {"id": 55, "status": "rejected", "status_detail": "cc_rejected_insufficient_amount"}
        )
        response = post_json(customer_client, f"/api/payments/orders/{awaiting_payment.id}/card/", {
            "token": "card-token", "payment_method_id": "visa",
        })
        assert response.json()["order_status"] == Order.STATUS_PENDING_PAYMENT
        payment = Payment.objects.get(order=awaiting_payment)
        assert payment.status == "failed"
        assert payment.failure_reason == "cc_rejected_insufficient_amount"

    def test_card_payment_missing_token(self, customer_client, post_json, awaiting_payment):
        response = post_json(customer_client, f"/api/payments/orders/{awaiting_payment.id}/card/", {})
        assert response.status_code == 400

    @patch("apps.payments.mercado_pago.requests.request")
    def test_card_payment_bad_installments(self, mock_request, customer_client, post_json, awaiting_payment,
                                           mp_credentials):
        response = post_json(customer_client, f"/api/payments/orders/{awaiting_payment.id}/card/", {
            "token": "card-token", "payment_method_id": "visa", "installments": "x",
        })
        assert response.status_code == 400
        mock_request.assert_not_called()

    @patch("apps.payments.mercado_pago.requests.request")
    def test_confirm_payment(self, mock_request, customer_client, awaiting_payment, mp_credentials):
        Payment.objects.create(order=awaiting_payment, amount=awaiting_payment.total_amount, preference_id="pref-1")
        mock_request.return_value = mp_response({"results": [{"id": 777, "status": "approved"}]})

        response = customer_client.post(f"/api/payments/orders/{awaiting_payment.id}/confirm/")

        assert response.json()["order_status"] == Order.STATUS_CONFIRMED
        # the preference's payment row is reused
        payment = Payment.objects.get(order=awaiting_payment)
        assert payment.preference_id == "pref-1"
        assert payment.transaction_id == "777"

    @patch("apps.payments.mercado_pago.requests.request")
    def test_confirm_without_payment(self, mock_request, customer_client, awaiting_payment, mp_credentials):
        mock_request.return_value = mp_response({"results": []})
        response = customer_client.post(f"/api/payments/orders/{awaiting_payment.id}/confirm/")
        assert response.status_code == 404


@pytest.mark.django_db
class TestWebhook:
    @patch("apps.payments.mercado_pago.requests.request")
    def test_approved_payment_confirms_order(self, mock_request, post_json, restaurant, awaiting_payment,
                                             mp_credentials):
        mock_request.return_value = mp_response({
            "id": 4321, "status": "approved", "external_reference": str(awaiting_payment.id),
        })

        response = post_json(Client(), f"/api/payments/webhook/{restaurant.id}/", {
            "type": "payment", "data": {"id": "4321"},
        })

        assert response.status_code == 200
        assert response.json() == {"received": True}
        awaiting_payment.refresh_from_db()
        assert awaiting_payment.status == Order.STATUS_CONFIRMED
        webhook = PaymentWebhook.objects.get()
        assert webhook.processed
        assert webhook.payment.transaction_id == "4321"
        assert mock_request.call_args.args[1].endswith("/v1/payments/4321")

    def test_other_topics_are_stored_and_ignored(self, post_json, restaurant):
        response = post_json(Client(), f"/api/payments/webhook/{restaurant.id}/", {"type": "merchant_order", "id": 1})
        assert response.status_code == 200
        assert PaymentWebhook.objects.get().event_type == "merchant_order"

    @patch("apps.payments.mercado_pago.requests.request")
    def test_unknown_order(self, mock_request, post_json, restaurant, mp_credentials):
        mock_request.return_value = mp_response({"id": 1, "status": "approved", "external_reference": "not-a-uuid"})
        response = post_json(Client(), f"/api/payments/webhook/{restaurant.id}/", {"type": "payment", "data": {"id": 1}})
        assert response.status_code == 200
        assert not Payment.objects.exists()

    @patch("apps.payments.mercado_pago.requests.request")
    def test_provider_down(self, mock_request, post_json, restaurant, mp_credentials):
        mock_request.side_effect = requests.ConnectionError("down")
        response = post_json(Client(), f"/api/payments/webhook/{restaurant.id}/", {"type": "payment", "data": {"id": 1}})
        assert response.status_code == 502
        assert PaymentWebhook.objects.get().processed is False


def signed_headers(secret, data_id, request_id="req-1", ts="1700000000"):
    manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
    digest = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return {"HTTP_X_SIGNATURE": f"ts={ts},v1={digest}", "HTTP_X_REQUEST_ID": request_id}


@pytest.mark.django_db
class TestWebhookSignature:
    @pytest.fixture
    def signed_restaurant(self, restaurant, mp_credentials):
        mp_credentials.webhook_secret = "whsec"
        mp_credentials.save()
        return restaurant

    def post_webhook(self, restaurant, body, **headers):
        return Client().post(
            f"/api/payments/webhook/{restaurant.id}/", data=json.dumps(body), content_type="application/json", **headers
        )

    @patch("apps.payments.mercado_pago.requests.request")
    def test_valid_signature(self, mock_request, signed_restaurant, awaiting_payment):
        mock_request.return_value = mp_response({
            "id": 4321, "status": "approved", "external_reference": str(awaiting_payment.id),
        })
        response = self.post_webhook(
            signed_restaurant, {"type": "payment", "data": {"id": "4321"}}, **signed_headers("whsec", "4321")
        )
        assert response.status_code == 200
        awaiting_payment.refresh_from_db()
        assert awaiting_payment.status == Order.STATUS_CONFIRMED

    @patch("apps.payments.mercado_pago.requests.request")
    def test_missing_signature(self, mock_request, signed_restaurant):
        response = self.post_webhook(signed_restaurant, {"type": "payment", "data": {"id": "4321"}})
        assert response.status_code == 401
        assert not PaymentWebhook.objects.exists()
        mock_request.assert_not_called()

    @patch("apps.payments.mercado_pago.requests.request")
    def test_wrong_secret(self, mock_request, signed_restaurant):
        response = self.post_webhook(
            signed_restaurant, {"type": "payment", "data": {"id": "4321"}}, **signed_headers("other", "4321")
        )
        assert response.status_code == 401
        mock_request.assert_not_called()

    @patch("apps.payments.mercado_pago.requests.request")
    def test_signature_for_another_payment(self, mock_request, signed_restaurant):
        response = self.post_webhook(
            signed_restaurant, {"type": "payment", "data": {"id": "4321"}}, **signed_headers("whsec", "9999")
        )
        assert response.status_code == 401

    def test_global_secret_applies(self, restaurant, settings):
        settings.MERCADO_PAGO_CONFIG = {**settings.MERCADO_PAGO_CONFIG, "WEBHOOK_SECRET": "global"}
        response = self.post_webhook(restaurant, {"type": "merchant_order", "id": 1})
        assert response.status_code == 401


class TestVerifyWebhookSignature:
    def test_valid(self):
        headers = signed_headers("whsec", "123")
        assert verify_webhook_signature("whsec", headers["HTTP_X_SIGNATURE"], "req-1", "123")

    def test_data_id_is_lowercased(self):
        headers = signed_headers("whsec", "abc")
        assert verify_webhook_signature("whsec", headers["HTTP_X_SIGNATURE"], "req-1", "ABC")

    @pytest.mark.parametrize("x_signature", [None, "", "ts=1", "v1=abc", "garbage"])
    def test_malformed_header(self, x_signature):
        assert not verify_webhook_signature("whsec", x_signature, "req-1", "123")


@pytest.mark.django_db
class TestRestaurantPaymentSettings:
    def test_check_credentials_unconfigured(self, owner_client):
        data = owner_client.get("/api/payments/credentials/").json()
        assert data == {"configured": False, "public_key": "", "token_verified": False}

    def test_customer_is_refused(self, customer_client):
        assert customer_client.get("/api/payments/credentials/").status_code == 403

    @patch("apps.payments.mercado_pago.requests.request")
    def test_save_credentials(self, mock_request, owner_client, post_json, restaurant):
        mock_request.return_value = mp_response({"id": 1})
        response = post_json(owner_client, "/api/payments/credentials/save/", {
            "public_key": "APP_USR-pk", "access_token": "APP_USR-token",
        })
        assert response.json()["token_verified"] is True
        settings_row = PaymentSettings.objects.get(restaurant=restaurant)
        assert settings_row.access_token == "APP_USR-token"
        assert PaymentSettings.get_access_token(restaurant) == "APP_USR-token"

    @patch("apps.payments.mercado_pago.requests.request")
    def test_webhook_secret_kept_when_omitted(self, mock_request, owner_client, post_json, restaurant):
        mock_request.return_value = mp_response({"id": 1})
        post_json(owner_client, "/api/payments/credentials/save/", {
            "public_key": "pk", "access_token": "tok", "webhook_secret": "whsec",
        })
        post_json(owner_client, "/api/payments/credentials/save/", {"public_key": "pk2", "access_token": "tok"})
        assert PaymentSettings.get_webhook_secret(restaurant) == "whsec"
        assert "webhook_secret" not in owner_client.get("/api/payments/credentials/").json()

    @patch("apps.payments.mercado_pago.requests.request")
    def test_rejected_token_is_still_saved(self, mock_request, owner_client, post_json, restaurant):
        mock_request.return_value = mp_response({"message": "invalid"}, status_code=401)
        response = post_json(owner_client, "/api/payments/credentials/save/", {
            "public_key": "pk", "access_token": "bad",
        })
        assert response.json()["token_verified"] is False
        assert PaymentSettings.objects.get(restaurant=restaurant).token_verified is False

    def test_save_credentials_requires_both(self, owner_client, post_json):
        response = post_json(owner_client, "/api/payments/credentials/save/", {"public_key": "pk"})
        assert response.status_code == 400

    def test_list_methods_creates_defaults(self, owner_client, restaurant):
        PaymentMethod.objects.filter(restaurant=restaurant).delete()
        methods = owner_client.get("/api/payments/methods/").json()["methods"]
        assert {m["method_type"] for m in methods} == {"cash", "pix", "online", "card_on_delivery"}

    def test_toggle_methods(self, owner_client, post_json, cash_method, online_method):
        response = post_json(owner_client, "/api/payments/methods/", {"methods": [
            {"id": str(cash_method.id), "is_active": False},
            {"id": str(online_method.id), "is_active": True},
        ]})
        assert response.status_code == 200
        cash_method.refresh_from_db()
        assert cash_method.is_active is False

    def test_toggle_unknown_method(self, owner_client, post_json):
        response = post_json(owner_client, "/api/payments/methods/", {"methods": [
            {"id": "8a6e0804-2bd0-4672-b79d-d97027f9071a", "is_active": False},
        ]})
        assert response.status_code == 404

    def test_toggle_needs_boolean(self, owner_client, post_json, cash_method):
        response = post_json(owner_client, "/api/payments/methods/", {"methods": [
            {"id": str(cash_method.id), "is_active": "no"},
        ]})
        assert response.status_code == 400
