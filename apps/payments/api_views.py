import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from apps.authentication.utils import parse_positive_int, parse_uuid
from apps.orders.models import Order
from apps.restaurants.models import Restaurant

from . import services
from .mercado_pago import MercadoPagoClient, MercadoPagoError, verify_webhook_signature
from .models import PaymentMethod, PaymentSettings, PaymentWebhook

logger = logging.getLogger(__name__)


def _provider_error(e):
    """Map a Mercado Pago failure to a response; provider-side trouble is a 502."""
    code = e.status_code if e.status_code == 400 else status.HTTP_502_BAD_GATEWAY
    body = {"error": e.message}
    if e.response.get("status_detail"):
        body["status_detail"] = e.response["status_detail"]
    return Response(body, status=code)


def _customer_order(request, order_id):
    return get_object_or_404(Order.objects.select_related("restaurant"), id=order_id, user=request.user)


def _managed_restaurant(request):
    """Restaurant the caller may administer, or None"""
    user = request.user
    if not user.can_manage_restaurants():
        return None
    restaurant_id = request.query_params.get("restaurant")
    if restaurant_id and user.is_system_admin():
        try:
            return Restaurant.objects.filter(id=parse_uuid(restaurant_id)).first()
        except ValueError:
            return None
    return user.get_restaurant()


# -----------------------
# Customer payment flow
# -----------------------
@api_view(["POST"])
def create_preference(request, order_id):
    """
    Start a Checkout Pro payment for the caller's order.
    Expected JSON: { "client_url": "https://shop.example.com" }
    """
    order = _customer_order(request, order_id)
    if order.status != Order.STATUS_PENDING_PAYMENT:
        return Response({"error": "This order is not awaiting payment"}, status=status.HTTP_409_CONFLICT)

    client_url = request.data.get("client_url")
    if not client_url:
        return Response({"error": "client_url is required"}, status=status.HTTP_400_BAD_REQUEST)

    try:
        payment, init_point = services.create_payment_preference(order, client_url, request=request)
    except MercadoPagoError as e:
        return _provider_error(e)

    return Response({
        "init_point": init_point,
        "preference_id": payment.preference_id,
        "payment_id": str(payment.id),
    }, status=status.HTTP_201_CREATED)


@api_view(["POST"])
def process_payment(request, order_id):
    """
    Pay with a card token from the Mercado Pago Brick.
    Expected JSON: { "token", "payment_method_id", "installments", "issuer_id", "payer": {...} }
    """
    order = _customer_order(request, order_id)
    if order.status != Order.STATUS_PENDING_PAYMENT:
        return Response({"error": "This order is not awaiting payment"}, status=status.HTTP_409_CONFLICT)

    missing = [field for field in ("token", "payment_method_id") if not request.data.get(field)]
    if missing:
        return Response({"error": f"Missing fields: {', '.join(missing)}"}, status=status.HTTP_400_BAD_REQUEST)

    payment_data = request.data.copy()
    try:
        payment_data["installments"] = parse_positive_int(request.data.get("installments"), 1)
    except ValueError as e:
        return Response({"error": f"installments: {e}"}, status=status.HTTP_400_BAD_REQUEST)

    try:
        mp_payment = services.process_card_payment(order, payment_data)
    except MercadoPagoError as e:
        return _provider_error(e)

    order.refresh_from_db(fields=["status"])
    return Response({
        "status": mp_payment.get("status"),
        "status_detail": mp_payment.get("status_detail"),
        "payment_id": mp_payment.get("id"),
        "order_status": order.status,
    })


@api_view(["POST"])
def confirm_payment(request, order_id):
    """Check Mercado Pago for the order's latest payment after the customer returns from checkout."""
    order = _customer_order(request, order_id)
    try:
        mp_payment = services.confirm_order_payment(order)
    except MercadoPagoError as e:
        return _provider_error(e)

    if mp_payment is None:
        return Response({"error": "No payment found for this order"}, status=status.HTTP_404_NOT_FOUND)

    order.refresh_from_db(fields=["status"])
    return Response({
        "status": mp_payment.get("status"),
        "status_detail": mp_payment.get("status_detail"),
        "payment_id": mp_payment.get("id"),
        "order_status": order.status,
    })


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def webhook(request, restaurant_id):
    """
    Handle Mercado Pago notifications. Always answers 200 once the notification is stored.
    When a webhook secret is configured, unsigned or badly signed calls get a 401.
    """
    restaurant = get_object_or_404(Restaurant, id=restaurant_id)
    data = request.data if isinstance(request.data, dict) else {}
    if not data:
        # Older IPN notifications come as query parameters
        data = {"topic": request.query_params.get("topic", ""), "id": request.query_params.get("id")}

    secret = PaymentSettings.get_webhook_secret(restaurant)
    if secret:
        resource = data.get("data") if isinstance(data.get("data"), dict) else {}
        data_id = request.query_params.get("data.id") or resource.get("id") or data.get("id") or ""
        if not verify_webhook_signature(
            secret,
            request.headers.get("x-signature"),
            request.headers.get("x-request-id"),
            data_id,
        ):
            return Response({"error": "Invalid webhook signature"}, status=status.HTTP_401_UNAUTHORIZED)
    else:
        logger.warning(f"Mercado Pago webhook for restaurant {restaurant.id} accepted without signature check")

    stored = PaymentWebhook.objects.create(
        restaurant=restaurant,
        event_type=data.get("type") or data.get("topic") or "unknown",
        webhook_data=data,
    )

    try:
        services.handle_webhook(restaurant, stored)
    except MercadoPagoError as e:
        logger.error(f"Mercado Pago webhook {stored.id} for restaurant {restaurant.id} failed: {e.message}")
        return Response({"error": "Could not fetch payment"}, status=status.HTTP_502_BAD_GATEWAY)

    return Response({"received": True})


# -----------------------
# Restaurant settings
# -----------------------
@api_view(["GET"])
def check_credentials(request):
    restaurant = _managed_restaurant(request)
    if restaurant is None:
        return Response({"error": "Unauthorized"}, status=status.HTTP_403_FORBIDDEN)

    payment_settings = PaymentSettings.objects.filter(restaurant=restaurant).first()
    return Response({
        "configured": bool(payment_settings and payment_settings.access_token),
        "public_key": payment_settings.public_key if payment_settings else "",
        "token_verified": bool(payment_settings and payment_settings.token_verified),
    })


@api_view(["POST"])
def save_credentials(request):
    """
    Store the restaurant's Mercado Pago keys and report whether the token works.
    Expected JSON: { "public_key": "...", "access_token": "...", "webhook_secret": "..." }
    webhook_secret is optional and kept when omitted.
    """
    restaurant = _managed_restaurant(request)
    if restaurant is None:
        return Response({"error": "Unauthorized"}, status=status.HTTP_403_FORBIDDEN)

    public_key = (request.data.get("public_key") or "").strip()
    access_token = (request.data.get("access_token") or "").strip()
    if not public_key or not access_token:
        return Response({"error": "public_key and access_token are required"}, status=status.HTTP_400_BAD_REQUEST)

    try:
        verified = MercadoPagoClient(access_token).verify_credentials()
    except MercadoPagoError as e:
        return _provider_error(e)

    defaults = {"public_key": public_key, "access_token": access_token, "token_verified": verified}
    webhook_secret = (request.data.get("webhook_secret") or "").strip()
    if webhook_secret:
        defaults["webhook_secret"] = webhook_secret
    PaymentSettings.objects.update_or_create(restaurant=restaurant, defaults=defaults)
    logger.info(f"Mercado Pago credentials saved for restaurant {restaurant.id} (verified={verified})")

    return Response({
        "success": True,
        "token_verified": verified,
        "message": "Credentials saved" if verified else "Credentials saved, but Mercado Pago rejected the access token",
    })


@api_view(["GET", "POST"])
def payment_methods(request):
    """
    GET lists the restaurant's payment methods, creating the defaults first.
    POST toggles several at once: { "methods": [{"id": ..., "is_active": true}, ...] }
    """
    restaurant = _managed_restaurant(request)
    if restaurant is None:
        return Response({"error": "Unauthorized"}, status=status.HTTP_403_FORBIDDEN)

    if request.method == "GET":
        PaymentMethod.ensure_default_methods(restaurant)
        methods = PaymentMethod.objects.filter(restaurant=restaurant)
        return Response({"methods": [m.to_dict() for m in methods]})

    changes = request.data.get("methods")
    if not isinstance(changes, list):
        return Response({"error": "methods must be a list"}, status=status.HTTP_400_BAD_REQUEST)

    wanted = {}
    for change in changes:
        if not isinstance(change, dict) or "id" not in change or not isinstance(change.get("is_active"), bool):
            return Response({"error": "Each method needs an id and a boolean is_active"}, status=status.HTTP_400_BAD_REQUEST)
        wanted[str(change["id"])] = change["is_active"]

    methods = {str(m.id): m for m in PaymentMethod.objects.filter(restaurant=restaurant)}
    unknown = set(wanted) - set(methods)
    if unknown:
        return Response({"error": f"Unknown payment methods: {', '.join(sorted(unknown))}"}, status=status.HTTP_404_NOT_FOUND)

    with transaction.atomic():
        for method_id, is_active in wanted.items():
            method = methods[method_id]
            if method.is_active != is_active:
                method.is_active = is_active
                method.save(update_fields=["is_active", "updated_at"])

    return Response({
        "success": True,
        "methods": [m.to_dict() for m in PaymentMethod.objects.filter(restaurant=restaurant)],
    })
