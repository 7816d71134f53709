import logging
import re
import unicodedata
import uuid
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.urls import reverse

from apps.authentication.utils import only_digits
from apps.orders.models import Order

from .mercado_pago import MercadoPagoClient, MercadoPagoError
from .models import Payment, PaymentSettings

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
DELIVERY_FEE_TITLE = "Taxa de Entrega"
STATEMENT_DESCRIPTOR_MAX_LENGTH = 22


def sanitize_statement_descriptor(name):
    """Restaurant name as it may appear on a card statement: ASCII letters, digits and spaces, upper case, 22 chars."""
    text = unicodedata.normalize("NFD", name or "")
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"[^a-zA-Z0-9 ]", "", text).upper()
    text = text[:STATEMENT_DESCRIPTOR_MAX_LENGTH].strip()
    return text or settings.MERCADO_PAGO_CONFIG["STATEMENT_DESCRIPTOR_FALLBACK"]


def payer_identification(cpf_cnpj):
    number = only_digits(cpf_cnpj)
    if not number:
        return None
    return {"type": "CNPJ" if len(number) == 14 else "CPF", "number": number}


def client_for(restaurant):
    return MercadoPagoClient(PaymentSettings.get_access_token(restaurant))


def _preference_items(order):
    """
    Order items as preference items. Items without a positive price or
    quantity are skipped. A weighed item goes as one unit priced at its
    line subtotal because Mercado Pago only takes whole quantities.
    """
    items = []
    for item in order.items.all():
        try:
            price = Decimal(item.unit_price)
            quantity = Decimal(item.quantity)
        except (InvalidOperation, TypeError):
            price = quantity = Decimal("0")
        if price <= 0 or quantity <= 0:
            logger.warning(f"Skipping invalid item {item.product_name} on order {order.order_number}")
            continue

        if item.is_price_by_weight or quantity != quantity.to_integral_value():
            unit_price = (price * quantity).quantize(CENT)
            quantity = 1
            title = f"{item.product_name} ({item.quantity.normalize()} kg)"
        else:
            unit_price = price.quantize(CENT)
            quantity = int(quantity)
            title = item.product_name

        items.append({
            "title": title,
            "quantity": quantity,
            "unit_price": float(unit_price),
            "currency_id": settings.STOREFRONT_SETTINGS["CURRENCY"],
        })
    return items


def build_preference_payload(order, client_url, notification_url=None):
    items = _preference_items(order)
    if not items:
        raise MercadoPagoError("No valid items to process for payment.", status_code=400)

    total = Decimal(order.total_amount).quantize(CENT)
    subtotal = sum(
        (Decimal(str(i["unit_price"])) * i["quantity"] for i in items), Decimal("0")
    ).quantize(CENT)

    delivery_fee = total - subtotal
    if delivery_fee >= CENT:
        items.append({
            "title": DELIVERY_FEE_TITLE,
            "quantity": 1,
            "unit_price": float(delivery_fee),
            "currency_id": settings.STOREFRONT_SETTINGS["CURRENCY"],
        })

    items_total = sum((Decimal(str(i["unit_price"])) * i["quantity"] for i in items), Decimal("0"))
    if abs(items_total - total) > CENT:
        raise MercadoPagoError(
            f"Order total mismatch. Expected R$ {total}, items add up to R$ {items_total.quantize(CENT)}.",
            status_code=400,
        )

    client_url = client_url.rstrip("/")
    payer = {"email": order.customer_email or order.user.email}
    identification = payer_identification(order.customer_cpf_cnpj)
    if identification:
        payer["identification"] = identification

    payload = {
        "items": items,
        "payer": payer,
        "payment_methods": {
            "excluded_payment_types": [{"id": "ticket"}],
            "installments": 1,
        },
        "back_urls": {
            "success": f"{client_url}/#/order-success/{order.id}?status=approved",
            "failure": f"{client_url}/#/checkout?status=failure",
            "pending": f"{client_url}/#/checkout?status=pending",
        },
        "auto_return": "approved",
        "external_reference": str(order.id),
        "statement_descriptor": sanitize_statement_descriptor(order.restaurant.name),
    }
    if notification_url:
        payload["notification_url"] = notification_url
    return payload


def create_payment_preference(order, client_url, request=None):
    """Create a Checkout Pro preference for the order. Returns (payment, init_point)."""
    notification_url = None
    if request is not None:
        notification_url = request.build_absolute_uri(
            reverse("payments:webhook", kwargs={"restaurant_id": order.restaurant_id})
        )

    payload = build_preference_payload(order, client_url, notification_url)
    preference = client_for(order.restaurant).create_preference(payload)

    payment = Payment.objects.create(
        order=order,
        amount=order.total_amount,
        currency=settings.STOREFRONT_SETTINGS["CURRENCY"],
        preference_id=preference.get("id", ""),
        provider_response=preference,
    )
    logger.info(f"Mercado Pago preference {payment.preference_id} created for order {order.order_number}")
    return payment, preference.get("init_point")


def apply_mp_payment(order, mp_payment, payment=None):
    """
    Record a Mercado Pago payment resource against the order and confirm the
    order when it was approved. Returns the Payment row.
    """
    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if payment is None:
            transaction_id = str(mp_payment.get("id") or "")
            payment = order.payments.filter(transaction_id=transaction_id).first() if transaction_id else None
        if payment is None:
            payment = order.payments.filter(transaction_id="").first()
        if payment is None:
            payment = Payment(order=order, amount=order.total_amount)
        payment.apply_provider_payment(mp_payment)

        if mp_payment.get("status") == "approved" and order.status in (
            Order.STATUS_PENDING_PAYMENT, Order.STATUS_PENDING
        ):
            order.update_status(Order.STATUS_CONFIRMED, notes=f"Mercado Pago payment {payment.transaction_id} approved")
            logger.info(f"Order {order.order_number} confirmed by Mercado Pago payment {payment.transaction_id}")
    return payment


def process_card_payment(order, payment_data):
    """
    Charge a card token created by the Mercado Pago browser SDK.
    Returns the provider response; raises MercadoPagoError when refused.
    """
    payer_data = payment_data.get("payer") or {}
    payer = {"email": payer_data.get("email") or order.customer_email or order.user.email}
    identification = payer_data.get("identification") or payer_identification(order.customer_cpf_cnpj)
    if identification:
        payer["identification"] = identification

    payload = {
        "transaction_amount": float(Decimal(order.total_amount).quantize(CENT)),
        "token": payment_data.get("token"),
        "description": f"Pedido #{order.order_number}",
        "installments": payment_data.get("installments") or 1,
        "payment_method_id": payment_data.get("payment_method_id"),
        "payer": payer,
        "external_reference": str(order.id),
    }
    if payment_data.get("issuer_id"):
        payload["issuer_id"] = payment_data["issuer_id"]

    mp_payment = client_for(order.restaurant).create_payment(payload)
    payment = apply_mp_payment(order, mp_payment)
    if payment.status == "failed":
        logger.info(f"Card payment for order {order.order_number} rejected: {payment.provider_status_detail}")
    return mp_payment


def confirm_order_payment(order):
    """
    Look up the newest Mercado Pago payment for the order.
    Returns the payment resource, or None when there is none yet.
    """
    results = client_for(order.restaurant).search_payments(str(order.id))
    if not results:
        return None
    mp_payment = results[0]
    apply_mp_payment(order, mp_payment)
    return mp_payment


def handle_webhook(restaurant, webhook):
    """Apply a stored ``payment`` notification. Returns the Payment row or None."""
    data = webhook.webhook_data
    topic = data.get("type") or data.get("topic") or ""
    payment_id = (data.get("data") or {}).get("id") or data.get("id")
    if topic != "payment" or not payment_id:
        webhook.mark_processed()
        return None

    mp_payment = client_for(restaurant).get_payment(payment_id)
    try:
        order_id = uuid.UUID(str(mp_payment.get("external_reference")))
    except ValueError:
        order_id = None
    order = Order.objects.filter(id=order_id, restaurant=restaurant).first() if order_id else None
    if order is None:
        logger.warning(f"Order not found for Mercado Pago payment {payment_id}")
        webhook.mark_processed()
        return None

    payment = apply_mp_payment(order, mp_payment)
    webhook.mark_processed(payment)
    return payment
