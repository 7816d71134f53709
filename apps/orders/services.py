import logging
from decimal import Decimal

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction

from apps.restaurants.location import quote_delivery, build_address

from .models import Customer, Order, OrderItem, OrderHistory

logger = logging.getLogger(__name__)


class CheckoutError(Exception):
    """Checkout refused; the message is safe to show to the customer."""

    def __init__(self, message, status_code=400, field=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.field = field


def place_order(user, restaurant, cart, cleaned_data):
    """
    Turn the customer's cart into an order.

    ``cleaned_data`` comes from a valid CheckoutForm. Raises CheckoutError
    when the store is closed, the cart is empty, the payment method is not
    accepted, the address is outside the delivery area or the change amount
    does not cover the total.
    """
    from apps.payments.models import PaymentMethod

    if not restaurant.is_open():
        raise CheckoutError("The restaurant is closed right now", status_code=409)

    dropped = cart.refresh()
    if dropped:
        logger.info(f"Dropped unavailable items from cart at checkout: {', '.join(dropped)}")
    if not len(cart):
        raise CheckoutError("Your cart is empty")

    payment_method = PaymentMethod.objects.filter(
        id=cleaned_data['payment_method'], restaurant=restaurant, is_active=True
    ).first()
    if payment_method is None:
        raise CheckoutError("Select a valid payment method", field='payment_method')

    option = cleaned_data['delivery_option']
    address = ""
    if option == Order.DELIVERY:
        address = build_address(
            street=cleaned_data.get('street', ''),
            number=cleaned_data.get('number', ''),
            neighborhood=cleaned_data.get('neighborhood', ''),
            city=cleaned_data.get('city', ''),
            state=cleaned_data.get('state', ''),
            zip_code=cleaned_data.get('zip_code', ''),
        )

    coordinates = None
    if cleaned_data.get('latitude') is not None and cleaned_data.get('longitude') is not None:
        coordinates = (cleaned_data['latitude'], cleaned_data['longitude'])

    quote = quote_delivery(restaurant, option, address=address, coordinates=coordinates)
    if not quote['is_valid']:
        raise CheckoutError(quote['error'], field='street')

    subtotal = cart.subtotal
    delivery_fee = quote['fee']
    total = (subtotal + delivery_fee).quantize(Decimal("0.01"))

    change_for = None
    if payment_method.is_cash:
        amount = cleaned_data.get('change_for')
        if amount is not None:
            if amount < total:
                raise CheckoutError(
                    f"Change must be for at least R$ {total}", field='change_for'
                )
            if amount > total:
                change_for = amount.quantize(Decimal("0.01"))

    if payment_method.is_online:
        status = Order.STATUS_PENDING_PAYMENT
    else:
        status = Order.STATUS_PENDING

    default_min, default_max = settings.STOREFRONT_SETTINGS[
        'PICKUP_TIME' if option == Order.PICKUP else 'DEFAULT_DELIVERY_TIME'
    ]
    min_time = quote['min_time'] if quote['min_time'] is not None else default_min
    max_time = quote['max_time'] if quote['max_time'] is not None else default_max

    latitude, longitude = quote['coordinates'] or (None, None)
    complement = cleaned_data.get('complement', '')
    delivery_address = address
    if delivery_address and complement:
        delivery_address = f"{delivery_address} ({complement})"

    with transaction.atomic():
        contact = {
            'name': cleaned_data['name'],
            'phone': cleaned_data['phone'],
            'email': cleaned_data.get('email') or user.email,
            'cpf_cnpj': cleaned_data.get('cpf_cnpj', ''),
        }
        if option == Order.DELIVERY:
            contact.update({
                'street': cleaned_data.get('street', ''),
                'number': cleaned_data.get('number', ''),
                'neighborhood': cleaned_data.get('neighborhood', ''),
                'city': cleaned_data.get('city', ''),
                'state': cleaned_data.get('state', ''),
                'zip_code': cleaned_data.get('zip_code', ''),
                'complement': complement,
                'address': address,
                'latitude': latitude,
                'longitude': longitude,
            })
        customer, _ = Customer.objects.update_or_create(user=user, defaults=contact)

        order = Order.objects.create(
            restaurant=restaurant,
            customer=customer,
            user=user,
            customer_name=customer.name,
            customer_phone=customer.phone,
            customer_email=customer.email,
            customer_cpf_cnpj=customer.cpf_cnpj,
            delivery_option=option,
            delivery_address=delivery_address,
            delivery_latitude=latitude,
            delivery_longitude=longitude,
            delivery_fee=delivery_fee,
            payment_method=payment_method,
            payment_method_name=payment_method.name,
            change_for=change_for,
            notes=cleaned_data.get('notes', ''),
            status=status,
            min_delivery_time_minutes=min_time,
            max_delivery_time_minutes=max_time,
        )

        for line in cart:
            OrderItem.objects.create(
                order=order,
                product_id=line['product_id'],
                product_name=line['name'],
                quantity=Decimal(line['quantity']),
                unit_price=Decimal(line['price']),
                is_price_by_weight=line['is_price_by_weight'],
                notes=line['notes'],
            )

        order.calculate_totals(save=True)
        OrderHistory.objects.create(
            order=order,
            status_from="",
            status_to=order.status,
            changed_by=user,
            notes="Order placed by customer",
        )
        transaction.on_commit(lambda: send_order_notification_email(order))

    cart.clear()
    logger.info(f"Order {order.order_number} placed at restaurant {restaurant.id} ({order.total_amount})")
    return order


def send_order_notification_email(order):
    """
    Email the restaurant owner about a new order.
    Only sends if email settings are configured.
    """
    if not getattr(settings, 'DEFAULT_FROM_EMAIL', None):
        return
    owner_email = order.restaurant.owner.email
    if not owner_email:
        return

    currency = settings.STOREFRONT_SETTINGS['CURRENCY']
    items = "\n".join(
        f"- {item.product_name} x{item.quantity.normalize()} = {item.subtotal} {currency}"
        for item in order.items.all()
    )
    if order.delivery_option == Order.DELIVERY:
        where = f"Delivery to: {order.delivery_address}"
    else:
        where = "Pickup at the store"

    message = f"""
New Order Notification

Order Number: {order.order_number}
Customer: {order.customer_name}
Phone: {order.customer_phone}
{where}
Payment: {order.payment_method_name}
Total Amount: {order.total_amount} {currency}

Items Ordered:
{items}

Notes: {order.notes or 'None'}
"""
    try:
        send_mail(
            subject=f"New Order #{order.order_number}",
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[owner_email],
            fail_silently=False,
        )
    except Exception as e:
        # Mail trouble must not undo an order that is already saved
        logger.error(f"Failed to send order notification email: {str(e)}")
