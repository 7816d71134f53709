import logging

from django.contrib.auth.decorators import login_required
from django.core.paginator import Paginator
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_POST

from apps.authentication.decorators import restaurant_admin_required
from apps.authentication.utils import parse_positive_int, parse_request_data, parse_uuid
from apps.menu.models import Product
from apps.restaurants.models import Restaurant

from .cart import Cart, CartError
from .forms import CheckoutForm
from .models import Order, OrderStatusError
from .services import CheckoutError, place_order

logger = logging.getLogger(__name__)


def serialize_order(order, include_items=True):
    data = {
        "id": str(order.id),
        "order_number": order.order_number,
        "restaurant_id": str(order.restaurant_id),
        "status": order.status,
        "status_display": order.get_status_display(),
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "customer_email": order.customer_email,
        "delivery_option": order.delivery_option,
        "delivery_address": order.delivery_address,
        "subtotal": str(order.subtotal),
        "delivery_fee": str(order.delivery_fee),
        "total_amount": str(order.total_amount),
        "payment_method": order.payment_method_name,
        "change_for": str(order.change_for) if order.change_for is not None else None,
        "notes": order.notes,
        "min_delivery_time_minutes": order.min_delivery_time_minutes,
        "max_delivery_time_minutes": order.max_delivery_time_minutes,
        "created_at": order.created_at.isoformat(),
        "confirmed_at": order.confirmed_at.isoformat() if order.confirmed_at else None,
        "delivered_at": order.delivered_at.isoformat() if order.delivered_at else None,
        "cancelled_at": order.cancelled_at.isoformat() if order.cancelled_at else None,
    }
    if include_items:
        data["items"] = [
            {
                "id": str(item.id),
                "product_id": str(item.product_id) if item.product_id else None,
                "product_name": item.product_name,
                "quantity": str(item.quantity),
                "unit_price": str(item.unit_price),
                "subtotal": str(item.subtotal),
                "is_price_by_weight": item.is_price_by_weight,
                "notes": item.notes,
            }
            for item in order.items.all()
        ]
    return data


def _history(order):
    return [
        {
            "status_from": h.status_from,
            "status_to": h.status_to,
            "notes": h.notes,
            "timestamp": h.timestamp.isoformat(),
        }
        for h in order.history.all()
    ]


# ----------------------------------------------------------------------
# Cart
# ----------------------------------------------------------------------

@require_http_methods(["GET"])
def get_cart(request, restaurant_id):
    """The cart for one restaurant, re-priced against the current menu."""
    restaurant = get_object_or_404(Restaurant, id=restaurant_id, is_active=True)
    cart = Cart(request.session, restaurant.id)
    removed = cart.refresh()
    data = cart.to_dict()
    data["removed_items"] = removed
    return JsonResponse(data)


@require_POST
def add_to_cart(request, restaurant_id):
    restaurant = get_object_or_404(Restaurant, id=restaurant_id, is_active=True)
    if not restaurant.is_open():
        return JsonResponse({"error": "The restaurant is closed right now"}, status=409)

    try:
        data = parse_request_data(request)
        product_id = parse_uuid(data.get("product_id"))
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)

    product = Product.objects.filter(id=product_id, restaurant=restaurant).first()
    if product is None:
        return JsonResponse({"error": "Product not found"}, status=404)

    cart = Cart(request.session, restaurant.id)
    try:
        cart.add(product, data.get("quantity", 1), data.get("notes", ""))
    except CartError as e:
        return JsonResponse({"error": str(e)}, status=400)

    return JsonResponse({"success": True, "message": f"{product.name} added to cart", "cart": cart.to_dict()})


@require_POST
def update_cart(request, restaurant_id):
    """Body: ``{"line_id": ..., "quantity": ...}``; zero removes the line."""
    restaurant = get_object_or_404(Restaurant, id=restaurant_id)
    try:
        data = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)

    cart = Cart(request.session, restaurant.id)
    try:
        cart.update_quantity(data.get("line_id"), data.get("quantity"))
    except CartError as e:
        return JsonResponse({"error": str(e)}, status=400)
    return JsonResponse({"success": True, "cart": cart.to_dict()})


@require_POST
def remove_from_cart(request, restaurant_id, line_id):
    restaurant = get_object_or_404(Restaurant, id=restaurant_id)
    cart = Cart(request.session, restaurant.id)
    try:
        cart.remove(line_id)
    except CartError as e:
        return JsonResponse({"error": str(e)}, status=404)
    return JsonResponse({"success": True, "cart": cart.to_dict()})


@require_POST
def clear_cart(request, restaurant_id):
    restaurant = get_object_or_404(Restaurant, id=restaurant_id)
    cart = Cart(request.session, restaurant.id)
    cart.clear()
    return JsonResponse({"success": True, "message": "Cart cleared", "cart": cart.to_dict()})


# ----------------------------------------------------------------------
# Checkout and customer orders
# ----------------------------------------------------------------------

@require_POST
def checkout(request, restaurant_id):
    if not request.user.is_authenticated:
        return JsonResponse({"error": "Sign in to place an order"}, status=401)

    restaurant = get_object_or_404(Restaurant, id=restaurant_id, is_active=True)
    try:
        data = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)

    form = CheckoutForm(data)
    if not form.is_valid():
        return JsonResponse({"error": "Please check your details", "errors": form.errors}, status=400)

    cart = Cart(request.session, restaurant.id)
    try:
        order = place_order(request.user, restaurant, cart, form.cleaned_data)
    except CheckoutError as e:
        body = {"error": e.message}
        if e.field:
            body["field"] = e.field
        return JsonResponse(body, status=e.status_code)

    return JsonResponse({
        "success": True,
        "message": f"Order {order.order_number} placed",
        "requires_payment": order.status == Order.STATUS_PENDING_PAYMENT,
        "order": serialize_order(order),
    }, status=201)


@login_required
@require_http_methods(["GET"])
def my_orders(request):
    orders = (
        Order.objects.filter(user=request.user)
        .select_related("restaurant")
        .order_by("-created_at")
    )
    try:
        restaurant_id = parse_uuid(request.GET.get("restaurant"))
        limit = parse_positive_int(request.GET.get("limit"), 20, maximum=100)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)

    if restaurant_id:
        orders = orders.filter(restaurant_id=restaurant_id)

    return JsonResponse({
        "orders": [
            dict(serialize_order(o, include_items=False), restaurant_name=o.restaurant.name)
            for o in orders[:limit]
        ],
        "total_orders": orders.count(),
    })


@login_required
@require_http_methods(["GET"])
def order_detail(request, order_id):
    """Order tracking for the customer who placed it (or the restaurant's admin)."""
    order = get_object_or_404(Order.objects.select_related("restaurant"), id=order_id)
    if not (order.user_id == request.user.pk or request.user.can_manage_restaurant(order.restaurant)):
        return JsonResponse({"error": "Not allowed"}, status=403)

    data = serialize_order(order)
    data["restaurant_name"] = order.restaurant.name
    data["history"] = _history(order)
    return JsonResponse(data)


@login_required
@require_POST
def cancel_order(request, order_id):
    order = get_object_or_404(Order, id=order_id, user=request.user)
    if not order.can_be_cancelled_by_customer():
        return JsonResponse({"error": "This order can no longer be cancelled"}, status=409)

    order.update_status(Order.STATUS_CANCELLED, changed_by=request.user, notes="Cancelled by customer")
    logger.info(f"Order {order.order_number} cancelled by customer {request.user.pk}")
    return JsonResponse({"success": True, "message": "Order cancelled", "order": serialize_order(order)})


# ----------------------------------------------------------------------
# Back-office
# ----------------------------------------------------------------------

@restaurant_admin_required
@require_http_methods(["GET"])
def orders_management(request):
    """Orders for the admin's restaurant; ``?status=all`` or one status, newest first."""
    orders = Order.objects.filter(restaurant=request.restaurant).prefetch_related("items")

    status = request.GET.get("status", "all")
    if status != "all":
        if status not in dict(Order.STATUS_CHOICES):
            return JsonResponse({"error": f"Unknown status '{status}'"}, status=400)
        orders = orders.filter(status=status)

    try:
        page_size = parse_positive_int(request.GET.get("page_size"), 20, maximum=100)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)

    paginator = Paginator(orders, page_size)
    page_obj = paginator.get_page(request.GET.get("page"))

    return JsonResponse({
        "orders": [serialize_order(o) for o in page_obj],
        "page": page_obj.number,
        "num_pages": paginator.num_pages,
        "count": paginator.count,
    })


@restaurant_admin_required
@require_http_methods(["GET"])
def manage_order_detail(request, order_id):
    order = get_object_or_404(Order, id=order_id, restaurant=request.restaurant)
    data = serialize_order(order)
    data["customer_cpf_cnpj"] = order.customer_cpf_cnpj
    data["history"] = _history(order)
    return JsonResponse(data)


def _change_status(request, order, new_status, notes=""):
    try:
        order.update_status(new_status, changed_by=request.user, notes=notes)
    except OrderStatusError as e:
        return JsonResponse({"error": str(e)}, status=400)

    logger.info(f"Order {order.order_number} moved to {new_status} by {request.user.pk}")
    return JsonResponse({
        "success": True,
        "message": f"Order {order.order_number} is now {order.get_status_display().lower()}",
        "order": serialize_order(order),
    })


@restaurant_admin_required
@require_POST
def accept_order(request, order_id):
    order = get_object_or_404(Order, id=order_id, restaurant=request.restaurant)
    if order.status != Order.STATUS_PENDING:
        return JsonResponse({"error": "Only pending orders can be accepted"}, status=400)
    return _change_status(request, order, Order.STATUS_CONFIRMED, "Accepted by restaurant")


@restaurant_admin_required
@require_POST
def decline_order(request, order_id):
    order = get_object_or_404(Order, id=order_id, restaurant=request.restaurant)
    try:
        reason = parse_request_data(request).get("reason", "")
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)
    return _change_status(request, order, Order.STATUS_CANCELLED, reason or "Declined by restaurant")


@restaurant_admin_required
@require_POST
def update_order_status(request, order_id):
    """Body: ``{"status": "preparing"}``. Only moves allowed by Order.STATUS_TRANSITIONS pass."""
    order = get_object_or_404(Order, id=order_id, restaurant=request.restaurant)
    try:
        data = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({"error": str(e)}, status=400)

    new_status = data.get("status")
    if not new_status:
        return JsonResponse({"error": "status is required"}, status=400)
    return _change_status(request, order, new_status, data.get("notes", ""))
