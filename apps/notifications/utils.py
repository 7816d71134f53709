"""
Realtime fan-out over the Channels layer.

Groups:
    restaurant_<id>_orders   order events for the restaurant dashboard
    order_<id>               status updates for one order
    storefront_<id>          public store changes (hours, zones, settings)
"""

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

logger = logging.getLogger(__name__)

ORDER_CREATED = "order.created"
ORDER_UPDATED = "order.updated"
STORE_UPDATED = "store.updated"


def restaurant_orders_group(restaurant_id):
    return f"restaurant_{restaurant_id}_orders"


def order_group(order_id):
    return f"order_{order_id}"


def storefront_group(restaurant_id):
    return f"storefront_{restaurant_id}"


def broadcast(group, event_type, payload):
    """
    Send an event to every socket in ``group``. Consumers receive it through
    their ``realtime_event`` handler.
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    message = {
        "type": "realtime.event",
        "event": event_type,
        "payload": payload,
        "sent_at": timezone.now().isoformat(),
    }
    try:
        async_to_sync(channel_layer.group_send)(group, message)
    except Exception as e:
        # A dead Redis must not break the request that triggered the event
        logger.error(f"Realtime broadcast to {group} failed: {str(e)}")


def order_payload(order):
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "restaurant_id": str(order.restaurant_id),
        "status": order.status,
        "status_display": order.get_status_display(),
        "total_amount": str(order.total_amount),
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
    }


def broadcast_order_event(order, event_type):
    """Tell the restaurant dashboard and the order's own watchers about an order change."""
    payload = order_payload(order)
    broadcast(
        restaurant_orders_group(order.restaurant_id),
        event_type,
        dict(payload, notification_sound_url=order.restaurant.get_notification_sound_url()),
    )
    broadcast(order_group(order.id), event_type, payload)


def broadcast_store_update(restaurant, kind):
    """``kind`` says what changed: settings, business_hours or delivery_zones."""
    broadcast(
        storefront_group(restaurant.id),
        STORE_UPDATED,
        {
            "restaurant_id": str(restaurant.id),
            "kind": kind,
            "is_active": restaurant.is_active,
            "is_open": restaurant.is_open(),
            "delivery_enabled": restaurant.delivery_enabled,
        },
    )
