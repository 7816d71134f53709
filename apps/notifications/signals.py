from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from apps.orders.models import Order
from apps.restaurants.models import Restaurant

from .models import Notification
from .utils import ORDER_CREATED, ORDER_UPDATED, broadcast_order_event, broadcast_store_update

TOTALS_FIELDS = {"subtotal", "delivery_fee", "total_amount", "updated_at"}

STATUS_MESSAGES = {
    Order.STATUS_PENDING: "Your order was received and is waiting for the restaurant.",
    Order.STATUS_CONFIRMED: "The restaurant accepted your order.",
    Order.STATUS_PREPARING: "Your order is being prepared.",
    Order.STATUS_READY: "Your order is ready.",
    Order.STATUS_DELIVERING: "Your order is on its way.",
    Order.STATUS_DELIVERED: "Your order was delivered. Enjoy!",
    Order.STATUS_CANCELLED: "Your order was cancelled.",
}


@receiver(post_save, sender=Order)
def order_saved(sender, instance, created, update_fields=None, **kwargs):
    if created:
        Notification.objects.create(
            target_user=instance.restaurant.owner,
            title=f"New order {instance.order_number}",
            message=f"New order from {instance.customer_name}.",
            notification_type="new_order",
            order=instance,
        )
        transaction.on_commit(lambda: broadcast_order_event(instance, ORDER_CREATED))
        return

    # Checkout saves the totals right after creating the order; order.created already carries them
    if update_fields is not None and set(update_fields) <= TOTALS_FIELDS:
        return

    # Order.update_status always saves with update_fields including status
    status_changed = update_fields is not None and "status" in update_fields
    if status_changed and instance.status in STATUS_MESSAGES:
        Notification.objects.create(
            target_user=instance.user,
            title=f"Order {instance.order_number}: {instance.get_status_display()}",
            message=STATUS_MESSAGES[instance.status],
            notification_type="order_cancelled" if instance.status == Order.STATUS_CANCELLED else "order_status",
            order=instance,
        )
    transaction.on_commit(lambda: broadcast_order_event(instance, ORDER_UPDATED))


@receiver(post_save, sender=Restaurant)
def restaurant_saved(sender, instance, created, **kwargs):
    if created:
        return
    transaction.on_commit(lambda: broadcast_store_update(instance, "settings"))
