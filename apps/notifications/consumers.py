import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from apps.orders.models import Order
from apps.restaurants.models import Restaurant

from .utils import order_group, restaurant_orders_group, storefront_group

logger = logging.getLogger(__name__)


class RealtimeConsumer(AsyncJsonWebsocketConsumer):
    """Joins one group on connect and relays its ``realtime.event`` messages to the socket."""

    group_name = None

    async def get_group_name(self):
        raise NotImplementedError

    async def connect(self):
        self.group_name = await self.get_group_name()
        if self.group_name is None:
            await self.close(code=4403)
            return
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.on_joined()

    async def on_joined(self):
        pass

    async def disconnect(self, code):
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive_json(self, content, **kwargs):
        if content.get("type") == "ping":
            await self.send_json({"type": "pong"})

    async def realtime_event(self, event):
        await self.send_json({
            "type": event["event"],
            "payload": event["payload"],
            "sent_at": event.get("sent_at"),
        })


class RestaurantOrdersConsumer(RealtimeConsumer):
    """Order feed for a restaurant dashboard; only users who manage the restaurant may join."""

    @database_sync_to_async
    def _allowed(self, user, restaurant_id):
        restaurant = Restaurant.objects.filter(id=restaurant_id).first()
        return restaurant is not None and user.can_manage_restaurant(restaurant)

    async def get_group_name(self):
        user = self.scope.get("user")
        restaurant_id = self.scope["url_route"]["kwargs"]["restaurant_id"]
        if user is None or not user.is_authenticated:
            return None
        if not await self._allowed(user, restaurant_id):
            logger.warning(f"User {user.pk} refused on orders feed of restaurant {restaurant_id}")
            return None
        return restaurant_orders_group(restaurant_id)


class OrderStatusConsumer(RealtimeConsumer):
    """Status updates for one order, for its customer or the restaurant's admin."""

    @database_sync_to_async
    def _load_order(self, user, order_id):
        order = Order.objects.select_related("restaurant").filter(id=order_id).first()
        if order is None:
            return None
        if order.user_id == user.pk or user.can_manage_restaurant(order.restaurant):
            return {"status": order.status, "status_display": order.get_status_display()}
        return None

    async def get_group_name(self):
        user = self.scope.get("user")
        order_id = self.scope["url_route"]["kwargs"]["order_id"]
        if user is None or not user.is_authenticated:
            return None
        self.order_state = await self._load_order(user, order_id)
        if self.order_state is None:
            return None
        return order_group(order_id)

    async def on_joined(self):
        await self.send_json({"type": "order_state", "payload": self.order_state})


class StorefrontConsumer(RealtimeConsumer):
    """Public store changes; anyone browsing the store may listen."""

    @database_sync_to_async
    def _exists(self, restaurant_id):
        return Restaurant.objects.filter(id=restaurant_id, is_active=True).exists()

    async def get_group_name(self):
        restaurant_id = self.scope["url_route"]["kwargs"]["restaurant_id"]
        if not await self._exists(restaurant_id):
            return None
        return storefront_group(restaurant_id)
