from django.urls import path

from . import consumers

websocket_urlpatterns = [
    path("ws/restaurants/<uuid:restaurant_id>/orders/", consumers.RestaurantOrdersConsumer.as_asgi()),
    path("ws/restaurants/<uuid:restaurant_id>/storefront/", consumers.StorefrontConsumer.as_asgi()),
    path("ws/orders/<uuid:order_id>/", consumers.OrderStatusConsumer.as_asgi()),
]
