from django.urls import path
from . import views

app_name = "orders"

urlpatterns = [
    # Cart (per restaurant, session based)
    path("cart/<uuid:restaurant_id>/", views.get_cart, name="cart"),
    path("cart/<uuid:restaurant_id>/add/", views.add_to_cart, name="add_to_cart"),
    path("cart/<uuid:restaurant_id>/update/", views.update_cart, name="update_cart"),
    path("cart/<uuid:restaurant_id>/remove/<str:line_id>/", views.remove_from_cart, name="remove_from_cart"),
    path("cart/<uuid:restaurant_id>/clear/", views.clear_cart, name="clear_cart"),

    # Customer
    path("checkout/<uuid:restaurant_id>/", views.checkout, name="checkout"),
    path("mine/", views.my_orders, name="my_orders"),
    path("<uuid:order_id>/", views.order_detail, name="detail"),
    path("<uuid:order_id>/cancel/", views.cancel_order, name="cancel"),

    # Restaurant back-office
    path("manage/", views.orders_management, name="management"),
    path("manage/<uuid:order_id>/", views.manage_order_detail, name="manage_detail"),
    path("manage/<uuid:order_id>/accept/", views.accept_order, name="accept"),
    path("manage/<uuid:order_id>/decline/", views.decline_order, name="decline"),
    path("manage/<uuid:order_id>/status/", views.update_order_status, name="update_status"),
]
