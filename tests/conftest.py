"""
Shared fixtures: users, a restaurant with a menu, logged-in clients and an order factory.
"""

import json
from decimal import Decimal

import pytest
from django.test import Client

from apps.authentication.models import User
from apps.menu.models import Category, Product
from apps.orders.models import Customer, Order, OrderItem
from apps.payments.models import PaymentMethod
from apps.restaurants.models import Restaurant, DeliveryZone

# Avenida Paulista, Sao Paulo
STORE_COORDS = (-23.5614, -46.6559)


def _post_json(client, url, data=None):
    return client.post(url, data=json.dumps(data or {}), content_type="application/json")


@pytest.fixture
def post_json():
    """POST a JSON body: post_json(client, url, data)"""
    return _post_json


@pytest.fixture
def owner(db):
    return User.objects.create_user(
        username="owner",
        email="owner@example.com",
        password="Str0ng-pass!",
        first_name="Maria",
        last_name="Souza",
        role=User.ROLE_RESTAURANT_ADMIN,
    )


@pytest.fixture
def customer_user(db):
    return User.objects.create_user(
        username="customer",
        email="customer@example.com",
        password="Str0ng-pass!",
        first_name="Joao",
        last_name="Silva",
    )


@pytest.fixture
def other_admin(db):
    user = User.objects.create_user(
        username="rival",
        email="rival@example.com",
        password="Str0ng-pass!",
        role=User.ROLE_RESTAURANT_ADMIN,
    )
    Restaurant.objects.create(owner=user, name="Rival Burgers")
    return user


@pytest.fixture
def restaurant(owner):
    restaurant = Restaurant.objects.create(
        owner=owner,
        name="Cantina São João",
        phone="11999990000",
        street="Avenida Paulista",
        number="1000",
        city="São Paulo",
        state="SP",
        latitude=STORE_COORDS[0],
        longitude=STORE_COORDS[1],
    )
    PaymentMethod.ensure_default_methods(restaurant)
    return restaurant


@pytest.fixture
def zones(restaurant):
    return [
        DeliveryZone.objects.create(
            restaurant=restaurant, name="Near", delivery_fee=Decimal("5.00"),
            max_distance_km=Decimal("3.00"), min_delivery_time_minutes=20,
        ),
        DeliveryZone.objects.create(
            restaurant=restaurant, name="Far", delivery_fee=Decimal("9.50"),
            max_distance_km=Decimal("8.00"), min_delivery_time_minutes=40,
        ),
    ]


@pytest.fixture
def category(restaurant):
    return Category.objects.create(restaurant=restaurant, name="Lanches", display_order=0)


@pytest.fixture
def burger(restaurant, category):
    return Product.objects.create(
        restaurant=restaurant, category=category, name="X-Burger", price=Decimal("25.90"),
    )


@pytest.fixture
def cheese(restaurant, category):
    return Product.objects.create(
        restaurant=restaurant, category=category, name="Queijo Minas",
        price=Decimal("59.90"), is_price_by_weight=True,
    )


@pytest.fixture
def cash_method(restaurant):
    return PaymentMethod.objects.get(restaurant=restaurant, method_type=PaymentMethod.TYPE_CASH)


@pytest.fixture
def online_method(restaurant):
    return PaymentMethod.objects.get(restaurant=restaurant, method_type=PaymentMethod.TYPE_ONLINE)


@pytest.fixture
def customer_client(customer_user):
    client = Client()
    client.force_login(customer_user)
    return client


@pytest.fixture
def owner_client(owner, restaurant):
    client = Client()
    client.force_login(owner)
    return client


@pytest.fixture
def make_order(restaurant, customer_user, burger):
    """Create an order directly, bypassing checkout."""
    def _make(status=Order.STATUS_PENDING, quantity=2, delivery_fee=Decimal("5.00"), **extra):
        customer, _ = Customer.objects.get_or_create(
            user=customer_user, defaults={"name": "Joao Silva", "phone": "11988887777"}
        )
        order = Order.objects.create(
            restaurant=restaurant,
            customer=customer,
            user=customer_user,
            customer_name=customer.name,
            customer_phone=customer.phone,
            customer_email=customer_user.email,
            delivery_fee=delivery_fee,
            status=status,
            **extra,
        )
        OrderItem.objects.create(order=order, product=burger, quantity=Decimal(quantity))
        order.calculate_totals(save=True)
        return order
    return _make
