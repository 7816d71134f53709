import logging

from django.conf import settings
from django.db import transaction

from .models import User

logger = logging.getLogger(__name__)


def get_active_restaurant(user):
    """Restaurant the user runs, or None for customers and anonymous users"""
    if not user.is_authenticated:
        return None
    return user.get_restaurant()


def ensure_admin_access(user, full_name=None, store_name=None, phone=None):
    """
    Make ``user`` a restaurant admin with a restaurant of their own.

    Reuses the restaurant the user already owns, otherwise creates one.
    Safe to call more than once. Returns the restaurant.
    """
    from apps.payments.models import PaymentMethod
    from apps.restaurants.models import Restaurant

    with transaction.atomic():
        restaurant = user.get_restaurant()
        if restaurant is None:
            if store_name:
                name = store_name.strip()
            elif full_name:
                name = f"{full_name.strip()}'s Restaurant"
            else:
                name = "New Restaurant"
            restaurant = Restaurant.objects.create(
                owner=user,
                name=name,
                phone=phone or "",
                description="Your new restaurant!",
                is_active=True,
                notification_sound_url=settings.STOREFRONT_SETTINGS["DEFAULT_NOTIFICATION_SOUND_URL"],
            )
            logger.info(f"Restaurant {restaurant.id} created for user {user.pk}")

        PaymentMethod.ensure_default_methods(restaurant)

        if not (user.is_restaurant_admin() or user.is_system_admin()):
            user.role = User.ROLE_RESTAURANT_ADMIN
            user.save(update_fields=["role"])
            logger.info(f"User {user.pk} promoted to restaurant admin")

    return restaurant
