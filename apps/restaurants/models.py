import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models


class Restaurant(models.Model):
    """A store: menu, hours, zones and orders all hang off it."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="restaurants",
    )

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    logo = models.ImageField(upload_to="restaurants/logos/", blank=True, null=True)
    logo_url = models.URLField(blank=True)

    # Contact
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)

    # Address, split the way checkout collects it
    street = models.CharField(max_length=255, blank=True)
    number = models.CharField(max_length=20, blank=True)
    neighborhood = models.CharField(max_length=100, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=2, blank=True)
    zip_code = models.CharField(max_length=9, blank=True)
    address = models.CharField(max_length=500, blank=True)
    latitude = models.FloatField(
        blank=True, null=True,
        validators=[MinValueValidator(-90), MaxValueValidator(90)],
    )
    longitude = models.FloatField(
        blank=True, null=True,
        validators=[MinValueValidator(-180), MaxValueValidator(180)],
    )

    is_active = models.BooleanField(default=True)
    delivery_enabled = models.BooleanField(default=True)

    notification_sound = models.FileField(upload_to="restaurants/sounds/", blank=True, null=True)
    notification_sound_url = models.CharField(max_length=500, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "restaurants_restaurant"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["owner"]),
            models.Index(fields=["is_active"]),
        ]

    def __str__(self):
        return self.name

    def get_logo_url(self):
        if self.logo:
            return self.logo.url
        return self.logo_url or None

    def get_notification_sound_url(self):
        if self.notification_sound:
            return self.notification_sound.url
        return self.notification_sound_url or settings.STOREFRONT_SETTINGS["DEFAULT_NOTIFICATION_SOUND_URL"]

    def has_coordinates(self):
        return self.latitude is not None and self.longitude is not None

    def get_full_address(self):
        """Street, number - neighborhood, city - state, zip; falls back to the free-text address."""
        street = ", ".join(part for part in [self.street, self.number] if part)
        parts = [street, self.neighborhood, self.city, self.state, self.zip_code]
        full = " - ".join(part for part in parts if part)
        return full or self.address

    def get_business_status(self, now=None):
        from .utils import get_business_status
        return get_business_status(self.business_hours.all(), now)

    def is_open(self, now=None):
        return self.is_active and self.get_business_status(now).is_open


class BusinessHour(models.Model):
    """Opening hours for one weekday. day_of_week 0 is Sunday."""

    DAY_CHOICES = [
        (0, "Sunday"),
        (1, "Monday"),
        (2, "Tuesday"),
        (3, "Wednesday"),
        (4, "Thursday"),
        (5, "Friday"),
        (6, "Saturday"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(Restaurant, on_delete=models.CASCADE, related_name="business_hours")
    day_of_week = models.PositiveSmallIntegerField(choices=DAY_CHOICES)
    is_open = models.BooleanField(default=True)
    open_time = models.TimeField(blank=True, null=True)
    close_time = models.TimeField(blank=True, null=True)

    class Meta:
        db_table = "restaurants_business_hour"
        ordering = ["day_of_week"]
        unique_together = [("restaurant", "day_of_week")]

    def __str__(self):
        if not self.is_open:
            return f"{self.get_day_of_week_display()}: closed"
        return f"{self.get_day_of_week_display()}: {self.open_time} - {self.close_time}"


class DeliveryZone(models.Model):
    """A delivery ring: orders within max_distance_km of the store pay delivery_fee."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(Restaurant, on_delete=models.CASCADE, related_name="delivery_zones")
    name = models.CharField(max_length=100)
    delivery_fee = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    max_distance_km = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    min_delivery_time_minutes = models.PositiveIntegerField(default=0)
    # Drawn on the admin map; distances are measured from the restaurant
    center_latitude = models.FloatField(blank=True, null=True)
    center_longitude = models.FloatField(blank=True, null=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "restaurants_delivery_zone"
        ordering = ["max_distance_km"]
        indexes = [models.Index(fields=["restaurant", "is_active"])]

    def __str__(self):
        return f"{self.name} (up to {self.max_distance_km} km)"
