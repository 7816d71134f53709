import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone


def generate_order_number():
    """Simple readable order number generator (falls back to uuid4 hex)."""
    return uuid.uuid4().hex[:12].upper()


class OrderStatusError(Exception):
    """Raised when an order is asked to move to a status it cannot reach."""


class Customer(models.Model):
    """Contact and address data a customer gives at checkout, reused on the next order."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="customer_profile",
    )
    name = models.CharField(max_length=255)
    phone = models.CharField(max_length=20)
    email = models.EmailField(blank=True)
    cpf_cnpj = models.CharField(max_length=14, blank=True, help_text="Digits only")

    street = models.CharField(max_length=255, blank=True)
    number = models.CharField(max_length=20, blank=True)
    neighborhood = models.CharField(max_length=100, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=2, blank=True)
    zip_code = models.CharField(max_length=9, blank=True)
    complement = models.CharField(max_length=255, blank=True)
    address = models.CharField(max_length=500, blank=True)
    latitude = models.FloatField(blank=True, null=True)
    longitude = models.FloatField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "orders_customer"
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.phone})"


class Order(models.Model):
    """An order placed by a customer at one restaurant."""

    STATUS_PENDING_PAYMENT = "pending_payment"
    STATUS_PENDING = "pending"
    STATUS_CONFIRMED = "confirmed"
    STATUS_PREPARING = "preparing"
    STATUS_READY = "ready"
    STATUS_DELIVERING = "delivering"
    STATUS_DELIVERED = "delivered"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING_PAYMENT, "Pending payment"),
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_PREPARING, "Preparing"),
        (STATUS_READY, "Ready"),
        (STATUS_DELIVERING, "Out for delivery"),
        (STATUS_DELIVERED, "Delivered"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    # Allowed moves; delivered and cancelled are final
    STATUS_TRANSITIONS = {
        STATUS_PENDING_PAYMENT: [STATUS_PENDING, STATUS_CONFIRMED, STATUS_CANCELLED],
        STATUS_PENDING: [STATUS_CONFIRMED, STATUS_CANCELLED],
        STATUS_CONFIRMED: [STATUS_PREPARING, STATUS_CANCELLED],
        STATUS_PREPARING: [STATUS_READY, STATUS_CANCELLED],
        STATUS_READY: [STATUS_DELIVERING, STATUS_DELIVERED, STATUS_CANCELLED],
        STATUS_DELIVERING: [STATUS_DELIVERED, STATUS_CANCELLED],
        STATUS_DELIVERED: [],
        STATUS_CANCELLED: [],
    }

    # Statuses that count as a sale in dashboards and the cash register
    SALE_STATUSES = [
        STATUS_PENDING, STATUS_CONFIRMED, STATUS_PREPARING,
        STATUS_READY, STATUS_DELIVERING, STATUS_DELIVERED,
    ]
    CUSTOMER_CANCELLABLE_STATUSES = [STATUS_PENDING_PAYMENT, STATUS_PENDING]

    DELIVERY = "delivery"
    PICKUP = "pickup"
    DELIVERY_OPTION_CHOICES = [
        (DELIVERY, "Delivery"),
        (PICKUP, "Pickup"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=32, unique=True, default=generate_order_number)

    restaurant = models.ForeignKey(
        "restaurants.Restaurant",
        on_delete=models.CASCADE,
        related_name="orders",
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="orders",
    )

    # Contact info (captured at checkout)
    customer_name = models.CharField(max_length=255)
    customer_phone = models.CharField(max_length=20)
    customer_email = models.EmailField(blank=True)
    customer_cpf_cnpj = models.CharField(max_length=14, blank=True)

    delivery_option = models.CharField(max_length=10, choices=DELIVERY_OPTION_CHOICES, default=DELIVERY)
    delivery_address = models.CharField(max_length=500, blank=True)
    delivery_latitude = models.FloatField(blank=True, null=True)
    delivery_longitude = models.FloatField(blank=True, null=True)

    # Order summary fields (stored for auditing, also recalculated via calculate_totals())
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    delivery_fee = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    payment_method = models.ForeignKey(
        "payments.PaymentMethod",
        on_delete=models.SET_NULL,
        related_name="orders",
        blank=True,
        null=True,
    )
    payment_method_name = models.CharField(max_length=100, blank=True)
    change_for = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)

    notes = models.TextField(blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    min_delivery_time_minutes = models.PositiveIntegerField(default=30)
    max_delivery_time_minutes = models.PositiveIntegerField(default=45)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    confirmed_at = models.DateTimeField(blank=True, null=True)
    delivered_at = models.DateTimeField(blank=True, null=True)
    cancelled_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = "orders_order"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["restaurant", "status"]),
            models.Index(fields=["restaurant", "created_at"]),
            models.Index(fields=["user", "created_at"]),
            models.Index(fields=["order_number"]),
        ]

    def __str__(self):
        return f"{self.order_number} - {self.get_status_display()}"

    def calculate_totals(self, save=False):
        """Recalculate subtotal / total from items. Call after creating items."""
        subtotal = Decimal("0.00")
        for item in self.items.all():
            subtotal += item.subtotal

        self.subtotal = subtotal.quantize(Decimal("0.01"))
        self.delivery_fee = (self.delivery_fee or Decimal("0.00")).quantize(Decimal("0.01"))
        self.total_amount = (self.subtotal + self.delivery_fee).quantize(Decimal("0.01"))

        if save:
            self.save(update_fields=["subtotal", "delivery_fee", "total_amount", "updated_at"])

        return {
            "subtotal": self.subtotal,
            "delivery_fee": self.delivery_fee,
            "total_amount": self.total_amount,
        }

    def can_transition_to(self, new_status):
        return new_status in self.STATUS_TRANSITIONS.get(self.status, [])

    def can_be_cancelled_by_customer(self):
        return self.status in self.CUSTOMER_CANCELLABLE_STATUSES

    def update_status(self, new_status, changed_by=None, notes=""):
        """Move the order to ``new_status`` and record it in the history."""
        if new_status not in dict(self.STATUS_CHOICES):
            raise OrderStatusError(f"Unknown status '{new_status}'")
        if not self.can_transition_to(new_status):
            raise OrderStatusError(
                f"Order {self.order_number} cannot go from {self.status} to {new_status}"
            )

        previous = self.status
        self.status = new_status
        now = timezone.now()
        update_fields = ["status", "updated_at"]
        if new_status == self.STATUS_CONFIRMED:
            self.confirmed_at = now
            update_fields.append("confirmed_at")
        elif new_status == self.STATUS_DELIVERED:
            self.delivered_at = now
            update_fields.append("delivered_at")
        elif new_status == self.STATUS_CANCELLED:
            self.cancelled_at = now
            update_fields.append("cancelled_at")
        self.save(update_fields=update_fields)

        OrderHistory.objects.create(
            order=self,
            status_from=previous,
            status_to=new_status,
            changed_by=changed_by,
            notes=notes,
        )
        return self


class OrderItem(models.Model):
    """Individual line item in an order."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        "menu.Product", on_delete=models.SET_NULL, related_name="order_items", blank=True, null=True
    )
    product_name = models.CharField(max_length=200)
    # kg for weight-priced products
    quantity = models.DecimalField(max_digits=10, decimal_places=3, default=Decimal("1"))
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    is_price_by_weight = models.BooleanField(default=False)
    notes = models.CharField(max_length=500, blank=True)

    class Meta:
        db_table = "orders_orderitem"
        ordering = ["id"]

    def __str__(self):
        return f"{self.product_name} x {self.quantity}"

    def save(self, *args, **kwargs):
        # Snapshot the product at ordering time
        if self.product is not None:
            if not self.unit_price:
                self.unit_price = self.product.price
            if not self.product_name:
                self.product_name = self.product.name
        self.subtotal = ((self.unit_price or Decimal("0.00")) * self.quantity).quantize(Decimal("0.01"))
        super().save(*args, **kwargs)


class OrderHistory(models.Model):
    """Track order status changes for audit / timeline."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="history")
    status_from = models.CharField(max_length=50, blank=True)
    status_to = models.CharField(max_length=50)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="order_changes"
    )
    notes = models.TextField(blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "orders_orderhistory"
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["changed_by", "timestamp"]),
        ]

    def __str__(self):
        return f"{self.order.order_number}: {self.status_from} -> {self.status_to} at {self.timestamp}"
