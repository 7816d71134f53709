import uuid

from django.db import models
from django.conf import settings
from django.utils import timezone


NOTIFICATION_TYPE_CHOICES = [
    ("new_order", "New Order"),
    ("order_status", "Order Status Update"),
    ("order_cancelled", "Order Cancelled"),
]


class Notification(models.Model):
    TYPE_CHOICES = NOTIFICATION_TYPE_CHOICES

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    target_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications"
    )
    title = models.CharField(max_length=255)
    message = models.TextField()
    notification_type = models.CharField(
        max_length=20,
        choices=TYPE_CHOICES
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="notifications",
        blank=True,
        null=True
    )
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def mark_as_read(self):
        self.is_read = True
        self.read_at = timezone.now()
        self.save(update_fields=["is_read", "read_at"])

    def to_dict(self):
        return {
            "id": str(self.id),
            "title": self.title,
            "message": self.message,
            "notification_type": self.notification_type,
            "order_id": str(self.order_id) if self.order_id else None,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat(),
        }

    def __str__(self):
        return f"{self.title} - {self.target_user}"

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["target_user", "is_read"]),
        ]
