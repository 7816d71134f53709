from django.db import models
from django.conf import settings
import uuid


class AuditLog(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="audit_logs",
        blank=True,
        null=True
    )
    restaurant = models.ForeignKey(
        "restaurants.Restaurant",
        on_delete=models.CASCADE,
        related_name="audit_logs",
        blank=True,
        null=True
    )
    activity = models.CharField(max_length=100)   # e.g. "Login", "Logout", "Export"
    description = models.TextField(blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "reports_auditlog"
        ordering = ["-timestamp"]

    def __str__(self):
        return f"{self.user} - {self.activity} at {self.timestamp}"
