from django.contrib import admin
from .models import PaymentMethod, PaymentSettings, Payment, PaymentWebhook


@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    list_display = ("name", "restaurant", "method_type", "is_active")
    list_filter = ("method_type", "is_active")


@admin.register(PaymentSettings)
class PaymentSettingsAdmin(admin.ModelAdmin):
    list_display = ("restaurant", "public_key", "token_verified", "updated_at")
    exclude = ("access_token", "webhook_secret")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("order", "amount", "status", "provider_status", "transaction_id", "created_at")
    list_filter = ("status",)
    search_fields = ("transaction_id", "preference_id", "order__order_number")


@admin.register(PaymentWebhook)
class PaymentWebhookAdmin(admin.ModelAdmin):
    list_display = ("restaurant", "event_type", "processed", "created_at")
    list_filter = ("processed",)
