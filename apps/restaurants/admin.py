from django.contrib import admin
from .models import Restaurant, BusinessHour, DeliveryZone


class BusinessHourInline(admin.TabularInline):
    model = BusinessHour
    extra = 0


class DeliveryZoneInline(admin.TabularInline):
    model = DeliveryZone
    extra = 0


@admin.register(Restaurant)
class RestaurantAdmin(admin.ModelAdmin):
    list_display = ("name", "owner", "city", "is_active", "delivery_enabled", "created_at")
    list_filter = ("is_active", "delivery_enabled", "city")
    search_fields = ("name", "owner__email")
    inlines = [BusinessHourInline, DeliveryZoneInline]
