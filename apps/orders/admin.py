from django.contrib import admin
from .models import Customer, Order, OrderItem, OrderHistory


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("subtotal",)


class OrderHistoryInline(admin.TabularInline):
    model = OrderHistory
    extra = 0
    readonly_fields = ("status_from", "status_to", "changed_by", "notes", "timestamp")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "restaurant", "customer_name", "status", "total_amount", "created_at")
    list_filter = ("status", "delivery_option")
    search_fields = ("order_number", "customer_name", "customer_phone")
    inlines = [OrderItemInline, OrderHistoryInline]


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "phone", "email", "city")
    search_fields = ("name", "phone", "email")
