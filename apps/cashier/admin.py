from django.contrib import admin
from .models import CashRegister


@admin.register(CashRegister)
class CashRegisterAdmin(admin.ModelAdmin):
    list_display = ("restaurant", "opened_at", "opening_balance", "closed_at", "closing_balance")
    list_filter = ("restaurant",)
