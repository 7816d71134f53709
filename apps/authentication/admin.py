from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("email", "username", "role", "status", "is_staff", "date_joined")
    list_filter = ("role", "status", "is_staff")
    search_fields = ("email", "username", "first_name", "last_name")
    ordering = ("-date_joined",)
    readonly_fields = ("date_joined", "last_login", "login_count")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Storefront", {"fields": ("role", "status", "phone_number", "cpf_cnpj", "avatar",
                                   "login_count", "failed_login_attempts", "account_locked_until")}),
    )
