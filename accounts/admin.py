from django.contrib import admin
from django.contrib.auth import get_user_model

from .models import Company

CustomUser = get_user_model()


@admin.register(CustomUser)
class CustomUserAdmin(admin.ModelAdmin):
    list_display = ("username", "email", "role", "company", "is_active", "last_login")
    list_filter = ("role", "is_active", "company")
    search_fields = ("username", "email", "first_name", "last_name")
    ordering = ("-last_login",)


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("name", "notification_email", "created_at")
    search_fields = ("name",)
