from django.contrib import admin

from .models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("id", "full_name", "email", "phone", "tax_id", "tenant", "user")
    list_filter = ("tenant",)
    search_fields = ("full_name", "email", "tax_id", "phone")
    raw_id_fields = ("user",)
    readonly_fields = ("created_at", "updated_at")
