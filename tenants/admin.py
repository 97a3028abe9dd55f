from django.contrib import admin

from .models import CommerceConfig, Partner, Tenant


class CommerceConfigInline(admin.StackedInline):
    model = CommerceConfig
    extra = 0
    raw_id_fields = ("default_partner",)


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ("id", "slug", "name", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("slug", "name")
    prepopulated_fields = {"slug": ("name",)}
    inlines = [CommerceConfigInline]


@admin.register(Partner)
class PartnerAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "tenant", "email", "status")
    list_filter = ("status", "tenant")
    search_fields = ("name", "email")
