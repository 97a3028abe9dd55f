"""Admin registration for catalog models."""

from django.contrib import admin

from .models import BundleComponent, Item


class BundleComponentInline(admin.TabularInline):
    model = BundleComponent
    fk_name = "bundle"
    extra = 0
    fields = ("component", "quantity", "sort_order")
    ordering = ("sort_order",)
    raw_id_fields = ("component",)


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ("name", "sku", "tenant", "item_kind", "price", "online_price", "is_bundle", "stock_quantity")
    search_fields = ("name", "sku")
    list_filter = ("tenant", "item_kind", "pricing_type", "is_bundle", "is_published", "track_stock")
    readonly_fields = ("is_bundle", "created_at", "updated_at")
    inlines = [BundleComponentInline]

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        item = form.instance
        has_components = item.components.exists()
        if item.is_bundle != has_components:
            item.is_bundle = has_components
            item.save(update_fields=["is_bundle", "updated_at"])
