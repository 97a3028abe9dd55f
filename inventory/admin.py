"""Admin registrations for inventory app."""

from django.contrib import admin

from .models import StockLedgerEntry


@admin.register(StockLedgerEntry)
class StockLedgerEntryAdmin(admin.ModelAdmin):
    list_display = ("id", "item", "movement_type", "quantity", "new_quantity", "order", "reason", "created_at")
    list_filter = ("movement_type", "tenant")
    search_fields = ("item__sku", "item__name", "reason")
    readonly_fields = [f.name for f in StockLedgerEntry._meta.fields]

    # Append-only: corrections are new entries, never edits.
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
