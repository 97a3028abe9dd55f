from django.contrib import admin

from .models import Commission, Invoice, InvoiceLine, Payment, Receivable


class InvoiceLineInline(admin.TabularInline):
    model = InvoiceLine
    extra = 0
    fields = ("item", "description", "quantity", "unit_price", "total")
    readonly_fields = fields


class ReceivableInline(admin.TabularInline):
    model = Receivable
    extra = 0
    fields = ("amount", "amount_received", "status", "payment_method", "due_date", "paid_at")
    readonly_fields = fields
    show_change_link = True


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("number", "tenant", "customer", "status", "total", "issued_at", "paid_at")
    list_filter = ("status", "tenant")
    search_fields = ("number", "customer__full_name", "customer__email")
    raw_id_fields = ("customer",)
    inlines = [InvoiceLineInline, ReceivableInline]


@admin.register(Receivable)
class ReceivableAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "customer", "amount", "amount_received", "status", "due_date")
    list_filter = ("status", "payment_method", "tenant")
    search_fields = ("order__number", "customer__full_name")
    raw_id_fields = ("customer", "invoice", "order")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "amount", "method", "status", "paid_at")
    list_filter = ("method", "status")
    search_fields = ("order__number", "reference")
    raw_id_fields = ("order",)


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "partner", "base_amount", "amount", "status", "created_at")
    list_filter = ("status", "partner")
    search_fields = ("order__number", "partner__name")
    raw_id_fields = ("order",)
