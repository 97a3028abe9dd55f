"""Admin registration for orders.

Lines are read-only; status changes go through admin actions that call the
lifecycle controller so stock, invoices and receivables stay consistent.
"""

from common.errors import CommerceError
from django.contrib import admin, messages

from .lifecycle import OrderLifecycleController
from .models import IdempotencyKey, Order, OrderLine


class OrderLineInline(admin.TabularInline):
    model = OrderLine
    extra = 0
    can_delete = False
    fields = (
        "sort_order",
        "parent",
        "item",
        "description",
        "quantity",
        "unit_price",
        "separation_status",
        "delivery_status",
        "fulfillment_status",
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "number", "tenant", "customer", "online_status", "total", "partner", "created_at")
    list_filter = ("tenant", "online_status", "status", "created_at")
    search_fields = ("number", "customer__full_name", "customer__email", "tracking_code")
    date_hierarchy = "created_at"
    list_select_related = ("tenant", "customer", "partner")
    raw_id_fields = ("customer", "user", "partner", "invoice")
    readonly_fields = (
        "number",
        "subtotal",
        "discount_amount",
        "shipping_cost",
        "total",
        "status",
        "online_status",
        "paid_at",
        "cancelled_at",
        "created_at",
        "updated_at",
    )
    inlines = [OrderLineInline]
    actions = ["action_confirm_payment", "action_cancel"]

    def _apply(self, request, queryset, operation, verb: str):
        done = 0
        for order in queryset:
            try:
                operation(order)
                done += 1
            except CommerceError as exc:
                messages.warning(request, f"{order.number}: {exc.message}")
        if done:
            messages.success(request, f"{verb} {done} order(s).")

    @admin.action(description="Confirm payment")
    def action_confirm_payment(self, request, queryset):
        controller = OrderLifecycleController()
        self._apply(
            request,
            queryset,
            lambda order: controller.confirm_payment(order.id, actor_id=request.user.id, reference="admin"),
            "Confirmed payment for",
        )

    @admin.action(description="Cancel orders (returns stock)")
    def action_cancel(self, request, queryset):
        controller = OrderLifecycleController()
        self._apply(
            request,
            queryset,
            lambda order: controller.cancel(order.id, reason="Cancelled from admin", actor_id=request.user.id),
            "Cancelled",
        )


@admin.register(IdempotencyKey)
class IdempotencyKeyAdmin(admin.ModelAdmin):
    list_display = ("id", "key", "scope", "path", "method", "response_code", "created_at")
    list_filter = ("method", "response_code", "created_at")
    search_fields = ("key", "scope", "path")
    date_hierarchy = "created_at"
