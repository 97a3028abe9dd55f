"""Admin registration for cart models.

Provides admin interfaces for `Cart` and `CartLine`, with inline lines on
the cart page for easier moderation and support.
"""

from common.errors import CommerceError
from django import forms
from django.contrib import admin, messages
from django.contrib.admin.helpers import ActionForm
from django.contrib.auth import get_user_model

from .models import Cart, CartLine
from .services import clear_cart, merge_on_login


class CartMergeActionForm(ActionForm):
    """Extra input for admin actions: the user a guest cart is merged into."""

    user = forms.ModelChoiceField(
        queryset=get_user_model().objects.all(),
        required=False,
        label="Target user for merge (guest carts only)",
        help_text="Select when using 'Merge guest cart into user'.",
    )


class CartLineInline(admin.TabularInline):
    model = CartLine
    extra = 0
    fields = ("item", "partner", "quantity", "unit_price", "reserved_at", "updated_at")
    readonly_fields = ("reserved_at", "updated_at")
    raw_id_fields = ("item", "partner")


class OwnerTypeFilter(admin.SimpleListFilter):
    title = "owner type"
    parameter_name = "owner_type"

    def lookups(self, request, model_admin):
        return (
            ("user", "User carts"),
            ("guest", "Guest carts"),
        )

    def queryset(self, request, queryset):
        value = self.value()
        if value == "user":
            return queryset.filter(user__isnull=False)
        if value == "guest":
            return queryset.filter(user__isnull=True)
        return queryset


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ("id", "tenant", "user", "session_id", "expires_at", "updated_at")
    list_filter = ("tenant", OwnerTypeFilter)
    search_fields = ("session_id", "user__username", "user__email")
    ordering = ("-updated_at",)
    readonly_fields = ("created_at", "updated_at")
    inlines = [CartLineInline]
    list_select_related = ("tenant", "user")
    action_form = CartMergeActionForm
    actions = ["action_clear_cart", "action_merge_guest_cart_to_user"]

    @admin.action(description="Clear cart (delete cart and lines)")
    def action_clear_cart(self, request, queryset):
        count = 0
        for cart in queryset:
            clear_cart(cart_id=cart.id)
            count += 1
        messages.success(request, f"Cleared {count} cart(s).")

    @admin.action(description="Merge guest cart into selected user")
    def action_merge_guest_cart_to_user(self, request, queryset):
        User = get_user_model()
        user_id = request.POST.get("user")
        if not user_id:
            messages.error(request, "Please select a target user in the action form.")
            return
        try:
            target_user = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            messages.error(request, "Selected user not found.")
            return

        successes = skipped = failures = 0
        for cart in queryset:
            if cart.user_id or not cart.session_id:
                skipped += 1
                continue
            try:
                merge_on_login(tenant_id=cart.tenant_id, session_id=cart.session_id, user_id=target_user.id)
                successes += 1
            except CommerceError:
                failures += 1
        if successes:
            messages.success(
                request, f"Merged {successes} guest cart(s) into {target_user.email or target_user.username}."
            )
        if skipped:
            messages.info(request, f"Skipped {skipped} user-bound cart(s); merge applies to guest carts only.")
        if failures:
            messages.error(request, f"Failed to merge {failures} cart(s).")


@admin.register(CartLine)
class CartLineAdmin(admin.ModelAdmin):
    list_display = ("id", "cart", "item", "quantity", "unit_price", "reserved_at")
    search_fields = ("item__sku", "item__name", "cart__user__email", "cart__session_id")
    ordering = ("id",)
    readonly_fields = ("created_at", "updated_at")
    raw_id_fields = ("cart", "item", "partner")
