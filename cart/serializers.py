"""Cart serializers for read and write operations."""

from rest_framework import serializers

from .selectors import CartView
from .services import add_item


class CartLineReadSerializer(serializers.Serializer):
    """Read serializer for one enriched cart line."""

    id = serializers.IntegerField(source="line.id")
    item_id = serializers.IntegerField(source="line.item_id")
    partner_id = serializers.IntegerField(source="line.partner_id", allow_null=True)
    name = serializers.CharField()
    item_kind = serializers.CharField()
    quantity = serializers.IntegerField(source="line.quantity")
    unit_price = serializers.DecimalField(source="line.unit_price", max_digits=12, decimal_places=2)
    current_price = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)
    line_total = serializers.DecimalField(source="line.line_total", max_digits=12, decimal_places=2)
    requires_scheduling = serializers.BooleanField()
    price_changed = serializers.BooleanField()
    stock_insufficient = serializers.BooleanField()
    reserved_at = serializers.DateTimeField(source="line.reserved_at")


class CartReadSerializer(serializers.Serializer):
    """Read serializer for the cart summary and lines."""

    id = serializers.IntegerField(allow_null=True)
    lines = CartLineReadSerializer(many=True)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    item_count = serializers.IntegerField()
    has_warnings = serializers.BooleanField()
    expires_at = serializers.DateTimeField(allow_null=True)

    @classmethod
    def from_view(cls, view: CartView | None):
        if view is None:
            return cls(
                {"id": None, "lines": [], "subtotal": 0, "item_count": 0, "has_warnings": False, "expires_at": None}
            )
        return cls(
            {
                "id": view.cart.id,
                "lines": view.lines,
                "subtotal": view.subtotal,
                "item_count": view.item_count,
                "has_warnings": view.has_warnings,
                "expires_at": view.cart.expires_at,
            }
        )


class AddItemSerializer(serializers.Serializer):
    """Write serializer for adding an item to the cart.

    Expects ``tenant`` and ``owner`` in the serializer context.
    """

    item_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    partner_id = serializers.IntegerField(required=False, allow_null=True)

    def create(self, validated_data):  # type: ignore[override]
        return add_item(tenant_id=self.context["tenant"].id, **self.context["owner"], **validated_data)


class UpdateQuantitySerializer(serializers.Serializer):
    """Write serializer for a line's quantity; 0 removes the line."""

    quantity = serializers.IntegerField(min_value=0)
