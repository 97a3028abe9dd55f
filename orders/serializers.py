"""DRF serializers for orders, checkout input and staff transitions."""

from decimal import Decimal

from common.choices import FulfillmentStatus, OnlineOrderStatus, PaymentMethod
from customer.services import CustomerHints
from rest_framework import serializers

from .checkout import AppointmentRequest, CheckoutParams
from .models import Order, OrderLine


class OrderLineSerializer(serializers.ModelSerializer):
    line_total = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = OrderLine
        fields = [
            "id",
            "parent",
            "item",
            "item_kind",
            "description",
            "quantity",
            "unit_price",
            "line_total",
            "is_composition_parent",
            "separation_status",
            "delivery_status",
            "fulfillment_status",
            "sort_order",
        ]
        read_only_fields = fields

    def get_line_total(self, obj: OrderLine) -> Decimal:
        return obj.line_total


class OrderSerializer(serializers.ModelSerializer):
    """Order header with its lines in display order."""

    lines = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "status",
            "online_status",
            "channel",
            "customer",
            "partner",
            "subtotal",
            "discount_amount",
            "discount_percent",
            "shipping_cost",
            "tax_amount",
            "total",
            "payment_method",
            "payment_instrument",
            "shipping_address",
            "tracking_code",
            "estimated_delivery_date",
            "has_pending_products",
            "has_pending_services",
            "notes",
            "paid_at",
            "cancelled_at",
            "created_at",
            "lines",
        ]
        read_only_fields = fields

    def get_lines(self, obj: Order) -> list:
        return OrderLineSerializer(obj.lines.order_by("sort_order", "id"), many=True).data


class OrderSummarySerializer(serializers.ModelSerializer):
    """Compact representation used by listings."""

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "online_status",
            "customer",
            "partner",
            "total",
            "has_pending_products",
            "has_pending_services",
            "created_at",
        ]
        read_only_fields = fields


class AppointmentInputSerializer(serializers.Serializer):
    item_id = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField(required=False, allow_null=True)
    partner_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)

    def validate(self, attrs):
        end = attrs.get("end_time")
        if end is not None and end <= attrs["start_time"]:
            raise serializers.ValidationError({"end_time": "Must be after start_time."})
        return attrs


class CheckoutSerializer(serializers.Serializer):
    """Checkout input. The cart itself is taken from the caller's session or account."""

    customer_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    name = serializers.CharField(required=False, allow_blank=True, max_length=200)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=16)
    tax_id = serializers.CharField(required=False, allow_blank=True, max_length=20)
    shipping_address = serializers.DictField(required=False, allow_empty=True)
    shipping_cost = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, min_value=Decimal("0.00"), default=Decimal("0.00")
    )
    partner_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.PIX)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=1000, default="")
    appointments = AppointmentInputSerializer(many=True, required=False)

    def to_params(self, *, tenant, user=None, session_id=None) -> CheckoutParams:
        data = self.validated_data
        user_id = user.id if user is not None and user.is_authenticated else None
        hints = CustomerHints(
            id=data.get("customer_id"),
            tax_id=data.get("tax_id", ""),
            email=data.get("email") or (getattr(user, "email", "") if user_id else ""),
            name=data.get("name") or (user.get_full_name() if user_id else ""),
            phone=data.get("phone", ""),
        )
        return CheckoutParams(
            tenant=tenant,
            customer=hints,
            user_id=user_id,
            session_id=session_id,
            shipping_address=data.get("shipping_address") or None,
            shipping_cost=data["shipping_cost"],
            partner_id=data.get("partner_id"),
            payment_method=data["payment_method"],
            notes=data.get("notes", ""),
            appointments=tuple(AppointmentRequest(**entry) for entry in data.get("appointments", [])),
        )


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class ConfirmPaymentSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.PIX)
    reference = serializers.CharField(required=False, allow_blank=True, max_length=64, default="")


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OnlineOrderStatus.choices)
    tracking_code = serializers.CharField(required=False, allow_blank=True, max_length=64)
    estimated_delivery_date = serializers.DateField(required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class LineFulfillmentSerializer(serializers.Serializer):
    separation_status = serializers.ChoiceField(choices=FulfillmentStatus.choices, required=False)
    delivery_status = serializers.ChoiceField(choices=FulfillmentStatus.choices, required=False)
    fulfillment_status = serializers.ChoiceField(choices=FulfillmentStatus.choices, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide at least one status to update.")
        return attrs
