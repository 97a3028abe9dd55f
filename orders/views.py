"""Orders API endpoints.

Shoppers check out and follow their own orders; staff manage every order of
a store. Mutations are idempotent when an `Idempotency-Key` header is sent.
"""

from common.choices import OnlineOrderStatus
from common.errors import CommerceError
from common.http import SESSION_HEADER, session_id_from
from django_filters import rest_framework as filters
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import generics
from rest_framework import serializers as rf_serializers
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from tenants.services import get_tenant

from .checkout import CheckoutOrchestrator
from .filters import OrderFilterSet
from .lifecycle import OrderLifecycleController
from .selectors import get_order, order_lines, orders_for_tenant, orders_for_user, status_summary
from .serializers import (
    CancelSerializer,
    CheckoutSerializer,
    ConfirmPaymentSerializer,
    LineFulfillmentSerializer,
    OrderLineSerializer,
    OrderSerializer,
    OrderSummarySerializer,
    StatusChangeSerializer,
)
from .services import compute_request_hash, with_idempotency

IDEMPOTENCY_PARAMETER = OpenApiParameter(
    name="Idempotency-Key",
    location=OpenApiParameter.HEADER,
    required=False,
    description="Makes the request idempotent within caller+path+method",
    type=str,
)

ERROR_RESPONSE = inline_serializer(
    name="OrderError",
    fields={"kind": rf_serializers.CharField(), "detail": rf_serializers.CharField()},
)


def run_mutation(request, action):
    """Run ``action`` (returning ``(body, code)``), idempotently when the header is present.

    Commerce errors are rendered here rather than by the exception handler so
    that their response is stored with the key.
    """

    def handler():
        try:
            return action()
        except CommerceError as exc:
            return exc.as_dict(), exc.status_code

    idem_key = request.headers.get("Idempotency-Key")
    if idem_key:
        body, code = with_idempotency(
            key=idem_key,
            user=getattr(request, "user", None),
            path=str(request.path),
            method=str(request.method),
            request_hash=compute_request_hash(getattr(request, "data", None)),
            handler=handler,
            session_id=session_id_from(request),
        )
        return Response(body, status=code)
    body, code = handler()
    return Response(body, status=code)


class DefaultPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"


class StoreOrderMixin:
    """Order lookup scoped to the store in the URL; non-staff callers only see their own orders."""

    def store(self):
        if not hasattr(self, "_tenant"):
            self._tenant = get_tenant(slug=self.kwargs["tenant_slug"])
        return self._tenant

    def visible_order(self, order_id: int):
        user = self.request.user
        return get_order(order_id=order_id, tenant_id=self.store().id, user_id=None if user.is_staff else user.id)


class CheckoutView(APIView):
    """Turn the caller's cart into an order."""

    permission_classes = [AllowAny]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Checkout",
        description=(
            "Creates an order from the cart of the authenticated user or of the guest session named by "
            "`X-Session-Id`. Fails when the cart is empty or has stale prices or stock. "
            "`skipped` lists follow-up steps that failed without undoing the order."
        ),
        parameters=[
            IDEMPOTENCY_PARAMETER,
            OpenApiParameter(
                name=SESSION_HEADER,
                location=OpenApiParameter.HEADER,
                required=False,
                description="Guest session identifier",
                type=str,
            ),
        ],
        request=CheckoutSerializer,
        responses={
            201: inline_serializer(
                name="CheckoutResult",
                fields={
                    "order": OrderSerializer(),
                    "invoice_id": rf_serializers.IntegerField(allow_null=True),
                    "receivable_id": rf_serializers.IntegerField(allow_null=True),
                    "commission_id": rf_serializers.IntegerField(allow_null=True),
                    "payment_instrument": rf_serializers.DictField(allow_null=True),
                    "appointments": rf_serializers.ListField(child=rf_serializers.CharField()),
                    "skipped": rf_serializers.ListField(child=rf_serializers.CharField()),
                },
            ),
            400: ERROR_RESPONSE,
            404: ERROR_RESPONSE,
            503: ERROR_RESPONSE,
        },
        examples=[
            OpenApiExample(
                "Checkout request",
                value={
                    "name": "Ana Souza",
                    "email": "ana@example.com",
                    "tax_id": "123.456.789-09",
                    "shipping_address": {"street": "Rua A, 10", "city": "Sao Paulo", "zip": "01000-000"},
                    "shipping_cost": "15.00",
                    "appointments": [{"item_id": 7, "date": "2025-02-10", "start_time": "09:00"}],
                },
                request_only=True,
            ),
            OpenApiExample(
                "Stale cart",
                value={
                    "kind": "validation",
                    "detail": "Review your cart before checking out: 1 item(s) changed price.",
                    "price_changed": 1,
                    "stock_insufficient": 0,
                },
                response_only=True,
                status_codes=["400"],
            ),
        ],
    )
    def post(self, request, tenant_slug: str):
        tenant = get_tenant(slug=tenant_slug)
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = serializer.to_params(tenant=tenant, user=request.user, session_id=session_id_from(request))

        def action():
            result = CheckoutOrchestrator().create_order(params)
            body = {
                "order": OrderSerializer(result.order).data,
                "invoice_id": result.invoice_id,
                "receivable_id": result.receivable_id,
                "commission_id": result.commission_id,
                "payment_instrument": result.payment_instrument.as_dict() if result.payment_instrument else None,
                "appointments": result.appointment_codes,
                "skipped": result.skipped,
            }
            return body, status.HTTP_201_CREATED

        return run_mutation(request, action)


class OrderListView(StoreOrderMixin, generics.ListAPIView):
    """List the caller's orders in a store.

    Filters: `status` (online status), `number`, `start`, `end`.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = OrderSummarySerializer
    pagination_class = DefaultPagination
    filter_backends = [filters.DjangoFilterBackend]
    filterset_class = OrderFilterSet
    throttle_scope = "orders"

    def get_queryset(self):
        return orders_for_user(
            tenant_id=self.store().id,
            user_id=self.request.user.id,
            online_status=self.request.query_params.get("status"),
        )

    @extend_schema(
        tags=["Orders"],
        summary="List my orders",
        parameters=[
            OpenApiParameter(name="status", description="Online status filter", required=False, type=str),
            OpenApiParameter(name="number", description="Order number exact match", required=False, type=str),
            OpenApiParameter(name="start", description="Created at >= start (ISO)", required=False, type=str),
            OpenApiParameter(name="end", description="Created at <= end (ISO)", required=False, type=str),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderDetailView(StoreOrderMixin, APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"

    @extend_schema(
        tags=["Orders"],
        summary="Get order detail",
        responses={200: OrderSerializer, 404: ERROR_RESPONSE},
        examples=[
            OpenApiExample(
                "Order",
                value={
                    "id": 12,
                    "number": "ORD-000012",
                    "status": "open",
                    "online_status": "pending_payment",
                    "subtotal": "100.00",
                    "discount_amount": "10.00",
                    "shipping_cost": "15.00",
                    "total": "105.00",
                    "payment_instrument": {"human_code": None, "scannable_code": None, "raw_key": "pix@store.com"},
                    "lines": [],
                },
                response_only=True,
            )
        ],
    )
    def get(self, request, tenant_slug: str, order_id: int):
        order = self.visible_order(order_id)
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)


class OrderLinesView(StoreOrderMixin, APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"

    @extend_schema(
        tags=["Orders"],
        summary="List order lines",
        description="Lines in display order; bundle components reference their bundle line through `parent`.",
        responses={200: OrderLineSerializer(many=True), 404: ERROR_RESPONSE},
    )
    def get(self, request, tenant_slug: str, order_id: int):
        order = self.visible_order(order_id)
        return Response(OrderLineSerializer(order_lines(order=order), many=True).data, status=status.HTTP_200_OK)


class OrderCancelView(StoreOrderMixin, APIView):
    """Cancel an order that has not shipped yet."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Cancel order",
        description="Cancels the order and returns its stock. Only orders that have not shipped can be cancelled.",
        parameters=[IDEMPOTENCY_PARAMETER],
        request=CancelSerializer,
        responses={200: OrderSerializer, 404: ERROR_RESPONSE, 409: ERROR_RESPONSE},
        examples=[
            OpenApiExample(
                "Not cancellable",
                value={
                    "kind": "transition_invalid",
                    "detail": "This order can no longer be cancelled.",
                    "current": "shipped",
                    "allowed": ["delivered"],
                },
                response_only=True,
                status_codes=["409"],
            )
        ],
    )
    def post(self, request, tenant_slug: str, order_id: int):
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        def action():
            order = self.visible_order(order_id)
            cancelled = OrderLifecycleController().cancel(
                order.id,
                tenant_id=order.tenant_id,
                reason=serializer.validated_data["reason"],
                actor_id=request.user.id,
            )
            return OrderSerializer(cancelled).data, status.HTTP_200_OK

        return run_mutation(request, action)


class OrderPaymentInstrumentView(StoreOrderMixin, APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Regenerate payment instrument",
        description="Issues a fresh payment instrument for an order that is still pending payment.",
        request=None,
        responses={
            200: inline_serializer(
                name="PaymentInstrument",
                fields={
                    "human_code": rf_serializers.CharField(allow_null=True),
                    "scannable_code": rf_serializers.CharField(allow_null=True),
                    "raw_key": rf_serializers.CharField(allow_null=True),
                },
            ),
            409: ERROR_RESPONSE,
            503: ERROR_RESPONSE,
        },
    )
    def post(self, request, tenant_slug: str, order_id: int):
        order = self.visible_order(order_id)
        instrument = OrderLifecycleController().regenerate_payment_instrument(order.id, tenant_id=order.tenant_id)
        return Response(instrument.as_dict(), status=status.HTTP_200_OK)


class ManageOrderListView(StoreOrderMixin, generics.ListAPIView):
    """Staff listing of every order in a store.

    Filters: `online_status`, `partner`, `number`, `start`, `end`.
    """

    permission_classes = [IsAdminUser]
    serializer_class = OrderSummarySerializer
    pagination_class = DefaultPagination
    filter_backends = [filters.DjangoFilterBackend]
    filterset_class = OrderFilterSet
    throttle_scope = "orders"

    def get_queryset(self):
        partner = self.request.query_params.get("partner")
        return orders_for_tenant(
            tenant_id=self.store().id,
            online_status=self.request.query_params.get("online_status"),
            partner_id=int(partner) if partner and partner.isdigit() else None,
        )

    @extend_schema(
        tags=["Orders Admin"],
        summary="List store orders",
        parameters=[
            OpenApiParameter(name="online_status", description="Online status filter", required=False, type=str),
            OpenApiParameter(name="partner", description="Fulfillment partner id", required=False, type=int),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderStatusSummaryView(StoreOrderMixin, APIView):
    permission_classes = [IsAdminUser]
    throttle_scope = "orders"

    @extend_schema(
        tags=["Orders Admin"],
        summary="Order count per status",
        responses={
            200: inline_serializer(
                name="OrderStatusSummary",
                fields={name: rf_serializers.IntegerField() for name in OnlineOrderStatus.values},
            )
        },
        examples=[
            OpenApiExample(
                "Summary",
                value={
                    "pending_payment": 3,
                    "payment_confirmed": 1,
                    "processing": 0,
                    "shipped": 2,
                    "delivered": 0,
                    "completed": 9,
                    "cancelled": 1,
                    "return_requested": 0,
                },
                response_only=True,
            )
        ],
    )
    def get(self, request, tenant_slug: str):
        return Response(status_summary(tenant_id=self.store().id), status=status.HTTP_200_OK)


class ConfirmPaymentView(StoreOrderMixin, APIView):
    permission_classes = [IsAdminUser]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders Admin"],
        summary="Confirm payment",
        description="Marks the order, its invoice and its receivables as paid.",
        parameters=[IDEMPOTENCY_PARAMETER],
        request=ConfirmPaymentSerializer,
        responses={200: OrderSerializer, 404: ERROR_RESPONSE, 409: ERROR_RESPONSE},
    )
    def post(self, request, tenant_slug: str, order_id: int):
        serializer = ConfirmPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        def action():
            order = OrderLifecycleController().confirm_payment(
                order_id,
                tenant_id=self.store().id,
                method=serializer.validated_data["method"],
                reference=serializer.validated_data["reference"],
                actor_id=request.user.id,
            )
            return OrderSerializer(order).data, status.HTTP_200_OK

        return run_mutation(request, action)


class OrderStatusView(StoreOrderMixin, APIView):
    permission_classes = [IsAdminUser]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders Admin"],
        summary="Change order status",
        description=(
            "Moves the order along its lifecycle. "
            "`tracking_code` and `estimated_delivery_date` apply when shipping."
        ),
        parameters=[IDEMPOTENCY_PARAMETER],
        request=StatusChangeSerializer,
        responses={200: OrderSerializer, 400: ERROR_RESPONSE, 404: ERROR_RESPONSE, 409: ERROR_RESPONSE},
        examples=[
            OpenApiExample(
                "Ship",
                value={"status": "shipped", "tracking_code": "BR123456789", "estimated_delivery_date": "2025-02-14"},
                request_only=True,
            )
        ],
    )
    def post(self, request, tenant_slug: str, order_id: int):
        serializer = StatusChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        def action():
            order = OrderLifecycleController().advance(
                order_id,
                data["status"],
                tenant_id=self.store().id,
                tracking_code=data.get("tracking_code"),
                estimated_delivery_date=data.get("estimated_delivery_date"),
                reason=data["reason"],
                actor_id=request.user.id,
            )
            return OrderSerializer(order).data, status.HTTP_200_OK

        return run_mutation(request, action)


class LineFulfillmentView(StoreOrderMixin, APIView):
    permission_classes = [IsAdminUser]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders Admin"],
        summary="Update line fulfillment",
        description="Sets separation, delivery or fulfillment status on a line; bundle lines follow their components.",
        request=LineFulfillmentSerializer,
        responses={200: OrderLineSerializer, 400: ERROR_RESPONSE, 404: ERROR_RESPONSE},
    )
    def patch(self, request, tenant_slug: str, line_id: int):
        serializer = LineFulfillmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        line = OrderLifecycleController().update_line_fulfillment(
            line_id, tenant_id=self.store().id, actor_id=request.user.id, **serializer.validated_data
        )
        return Response(OrderLineSerializer(line).data, status=status.HTTP_200_OK)
