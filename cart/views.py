"""DRF views for cart operations.

Every route is scoped to a store. The cart owner is the authenticated user
and/or the guest session named by the ``X-Session-Id`` header.
"""

from common.http import SESSION_HEADER, owner_from
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import serializers as rf_serializers
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from tenants.services import get_tenant

from .selectors import cart_item_count, find_cart, get_enriched_cart
from .serializers import AddItemSerializer, CartReadSerializer, UpdateQuantitySerializer
from .services import CartError, clear_cart, merge_on_login, refresh_cart_prices, remove_line, update_quantity

SESSION_PARAMETER = OpenApiParameter(
    name=SESSION_HEADER,
    location=OpenApiParameter.HEADER,
    required=False,
    description="Guest session identifier (required when not authenticated)",
    type=str,
)

ERROR_RESPONSE = inline_serializer(
    name="CartError",
    fields={"kind": rf_serializers.CharField(), "detail": rf_serializers.CharField()},
)


class CartOwnerMixin:
    """Resolves the store and the cart owner of a request."""

    def resolve(self, request, tenant_slug: str):
        tenant = get_tenant(slug=tenant_slug)
        owner = owner_from(request)
        if not owner["user_id"] and not owner["session_id"]:
            raise CartError(f"Authenticate or provide the {SESSION_HEADER} header.")
        return tenant, owner


class CartDetailView(CartOwnerMixin, APIView):
    """Return the owner's cart with live price and stock checks."""

    permission_classes = [AllowAny]
    throttle_scope = "cart"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Get cart",
        description=(
            "Returns the cart with every line compared against the catalog. "
            "`price_changed` and `stock_insufficient` flag lines that must be fixed before checkout."
        ),
        parameters=[SESSION_PARAMETER],
        responses={200: CartReadSerializer, 400: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        examples=[
            OpenApiExample(
                "Cart",
                value={
                    "id": 1,
                    "lines": [
                        {
                            "id": 10,
                            "item_id": 100,
                            "partner_id": None,
                            "name": "Espresso beans 1kg",
                            "item_kind": "product",
                            "quantity": 2,
                            "unit_price": "49.90",
                            "current_price": "54.90",
                            "line_total": "99.80",
                            "requires_scheduling": False,
                            "price_changed": True,
                            "stock_insufficient": False,
                            "reserved_at": "2025-01-01T12:00:00Z",
                        }
                    ],
                    "subtotal": "99.80",
                    "item_count": 2,
                    "has_warnings": True,
                    "expires_at": "2025-01-04T12:00:00Z",
                },
            )
        ],
    )
    def get(self, request, tenant_slug: str):
        tenant, owner = self.resolve(request, tenant_slug)
        view = get_enriched_cart(tenant_id=tenant.id, **owner)
        return Response(CartReadSerializer.from_view(view).data, status=status.HTTP_200_OK)


class CartCountView(CartOwnerMixin, APIView):
    permission_classes = [AllowAny]
    throttle_scope = "cart"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Cart item count",
        description="Total units in the cart, for badge display.",
        parameters=[SESSION_PARAMETER],
        responses={200: inline_serializer(name="CartCount", fields={"count": rf_serializers.IntegerField()})},
        examples=[OpenApiExample("Count", value={"count": 3})],
    )
    def get(self, request, tenant_slug: str):
        tenant, owner = self.resolve(request, tenant_slug)
        return Response({"count": cart_item_count(tenant_id=tenant.id, **owner)}, status=status.HTTP_200_OK)


class CartAddItemView(CartOwnerMixin, APIView):
    """Add an item to the cart."""

    permission_classes = [AllowAny]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Add item to cart",
        description=(
            "Adds an item, or increments the existing line. The current price is captured on the line. "
            "Stock-tracked items fail with the remaining available quantity."
        ),
        request=AddItemSerializer,
        parameters=[SESSION_PARAMETER],
        responses={
            201: inline_serializer(
                name="CartLineCreatedResponse",
                fields={"id": rf_serializers.IntegerField(), "quantity": rf_serializers.IntegerField()},
            ),
            400: ERROR_RESPONSE,
            404: ERROR_RESPONSE,
        },
        examples=[
            OpenApiExample("Add", value={"item_id": 100, "quantity": 2}, request_only=True),
            OpenApiExample("Added", value={"id": 10, "quantity": 2}, response_only=True),
            OpenApiExample(
                "Insufficient stock",
                value={"kind": "validation", "detail": "Insufficient stock (available: 2).", "available": 2},
                response_only=True,
                status_codes=["400"],
            ),
        ],
    )
    def post(self, request, tenant_slug: str):
        tenant, owner = self.resolve(request, tenant_slug)
        serializer = AddItemSerializer(data=request.data, context={"tenant": tenant, "owner": owner})
        serializer.is_valid(raise_exception=True)
        line = serializer.save()
        return Response({"id": line.id, "quantity": line.quantity}, status=status.HTTP_201_CREATED)


class CartLineUpdateView(CartOwnerMixin, APIView):
    """Update a cart line's quantity."""

    permission_classes = [AllowAny]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Update cart line quantity",
        description="Sets the quantity of a line. A quantity of 0 removes the line. The captured price is kept.",
        request=UpdateQuantitySerializer,
        parameters=[SESSION_PARAMETER],
        responses={
            200: inline_serializer(
                name="CartLineUpdatedResponse",
                fields={"id": rf_serializers.IntegerField(), "quantity": rf_serializers.IntegerField()},
            ),
            204: None,
            400: ERROR_RESPONSE,
            404: ERROR_RESPONSE,
        },
        examples=[OpenApiExample("Updated", value={"id": 10, "quantity": 3}, response_only=True)],
    )
    def patch(self, request, tenant_slug: str, line_id: int):
        tenant, owner = self.resolve(request, tenant_slug)
        serializer = UpdateQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        line = update_quantity(
            tenant_id=tenant.id, line_id=line_id, quantity=serializer.validated_data["quantity"], **owner
        )
        if line is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response({"id": line.id, "quantity": line.quantity}, status=status.HTTP_200_OK)


class CartLineDeleteView(CartOwnerMixin, APIView):
    """Remove a line from the cart."""

    permission_classes = [AllowAny]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Delete cart line",
        parameters=[SESSION_PARAMETER],
        responses={204: None, 404: ERROR_RESPONSE},
    )
    def delete(self, request, tenant_slug: str, line_id: int):
        tenant, owner = self.resolve(request, tenant_slug)
        remove_line(tenant_id=tenant.id, line_id=line_id, **owner)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CartClearView(CartOwnerMixin, APIView):
    """Delete the cart and all of its lines."""

    permission_classes = [AllowAny]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Clear cart",
        parameters=[SESSION_PARAMETER],
        responses={200: inline_serializer(name="CartStatusCleared", fields={"status": rf_serializers.CharField()})},
        examples=[OpenApiExample("Cleared", value={"status": "cleared"})],
    )
    def post(self, request, tenant_slug: str):
        tenant, owner = self.resolve(request, tenant_slug)
        cart = find_cart(tenant_id=tenant.id, **owner)
        if cart is not None:
            clear_cart(cart_id=cart.id)
        return Response({"status": "cleared"}, status=status.HTTP_200_OK)


class CartRefreshPricesView(CartOwnerMixin, APIView):
    permission_classes = [AllowAny]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Accept current prices",
        description="Re-captures the current catalog price on every line whose price changed.",
        parameters=[SESSION_PARAMETER],
        responses={
            200: inline_serializer(name="CartPricesRefreshed", fields={"updated": rf_serializers.IntegerField()})
        },
        examples=[OpenApiExample("Refreshed", value={"updated": 1})],
    )
    def post(self, request, tenant_slug: str):
        tenant, owner = self.resolve(request, tenant_slug)
        updated = refresh_cart_prices(tenant_id=tenant.id, **owner)
        return Response({"updated": updated}, status=status.HTTP_200_OK)


class MergeGuestCartView(APIView):
    """Authenticated endpoint to merge a guest cart into the user's cart."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Merge guest cart into user cart",
        description=(
            "Provide the X-Session-Id header of the guest session. Matching items have their quantities "
            "summed; the guest cart is deleted."
        ),
        parameters=[
            OpenApiParameter(
                name=SESSION_HEADER,
                location=OpenApiParameter.HEADER,
                required=True,
                description="Guest session identifier",
                type=str,
            )
        ],
        responses={
            200: inline_serializer(
                name="CartStatusMerged",
                fields={"status": rf_serializers.CharField(), "cart_id": rf_serializers.IntegerField()},
            ),
            400: ERROR_RESPONSE,
        },
        examples=[OpenApiExample("Merged", value={"status": "merged", "cart_id": 7})],
    )
    def post(self, request, tenant_slug: str):
        tenant = get_tenant(slug=tenant_slug)
        session_id = owner_from(request)["session_id"]
        if not session_id:
            raise CartError(f"Missing {SESSION_HEADER}.")
        cart = merge_on_login(tenant_id=tenant.id, session_id=session_id, user_id=request.user.id)
        return Response({"status": "merged", "cart_id": cart.id}, status=status.HTTP_200_OK)
