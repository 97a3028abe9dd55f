"""Cart URL routes (v1), mounted under ``stores/<tenant_slug>/cart/``."""

from django.urls import path

from .views import (
    CartAddItemView,
    CartClearView,
    CartCountView,
    CartDetailView,
    CartLineDeleteView,
    CartLineUpdateView,
    CartRefreshPricesView,
    MergeGuestCartView,
)

app_name = "cart"

urlpatterns = [
    path("", CartDetailView.as_view(), name="cart-detail"),
    path("count/", CartCountView.as_view(), name="cart-count"),
    path("items/", CartAddItemView.as_view(), name="cart-add-item"),
    path("items/<int:line_id>/", CartLineUpdateView.as_view(), name="cart-update-item"),
    path("items/<int:line_id>/delete/", CartLineDeleteView.as_view(), name="cart-delete-item"),
    path("clear/", CartClearView.as_view(), name="cart-clear"),
    path("refresh-prices/", CartRefreshPricesView.as_view(), name="cart-refresh-prices"),
    path("merge-guest/", MergeGuestCartView.as_view(), name="cart-merge-guest"),
]
