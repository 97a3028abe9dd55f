"""URL routes for the orders app (v1), mounted under a store prefix."""

from django.urls import path

from .views import (
    CheckoutView,
    ConfirmPaymentView,
    LineFulfillmentView,
    ManageOrderListView,
    OrderCancelView,
    OrderDetailView,
    OrderLinesView,
    OrderListView,
    OrderPaymentInstrumentView,
    OrderStatusSummaryView,
    OrderStatusView,
)

app_name = "orders"

urlpatterns = [
    path("", OrderListView.as_view(), name="order-list"),
    path("checkout/", CheckoutView.as_view(), name="checkout"),
    path("manage/", ManageOrderListView.as_view(), name="order-manage-list"),
    path("manage/summary/", OrderStatusSummaryView.as_view(), name="order-status-summary"),
    path("lines/<int:line_id>/fulfillment/", LineFulfillmentView.as_view(), name="order-line-fulfillment"),
    path("<int:order_id>/", OrderDetailView.as_view(), name="order-detail"),
    path("<int:order_id>/lines/", OrderLinesView.as_view(), name="order-lines"),
    path("<int:order_id>/cancel/", OrderCancelView.as_view(), name="order-cancel"),
    path("<int:order_id>/payment-instrument/", OrderPaymentInstrumentView.as_view(), name="order-payment-instrument"),
    path("<int:order_id>/confirm-payment/", ConfirmPaymentView.as_view(), name="order-confirm-payment"),
    path("<int:order_id>/status/", OrderStatusView.as_view(), name="order-status"),
]
