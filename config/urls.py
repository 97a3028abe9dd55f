"""Root URL configuration.

Storefront routes are scoped to a tenant through the ``stores/<tenant_slug>/``
prefix; authentication, schema and health endpoints are global.
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from .auth import ThrottledTokenObtainPairView, ThrottledTokenRefreshView
from .health import health

admin.site.site_header = "Storefront Admin"
admin.site.index_title = "Admin"

store_patterns = [
    path("cart/", include("cart.urls")),
    path("orders/", include("orders.urls")),
]

urlpatterns = [
    path("admin/", admin.site.urls),
    # API schema and Swagger UI
    path("api/schema/", SpectacularAPIView.as_view(), name="api-schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="api-schema"), name="api-docs"),
    # Healthcheck
    path("health/", health, name="health"),
    # Versioned v1 routes only
    path("api/v1/auth/token/", ThrottledTokenObtainPairView.as_view(), name="token-obtain"),
    path("api/v1/auth/token/refresh/", ThrottledTokenRefreshView.as_view(), name="token-refresh"),
    path("api/v1/stores/<slug:tenant_slug>/", include(store_patterns)),
]
