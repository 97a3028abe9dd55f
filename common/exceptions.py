"""DRF exception handler rendering the commerce error taxonomy."""

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from .errors import CommerceError, DependencyUnavailable

logger = logging.getLogger("storefront.api")


def commerce_exception_handler(exc, context):
    """Render ``CommerceError`` as ``{"kind", "detail", ...}``; defer everything else to DRF."""

    if isinstance(exc, CommerceError):
        if isinstance(exc, DependencyUnavailable):
            view = context.get("view")
            logger.warning(
                "api.dependency_unavailable",
                extra={
                    "event": "api.dependency_unavailable",
                    "view": type(view).__name__ if view else None,
                    "detail": exc.message,
                },
            )
        return Response(exc.as_dict(), status=exc.status_code)
    return exception_handler(exc, context)
