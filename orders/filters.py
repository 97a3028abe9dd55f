from django_filters import rest_framework as filters

from .models import Order


class OrderFilterSet(filters.FilterSet):
    """Extra filters shared by order listings.

    - `number`: exact order number
    - `start` / `end`: ISO datetimes bounding `created_at`
    """

    number = filters.CharFilter(field_name="number")
    start = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    end = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = Order
        fields = ["number", "start", "end"]
