import django_filters

from modules.orders.models import Order
from modules.orders.services import parse_status


class OrderFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(method="filter_status")
    client = django_filters.NumberFilter(field_name="client_id")
    product = django_filters.NumberFilter(method="filter_product")
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    min_total = django_filters.NumberFilter(
        field_name="total_amount", lookup_expr="gte"
    )
    max_total = django_filters.NumberFilter(
        field_name="total_amount", lookup_expr="lte"
    )

    class Meta:
        model = Order
        fields = [
            "status",
            "client",
            "product",
            "start_date",
            "end_date",
            "min_total",
            "max_total",
        ]

    def filter_status(self, queryset, name, value):
        return queryset.filter(status=parse_status(value))

    def filter_product(self, queryset, name, value):
        return queryset.filter(items__product_id=value).distinct()
