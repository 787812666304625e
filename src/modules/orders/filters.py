import django_filters
from django.db.models import Q

from modules.orders.models import Order

SORT_FIELDS = {
    "orderDate": "created_at",
    "orderTotal": "total",
    "customerName": "customer_name",
}


class CharInFilter(django_filters.BaseInFilter, django_filters.CharFilter):
    """Comma separated list of values (``?paymentStatus=paid,refunded``)."""


class OrderFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method="filter_search")
    dateFrom = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    dateTo = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    status = CharInFilter(field_name="status", lookup_expr="in")
    paymentStatus = CharInFilter(field_name="payment_status", lookup_expr="in")
    fulfillmentStatus = CharInFilter(field_name="fulfillment_status", lookup_expr="in")
    totalMin = django_filters.NumberFilter(field_name="total", lookup_expr="gte")
    totalMax = django_filters.NumberFilter(field_name="total", lookup_expr="lte")
    sortBy = django_filters.ChoiceFilter(
        choices=[(key, key) for key in SORT_FIELDS], method="filter_noop"
    )
    sortOrder = django_filters.ChoiceFilter(
        choices=[("asc", "asc"), ("desc", "desc")], method="filter_noop"
    )

    class Meta:
        model = Order
        fields = [
            "search",
            "dateFrom",
            "dateTo",
            "status",
            "paymentStatus",
            "fulfillmentStatus",
            "totalMin",
            "totalMax",
            "sortBy",
            "sortOrder",
        ]

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(order_number__icontains=value)
            | Q(customer_name__icontains=value)
            | Q(customer_email__icontains=value)
        )

    def filter_noop(self, queryset, name, value):
        return queryset

    def filter_queryset(self, queryset):
        queryset = super().filter_queryset(queryset)
        field = SORT_FIELDS[self.form.cleaned_data.get("sortBy") or "orderDate"]
        prefix = "" if self.form.cleaned_data.get("sortOrder") == "asc" else "-"
        return queryset.order_by(f"{prefix}{field}", f"{prefix}id")

