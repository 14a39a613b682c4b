import django_filters as filters

from bookings.models import Booking


class OperatorBookingFilter(filters.FilterSet):
    status = filters.CharFilter(field_name="status", lookup_expr="iexact")
    payment_status = filters.CharFilter(field_name="payment_status", lookup_expr="iexact")
    created_at_after = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_at_before = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")
    host = filters.NumberFilter(field_name="host_id")
    guest = filters.NumberFilter(field_name="guest_id")
    reference = filters.CharFilter(field_name="reference", lookup_expr="icontains")

    class Meta:
        model = Booking
        fields = ["status", "payment_status", "host", "guest", "reference"]
