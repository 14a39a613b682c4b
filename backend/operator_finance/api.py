import csv
import io

from django.contrib.auth import get_user_model
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework.response import Response

from operator_core.api_base import OperatorAPIView
from operator_core.audit import audit
from operator_core.models import OperatorAuditEvent
from operator_core.permissions import FINANCE_ROLES, HasOperatorRole, IsOperator
from operator_finance.commission import CommissionAggregator
from operator_finance.renderers import CSVRenderer
from operator_finance.serializers import (
    ReconcileRequestSerializer,
    ReportRangeSerializer,
    _format_money,
)
from payments.ledger import compute_host_balances
from payments.tasks import reconcile_booking_fees

EXPORT_HEADERS = [
    "Reference",
    "Host",
    "Space",
    "Booking Amount",
    "Platform Earnings",
    "Host Payout",
    "Status",
    "Date",
]


def _csv_download(filename: str, headers: list[str], rows: list[dict]) -> HttpResponse:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=headers)
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    response = HttpResponse(buffer.getvalue(), content_type="text/csv")
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


def _report_range(request) -> tuple:
    serializer = ReportRangeSerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data.get("start"), serializer.validated_data.get("end")


def export_rows(report) -> list[dict]:
    rows = []
    for row in report.rows:
        rows.append(
            {
                "Reference": row.reference,
                "Host": row.host_name,
                "Space": row.space_name,
                "Booking Amount": _format_money(row.base_amount),
                "Platform Earnings": _format_money(row.platform_earnings),
                "Host Payout": (
                    _format_money(row.host_payout)
                    if row.host_payout is not None
                    else row.host_payout_status.capitalize()
                ),
                "Status": row.status_label,
                "Date": timezone.localtime(row.created_at).date().isoformat(),
            }
        )
    summary = report.summary
    rows.append(
        {
            "Reference": "SUMMARY",
            "Host": "",
            "Space": "",
            "Booking Amount": _format_money(summary.total_revenue),
            "Platform Earnings": _format_money(summary.total_platform_earnings),
            "Host Payout": _format_money(summary.total_host_payouts),
            "Status": "",
            "Date": "",
        }
    )
    return rows


class CommissionSummaryView(OperatorAPIView):
    permission_classes = [IsOperator, HasOperatorRole.with_roles(FINANCE_ROLES)]
    http_method_names = ["get"]

    def get(self, request):
        start, end = _report_range(request)
        report = CommissionAggregator().build_report(start=start, end=end)
        return Response(
            {
                "summary": report.summary.as_dict(),
                "monthly": report.monthly,
                "hosts": report.hosts,
                "warnings": report.warnings,
            }
        )


class CommissionBookingsView(OperatorAPIView):
    permission_classes = [IsOperator, HasOperatorRole.with_roles(FINANCE_ROLES)]
    http_method_names = ["get"]

    def get(self, request):
        start, end = _report_range(request)
        report = CommissionAggregator().build_report(start=start, end=end)
        return Response(
            {"results": [row.as_dict() for row in report.rows], "warnings": report.warnings}
        )


class CommissionExportView(OperatorAPIView):
    permission_classes = [IsOperator, HasOperatorRole.with_roles(FINANCE_ROLES)]
    renderer_classes = [CSVRenderer]
    http_method_names = ["get"]

    def get(self, request):
        start, end = _report_range(request)
        report = CommissionAggregator().build_report(start=start, end=end)
        filename = f"commission-report-{timezone.localdate().isoformat()}.csv"
        return _csv_download(filename, EXPORT_HEADERS, export_rows(report))


class CommissionReconcileView(OperatorAPIView):
    permission_classes = [IsOperator, HasOperatorRole.with_roles(FINANCE_ROLES)]
    http_method_names = ["post"]

    def post(self, request):
        serializer = ReconcileRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking_ids = serializer.validated_data.get("booking_ids")

        report = reconcile_booking_fees(booking_ids=booking_ids)
        audit(
            actor=request.user,
            action="finance.reconcile_booking_fees",
            entity_type=OperatorAuditEvent.EntityType.BOOKING,
            entity_id=",".join(str(pk) for pk in booking_ids) if booking_ids else "all",
            reason=serializer.validated_data["reason"],
            meta={key: value for key, value in report.items() if key != "discrepancies"},
            request=request,
        )
        return Response(report)


class HostBalanceView(OperatorAPIView):
    """Lifetime ledger balances for one host, reversals netted out."""

    permission_classes = [IsOperator, HasOperatorRole.with_roles(FINANCE_ROLES)]
    http_method_names = ["get"]

    def get(self, request, host_id: int):
        host = get_object_or_404(get_user_model(), pk=host_id)
        return Response({"host_id": host.id, **compute_host_balances(host)})
