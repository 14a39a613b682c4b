import logging

from django.http import Http404
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from core.errors import (
    BookingNotFound,
    PersistenceFailure,
    RefundEngineError,
    RefundInFlight,
    ValidationFailure,
)

logger = logging.getLogger(__name__)

_ERROR_STATUS = (
    (BookingNotFound, status.HTTP_404_NOT_FOUND),
    (RefundInFlight, status.HTTP_409_CONFLICT),
    (ValidationFailure, status.HTTP_400_BAD_REQUEST),
    (PersistenceFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


class OperatorThrottleMixin:
    throttle_scope = "operator"
    throttle_classes = [ScopedRateThrottle]


class OperatorAPIView(OperatorThrottleMixin, APIView):
    """Base API view for operator endpoints: scoped throttling and engine error mapping."""

    def handle_exception(self, exc):
        if isinstance(exc, RefundEngineError):
            for error_class, status_code in _ERROR_STATUS:
                if isinstance(exc, error_class):
                    break
            else:
                status_code = status.HTTP_502_BAD_GATEWAY
            if status_code >= 500:
                logger.error("operator: %s", exc.code, exc_info=exc)
            return Response({"detail": str(exc), "code": exc.code}, status=status_code)
        if isinstance(exc, Http404):
            return Response({"detail": "Not found."}, status=status.HTTP_404_NOT_FOUND)
        return super().handle_exception(exc)
