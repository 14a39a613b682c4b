import pytest

from core.errors import (
    AggregationPartialFailure,
    BookingNotFound,
    NotificationFailure,
    PersistenceFailure,
    ProcessorConfigurationError,
    ProcessorUnavailable,
    RefundEngineError,
    RefundInFlight,
    ValidationFailure,
)


@pytest.mark.parametrize(
    "error_class, parent",
    [
        (RefundInFlight, ValidationFailure),
        (BookingNotFound, ValidationFailure),
        (ProcessorConfigurationError, ProcessorUnavailable),
        (PersistenceFailure, RefundEngineError),
        (NotificationFailure, RefundEngineError),
        (AggregationPartialFailure, RefundEngineError),
    ],
)
def test_error_hierarchy(error_class, parent):
    assert issubclass(error_class, parent)


def test_codes_are_distinct():
    classes = [
        ValidationFailure,
        RefundInFlight,
        BookingNotFound,
        ProcessorUnavailable,
        ProcessorConfigurationError,
        PersistenceFailure,
        NotificationFailure,
        AggregationPartialFailure,
    ]
    codes = [cls.code for cls in classes]
    assert len(set(codes)) == len(codes)
