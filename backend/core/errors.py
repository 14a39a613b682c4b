"""Error taxonomy shared by the refund engine, the ledger and reporting."""

from __future__ import annotations


class RefundEngineError(Exception):
    """Base class for errors raised while moving booking money around."""

    code = "refund_engine_error"


class ValidationFailure(RefundEngineError):
    """The request cannot be executed as given. Nothing was mutated."""

    code = "validation_failure"


class RefundInFlight(ValidationFailure):
    """Another refund for the same booking is still running."""

    code = "refund_in_flight"


class ProcessorUnavailable(RefundEngineError):
    """The payment processor errored, timed out or could not be reached."""

    code = "processor_unavailable"


class ProcessorConfigurationError(ProcessorUnavailable):
    """Processor credentials are missing or rejected."""

    code = "processor_configuration_error"


class PersistenceFailure(RefundEngineError):
    """A booking, ledger or audit write failed after the processor step."""

    code = "persistence_failure"


class NotificationFailure(RefundEngineError):
    """A notification could not be queued. Logged, never escalated."""

    code = "notification_failure"


class AggregationPartialFailure(RefundEngineError):
    """One upstream lookup failed while building a report row."""

    code = "aggregation_partial_failure"


class BookingNotFound(ValidationFailure):
    """The booking does not exist. The refund aborts before any processor call."""

    code = "booking_not_found"
