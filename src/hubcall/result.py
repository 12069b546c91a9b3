from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from .correlation import CorrelationId
from .errors import FailureKind, StopReason
from .transport import HTTPExchange
from .wire import StatusCode, ValidationErrorList

if TYPE_CHECKING:
    from .executor import OperationRequest

T = TypeVar("T")

HTTP_REQUEST_FAILED = "HTTP request failed!"


class ResultKind(str, Enum):
    RESPONSE = "response"
    VALIDATION_ERRORS = "validation_errors"
    STRUCTURED_ERROR = "structured_error"
    SYSTEM_ERROR = "system_error"


@dataclass(frozen=True)
class StructuredError:
    """A protocol-level error the hub encoded in its response body."""

    status_code: StatusCode

    @property
    def code(self) -> str:
        return self.status_code.to_json()["Code"]

    @property
    def description(self) -> str | None:
        return self.status_code.description

    @property
    def additional_info(self) -> str | None:
        return self.status_code.additional_info


@dataclass(frozen=True)
class SystemFault:
    """A failure on our side of the wire: transport, parsing, exhaustion."""

    message: str
    stack_trace: str | None = None


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """
    Uniform envelope returned by every operation.

    Exactly one of ``response``, ``validation_errors`` and ``error`` is set;
    ``kind`` says which. Use the ``success``/``bad_request``/``failed``
    constructors rather than building instances by hand.
    """

    kind: ResultKind
    request: "OperationRequest"
    correlation_id: CorrelationId
    response: T | None = None
    validation_errors: ValidationErrorList | None = None
    error: StructuredError | SystemFault | None = None
    failure: FailureKind | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    runtime_s: float | None = None
    http_response: HTTPExchange | None = None
    attempts: int = 0
    stop_reason: StopReason | None = None

    def __post_init__(self) -> None:
        populated = [
            name
            for name, value in (
                ("response", self.response),
                ("validation_errors", self.validation_errors),
                ("error", self.error),
            )
            if value is not None
        ]
        if len(populated) != 1:
            raise ValueError(f"Exactly one result variant must be populated, got {populated or 'none'}.")

    @property
    def is_successful(self) -> bool:
        return self.kind is ResultKind.RESPONSE

    @classmethod
    def success(
        cls,
        request: "OperationRequest",
        response: T,
        correlation_id: CorrelationId,
        **details: Any,
    ) -> "OperationResult[T]":
        return cls(
            kind=ResultKind.RESPONSE,
            request=request,
            correlation_id=correlation_id,
            response=response,
            **details,
        )

    @classmethod
    def bad_request(
        cls,
        request: "OperationRequest",
        validation_errors: ValidationErrorList,
        correlation_id: CorrelationId,
        **details: Any,
    ) -> "OperationResult[T]":
        details.setdefault("failure", FailureKind.BUSINESS_REJECTION)
        return cls(
            kind=ResultKind.VALIDATION_ERRORS,
            request=request,
            correlation_id=correlation_id,
            validation_errors=validation_errors,
            **details,
        )

    @classmethod
    def failed(
        cls,
        request: "OperationRequest",
        error: StructuredError | SystemFault,
        correlation_id: CorrelationId,
        **details: Any,
    ) -> "OperationResult[T]":
        if isinstance(error, StructuredError):
            kind = ResultKind.STRUCTURED_ERROR
            details.setdefault("failure", FailureKind.AUTHORIZATION_REJECTION)
        else:
            kind = ResultKind.SYSTEM_ERROR
            details.setdefault("failure", FailureKind.SYSTEM_FAILURE)
        return cls(
            kind=kind,
            request=request,
            correlation_id=correlation_id,
            error=error,
            **details,
        )

    def to_json(self) -> dict[str, Any]:
        """Diagnostic view of the result, safe to hand to a JSON logger."""
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "successful": self.is_successful,
            "correlation_id": self.correlation_id,
            "event_tracking_id": self.request.event_tracking_id,
            "timestamp": self.timestamp.isoformat(),
            "runtime_s": self.runtime_s,
            "attempts": self.attempts,
        }
        if self.failure is not None:
            data["failure"] = self.failure.value
        if self.stop_reason is not None:
            data["stop_reason"] = self.stop_reason.value
        if self.http_response is not None:
            data["http_status"] = self.http_response.status_code
        if self.validation_errors is not None:
            data["validation_errors"] = self.validation_errors.to_json()
        if isinstance(self.error, StructuredError):
            data["status_code"] = self.error.status_code.to_json()
        elif isinstance(self.error, SystemFault):
            data["error"] = self.error.message
        return data
