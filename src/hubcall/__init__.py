from .classify import Classification, classify
from .config import DEFAULT_REMOTE_URL, ExecutorConfig
from .correlation import PROCESS_ID_HEADER, CorrelationId
from .counters import APICounters, CounterSnapshot, CounterValues
from .errors import (
    FailureKind,
    OperationCancelledError,
    OutcomeCategory,
    SerializationError,
    StopReason,
    TransportError,
    TransportTimeoutError,
)
from .executor import Operation, OperationExecutor, OperationRequest
from .operations import (
    AUTHORIZE_START,
    AUTHORIZE_STOP,
    OPERATIONS,
    PULL_AUTHENTICATION_DATA,
    SEND_CHARGE_DETAIL_RECORD,
    SEND_CHARGING_END_NOTIFICATION,
    SEND_CHARGING_ERROR_NOTIFICATION,
    SEND_CHARGING_PROGRESS_NOTIFICATION,
    SEND_CHARGING_START_NOTIFICATION,
    HubClient,
)
from .result import HTTP_REQUEST_FAILED, OperationResult, ResultKind, StructuredError, SystemFault
from .retry import RetryController
from .strategies import constant_delay, equal_jitter, no_delay, quadratic_delay
from .transport import HTTPExchange, HttpxTransport, Transport
from .wire import (
    Acknowledgement,
    AuthenticationDataResponse,
    AuthorizationResponse,
    AuthorizationStatus,
    StatusCode,
    StatusCodes,
    ValidationError,
    ValidationErrorList,
)

__all__ = [
    "HubClient",
    "OperationExecutor",
    "Operation",
    "OperationRequest",
    "OperationResult",
    "ResultKind",
    "StructuredError",
    "SystemFault",
    "HTTP_REQUEST_FAILED",
    "ExecutorConfig",
    "DEFAULT_REMOTE_URL",
    "RetryController",
    "Classification",
    "classify",
    "OutcomeCategory",
    "FailureKind",
    "StopReason",
    "TransportError",
    "TransportTimeoutError",
    "OperationCancelledError",
    "SerializationError",
    "CorrelationId",
    "PROCESS_ID_HEADER",
    "APICounters",
    "CounterValues",
    "CounterSnapshot",
    "Transport",
    "HttpxTransport",
    "HTTPExchange",
    "quadratic_delay",
    "constant_delay",
    "no_delay",
    "equal_jitter",
    "StatusCode",
    "StatusCodes",
    "ValidationError",
    "ValidationErrorList",
    "Acknowledgement",
    "AuthorizationResponse",
    "AuthorizationStatus",
    "AuthenticationDataResponse",
    "AUTHORIZE_START",
    "AUTHORIZE_STOP",
    "SEND_CHARGING_START_NOTIFICATION",
    "SEND_CHARGING_PROGRESS_NOTIFICATION",
    "SEND_CHARGING_END_NOTIFICATION",
    "SEND_CHARGING_ERROR_NOTIFICATION",
    "SEND_CHARGE_DETAIL_RECORD",
    "PULL_AUTHENTICATION_DATA",
    "OPERATIONS",
]
