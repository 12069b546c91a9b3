from enum import Enum, auto


class OutcomeCategory(Enum):
    """
    Classification buckets for one HTTP exchange with the hub.

    The set is closed: every response (or transport failure) lands in exactly
    one of these, except statuses the protocol does not define, which stay
    unclassified (``None``) and are retried like timeouts.
    """

    SUCCESS = auto()
    VALIDATION_ERROR = auto()
    FORBIDDEN = auto()
    UNAUTHORIZED = auto()
    TIMEOUT = auto()
    TRANSPORT_FAILURE = auto()
    MALFORMED_RESPONSE = auto()


class FailureKind(str, Enum):
    BUSINESS_REJECTION = "BUSINESS_REJECTION"
    AUTHORIZATION_REJECTION = "AUTHORIZATION_REJECTION"
    NETWORK_REJECTION = "NETWORK_REJECTION"
    TRANSIENT_FAILURE = "TRANSIENT_FAILURE"
    PARSE_FAILURE = "PARSE_FAILURE"
    SYSTEM_FAILURE = "SYSTEM_FAILURE"


class StopReason(str, Enum):
    TERMINAL_OUTCOME = "TERMINAL_OUTCOME"
    MAX_RETRIES_EXHAUSTED = "MAX_RETRIES_EXHAUSTED"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    CANCELLED = "CANCELLED"
    SERIALIZATION_ERROR = "SERIALIZATION_ERROR"


class TransportError(Exception):
    """Connect or I/O failure while exchanging a request with the hub."""

    pass


class TransportTimeoutError(TransportError):
    """The transport gave up waiting for the hub to answer."""

    pass


class OperationCancelledError(Exception):
    """The caller's cancellation signal fired while the call was in flight."""

    def __init__(self, message: str = "The request was cancelled!") -> None:
        super().__init__(message)


class SerializationError(Exception):
    """The request payload could not be encoded as JSON."""

    pass
