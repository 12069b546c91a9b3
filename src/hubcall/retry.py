from .config import ExecutorConfig
from .errors import OutcomeCategory
from .strategies import DelayFn, clamp_delay, quadratic_delay

_TERMINAL = frozenset(
    {
        OutcomeCategory.SUCCESS,
        OutcomeCategory.VALIDATION_ERROR,
        OutcomeCategory.FORBIDDEN,
        OutcomeCategory.UNAUTHORIZED,
        OutcomeCategory.MALFORMED_RESPONSE,
        OutcomeCategory.TRANSPORT_FAILURE,
    }
)


class RetryController:
    """
    Decides whether another attempt is made after a classified exchange.

    The controller only sees categories:
      * It does not know about HTTP, only about OutcomeCategory values.
      * Anything with a definite answer from the hub (2xx, 400, 401, 403,
        unparseable bodies) ends the call; the same request would get the
        same answer again.
      * TIMEOUT and unclassified statuses (category None) are retried while
        the budget lasts.

    Parameters
    ----------
    max_retries:
        How many retries follow the first attempt. ``max_retries=3`` means at
        most four sends.

    delay:
        Strategy mapping the 1-based retry number to seconds to wait before
        that retry.

    retry_transport_timeouts:
        Treat a transport-level timeout like an HTTP 408 instead of aborting
        the call.
    """

    def __init__(
        self,
        *,
        max_retries: int = 3,
        delay: DelayFn | None = None,
        retry_transport_timeouts: bool = False,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0.")
        self.max_retries = max_retries
        self.delay = delay or quadratic_delay()
        self.retry_transport_timeouts = retry_transport_timeouts

    @classmethod
    def from_config(cls, config: ExecutorConfig) -> "RetryController":
        """
        Construct a RetryController from an ExecutorConfig bundle.
        """
        return cls(
            max_retries=config.max_retries,
            delay=config.retry_delay,
            retry_transport_timeouts=config.retry_transport_timeouts,
        )

    def is_terminal(self, category: OutcomeCategory | None) -> bool:
        return category in _TERMINAL

    def should_retry(
        self,
        category: OutcomeCategory | None,
        attempt: int,
        max_retries: int | None = None,
    ) -> bool:
        """
        Return True when another send should follow attempt ``attempt`` (0-based).
        """
        if self.is_terminal(category):
            return False
        limit = self.max_retries if max_retries is None else max_retries
        return attempt < limit

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (1-based)."""
        return clamp_delay(self.delay(attempt))
