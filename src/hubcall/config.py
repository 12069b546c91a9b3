from dataclasses import dataclass, field

from .strategies import DelayFn, quadratic_delay

DEFAULT_REMOTE_URL = "https://service.hubject-qa.com"
DEFAULT_USER_AGENT = "hubcall OICP 2.3 client"


@dataclass
class ExecutorConfig:
    remote_url: str = DEFAULT_REMOTE_URL
    request_timeout_s: float = 10.0
    max_retries: int = 3
    retry_delay: DelayFn = field(default_factory=quadratic_delay)
    retry_transport_timeouts: bool = False
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if self.request_timeout_s <= 0:
            raise ValueError("request_timeout_s must be > 0.")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0.")
