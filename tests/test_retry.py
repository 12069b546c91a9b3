# tests/test_retry.py


import math

import pytest

from hubcall.config import ExecutorConfig
from hubcall.errors import OutcomeCategory
from hubcall.retry import RetryController
from hubcall.strategies import clamp_delay, constant_delay, equal_jitter, no_delay, quadratic_delay


def test_quadratic_delay_defaults() -> None:
    delay = quadratic_delay()
    assert [delay(n) for n in (1, 2, 3)] == [2.0, 8.0, 18.0]


def test_constant_and_no_delay() -> None:
    assert constant_delay(1.5)(7) == 1.5
    assert no_delay(3) == 0.0
    with pytest.raises(ValueError):
        constant_delay(-1.0)
    with pytest.raises(ValueError):
        quadratic_delay(-0.1)


def test_equal_jitter_bounds() -> None:
    delay = equal_jitter(base_s=1.0, max_s=4.0)
    for attempt in range(1, 6):
        cap = min(4.0, 2.0**attempt)
        value = delay(attempt)
        assert cap / 2.0 <= value <= cap


@pytest.mark.parametrize("raw, expected", [(-1.0, 0.0), (math.inf, 0.0), (math.nan, 0.0), (2.5, 2.5)])
def test_clamp_delay(raw: float, expected: float) -> None:
    assert clamp_delay(raw) == expected


@pytest.mark.parametrize(
    "category",
    [
        OutcomeCategory.SUCCESS,
        OutcomeCategory.VALIDATION_ERROR,
        OutcomeCategory.FORBIDDEN,
        OutcomeCategory.UNAUTHORIZED,
        OutcomeCategory.MALFORMED_RESPONSE,
        OutcomeCategory.TRANSPORT_FAILURE,
    ],
)
def test_terminal_categories_never_retry(category: OutcomeCategory) -> None:
    controller = RetryController(max_retries=10)
    assert controller.is_terminal(category) is True
    assert controller.should_retry(category, 0) is False


@pytest.mark.parametrize("category", [OutcomeCategory.TIMEOUT, None])
def test_retryable_categories_respect_budget(category: OutcomeCategory | None) -> None:
    controller = RetryController(max_retries=3)
    assert [controller.should_retry(category, attempt) for attempt in range(5)] == [
        True,
        True,
        True,
        False,
        False,
    ]
    assert controller.should_retry(category, 0, max_retries=0) is False


def test_delay_before_clamps_strategy_output() -> None:
    controller = RetryController(delay=lambda attempt: -5.0 * attempt)
    assert controller.delay_before(1) == 0.0


def test_negative_max_retries_rejected() -> None:
    with pytest.raises(ValueError):
        RetryController(max_retries=-1)


def test_from_config() -> None:
    config = ExecutorConfig(max_retries=1, retry_delay=constant_delay(0.5), retry_transport_timeouts=True)
    controller = RetryController.from_config(config)
    assert controller.max_retries == 1
    assert controller.delay_before(3) == 0.5
    assert controller.retry_transport_timeouts is True


def test_executor_config_defaults_and_validation() -> None:
    config = ExecutorConfig()
    assert config.remote_url == "https://service.hubject-qa.com"
    assert config.request_timeout_s == 10.0
    assert config.max_retries == 3
    assert config.retry_delay(2) == 8.0
    assert config.retry_transport_timeouts is False

    with pytest.raises(ValueError):
        ExecutorConfig(request_timeout_s=0)
    with pytest.raises(ValueError):
        ExecutorConfig(max_retries=-1)


def test_equal_jitter_validates_and_caps_exponent() -> None:
    with pytest.raises(ValueError):
        equal_jitter(base_s=-1.0)
    with pytest.raises(ValueError):
        equal_jitter(max_s=-1.0)

    delay = equal_jitter(base_s=1.0, max_s=10.0)
    assert 5.0 <= delay(10_000) <= 10.0
