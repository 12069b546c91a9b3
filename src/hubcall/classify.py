"""
Response classification.

``classify`` maps one HTTP exchange (status, content type, body) to an
``OutcomeCategory``. It performs no I/O and keeps no state, so the same
inputs always produce the same classification.
"""

import json
import traceback
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from .errors import OutcomeCategory
from .wire import StatusCode, ValidationErrorList, parse_status_code_body

T = TypeVar("T")

ResponseParser = Callable[[Any], T]

JSON_MEDIA_TYPE = "application/json"


@dataclass(frozen=True)
class Classification:
    """
    Result of classifying one HTTP exchange.

    ``category`` is None for statuses the protocol does not define; those
    are retried until the budget runs out.
    """

    category: OutcomeCategory | None
    http_status: int
    payload: Any | None = None
    validation_errors: ValidationErrorList | None = None
    status_code: StatusCode | None = None
    error_message: str | None = None
    stack_trace: str | None = None


def is_json_content_type(content_type: str | None) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == JSON_MEDIA_TYPE


def format_stack_trace(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def _malformed(status: int, message: str, exc: BaseException | None = None) -> Classification:
    return Classification(
        category=OutcomeCategory.MALFORMED_RESPONSE,
        http_status=status,
        error_message=message,
        stack_trace=format_stack_trace(exc) if exc is not None else None,
    )


def _decode_json(body: bytes) -> Any:
    return json.loads(body.decode("utf-8"))


def _classify_ok(content_type: str | None, body: bytes, parse: ResponseParser[Any]) -> Classification:
    if not is_json_content_type(content_type) or not body:
        return _malformed(200, "The HTTP response did not contain a JSON body!")
    try:
        payload = parse(_decode_json(body))
    except Exception as exc:
        return _malformed(200, str(exc) or type(exc).__name__, exc)
    if payload is None:
        return _malformed(200, "The JSON response could not be parsed!")
    return Classification(category=OutcomeCategory.SUCCESS, http_status=200, payload=payload)


def _classify_bad_request(content_type: str | None, body: bytes) -> Classification:
    if not is_json_content_type(content_type) or not body:
        return _malformed(400, "The HTTP 400 response did not contain a validation error list!")
    try:
        errors = ValidationErrorList.from_json(_decode_json(body))
    except ValueError as exc:
        return _malformed(400, str(exc), exc)
    return Classification(
        category=OutcomeCategory.VALIDATION_ERROR,
        http_status=400,
        validation_errors=errors,
    )


def _classify_unauthorized(content_type: str | None, body: bytes) -> Classification:
    if not is_json_content_type(content_type) or not body:
        return _malformed(401, "The HTTP 401 response did not contain a status code!")
    try:
        status_code = parse_status_code_body(_decode_json(body))
    except ValueError as exc:
        return _malformed(401, str(exc), exc)
    return Classification(
        category=OutcomeCategory.UNAUTHORIZED,
        http_status=401,
        status_code=status_code,
    )


def classify(
    http_status: int,
    content_type: str | None,
    body: bytes,
    parse: ResponseParser[Any],
) -> Classification:
    """
    Classify an HTTP exchange with the hub.

    * 200 with a JSON body is handed to ``parse``; a parser exception or a
      ``None`` result makes the response MALFORMED_RESPONSE.
    * 400 carries a validation error list, 401 a status code object.
    * 403 is never parsed; the hub's firewall answers with HTML.
    * 408 is a TIMEOUT.

    ``json.JSONDecodeError`` and ``UnicodeDecodeError`` are ``ValueError``
    subclasses, so undecodable bodies become MALFORMED_RESPONSE too.
    """
    if http_status == 200:
        return _classify_ok(content_type, body, parse)
    if http_status == 400:
        return _classify_bad_request(content_type, body)
    if http_status == 403:
        return Classification(category=OutcomeCategory.FORBIDDEN, http_status=403)
    if http_status == 401:
        return _classify_unauthorized(content_type, body)
    if http_status == 408:
        return Classification(category=OutcomeCategory.TIMEOUT, http_status=408)
    return Classification(category=None, http_status=http_status)
