"""
Minimal OICP 2.3 wire types used by the executor.

Only the shapes the executor itself needs to understand are modelled here:
the status-code object, the validation-error list returned with HTTP 400,
and the three response families of the CPO operations. Every ``from_json``
raises ``ValueError`` when the JSON does not have the expected shape.
"""

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import SerializationError


class StatusCodes(str, Enum):
    SUCCESS = "000"
    HUBJECT_SYSTEM_ERROR = "001"
    HUBJECT_DATABASE_ERROR = "002"
    DATA_TRANSACTION_ERROR = "009"
    UNAUTHORIZED_ACCESS = "017"
    INCONSISTENT_EVSE_ID = "018"
    INCONSISTENT_EVCO_ID = "019"
    SYSTEM_ERROR = "021"
    DATA_ERROR = "022"
    QR_CODE_AUTHENTICATION_FAILED = "101"
    RFID_AUTHENTICATION_FAILED_INVALID_UID = "102"
    RFID_AUTHENTICATION_FAILED_CARD_NOT_READABLE = "103"
    PIN_AUTHENTICATION_FAILED = "105"
    PARKING_SPACE_OCCUPIED = "106"
    NO_VALID_CONTRACT = "110"
    PARTNER_NOT_FOUND = "120"
    AUTHENTICATION_DATA_RECORD_EXISTS = "140"
    SESSION_IS_INVALID = "200"
    WRONG_SESSION_ID = "201"
    PARTNER_SESSION_ID_IS_INVALID = "210"
    EMAIL_DOES_NOT_EXIST = "300"
    EMAIL_OR_PASSWORD_INVALID = "310"
    EMAIL_ALREADY_EXISTS = "320"
    NO_POSITIVE_AUTHENTICATION_RESPONSE = "400"
    QR_CODE_APP_AUTHENTICATION_TIMEOUT = "401"
    COMMUNICATION_TO_EVSE_FAILED = "402"
    EVSE_ALREADY_IN_USE = "501"
    NO_EV_CONNECTED_TO_EVSE = "510"
    EVSE_ALREADY_RESERVED = "601"
    EVSE_NOT_REACHABLE = "602"
    UNKNOWN_EVSE_ID = "603"
    EVSE_OUT_OF_SERVICE = "700"
    SERVICE_NOT_AVAILABLE = "3000"


class AuthorizationStatus(str, Enum):
    AUTHORIZED = "Authorized"
    NOT_AUTHORIZED = "NotAuthorized"


def _require_object(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"The given JSON representation of {what} is invalid!")
    return value


def _require_str(obj: Mapping[str, Any], key: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Missing or invalid JSON property '{key}'!")
    return value


def _optional_str(obj: Mapping[str, Any], key: str) -> str | None:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Invalid JSON property '{key}'!")
    return value


def _object_list(obj: Mapping[str, Any], key: str, *, required: bool) -> tuple[Mapping[str, Any], ...]:
    value = obj.get(key)
    if value is None:
        if required:
            raise ValueError(f"Missing JSON property '{key}'!")
        return ()
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        raise ValueError(f"Invalid JSON property '{key}'!")
    return tuple(_require_object(item, key) for item in value)


@dataclass(frozen=True)
class StatusCode:
    code: StatusCodes | str
    description: str | None = None
    additional_info: str | None = None

    @property
    def has_result(self) -> bool:
        return self.code == StatusCodes.SUCCESS

    @classmethod
    def from_json(cls, value: Any) -> "StatusCode":
        obj = _require_object(value, "a status code")
        raw = obj.get("Code")
        if isinstance(raw, int) and not isinstance(raw, bool):
            raw = f"{raw:03d}"
        if not isinstance(raw, str) or not raw.strip():
            raise ValueError("Missing or invalid JSON property 'Code'!")
        try:
            code: StatusCodes | str = StatusCodes(raw)
        except ValueError:
            code = raw
        return cls(
            code=code,
            description=_optional_str(obj, "Description"),
            additional_info=_optional_str(obj, "AdditionalInfo"),
        )

    def to_json(self) -> dict[str, Any]:
        code = self.code.value if isinstance(self.code, StatusCodes) else self.code
        data: dict[str, Any] = {"Code": code}
        if self.description:
            data["Description"] = self.description
        if self.additional_info:
            data["AdditionalInfo"] = self.additional_info
        return data


def parse_status_code_body(value: Any) -> StatusCode:
    """Parse the ``{"StatusCode": {...}}`` envelope the hub sends with HTTP 401."""
    obj = _require_object(value, "a status code response")
    return StatusCode.from_json(obj.get("StatusCode"))


@dataclass(frozen=True)
class ValidationError:
    field_reference: str
    error_message: str

    @classmethod
    def from_json(cls, value: Any) -> "ValidationError":
        obj = _require_object(value, "a validation error")
        return cls(
            field_reference=_require_str(obj, "fieldReference"),
            error_message=_require_str(obj, "errorMessage"),
        )

    def to_json(self) -> dict[str, str]:
        return {"fieldReference": self.field_reference, "errorMessage": self.error_message}


@dataclass(frozen=True)
class ValidationErrorList:
    message: str
    validation_errors: tuple[ValidationError, ...] = ()

    @classmethod
    def from_json(cls, value: Any) -> "ValidationErrorList":
        obj = _require_object(value, "a validation error list")
        errors = [ValidationError.from_json(item) for item in _object_list(obj, "validationErrors", required=True)]
        return cls(
            message=_require_str(obj, "message"),
            # duplicates dropped, first occurrence wins
            validation_errors=tuple(dict.fromkeys(errors)),
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "validationErrors": [error.to_json() for error in self.validation_errors],
        }


@dataclass(frozen=True)
class Acknowledgement:
    result: bool
    status_code: StatusCode
    session_id: str | None = None
    cpo_partner_session_id: str | None = None
    emp_partner_session_id: str | None = None

    @classmethod
    def from_json(cls, value: Any) -> "Acknowledgement":
        obj = _require_object(value, "an acknowledgement")
        result = obj.get("Result")
        if not isinstance(result, bool):
            raise ValueError("Missing or invalid JSON property 'Result'!")
        return cls(
            result=result,
            status_code=StatusCode.from_json(obj.get("StatusCode")),
            session_id=_optional_str(obj, "SessionID"),
            cpo_partner_session_id=_optional_str(obj, "CPOPartnerSessionID"),
            emp_partner_session_id=_optional_str(obj, "EMPPartnerSessionID"),
        )


@dataclass(frozen=True)
class AuthorizationResponse:
    authorization_status: AuthorizationStatus
    status_code: StatusCode
    provider_id: str | None = None
    session_id: str | None = None
    cpo_partner_session_id: str | None = None
    emp_partner_session_id: str | None = None
    authorization_stop_identifications: tuple[Mapping[str, Any], ...] = ()

    @property
    def is_authorized(self) -> bool:
        return self.authorization_status is AuthorizationStatus.AUTHORIZED

    @classmethod
    def from_json(cls, value: Any) -> "AuthorizationResponse":
        obj = _require_object(value, "an authorization response")
        try:
            status = AuthorizationStatus(_require_str(obj, "AuthorizationStatus"))
        except ValueError as exc:
            raise ValueError(f"Unknown authorization status: {obj.get('AuthorizationStatus')!r}") from exc
        return cls(
            authorization_status=status,
            status_code=StatusCode.from_json(obj.get("StatusCode")),
            provider_id=_optional_str(obj, "ProviderID"),
            session_id=_optional_str(obj, "SessionID"),
            cpo_partner_session_id=_optional_str(obj, "CPOPartnerSessionID"),
            emp_partner_session_id=_optional_str(obj, "EMPPartnerSessionID"),
            authorization_stop_identifications=_object_list(
                obj, "AuthorizationStopIdentifications", required=False
            ),
        )


@dataclass(frozen=True)
class AuthenticationDataResponse:
    provider_authentication_data: tuple[Mapping[str, Any], ...] = field(default_factory=tuple)
    status_code: StatusCode | None = None

    @classmethod
    def from_json(cls, value: Any) -> "AuthenticationDataResponse":
        obj = _require_object(value, "an authentication data response")
        status = obj.get("StatusCode")
        return cls(
            provider_authentication_data=_object_list(obj, "ProviderAuthenticationData", required=False),
            status_code=StatusCode.from_json(status) if status is not None else None,
        )


def encode_json(payload: Mapping[str, Any]) -> bytes:
    """Compact UTF-8 JSON encoding for request payloads."""
    try:
        return json.dumps(dict(payload), separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"The request payload is not JSON serializable: {exc}") from exc
