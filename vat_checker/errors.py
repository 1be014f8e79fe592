# vat_checker/errors.py
# Error taxonomy: fixed kinds, HTTP statuses and user-facing messages for every failure mode

import errno
import socket
import ssl
from enum import Enum
from typing import NamedTuple, Optional

import requests


class ErrorKind(str, Enum):
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    MS_UNAVAILABLE = "MS_UNAVAILABLE"
    INVALID_INPUT = "INVALID_INPUT"
    TIMEOUT = "TIMEOUT"
    SERVER_BUSY = "SERVER_BUSY"
    NETWORK_ERROR = "NETWORK_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


ERROR_MESSAGES = {
    ErrorKind.INVALID_INPUT: "The VAT number or country code was rejected by the EU VIES system. Please check the format and try again.",
    ErrorKind.MS_UNAVAILABLE: "The member state's validation service is temporarily unavailable. Please try again later.",
    ErrorKind.SERVICE_UNAVAILABLE: "The EU VIES service is temporarily unavailable. Please try again later.",
    ErrorKind.TIMEOUT: "The request to the EU VIES service timed out. Please try again.",
    ErrorKind.SERVER_BUSY: "The EU VIES service is currently busy. Please try again in a few minutes.",
    ErrorKind.NETWORK_ERROR: "Unable to reach the EU VIES service. Check your network connection or try again later.",
    ErrorKind.PARSE_ERROR: "The EU VIES service returned an unexpected response. Please try again later.",
    ErrorKind.UNKNOWN_ERROR: "An unexpected error occurred while validating the VAT number. Please try again.",
}

IP_BLOCKED_DETAILS = (
    "The EU VIES service blocked the request (often when called from cloud/datacenter IPs). "
    "Try again later or run the API from a different network."
)

# (needles, kind, status) - order matters, first hit wins
_FAULT_RULES = (
    (("service unavailable", "server down"), ErrorKind.SERVICE_UNAVAILABLE, 503),
    (("ms unavailable", "member state"), ErrorKind.MS_UNAVAILABLE, 503),
    (("invalid",), ErrorKind.INVALID_INPUT, 400),
    (("timeout", "timed out"), ErrorKind.TIMEOUT, 504),
    (("busy", "overloaded"), ErrorKind.SERVER_BUSY, 503),
)

_NETWORK_ERRNOS = {
    errno.ECONNREFUSED,
    errno.ECONNRESET,
    errno.ENETUNREACH,
    errno.EHOSTUNREACH,
    errno.ETIMEDOUT,
}


class VatCheckError(Exception):
    """A classified failure. `message` is safe to show, `details` is for diagnostics only."""

    def __init__(self, kind: ErrorKind, status_code: int, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.kind.value, "message": self.message, "status_code": self.status_code}
        if self.details:
            body["details"] = self.details
        return body

    def __repr__(self):
        return f"{type(self).__name__}({self.kind.value}, {self.status_code}, {self.message!r})"


class InvalidInputError(VatCheckError):
    """Local validation failure. Raised before any network call."""

    def __init__(self, message: str):
        super().__init__(ErrorKind.INVALID_INPUT, 400, message)


class ProtocolFault(NamedTuple):
    raw_fault_text: str
    kind: ErrorKind
    status_code: int

    @classmethod
    def from_text(cls, fault_text: str) -> "ProtocolFault":
        kind, status = classify_fault(fault_text)
        return cls(fault_text, kind, status)

    def to_error(self) -> VatCheckError:
        return make_error(self.kind, self.status_code, self.raw_fault_text)


def make_error(kind: ErrorKind, status_code: int, details: Optional[str] = None) -> VatCheckError:
    return VatCheckError(kind, status_code, ERROR_MESSAGES[kind], details)


def classify_fault(fault_text: str) -> tuple[ErrorKind, int]:
    """Map a SOAP faultstring to (kind, http status) by case-insensitive substring match."""
    lower = (fault_text or "").lower()
    for needles, kind, status in _FAULT_RULES:
        if any(n in lower for n in needles):
            return kind, status
    return ErrorKind.UNKNOWN_ERROR, 502


def _is_network_error(err: BaseException) -> bool:
    if isinstance(err, requests.exceptions.SSLError):
        return False
    # a proxy failure only counts when the OS error underneath is a network one
    if isinstance(err, requests.ConnectionError) and not isinstance(err, requests.exceptions.ProxyError):
        return True
    # requests/urllib3 wrap the OS error a few levels deep
    seen = set()
    stack = [err]
    while stack:
        e = stack.pop()
        if e is None or id(e) in seen:
            continue
        seen.add(id(e))
        if isinstance(e, ssl.SSLError):
            return False
        if isinstance(e, socket.gaierror):
            return True
        if isinstance(e, OSError) and e.errno in _NETWORK_ERRNOS:
            return True
        stack.append(e.__cause__)
        stack.append(e.__context__)
        stack.extend(a for a in getattr(e, "args", ()) if isinstance(a, BaseException))
        reason = getattr(e, "reason", None)
        if isinstance(reason, BaseException):
            stack.append(reason)
    return False


def classify_transport_error(err: BaseException) -> tuple[ErrorKind, int, Optional[str]]:
    """Map a transport exception (no fault body available) to (kind, http status, details)."""
    message = str(err) or type(err).__name__
    response = getattr(err, "response", None)
    status = getattr(response, "status_code", None)

    # an HTTP error message carries the reason phrase ("Gateway Timeout"), so only
    # responseless errors are matched by text
    if isinstance(err, requests.Timeout) or (response is None and "timeout" in message.lower()):
        return ErrorKind.TIMEOUT, 504, None
    if status == 503:
        return ErrorKind.SERVICE_UNAVAILABLE, 503, None
    if status == 403:
        # 403 from VIES almost always means the caller's IP range is blocked
        return ErrorKind.SERVICE_UNAVAILABLE, 502, IP_BLOCKED_DETAILS
    if _is_network_error(err):
        return ErrorKind.NETWORK_ERROR, 502, message
    if status is not None and status >= 400:
        return ErrorKind.UNKNOWN_ERROR, status, message
    return ErrorKind.UNKNOWN_ERROR, 502, message
