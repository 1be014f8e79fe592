"""VIES SOAP client: builds the checkVat envelope by hand and scrapes the reply.

The response is never handed to a generic XML parser. VIES replies are small
and sometimes malformed, so each field is pulled out with a tag regex that
tolerates an optional namespace prefix. A SOAP Fault always wins over any
result fields in the same body.
"""

import logging
import re
from typing import Optional

import requests
from dateutil import parser as dtparser

from ..config import LookupSettings
from ..errors import ErrorKind, ProtocolFault, classify_transport_error, make_error
from ..utils.http import requests_session
from ..utils.logging import mask_vat
from .base import ValidationResult

logger = logging.getLogger(__name__)

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
CHECK_VAT_NS = "urn:ec.europa.eu:taxud:vies:services:checkVat:types"

HEADERS = {
    "Content-Type": "text/xml; charset=utf-8",
    "Accept": "text/xml, application/soap+xml",
    "User-Agent": "Mozilla/5.0 (compatible; VATValidator/1.0)",
    "SOAPAction": "",
}

_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


class ViesParseError(ValueError):
    pass


def escape_xml(s: str) -> str:
    # & first, otherwise the other entities get double-escaped
    for char, entity in _XML_ESCAPES:
        s = s.replace(char, entity)
    return s


def build_soap_envelope(country_code: str, vat_number: str) -> str:
    return "\n".join([
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<soap:Envelope xmlns:soap="{SOAP_ENV_NS}" xmlns:urn="{CHECK_VAT_NS}">',
        "  <soap:Body>",
        "    <urn:checkVat>",
        f"      <urn:countryCode>{escape_xml(country_code)}</urn:countryCode>",
        f"      <urn:vatNumber>{escape_xml(vat_number)}</urn:vatNumber>",
        "    </urn:checkVat>",
        "  </soap:Body>",
        "</soap:Envelope>",
    ])


def extract_tag(xml: str, tag: str) -> Optional[str]:
    """Inner text of the first <tag> or <prefix:tag>, stripped. None when absent."""
    t = re.escape(tag)
    pattern = rf"<(?:[\w.-]+:)?{t}(?:\s[^>]*)?>(.*?)</(?:[\w.-]+:)?{t}\s*>"
    m = re.search(pattern, xml, re.IGNORECASE | re.DOTALL)
    if m:
        return m.group(1).strip()
    return None


def find_fault(xml: str) -> Optional[ProtocolFault]:
    fault_text = extract_tag(xml, "faultstring")
    if fault_text:
        return ProtocolFault.from_text(fault_text)
    return None


def _normalize_date(date_txt: str) -> str:
    if not date_txt:
        return ""
    # VIES sends the date with an offset, e.g. 2024-01-15+01:00
    m = re.match(r"^(\d{4}-\d{2}-\d{2})", date_txt)
    if m:
        return m.group(1)
    try:
        return dtparser.parse(date_txt).date().isoformat()
    except (ValueError, OverflowError):
        return date_txt


def parse_vies_response(xml: str) -> ValidationResult:
    valid_txt = extract_tag(xml, "valid")
    if valid_txt is None:
        raise ViesParseError("VIES response missing required 'valid' element")

    request_identifier = extract_tag(xml, "requestIdentifier")
    return ValidationResult(
        valid=valid_txt.strip().lower() == "true",
        country_code=extract_tag(xml, "countryCode") or "",
        vat_number=extract_tag(xml, "vatNumber") or "",
        name=extract_tag(xml, "name") or "",
        address=extract_tag(xml, "address") or "",
        request_date=_normalize_date(extract_tag(xml, "requestDate") or ""),
        consultation_number=request_identifier if request_identifier else None,
    )


class ViesAdapter:
    SOURCE = "vies"

    def __init__(self, settings: LookupSettings = None, session: requests.Session = None):
        self.settings = settings or LookupSettings()
        self._session = session

    def _post(self, envelope: str) -> str:
        session = self._session or requests_session(self.settings.proxies)
        try:
            resp = session.post(
                self.settings.vies_url,
                data=envelope.encode("utf-8"),
                headers=HEADERS,
                timeout=self.settings.vies_timeout,
            )
            resp.raise_for_status()
            if "charset" not in resp.headers.get("Content-Type", "").lower():
                resp.encoding = "utf-8"
            return resp.text
        except requests.RequestException as e:
            body = getattr(getattr(e, "response", None), "text", None)
            if isinstance(body, str):
                fault = find_fault(body)
                if fault:
                    logger.warning("VIES fault (HTTP %s): %s", e.response.status_code, fault.raw_fault_text)
                    raise fault.to_error() from e
            kind, status, details = classify_transport_error(e)
            logger.warning("VIES transport error: %s -> %s/%s", e, kind.value, status)
            raise make_error(kind, status, details) from e
        finally:
            if self._session is None:
                session.close()

    def lookup(self, country_code: str, vat_number: str) -> ValidationResult:
        logger.debug("VIES checkVat %s %s", country_code, mask_vat(vat_number))
        body = self._post(build_soap_envelope(country_code, vat_number))

        if not isinstance(body, str) or not body.strip():
            raise make_error(ErrorKind.PARSE_ERROR, 502, "Empty response from VIES")

        fault = find_fault(body)
        if fault:
            logger.warning("VIES fault for %s: %s", country_code, fault.raw_fault_text)
            raise fault.to_error()

        try:
            return parse_vies_response(body)
        except ViesParseError as e:
            raise make_error(ErrorKind.PARSE_ERROR, 502, str(e)) from e
