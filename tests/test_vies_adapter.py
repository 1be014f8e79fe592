from unittest.mock import MagicMock

import pytest
import requests

from vat_checker.adapters.base import ValidationResult
from vat_checker.adapters.vies_adapter import (
    HEADERS,
    ViesAdapter,
    build_soap_envelope,
    escape_xml,
    extract_tag,
    find_fault,
    parse_vies_response,
)
from vat_checker.config import LookupSettings
from vat_checker.errors import IP_BLOCKED_DETAILS, ErrorKind, VatCheckError

VALID_RESPONSE = """<?xml version="1.0" encoding="UTF-8"?>
<env:Envelope xmlns:env="http://schemas.xmlsoap.org/soap/envelope/">
  <env:Header/>
  <env:Body>
    <ns2:checkVatResponse xmlns:ns2="urn:ec.europa.eu:taxud:vies:services:checkVat:types">
      <ns2:countryCode>IE</ns2:countryCode>
      <ns2:vatNumber>6388047V</ns2:vatNumber>
      <ns2:requestDate>2024-01-15+01:00</ns2:requestDate>
      <ns2:valid>true</ns2:valid>
      <ns2:name>GOOGLE IRELAND LIMITED</ns2:name>
      <ns2:address>3RD FLOOR, GORDON HOUSE, BARROW STREET, DUBLIN 4</ns2:address>
    </ns2:checkVatResponse>
  </env:Body>
</env:Envelope>"""

INVALID_VAT_RESPONSE = """<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">
<soap:Body><checkVatResponse>
<countryCode>DE</countryCode><vatNumber>000000000</vatNumber>
<requestDate>2024-01-15</requestDate><valid>false</valid>
<name>---</name><address>---</address>
</checkVatResponse></soap:Body></soap:Envelope>"""

FAULT_RESPONSE = """<env:Envelope xmlns:env="http://schemas.xmlsoap.org/soap/envelope/">
<env:Body><env:Fault><faultcode>env:Server</faultcode>
<faultstring>MS Unavailable</faultstring></env:Fault></env:Body></env:Envelope>"""


def _make_response(body: str, status_code: int = 200, content_type: str = "text/xml;charset=UTF-8"):
    resp = requests.Response()
    resp.status_code = status_code
    resp._content = body.encode("utf-8")
    resp.headers["Content-Type"] = content_type
    resp.url = "https://ec.europa.eu/taxation_customs/vies/services/checkVatService"
    return resp


def _adapter(response=None, side_effect=None):
    session = MagicMock(spec=requests.Session)
    session.post.return_value = response
    session.post.side_effect = side_effect
    return ViesAdapter(LookupSettings(), session=session), session


def test_escape_xml_all_five_meta_characters():
    assert escape_xml("""&<>"'""") == "&amp;&lt;&gt;&quot;&apos;"
    assert escape_xml("A&amp;") == "A&amp;amp;"


def test_envelope_shape():
    env = build_soap_envelope("IE", "6388047V")
    assert env.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert 'xmlns:urn="urn:ec.europa.eu:taxud:vies:services:checkVat:types"' in env
    assert "<urn:checkVat>" in env
    assert "<urn:countryCode>IE</urn:countryCode>" in env
    assert "<urn:vatNumber>6388047V</urn:vatNumber>" in env


def test_envelope_escapes_values():
    env = build_soap_envelope("I<", "1&2")
    assert "<urn:countryCode>I&lt;</urn:countryCode>" in env
    assert "<urn:vatNumber>1&amp;2</urn:vatNumber>" in env


def test_plain_vat_number_survives_escape_and_extract():
    env = build_soap_envelope("IE", "6388047V")
    assert extract_tag(env, "vatNumber") == "6388047V"
    assert extract_tag(env, "countryCode") == "IE"


def test_extract_tag_with_and_without_prefix():
    assert extract_tag("<valid>true</valid>", "valid") == "true"
    assert extract_tag("<ns2:valid> true </ns2:valid>", "valid") == "true"
    assert extract_tag('<ns2:name xml:lang="en">ACME\nLTD</ns2:name >', "name") == "ACME\nLTD"
    assert extract_tag("<VALID>TRUE</VALID>", "valid") == "TRUE"


def test_extract_tag_does_not_match_longer_tag_names():
    assert extract_tag("<validity>true</validity>", "valid") is None
    assert extract_tag("<other>x</other>", "valid") is None


def test_parse_valid_response():
    result = parse_vies_response(VALID_RESPONSE)
    assert result == ValidationResult(
        valid=True,
        country_code="IE",
        vat_number="6388047V",
        name="GOOGLE IRELAND LIMITED",
        address="3RD FLOOR, GORDON HOUSE, BARROW STREET, DUBLIN 4",
        request_date="2024-01-15",
        consultation_number=None,
    )


def test_parse_minimal_response():
    xml = "<valid>true</valid><countryCode>IE</countryCode><vatNumber>6388047V</vatNumber><name>ACME</name>"
    result = parse_vies_response(xml)
    assert result.valid is True
    assert (result.country_code, result.vat_number, result.name) == ("IE", "6388047V", "ACME")
    assert result.address == ""
    assert result.request_date == ""


def test_parse_consultation_number():
    xml = VALID_RESPONSE.replace("</ns2:address>", "</ns2:address><ns2:requestIdentifier>WAPIAAAAX1234</ns2:requestIdentifier>")
    assert parse_vies_response(xml).consultation_number == "WAPIAAAAX1234"


@pytest.mark.parametrize("text, expected", [("true", True), ("TRUE", True), (" True ", True),
                                            ("false", False), ("1", False), ("yes", False)])
def test_valid_is_exact_true(text, expected):
    assert parse_vies_response(f"<valid>{text}</valid>").valid is expected


def test_parse_missing_valid_is_hard_failure():
    with pytest.raises(ValueError):
        parse_vies_response("<countryCode>IE</countryCode>")


def test_find_fault():
    fault = find_fault(FAULT_RESPONSE)
    assert fault.raw_fault_text == "MS Unavailable"
    assert (fault.kind, fault.status_code) == (ErrorKind.MS_UNAVAILABLE, 503)
    assert find_fault(VALID_RESPONSE) is None


def test_lookup_success_posts_soap():
    adapter, session = _adapter(_make_response(VALID_RESPONSE))
    result = adapter.lookup("IE", "6388047V")

    assert result.valid is True
    assert result.name == "GOOGLE IRELAND LIMITED"
    args, kwargs = session.post.call_args
    assert args[0] == "https://ec.europa.eu/taxation_customs/vies/services/checkVatService"
    assert kwargs["headers"] == HEADERS
    assert kwargs["headers"]["SOAPAction"] == ""
    assert kwargs["timeout"] == 15
    assert b"<urn:vatNumber>6388047V</urn:vatNumber>" in kwargs["data"]


def test_lookup_not_valid_vat_is_a_result():
    adapter, _ = _adapter(_make_response(INVALID_VAT_RESPONSE))
    result = adapter.lookup("DE", "000000000")
    assert result.valid is False
    assert result.name == "---"


def test_lookup_twice_gives_equal_results():
    adapter, session = _adapter()
    session.post.side_effect = lambda *a, **kw: _make_response(VALID_RESPONSE)
    assert adapter.lookup("IE", "6388047V") == adapter.lookup("IE", "6388047V")


def test_lookup_fault_in_200_body_short_circuits():
    # a fault body that also carries result fields must never be parsed as a result
    body = FAULT_RESPONSE.replace("</env:Body>", "<valid>true</valid></env:Body>")
    adapter, _ = _adapter(_make_response(body))
    with pytest.raises(VatCheckError) as exc:
        adapter.lookup("IE", "6388047V")
    assert exc.value.kind is ErrorKind.MS_UNAVAILABLE
    assert exc.value.status_code == 503
    assert exc.value.details == "MS Unavailable"


def test_lookup_fault_in_500_body():
    body = FAULT_RESPONSE.replace("MS Unavailable", "INVALID_INPUT")
    adapter, _ = _adapter(_make_response(body, status_code=500))
    with pytest.raises(VatCheckError) as exc:
        adapter.lookup("IE", "6388047V")
    assert (exc.value.kind, exc.value.status_code) == (ErrorKind.INVALID_INPUT, 400)


def test_lookup_403_without_fault_is_ip_blocked():
    adapter, _ = _adapter(_make_response("<html>Forbidden</html>", status_code=403, content_type="text/html"))
    with pytest.raises(VatCheckError) as exc:
        adapter.lookup("IE", "6388047V")
    assert (exc.value.kind, exc.value.status_code) == (ErrorKind.SERVICE_UNAVAILABLE, 502)
    assert exc.value.details == IP_BLOCKED_DETAILS


def test_lookup_503_without_fault():
    adapter, _ = _adapter(_make_response("", status_code=503))
    with pytest.raises(VatCheckError) as exc:
        adapter.lookup("IE", "6388047V")
    assert (exc.value.kind, exc.value.status_code) == (ErrorKind.SERVICE_UNAVAILABLE, 503)


def test_lookup_timeout():
    adapter, _ = _adapter(side_effect=requests.ReadTimeout("Read timed out. (read timeout=15)"))
    with pytest.raises(VatCheckError) as exc:
        adapter.lookup("IE", "6388047V")
    assert (exc.value.kind, exc.value.status_code) == (ErrorKind.TIMEOUT, 504)


def test_lookup_connection_error():
    adapter, _ = _adapter(side_effect=requests.ConnectionError("Failed to resolve host"))
    with pytest.raises(VatCheckError) as exc:
        adapter.lookup("IE", "6388047V")
    assert (exc.value.kind, exc.value.status_code) == (ErrorKind.NETWORK_ERROR, 502)


@pytest.mark.parametrize("body", ["", "   \n"])
def test_lookup_empty_body_is_parse_error(body):
    adapter, _ = _adapter(_make_response(body))
    with pytest.raises(VatCheckError) as exc:
        adapter.lookup("IE", "6388047V")
    assert (exc.value.kind, exc.value.status_code) == (ErrorKind.PARSE_ERROR, 502)
    assert exc.value.details == "Empty response from VIES"


def test_lookup_missing_valid_is_parse_error():
    adapter, _ = _adapter(_make_response("<html><body>maintenance</body></html>"))
    with pytest.raises(VatCheckError) as exc:
        adapter.lookup("IE", "6388047V")
    assert (exc.value.kind, exc.value.status_code) == (ErrorKind.PARSE_ERROR, 502)
    assert "valid" in exc.value.details


def test_lookup_defaults_to_utf8_without_charset():
    body = VALID_RESPONSE.replace("GOOGLE IRELAND LIMITED", "MÜLLER GMBH")
    adapter, _ = _adapter(_make_response(body, content_type="text/xml"))
    assert adapter.lookup("IE", "6388047V").name == "MÜLLER GMBH"


@pytest.mark.parametrize("status, reason", [(504, "Gateway Timeout"), (408, "Request Timeout")])
def test_lookup_http_status_named_timeout_keeps_its_status(status, reason):
    resp = _make_response("<html>upstream</html>", status_code=status, content_type="text/html")
    resp.reason = reason
    adapter, _ = _adapter(resp)
    with pytest.raises(VatCheckError) as exc:
        adapter.lookup("IE", "6388047V")
    assert (exc.value.kind, exc.value.status_code) == (ErrorKind.UNKNOWN_ERROR, status)


def test_lookup_ssl_failure_is_unknown_error():
    adapter, _ = _adapter(side_effect=requests.exceptions.SSLError("certificate verify failed"))
    with pytest.raises(VatCheckError) as exc:
        adapter.lookup("IE", "6388047V")
    assert (exc.value.kind, exc.value.status_code) == (ErrorKind.UNKNOWN_ERROR, 502)
