# vat_checker/services/normalizer.py
# Нормалізація та перевірка вхідних даних до будь-якого мережевого виклику

import re

from ..errors import InvalidInputError

# EU/EEA codes VIES answers for, including Northern Ireland (XI)
EU_COUNTRY_CODES = frozenset({
    "AT", "BE", "BG", "HR", "CY", "CZ", "DE", "DK", "EE", "EL", "ES", "FI", "FR",
    "GR", "HU", "IE", "IT", "LT", "LU", "LV", "MT", "NL", "PL", "PT", "RO", "SE",
    "SI", "SK", "XI",
})

COUNTRY_CODE_RE = re.compile(r"[A-Z]{2}")
VAT_NUMBER_RE = re.compile(r"[A-Z0-9]{2,12}")

MAX_VAT_INPUT_LENGTH = 20
MIN_VAT_INPUT_LENGTH = 4


def normalize_vat_number(vat: str) -> str:
    """Uppercase and drop whitespace and dashes."""
    if vat is None:
        return ""
    if not isinstance(vat, str):
        raise InvalidInputError("vatNumber must be a string of letters and digits.")
    return re.sub(r"\s+", "", vat).replace("-", "").upper()


def validate_country_code(code: str) -> str:
    code = "" if code is None else code
    if not isinstance(code, str) or not COUNTRY_CODE_RE.fullmatch(code):
        raise InvalidInputError("countryCode must be a two-letter ISO country code (e.g. IE, DE).")
    if code not in EU_COUNTRY_CODES:
        raise InvalidInputError(
            f"Unsupported or invalid country code: {code}. "
            "Must be an EU/EEA code supported by VIES (e.g. IE, DE, FR)."
        )
    return code


def validate_vat_number(raw: str) -> str:
    vat_number = normalize_vat_number(raw)
    if not vat_number:
        raise InvalidInputError("vatNumber is required and cannot be empty.")
    if not VAT_NUMBER_RE.fullmatch(vat_number):
        raise InvalidInputError(
            "vatNumber must contain only letters and digits (2-12 characters after removing spaces/dashes)."
        )
    return vat_number


def validate_full_identifier(raw: str) -> tuple[str, str]:
    """Split a full identifier like 'IE6388047V' into (country_code, vat_number).

    Raises InvalidInputError with a message fit for the caller on any failure.
    """
    if not isinstance(raw, str):
        raise InvalidInputError("vat_number must be a string (e.g. ?vat_number=IE6388047V).")
    trimmed = raw.strip()
    if not trimmed:
        raise InvalidInputError("Query parameter vat_number is required (e.g. ?vat_number=IE6388047V).")
    if len(trimmed) > MAX_VAT_INPUT_LENGTH:
        raise InvalidInputError(f"vat_number is too long (max {MAX_VAT_INPUT_LENGTH} characters).")
    if len(trimmed) < MIN_VAT_INPUT_LENGTH:
        raise InvalidInputError(
            "vat_number must start with a two-letter country code followed by the VAT number (e.g. IE6388047V)."
        )

    try:
        country_code = validate_country_code(trimmed[:2].upper())
    except InvalidInputError:
        raise InvalidInputError("vat_number must start with a valid EU country code (e.g. IE6388047V).") from None

    vat_number = validate_vat_number(trimmed[2:])
    return country_code, vat_number


def validate_path_params(country_code: str, vat_number: str) -> tuple[str, str]:
    if isinstance(country_code, str):
        country_code = country_code.upper()
    return validate_country_code(country_code), validate_vat_number(vat_number)
