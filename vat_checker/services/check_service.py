"""Lookup pipeline: validate input, ask VIES, fall back to vatlayer when VIES blocks us.

Every call is independent: adapters are built per request from the
LookupSettings passed in, nothing is cached and nothing is retried in a loop.
The only automatic recovery is a single vatlayer call, and only for the
IP-blocking signature (SERVICE_UNAVAILABLE at 502, i.e. VIES answered 403).
"""

import logging

from ..adapters.base import LookupProvider, ValidationResult
from ..adapters.vatlayer_adapter import VatlayerAdapter
from ..adapters.vies_adapter import ViesAdapter
from ..config import LookupSettings
from ..errors import ErrorKind, VatCheckError
from ..utils.logging import mask_vat
from .normalizer import validate_full_identifier, validate_path_params

logger = logging.getLogger(__name__)


def is_ip_blocked(err: VatCheckError) -> bool:
    return err.kind is ErrorKind.SERVICE_UNAVAILABLE and err.status_code == 502


def lookup_with_fallback(country_code: str, vat_number: str, settings: LookupSettings,
                         vies: LookupProvider = None, fallback: LookupProvider = None) -> ValidationResult:
    vies = vies or ViesAdapter(settings)
    try:
        return vies.lookup(country_code, vat_number)
    except VatCheckError as e:
        if not (is_ip_blocked(e) and settings.fallback_enabled):
            raise

    fallback = fallback or VatlayerAdapter(settings)
    logger.info("%s blocked our IP, retrying %s %s via %s",
                vies.SOURCE, country_code, mask_vat(vat_number), fallback.SOURCE)
    return fallback.lookup(country_code, vat_number)


def lookup(country_code: str, vat_number: str, settings: LookupSettings) -> ValidationResult:
    code, number = validate_path_params(country_code, vat_number)
    return lookup_with_fallback(code, number, settings)


def lookup_full_identifier(raw: str, settings: LookupSettings) -> ValidationResult:
    code, number = validate_full_identifier(raw)
    return lookup_with_fallback(code, number, settings)
