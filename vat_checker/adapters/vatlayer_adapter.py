# vat_checker/adapters/vatlayer_adapter.py
# Резервний провайдер (vatlayer / apilayer.net): використовується лише коли VIES блокує наш IP.

import logging
import re
from datetime import datetime, timezone

import requests

from ..config import LookupSettings
from ..errors import ErrorKind, make_error
from ..utils.http import requests_session
from ..utils.logging import mask_vat
from .base import ValidationResult

logger = logging.getLogger(__name__)


class VatlayerAdapter:
    SOURCE = "vatlayer"

    def __init__(self, settings: LookupSettings, session: requests.Session = None):
        if not settings.vatlayer_api_key:
            raise ValueError("vatlayer adapter needs VATLAYER_API_KEY")
        self.settings = settings
        self._session = session

    def _get(self, full_vat: str) -> dict:
        session = self._session or requests_session(self.settings.proxies)
        try:
            resp = session.get(
                self.settings.vatlayer_url,
                params={"access_key": self.settings.vatlayer_api_key, "vat_number": full_vat},
                timeout=self.settings.vatlayer_timeout,
            )
            resp.raise_for_status()
        except requests.Timeout as e:
            logger.warning("vatlayer timeout for %s", mask_vat(full_vat))
            raise make_error(ErrorKind.TIMEOUT, 504, "Vatlayer request timed out") from e
        except requests.RequestException as e:
            # str(e) would carry the URL, and with it the access key
            response = getattr(e, "response", None)
            info = f"HTTP {response.status_code}" if response is not None else type(e).__name__
            try:
                info = e.response.json()["error"]["info"]
            except (AttributeError, KeyError, TypeError, ValueError):
                pass
            logger.warning("vatlayer request failed for %s: %s", mask_vat(full_vat), info)
            raise make_error(ErrorKind.UNKNOWN_ERROR, 502, f"Vatlayer request failed: {info}") from e
        finally:
            if self._session is None:
                session.close()

        try:
            return resp.json()
        except ValueError as e:
            raise make_error(ErrorKind.PARSE_ERROR, 502, "Vatlayer returned an invalid response") from e

    def lookup(self, country_code: str, vat_number: str) -> ValidationResult:
        full_vat = re.sub(r"\s", "", f"{country_code}{vat_number}")
        data = self._get(full_vat)

        if not isinstance(data, dict):
            raise make_error(ErrorKind.PARSE_ERROR, 502, "Vatlayer returned an invalid response")
        # apilayer answers HTTP 200 with success=false for key/quota problems
        if isinstance(data.get("error"), dict):
            info = data["error"].get("info") or data["error"].get("type") or "unknown error"
            logger.warning("vatlayer error for %s: %s", mask_vat(full_vat), info)
            raise make_error(ErrorKind.UNKNOWN_ERROR, 502, f"Vatlayer request failed: {info}")
        if not isinstance(data.get("valid"), bool):
            raise make_error(ErrorKind.PARSE_ERROR, 502, "Vatlayer returned an invalid response")

        # vatlayer has no consultation number and no request date of its own
        return ValidationResult(
            valid=data["valid"],
            country_code=data.get("country_code") or country_code,
            vat_number=data.get("vat_number") or vat_number,
            name=data.get("company_name") or "",
            address=data.get("company_address") or "",
            request_date=datetime.now(timezone.utc).date().isoformat(),
            consultation_number=None,
        )
