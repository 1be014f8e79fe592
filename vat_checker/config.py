# vat_checker/config.py
# Конфігурація: таймаути, ключ резервного провайдера, ліміти, секрети з .env

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_VIES_URL = "https://ec.europa.eu/taxation_customs/vies/services/checkVatService"
DEFAULT_VATLAYER_URL = "https://apilayer.net/api/validate"


def _env_int(key: str, default: int) -> int:
    """Integer from the environment; empty or non-numeric values fall back to the default."""
    raw = os.getenv(key, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Config:
    ENV = os.getenv("FLASK_ENV", "development")
    APP_NAME = "VAT Validator API"
    SERVICE_NAME = "vat-validator-api"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    PORT = _env_int("PORT", 5000)

    # VIES SOAP registry
    VIES_URL = os.getenv("VIES_URL", DEFAULT_VIES_URL)
    VIES_TIMEOUT = _env_int("VIES_TIMEOUT", 15)

    # Vatlayer fallback: empty key disables the fallback entirely
    VATLAYER_API_KEY = os.getenv("VATLAYER_API_KEY", "").strip()
    VATLAYER_URL = os.getenv("VATLAYER_URL", DEFAULT_VATLAYER_URL)
    VATLAYER_TIMEOUT = _env_int("VATLAYER_TIMEOUT", 10)

    # Optional proxy settings (can be set via environment variables HTTP_PROXY/HTTPS_PROXY)
    HTTP_PROXY = os.getenv("HTTP_PROXY", "")
    HTTPS_PROXY = os.getenv("HTTPS_PROXY", "")

    # HTTP layer: optional API key and per-IP rate limit
    API_KEY = os.getenv("API_KEY", "").strip()
    RATE_LIMIT_WINDOW_SECONDS = _env_int("RATE_LIMIT_WINDOW_SECONDS", 15 * 60)
    RATE_LIMIT_MAX = _env_int("RATE_LIMIT_MAX", 100)


@dataclass(frozen=True)
class LookupSettings:
    """Everything the lookup pipeline needs, passed explicitly instead of read from current_app."""

    vies_url: str = DEFAULT_VIES_URL
    vies_timeout: float = 15
    vatlayer_api_key: Optional[str] = None
    vatlayer_url: str = DEFAULT_VATLAYER_URL
    vatlayer_timeout: float = 10
    http_proxy: str = ""
    https_proxy: str = ""

    @property
    def fallback_enabled(self) -> bool:
        return bool(self.vatlayer_api_key)

    @property
    def proxies(self) -> dict:
        proxies = {}
        if self.http_proxy:
            proxies["http"] = self.http_proxy
        if self.https_proxy:
            proxies["https"] = self.https_proxy
        return proxies

    @classmethod
    def from_mapping(cls, cfg: Mapping) -> "LookupSettings":
        return cls(
            vies_url=cfg.get("VIES_URL") or DEFAULT_VIES_URL,
            vies_timeout=float(cfg.get("VIES_TIMEOUT", 15)),
            vatlayer_api_key=(cfg.get("VATLAYER_API_KEY") or "").strip() or None,
            vatlayer_url=cfg.get("VATLAYER_URL") or DEFAULT_VATLAYER_URL,
            vatlayer_timeout=float(cfg.get("VATLAYER_TIMEOUT", 10)),
            http_proxy=cfg.get("HTTP_PROXY") or "",
            https_proxy=cfg.get("HTTPS_PROXY") or "",
        )
