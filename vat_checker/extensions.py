# vat_checker/extensions.py
# Єдине місце для ініціалізації розширень (rate limit / API key)

import math
import threading
import time

from flask import current_app, jsonify, request

PUBLIC_PATHS = frozenset({"/", "/health"})


def error_response(status_code: int, code: str, message: str, details: str = None):
    body = {"error": code, "message": message, "status_code": status_code}
    if details:
        body["details"] = details
    return jsonify(body), status_code


class RateLimiter:
    """Fixed-window per-key counter kept in process memory."""

    def __init__(self, app=None, clock=time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._windows = {}  # key -> (window_start, count)
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        app.extensions["rate_limiter"] = self
        app.before_request(self._before_request)

    def check(self, key: str, limit: int, window: int) -> tuple[bool, int]:
        """Return (allowed, retry_after_seconds)."""
        now = self._clock()
        with self._lock:
            start, count = self._windows.get(key, (now, 0))
            if now - start >= window:
                start, count = now, 0
            count += 1
            self._windows[key] = (start, count)
            # drop expired windows so the dict doesn't grow with every client ever seen
            if len(self._windows) > 10000:
                self._windows = {k: v for k, v in self._windows.items() if now - v[0] < window}
        if count > limit:
            return False, max(1, math.ceil(window - (now - start)))
        return True, 0

    def _before_request(self):
        if request.path in PUBLIC_PATHS:
            return None
        cfg = current_app.config
        limit = int(cfg.get("RATE_LIMIT_MAX", 100))
        window = int(cfg.get("RATE_LIMIT_WINDOW_SECONDS", 900))
        allowed, retry_after = self.check(f"rate:{request.remote_addr}", limit, window)
        if allowed:
            return None
        minutes = window / 60
        resp, status = error_response(
            429, "TOO_MANY_REQUESTS",
            f"Rate limit exceeded. Maximum {limit} requests per {minutes:g} minutes. Try again later.",
        )
        resp.headers["Retry-After"] = str(retry_after)
        return resp, status


class ApiKeyGuard:
    """When API_KEY is configured, validation endpoints need X-API-Key or a Bearer token."""

    def __init__(self, app=None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        app.extensions["api_key_guard"] = self
        app.before_request(self._before_request)

    @staticmethod
    def provided_key():
        header_key = (request.headers.get("X-API-Key") or "").strip()
        if header_key:
            return header_key
        auth = request.headers.get("Authorization") or ""
        if auth.startswith("Bearer "):
            return auth[len("Bearer "):].strip() or None
        return None

    def _before_request(self):
        api_key = current_app.config.get("API_KEY")
        if not api_key or request.path in PUBLIC_PATHS:
            return None
        provided = self.provided_key()
        if provided == api_key:
            return None
        if not provided:
            return error_response(
                401, "UNAUTHORIZED",
                "API key required. Provide X-API-Key header or Authorization: Bearer <key>.",
            )
        return error_response(403, "FORBIDDEN", "Invalid API key.")

