from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import time
import uuid
from typing import Callable, Optional

from .settings import AuthSettings


class CsrfTokenService:
    """Stateless double-submit CSRF tokens.

    Token layout (before base64): ``<uuid>:<issued_ms>:<hex hmac-sha256>``.
    """

    def __init__(self, settings: AuthSettings, *, clock_ms: Callable[[], int] = lambda: int(time.time() * 1000)):
        self._secret = settings.csrf_secret.encode("utf-8")
        self._max_age_ms = int(settings.csrf_max_age.total_seconds() * 1000)
        self._clock_ms = clock_ms

    def _sign(self, message: str) -> str:
        return hmac.new(self._secret, message.encode("utf-8"), hashlib.sha256).hexdigest()

    def generate(self) -> str:
        message = f"{uuid.uuid4()}:{self._clock_ms()}"
        raw = f"{message}:{self._sign(message)}"
        return base64.b64encode(raw.encode("utf-8")).decode("ascii")

    def validate(self, token: Optional[str]) -> bool:
        if not token:
            return False
        try:
            raw = base64.b64decode(token.encode("ascii"), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeError, ValueError):
            return False

        parts = raw.split(":")
        if len(parts) != 3:
            return False
        token_id, issued, signature = parts
        try:
            issued_ms = int(issued)
        except ValueError:
            return False

        age = self._clock_ms() - issued_ms
        if age < 0 or age > self._max_age_ms:
            return False

        expected = self._sign(f"{token_id}:{issued}")
        return hmac.compare_digest(expected, signature)
