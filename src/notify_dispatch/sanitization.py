"""Masking of credentials in event payloads before they are persisted."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping
from typing import Any

SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "passphrase",
        "secret",
        "token",
        "access_token",
        "refresh_token",
        "authorization",
        "api_key",
        "private_key",
        "card_number",
        "cvv",
        "pin",
    }
)

MASK = "***"


class PayloadSanitizer:
    """
    Returns copies of event payloads with credential fields masked.

    Contact fields (email, phone, telegram id) pass through untouched
    because delivery needs them. Keys in ``hash_keys`` are replaced by a
    SHA-256 digest so they stay comparable without being readable.
    """

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        hash_keys: Iterable[str] = (),
    ) -> None:
        keys = SENSITIVE_KEYS if sensitive_keys is None else sensitive_keys
        self._sensitive = {k.lower() for k in keys}
        self._hashed = {k.lower() for k in hash_keys}

    def sanitize(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        return {str(k): self._clean(v, str(k).lower()) for k, v in payload.items()}

    def _clean(self, value: Any, key: str) -> Any:
        if isinstance(value, Mapping):
            return self.sanitize(value)
        if isinstance(value, (list, tuple)):
            return [self._clean(item, key) for item in value]
        if key in self._hashed:
            digest = hashlib.sha256(str(value).encode("utf-8")).hexdigest()
            return f"sha256:{digest}"
        if key in self._sensitive:
            return MASK
        return value


default_sanitizer = PayloadSanitizer()
