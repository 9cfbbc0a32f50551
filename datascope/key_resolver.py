"""
Decide which credential path a request takes: the user's own key or the server proxy.

Rationale:
- The user's key lives in a small JSON key store on the client machine, under one
  fixed entry name.
- The stored value is base64 over the reversed key. This is OBFUSCATION ONLY: it keeps
  the key from being readable at a glance and gives no confidentiality at all.
- resolve() is a pure read and never raises; any storage problem means "server".
"""

import base64
import binascii
import json
import logging
from pathlib import Path
from typing import Dict, Optional

from .schemas import Resolution

logger = logging.getLogger(__name__)

STORAGE_KEY = "datascope_api_key"


def obfuscate(key: str) -> str:
    return base64.b64encode(key[::-1].encode("utf-8")).decode("ascii")


def deobfuscate(value: str) -> str:
    return base64.b64decode(value.encode("ascii"), validate=True).decode("utf-8")[::-1]


class KeyResolver:
    def __init__(self, store_path: Path):
        self.store_path = Path(store_path)

    def _read_store(self) -> Dict[str, str]:
        if not self.store_path.exists():
            return {}
        data = json.loads(self.store_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("key store is not a JSON object")
        return data

    def _write_store(self, data: Dict[str, str]) -> None:
        self.store_path.parent.mkdir(parents=True, exist_ok=True)
        self.store_path.write_text(json.dumps(data), encoding="utf-8")

    def stored_key(self) -> Optional[str]:
        """Decoded local key, or None when absent or the store cannot be read."""
        try:
            encoded = self._read_store().get(STORAGE_KEY)
            if not encoded or not isinstance(encoded, str):
                return None
            key = deobfuscate(encoded)
        except (OSError, ValueError, binascii.Error, UnicodeDecodeError) as e:
            logger.warning(f"Key store unavailable at {self.store_path}: {e}")
            return None
        return key or None

    def resolve(self) -> Resolution:
        key = self.stored_key()
        if key:
            return Resolution(mode="local", key=key)
        return Resolution(mode="server")

    def save_key(self, key: str) -> None:
        key = (key or "").strip()
        if not key:
            raise ValueError("API key must not be blank")
        try:
            data = self._read_store()
        except (OSError, ValueError):
            data = {}
        data[STORAGE_KEY] = obfuscate(key)
        self._write_store(data)
        logger.info("Stored local API key")

    def remove_key(self) -> None:
        try:
            data = self._read_store()
        except (OSError, ValueError) as e:
            logger.warning(f"Key store unavailable at {self.store_path}: {e}")
            return
        if data.pop(STORAGE_KEY, None) is not None:
            self._write_store(data)
            logger.info("Removed local API key")
