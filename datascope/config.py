"""
Runtime configuration read from the environment.

Rationale:
- One explicit Settings object is passed to the request service and the proxy,
  instead of each module calling os.getenv on its own.
- Values may come from a .env file (loaded by main.py with python-dotenv).
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

# Primary server key variable first, then fallbacks. First non-empty wins.
API_KEY_VARS = ("API_KEY", "VITE_API_KEY", "GEMINI_API_KEY", "LLM_API_KEY")

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_KEY_STORE = Path.home() / ".datascope" / "keystore.json"
DEFAULT_TIMEOUT = 60.0


def _first_non_empty(env: Mapping[str, str], names) -> Optional[str]:
    for name in names:
        value = (env.get(name) or "").strip()
        if value:
            return value
    return None


def _timeout(raw: Optional[str]) -> float:
    if not raw or not raw.strip():
        return DEFAULT_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        value = 0.0
    if not value > 0:
        logger.warning(f"Ignoring DATASCOPE_REQUEST_TIMEOUT={raw!r}; using {DEFAULT_TIMEOUT}s")
        return DEFAULT_TIMEOUT
    return value


class Settings(BaseModel):
    api_key: Optional[str] = None
    model_name: str = DEFAULT_MODEL
    proxy_url: Optional[str] = None
    key_store_path: Path = DEFAULT_KEY_STORE
    request_timeout: float = DEFAULT_TIMEOUT

    model_config = ConfigDict(protected_namespaces=())

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables (os.environ by default)."""
        env = os.environ if env is None else env
        proxy_url = (env.get("DATASCOPE_PROXY_URL") or "").strip() or None
        return cls(
            api_key=_first_non_empty(env, API_KEY_VARS),
            model_name=(env.get("GEMINI_MODEL") or "").strip() or DEFAULT_MODEL,
            proxy_url=proxy_url.rstrip("/") if proxy_url else None,
            key_store_path=Path(env.get("DATASCOPE_KEY_STORE") or DEFAULT_KEY_STORE).expanduser(),
            request_timeout=_timeout(env.get("DATASCOPE_REQUEST_TIMEOUT")),
        )
