from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from datascope import llm_client
from datascope.config import Settings
from datascope.key_resolver import KeyResolver


class FakeLLM:
    """Stands in for the Gemini call; records every request it receives."""

    def __init__(self) -> None:
        self.reply = "[]"
        self.error: Optional[Exception] = None
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, api_key, prompt, system_instruction=None, schema=None, model_name=None):
        self.calls.append({
            "api_key": api_key,
            "prompt": prompt,
            "system_instruction": system_instruction,
            "schema": schema,
            "model_name": model_name,
        })
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def fake_llm(monkeypatch: pytest.MonkeyPatch) -> FakeLLM:
    fake = FakeLLM()
    monkeypatch.setattr(llm_client, "generate_text", fake)
    return fake


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "store" / "keystore.json"


@pytest.fixture
def resolver(store_path: Path) -> KeyResolver:
    return KeyResolver(store_path)


@pytest.fixture
def server_settings(store_path: Path) -> Settings:
    return Settings(api_key="server-key", key_store_path=store_path)


@pytest.fixture
def bare_settings(store_path: Path) -> Settings:
    return Settings(key_store_path=store_path)
