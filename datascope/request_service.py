"""
Data request service: turns raw user input into a list of records via the LLM.

Flow:
1. Resolve the credential path (local user key or server) on every call
2. Build the system instruction: base prompt file + one directive per processing option
3. Send the raw input through the chosen transport:
   - LocalTransport: call Gemini directly with a key (the user's, or the server's in-process)
   - ProxyTransport: POST {prompt, systemInstruction, schema} to the proxy's /api/analyze
4. Extract the JSON array from the reply and normalize each object into a Record
"""

import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

import httpx

from . import llm_client
from .config import Settings
from .errors import MalformedInputError, MissingCredentialError, TransportError, UpstreamError
from .example_data import example_records
from .key_resolver import KeyResolver
from .schemas import ProcessingOptions, Record, Value

logger = logging.getLogger(__name__)

# Prompt file paths
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
PARSE_PROMPT_PATH = os.path.join(BASE_DIR, "prompts", "parse_system.txt")

PROXY_PATH = "/api/analyze"
CONFIG_ERROR_PREFIX = "Server configuration error"


def _read_prompt(path: str) -> str:
    """Read a prompt text file."""
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def build_directives(options: ProcessingOptions) -> List[str]:
    """One natural-language directive per processing option, in a fixed order."""
    return [
        "- Fill any missing numeric values with the average of that column. Fill missing strings with 'Unknown'."
        if options.clean_missing_values
        else "- Leave missing values as null or empty string.",
        "- Normalize the main numeric measure to be between 0 and 1000 for visualization purposes if its values are very large."
        if options.normalize_data
        else "- Do not normalize or rescale numeric values.",
        "- Sort the rows by their date or time field ascending."
        if options.sort_data
        else "- Keep the rows in their original order.",
        "- Remove any rows that look clearly like garbage data or repeated headers."
        if options.filter_rows
        else "- Keep every data row, even if it looks unusual.",
    ]


def build_system_instruction(options: ProcessingOptions) -> str:
    base = _read_prompt(PARSE_PROMPT_PATH).strip()
    return base + "\n\nProcessing Instructions:\n" + "\n".join(build_directives(options))


def _extract_json_array(text: str) -> Any:
    """
    Extract a JSON value from an LLM reply.
    Handles markdown code blocks and stray prose around the array.
    """
    text = (text or "").strip()

    # Remove markdown code blocks if present
    if "```" in text:
        match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text, re.IGNORECASE)
        if match:
            text = match.group(1).strip()
        else:
            text = re.sub(r"```\w*\s*", "", text).replace("```", "").strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("["), text.rfind("]")
        if start == -1 or end <= start:
            raise
        return json.loads(text[start:end + 1])


def _normalize_value(value: Any) -> Value:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None or isinstance(value, (int, float, str)):
        return value
    return json.dumps(value)


def parse_records(text: str) -> List[Record]:
    """Parse the model's text reply into records, or raise a DataScopeError."""
    try:
        data = _extract_json_array(text)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse LLM response as JSON: {e}")
        logger.error(f"Raw response was: {(text or '')[:1000]}...")
        raise UpstreamError(f"Invalid JSON in LLM response: {e}") from e

    if not isinstance(data, list):
        raise UpstreamError(f"LLM response is not a JSON array (got {type(data).__name__})")
    if not data:
        raise MalformedInputError("The model could not find any rows in the input")
    if not all(isinstance(item, dict) for item in data):
        raise UpstreamError("LLM response array must contain only objects")

    return [{str(k): _normalize_value(v) for k, v in item.items()} for item in data]


class LocalTransport:
    """Direct Gemini call with a key held by this process."""

    def __init__(self, api_key: str, model_name: str):
        self.api_key = api_key
        self.model_name = model_name

    async def send(self, prompt: str, system_instruction: str, schema: Optional[Dict[str, Any]] = None) -> str:
        text = await llm_client.generate_text(
            self.api_key,
            prompt,
            system_instruction=system_instruction,
            schema=schema,
            model_name=self.model_name,
        )
        return text or "[]"


class ProxyTransport:
    """POST to a remote proxy that holds the server key."""

    def __init__(self, base_url: str, timeout: float, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = base_url.rstrip("/") + PROXY_PATH
        self.timeout = timeout
        self._transport = transport

    async def send(self, prompt: str, system_instruction: str, schema: Optional[Dict[str, Any]] = None) -> str:
        payload: Dict[str, Any] = {"prompt": prompt, "systemInstruction": system_instruction}
        if schema is not None:
            payload["schema"] = schema

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Proxy request to {self.url} failed: {type(e).__name__}: {e}")
            raise TransportError(f"Could not reach the analysis server: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code != 200:
            message = str(body.get("error") or f"HTTP {response.status_code}")
            logger.error(f"Proxy returned {response.status_code}: {message}")
            if message.startswith(CONFIG_ERROR_PREFIX):
                raise MissingCredentialError(message)
            if response.status_code >= 500:
                raise UpstreamError(message)
            raise TransportError(message)

        text = body.get("text")
        if not isinstance(text, str):
            raise UpstreamError("Proxy response did not contain a 'text' field")
        return text


class DataRequestService:
    def __init__(
        self,
        settings: Settings,
        resolver: KeyResolver,
        proxy_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.resolver = resolver
        self._proxy_transport = proxy_transport

    def transport(self):
        """
        Pick the transport for this call. Re-derived every time so a key saved or
        removed between calls takes effect immediately.
        """
        resolution = self.resolver.resolve()
        if resolution.mode == "local" and resolution.key:
            return LocalTransport(resolution.key, self.settings.model_name)
        if self.settings.proxy_url:
            return ProxyTransport(self.settings.proxy_url, self.settings.request_timeout, self._proxy_transport)
        if self.settings.api_key:
            return LocalTransport(self.settings.api_key, self.settings.model_name)
        raise MissingCredentialError("API Key is missing. Add your own key or configure the server.")

    async def parse(self, raw_input: str, options: Optional[ProcessingOptions] = None) -> List[Record]:
        """
        Parse arbitrary user input into records.

        Args:
            raw_input: Pasted or uploaded text (CSV, JSON, free text)
            options: Processing toggles, defaults when None

        Returns:
            Non-empty list of records with field names preserved from the input
        """
        if not raw_input or not raw_input.strip():
            raise MalformedInputError("No input data to process")

        transport = self.transport()
        system_instruction = build_system_instruction(options or ProcessingOptions())
        logger.info(f"Parsing {len(raw_input)} chars via {type(transport).__name__}")

        text = await transport.send(f"Raw Data:\n{raw_input}", system_instruction)
        logger.debug(f"LLM raw response: {text}")
        records = parse_records(text)
        logger.info(f"Parsed {len(records)} records")
        return records

    async def generate_example(self) -> List[Record]:
        """Fixed example dataset; no network call, but a credential path must exist."""
        self.transport()
        return example_records()
