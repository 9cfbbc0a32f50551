"""
Minimal LLM client wrapper using Google Gemini.

Rationale:
- Use google-generativeai SDK for robust Gemini access.
- Keep interface tiny: generate_text(api_key, prompt, system_instruction, schema) -> str.
- Shared by the proxy endpoint (server key) and the local transport (user key).
- No retries / no fallback.
"""

import logging
from typing import Any, Dict, Optional

import google.generativeai as genai

from .config import DEFAULT_MODEL
from .errors import UpstreamError

logger = logging.getLogger(__name__)


def _response_text(response) -> str:
    """Return the text of a Gemini response, or "" when it carries none."""
    try:
        return response.text or ""
    except ValueError:
        # response.text raises when there is no usable candidate (safety block etc.)
        if response.candidates:
            candidate = response.candidates[0]
            if candidate.content and candidate.content.parts:
                return candidate.content.parts[0].text or ""
            raise UpstreamError(f"Gemini blocked response. Finish reason: {candidate.finish_reason}")
        return ""


async def generate_text(
    api_key: str,
    prompt: str,
    system_instruction: Optional[str] = None,
    schema: Optional[Dict[str, Any]] = None,
    model_name: str = DEFAULT_MODEL,
) -> str:
    """
    Call Gemini with a system instruction and prompt, asking for a JSON reply.
    Returns the raw text ("" if the model returned nothing).
    """
    if not api_key:
        raise UpstreamError("Gemini API key is empty")

    try:
        # configure() swaps the SDK's default client; the model binds it on the
        # first generate call, so no await may sit between the two.
        genai.configure(api_key=api_key)
        model = genai.GenerativeModel(
            model_name=model_name,
            system_instruction=system_instruction or None,
        )
        config = genai.GenerationConfig(
            response_mime_type="application/json",
            response_schema=schema or None,
        )
        response = await model.generate_content_async(prompt, generation_config=config)
        return _response_text(response)
    except UpstreamError:
        raise
    except Exception as e:
        logger.error(f"Gemini call failed: {e}")
        raise UpstreamError(f"Gemini API error: {str(e)}") from e
