"""
Minimal async client for the Gemini ``generateContent`` REST endpoint.
"""
import json
import logging
import re
from typing import Optional, Dict, Any

import httpx

from elms.config import Settings


logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


class AIServiceError(Exception):
    """The model could not be reached or returned something unusable."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences a model may wrap around JSON."""
    return CODE_FENCE_PATTERN.sub("", text).strip()


def parse_json_reply(text: str) -> Dict[str, Any]:
    """Parse a model reply that should be a single JSON object."""
    try:
        parsed = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise AIServiceError(f"Model reply is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise AIServiceError("Model reply is not a JSON object")
    return parsed


class GeminiClient:
    """
    Sends a single-turn prompt and returns the text of the first candidate.

    A new ``httpx.AsyncClient`` is opened per call. ``transport`` can be
    given to route requests elsewhere (e.g. ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiClient":
        return cls(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            base_url=settings.GEMINI_API_URL,
            timeout=settings.AI_REQUEST_TIMEOUT,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: str) -> str:
        """
        Run ``prompt`` through the model.

        Raises:
            AIServiceError: no API key, transport failure, non-200 status or
                a response without candidate text
        """
        if not self.configured:
            raise AIServiceError("Gemini API key is not configured")

        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {"contents": [{"parts": [{"text": prompt}]}]}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    url,
                    json=payload,
                    headers={"x-goog-api-key": self.api_key},
                )
        except httpx.HTTPError as e:
            raise AIServiceError(f"Gemini request failed: {e}") from e

        if response.status_code != 200:
            raise AIServiceError(f"Gemini returned HTTP {response.status_code}")

        try:
            data = response.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AIServiceError("Unexpected Gemini response shape") from e
