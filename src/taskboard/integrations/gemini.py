"""Gemini REST API integration."""

import json
import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-flash"


class GeminiError(Exception):
    """Raised when a Gemini call fails or returns something unusable."""


class GeminiClient:
    """Minimal client for JSON-mode generateContent calls."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.model = model
        self._client = httpx.Client(
            base_url=base_url,
            headers={"x-goog-api-key": api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        self._client.close()

    def generate_json(self, prompt: str, schema: dict) -> dict:
        """Send a prompt and return the model's JSON answer as a dict."""
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": schema,
            },
        }
        try:
            response = self._client.post(f"/models/{self.model}:generateContent", json=body)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise GeminiError(f"Gemini request failed: {e}") from e

        try:
            text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GeminiError(f"Unexpected Gemini response shape: {e!r}") from e

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise GeminiError(f"Gemini returned invalid JSON: {text[:200]!r}") from e
        if not isinstance(data, dict):
            raise GeminiError(f"Gemini returned {type(data).__name__}, expected an object")
        return data


def get_client(
    api_key: str | None,
    model: str = DEFAULT_MODEL,
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = 20.0,
) -> GeminiClient | None:
    """Get a GeminiClient. Returns None if no API key provided."""
    if not api_key:
        return None
    return GeminiClient(api_key, model=model, base_url=base_url, timeout=timeout)
