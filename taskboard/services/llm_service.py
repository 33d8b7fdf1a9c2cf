"""Language-model client: Ollama's non-streaming /api/chat endpoint.

Usage:
    from taskboard.services.llm_service import LLMClient

    client = LLMClient.from_config(current_app.config)
    text = client.chat([
        {"role": "system", "content": "You are a Kanban assistant."},
        {"role": "user", "content": "Add a card 'Fix login' to Todo"},
    ])

Every failure (connection refused, timeout, non-2xx status, body without a
message) raises LLMServiceError. Callers treat that as fatal for the request:
nothing is parsed or applied.
"""

import logging

import requests

from taskboard.errors import LLMServiceError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3.2"
DEFAULT_TIMEOUT = 60  # seconds


class LLMClient:
    """Text-in/text-out wrapper around an Ollama-compatible server."""

    def __init__(self, base_url=None, model=None, timeout=None):
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.model = model or DEFAULT_MODEL
        self.timeout = timeout or DEFAULT_TIMEOUT

    @classmethod
    def from_config(cls, config):
        return cls(
            base_url=config.get("LLM_BASE_URL"),
            model=config.get("LLM_MODEL"),
            timeout=config.get("LLM_TIMEOUT"),
        )

    def __repr__(self):
        return f"<LLMClient {self.model} @ {self.base_url}>"

    def chat(self, messages):
        """Send a role-tagged message list and return the completion text.

        Args:
            messages: List of {"role": ..., "content": ...} dicts.

        Returns:
            The assistant message content (str).

        Raises:
            LLMServiceError: On any transport or protocol failure.
        """
        payload = {"model": self.model, "messages": messages, "stream": False}
        url = f"{self.base_url}/api/chat"

        try:
            resp = requests.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(f"LLM request timed out after {self.timeout}s: {e}")
            raise LLMServiceError(f"Language model timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"LLM request failed: {e}")
            raise LLMServiceError(f"Language model request failed: {e}") from e

        if not resp.ok:
            logger.warning(f"LLM returned {resp.status_code}: {resp.text[:200]}")
            raise LLMServiceError(
                f"Language model returned error {resp.status_code}: {resp.text[:200]}"
            )

        try:
            content = resp.json()["message"]["content"]
        except (ValueError, KeyError, TypeError) as e:
            raise LLMServiceError(f"Failed to parse language model response: {e}") from e
        if not isinstance(content, str):
            raise LLMServiceError("Language model response has no text content")

        logger.info(f"LLM {self.model} replied with {len(content)} chars")
        return content

    def is_available(self):
        """True when the server answers its model listing endpoint."""
        try:
            resp = requests.get(f"{self.base_url}/api/tags", timeout=5)
        except requests.exceptions.RequestException:
            return False
        return resp.ok
