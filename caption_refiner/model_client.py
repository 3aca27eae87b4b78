"""
model_client.py

A small client for OpenAI-compatible chat completion APIs (OpenRouter by
default). It issues exactly one request per call and raises on failure;
callers decide how to recover. Response content may arrive as a plain string
or as a list of content parts, and reasoning models may prepend ``<think>``
blocks; both are normalized to plain text here.

Usage:
    from caption_refiner.model_client import ModelClient

    client = ModelClient()
    text = client.complete(
        system_prompt="You are a helpful assistant.",
        user_content="Fix: helo wrld",
    )
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from openai import OpenAI

from .config import ENV_API_KEY, RefinerConfig, load_refiner_config

logger = logging.getLogger(__name__)

THINK_BLOCK_PATTERN = re.compile(r"<think>.*?</think>", flags=re.DOTALL)
DEFAULT_REFERER = "http://localhost"


class ModelClientError(Exception):
    """Base exception for model client errors."""


class APIKeyError(ModelClientError):
    """Raised when there's an issue with the API key."""


class ModelCallError(ModelClientError):
    """Raised when the model call fails or returns nothing usable."""


def _truncate(text: str, limit: int = 500) -> str:
    """Truncate long text for logging."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... [truncated]"


def _part_text(part: Any) -> str:
    if isinstance(part, str):
        return part
    if isinstance(part, dict):
        return str(part.get("text") or "")
    return str(getattr(part, "text", None) or "")


def extract_message_text(message_content: Any) -> str:
    """Normalize message content into a string.

    Content is either a string or a list of parts, where a part is a string,
    a ``{"type": "text", "text": ...}`` dict, or an SDK object with ``text``.
    Non-text parts contribute nothing. ``None`` becomes ``""``.
    """
    if message_content is None:
        return ""
    if isinstance(message_content, str):
        return message_content
    if isinstance(message_content, list):
        return "".join(_part_text(part) for part in message_content)
    return str(message_content)


def strip_reasoning(text: str) -> str:
    """Remove ``<think>...</think>`` blocks some reasoning models emit inline."""
    stripped = THINK_BLOCK_PATTERN.sub("", text)
    removed = len(text) - len(stripped)
    if removed:
        logger.debug("Stripped <think> block(s) from response content (removed %s chars)", removed)
    return stripped


class ModelClient:
    """Client for an OpenAI-compatible completion endpoint.

    Resolves the API key and endpoint from a RefinerConfig and exposes
    ``complete(system_prompt, user_content, model)``, the shape the
    dispatcher consumes.
    """

    def __init__(self, config: RefinerConfig | None = None, client: Any | None = None) -> None:
        self.config = config or load_refiner_config()

        if client is None:
            if not self.config.api_key:
                raise APIKeyError(f"No API key configured. Set {ENV_API_KEY} or provide api_key in the config file.")
            client = OpenAI(
                api_key=self.config.api_key,
                base_url=self.config.api_base_url,
                default_headers={
                    "HTTP-Referer": DEFAULT_REFERER,
                    "X-Title": self.config.app_title,
                },
            )
        self._client = client

        logger.debug(
            "ModelClient initialized with model=%s, base_url=%s, temperature=%s",
            self.config.model,
            self.config.api_base_url,
            self.config.temperature,
        )

    def _build_request(self, system_prompt: str, user_content: str, model: str | None) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ]
        request_params: Dict[str, Any] = {
            "model": model or self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
        }
        if self.config.request_timeout is not None:
            request_params["timeout"] = self.config.request_timeout
        return request_params

    def complete(self, system_prompt: str, user_content: str, model: str | None = None) -> str:
        """Send a completion request and return the cleaned response text.

        Args:
            system_prompt: System prompt text.
            user_content: User message content.
            model: Optional model override for this call.

        Returns:
            Response text with reasoning blocks removed.

        Raises:
            ModelCallError: If the request fails or the response is empty.
        """
        request_params = self._build_request(system_prompt, user_content, model)
        try:
            response = self._client.chat.completions.create(**request_params)
        except Exception as exc:  # noqa: BLE001
            raise ModelCallError(f"Model call to {request_params['model']} failed: {exc}") from exc

        choices: Optional[list] = getattr(response, "choices", None)
        if not choices:
            raise ModelCallError("Model response contained no choices.")

        content = extract_message_text(getattr(choices[0].message, "content", None))
        cleaned = strip_reasoning(content).strip()
        if not cleaned:
            raise ModelCallError("Empty response content from model.")

        logger.debug("Model call succeeded: %s", _truncate(cleaned))
        return cleaned

    @property
    def client(self) -> Any:
        """Access the underlying OpenAI client for advanced usage."""
        return self._client


__all__ = [
    "APIKeyError",
    "ModelCallError",
    "ModelClient",
    "ModelClientError",
    "extract_message_text",
    "strip_reasoning",
]
