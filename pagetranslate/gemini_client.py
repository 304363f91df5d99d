"""Gemini API client used as the remote translation operation.

This module provides an async HTTP client for the Generative Language API.
Uses httpx for connection pooling and timeout handling. Each call is a single
attempt: retries, pacing and rate limiting belong to the request scheduler,
so every failure is raised as a classified ``TranslationError``.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from pagetranslate.config import (
    GEMINI_API_BASE,
    GEMINI_TIMEOUT,
    SAFETY_CATEGORIES,
    TRANSLATION_TEMPERATURE,
    RequestContext,
    get_language_name,
    is_supported_model,
    normalize_model_name,
)
from pagetranslate.errors import (
    AuthenticationFailed,
    InvalidRequest,
    MalformedResponse,
    MissingCredential,
    RateLimited,
    ServiceUnavailable,
    TranslationError,
    TransportError,
    UnknownTranslationError,
)

logger = logging.getLogger(__name__)

# Suppress httpx debug logs to prevent request details from leaking
logging.getLogger('httpx').setLevel(logging.ERROR)

_AUTH_MARKERS = ('api key not valid', 'authentication credentials', 'api_key_invalid')
_EXHAUSTED_MARKERS = ('resource has been exhausted', 'resource_exhausted', 'quota')


def _redact_token(token: Optional[str]) -> str:
    """Redact API key for safe logging.

    Args:
        token: API key to redact

    Returns:
        Redacted key string
    """
    if not token:
        return "[EMPTY]"
    if len(token) <= 8:
        return "****"
    return f"{token[:4]}...{token[-4:]}"


@dataclass(frozen=True)
class ModelInfo:
    """A model offered to the user in the options page."""

    name: str
    display_name: str
    description: str


@dataclass
class ApiKeyValidation:
    """Outcome of ``GeminiClient.validate_api_key``."""

    is_valid: bool
    models: list[ModelInfo] = field(default_factory=list)
    error: Optional[str] = None


class TranslationClient(ABC):
    """Abstract remote translation operation."""

    @abstractmethod
    async def translate(self, text: str, context: RequestContext) -> str:
        """Translate ``text`` and return the translated text.

        Raises:
            TranslationError: A classified failure; ``retryable`` tells the
                scheduler whether another attempt may succeed.
        """

    async def aclose(self) -> None:
        """Release network resources (no-op by default)."""


def classify_failure(status_code: int, message: str) -> TranslationError:
    """Map an HTTP status and provider message to a translation error."""

    lowered = message.lower()
    if status_code in (401, 403) or any(marker in lowered for marker in _AUTH_MARKERS):
        return AuthenticationFailed(message, status_code=status_code)
    if status_code == 429 or any(marker in lowered for marker in _EXHAUSTED_MARKERS):
        return RateLimited(message, status_code=status_code)
    if status_code == 503:
        return ServiceUnavailable(message, status_code=status_code)
    if 400 <= status_code < 500:
        return InvalidRequest(message, status_code=status_code)
    return UnknownTranslationError(message, status_code=status_code)


class GeminiClient(TranslationClient):
    """Gemini ``generateContent`` client.

    Features:
    - Connection pooling via httpx
    - API key sent as a header, never in URLs or logs
    - Typed exceptions for different error types
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = GEMINI_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: API root (defaults to GEMINI_API_BASE)
            timeout: Request timeout in seconds; None waits for the provider
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = (base_url or GEMINI_API_BASE).rstrip('/')
        self.timeout = timeout
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> GeminiClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client and release connections"""
        await self.client.aclose()

    def _handle_response(self, response: httpx.Response) -> dict:
        """Parse and validate an API response.

        Raises:
            AuthenticationFailed: Invalid key
            RateLimited: Rate limit or quota exceeded
            ServiceUnavailable: Provider overloaded (503)
            InvalidRequest: Other 4xx answers
            MalformedResponse: Success status without a JSON object
            UnknownTranslationError: Other server errors
        """
        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400:
            message = ''
            if isinstance(data, dict) and isinstance(data.get('error'), dict):
                message = str(data['error'].get('message') or '')
            raise classify_failure(
                response.status_code,
                message or f"API request failed with HTTP {response.status_code}",
            )

        if not isinstance(data, dict):
            raise MalformedResponse("Response body is not a JSON object")
        return data

    async def _send(self, method: str, url: str, api_key: str, **kwargs: Any) -> dict:
        """Perform one request, mapping transport failures."""
        try:
            response = await self.client.request(
                method, url, headers={'x-goog-api-key': api_key}, **kwargs
            )
        except httpx.TimeoutException as exc:
            logger.error("Request timeout after %s", f"{self.timeout:.1f}s" if self.timeout else "provider limit")
            raise TransportError(f"Request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            logger.error("Network error during request: %s", exc)
            raise TransportError(f"Network error: {exc}") from exc
        return self._handle_response(response)

    @staticmethod
    def _build_prompt(text: str, target_language: str) -> str:
        language = get_language_name(target_language)
        return (
            f"Translate the following text to {language}. "
            "Translate each line separately and return exactly one line per input line, "
            "in the same order. "
            f"Only return the translation without any explanation:\n{text}"
        )

    def _generate_payload(self, prompt: str) -> dict:
        return {
            'contents': [{'parts': [{'text': prompt}]}],
            'generationConfig': {
                'temperature': TRANSLATION_TEMPERATURE,
                'topK': 1,
                'topP': 1,
            },
            'safetySettings': [
                {'category': category, 'threshold': 'BLOCK_NONE'}
                for category in SAFETY_CATEGORIES
            ],
        }

    @staticmethod
    def _extract_text(data: dict) -> str:
        """Pull the generated text out of a ``generateContent`` response."""
        candidates = data.get('candidates')
        if not isinstance(candidates, list) or not candidates:
            feedback = data.get('promptFeedback') or {}
            reason = feedback.get('blockReason') if isinstance(feedback, dict) else None
            if reason:
                raise MalformedResponse(f"Prompt blocked by provider: {reason}")
            raise MalformedResponse("Invalid API response format: no candidates")

        content = candidates[0].get('content') if isinstance(candidates[0], dict) else None
        parts = content.get('parts') if isinstance(content, dict) else None
        texts = [
            part['text'] for part in parts or []
            if isinstance(part, dict) and isinstance(part.get('text'), str)
        ]
        if not texts:
            raise MalformedResponse("Invalid API response format: missing text")
        return ''.join(texts).strip()

    async def translate(self, text: str, context: RequestContext) -> str:
        """Translate text with the context's model and target language."""
        if not context.api_key:
            raise MissingCredential("API key is not configured. Set it in the options first.")

        model = normalize_model_name(context.model)
        url = f"{self.base_url}/models/{model}:generateContent"
        logger.debug(
            "Translating %d chars to %s with %s (key %s)",
            len(text),
            context.target_language,
            model,
            _redact_token(context.api_key),
        )
        payload = self._generate_payload(self._build_prompt(text, context.target_language))
        data = await self._send('POST', url, context.api_key, json=payload)
        return self._extract_text(data)

    async def list_models(self, api_key: str) -> list[ModelInfo]:
        """Return the usable Gemini models, sorted by display name.

        Experimental and deprecated models are left out; descriptions are
        cut to their first sentence.
        """
        if not api_key:
            raise MissingCredential("API key is not configured.")

        models: list[ModelInfo] = []
        params: dict[str, str] = {}
        while True:
            data = await self._send('GET', f"{self.base_url}/models", api_key, params=params)
            for entry in data.get('models') or []:
                if not isinstance(entry, dict):
                    continue
                name = str(entry.get('name') or '')
                description = str(entry.get('description') or '')
                if not is_supported_model(name, description):
                    continue
                models.append(ModelInfo(
                    name=name,
                    display_name=str(entry.get('displayName') or name),
                    description=description.split('.')[0],
                ))
            token = data.get('nextPageToken')
            if not token:
                break
            params = {'pageToken': token}

        models.sort(key=lambda model: model.display_name)
        return models

    async def validate_api_key(self, api_key: Optional[str], model: Optional[str] = None) -> ApiKeyValidation:
        """Check that a key can list models and reach one model.

        Never raises for API failures; the outcome is reported in the result.
        """
        if not api_key:
            return ApiKeyValidation(is_valid=False, error="API key is empty")

        logger.info("Validating API key %s", _redact_token(api_key))
        try:
            models = await self.list_models(api_key)
            probe_model = normalize_model_name(model)
            await self._send(
                'POST',
                f"{self.base_url}/models/{probe_model}:generateContent",
                api_key,
                json={'contents': [{'parts': [{'text': 'Test'}]}]},
            )
        except TranslationError as exc:
            logger.warning("API key validation failed: %s", exc)
            return ApiKeyValidation(is_valid=False, error=str(exc))

        logger.info("API key valid, %d models available", len(models))
        return ApiKeyValidation(is_valid=True, models=models)
