"""Translation engine abstractions.

Each engine wraps exactly one outbound request per call: detect the locale of
a text, or translate a text into one target locale. Every failure is
normalised into :class:`DetectionError` or :class:`TranslationError` before it
leaves this module.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

import httpx
import openai
from openai import AsyncOpenAI

from .errors import (
    ConfigurationError,
    DetectionError,
    EngineError,
    ErrorCategory,
    TranslationError,
)
from .hints import TranslationOptions, build_hint_payload, normalise_terms

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://localhost:3000/api/translate"


class TranslationEngine(ABC):
    """Abstract adapter for translation backends."""

    name = "engine"

    @abstractmethod
    async def detect_locale(self, text: str, *, api_key: str) -> str:
        """Return the locale code the backend recognises for ``text``."""

    @abstractmethod
    async def translate(
        self,
        text: str,
        *,
        source_code: Optional[str],
        target_code: str,
        options: TranslationOptions,
        api_key: str,
    ) -> str:
        """Translate ``text`` into ``target_code``; ``source_code=None`` means auto."""

    async def aclose(self) -> None:
        return None

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not getattr(self, "debug", False):
            return
        try:
            if isinstance(payload, (dict, list)):
                message = json.dumps(_redact(payload), ensure_ascii=False, indent=2)
            else:
                message = str(payload)
        except (TypeError, ValueError):
            message = repr(payload)
        logger.debug("[%s] %s:\n%s", self.name, label, message)


def _redact(payload: Any) -> Any:
    if isinstance(payload, dict):
        return {
            key: ("***" if key in {"apiKey", "api_key"} and value else _redact(value))
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [_redact(item) for item in payload]
    return payload


def _require_text(text: str, error_cls: Type[EngineError]) -> None:
    if not text or not text.strip():
        raise error_cls("Source text is empty.", ErrorCategory.OTHER)


class EchoTranslationEngine(TranslationEngine):
    """An engine that returns the source text unchanged (useful for dry runs and tests)."""

    name = "echo"

    def __init__(self, *, detected_locale: str = "en") -> None:
        self.detected_locale = detected_locale

    async def detect_locale(self, text: str, *, api_key: str) -> str:
        _require_text(text, DetectionError)
        return self.detected_locale

    async def translate(
        self,
        text: str,
        *,
        source_code: Optional[str],
        target_code: str,
        options: TranslationOptions,
        api_key: str,
    ) -> str:
        _require_text(text, TranslationError)
        return text


class HttpTranslationEngine(TranslationEngine):
    """Engine speaking the JSON ``/api/translate`` protocol.

    Requests are ``POST``ed as JSON with an ``action`` of ``detect`` or
    ``translate``. Translate requests carry the raw ``tone``, ``context`` and
    ``hints`` (the list of preserved terms); the backend assembles the SDK hint
    dictionary from them. Answers are ``{"locale": ...}``, ``{"text": ...}`` or
    ``{"error": ...}``.
    """

    name = "http"

    def __init__(
        self,
        *,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        debug: bool = False,
    ) -> None:
        self.endpoint = endpoint
        self.debug = debug
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def detect_locale(self, text: str, *, api_key: str) -> str:
        _require_text(text, DetectionError)
        data = await self._post(
            {"apiKey": api_key, "action": "detect", "text": text},
            error_cls=DetectionError,
        )
        locale = data.get("locale")
        if not isinstance(locale, str) or not locale.strip():
            raise DetectionError(
                "Language detection returned no locale.", ErrorCategory.MALFORMED
            )
        return locale.strip()

    async def translate(
        self,
        text: str,
        *,
        source_code: Optional[str],
        target_code: str,
        options: TranslationOptions,
        api_key: str,
    ) -> str:
        _require_text(text, TranslationError)
        payload: Dict[str, Any] = {
            "apiKey": api_key,
            "action": "translate",
            "text": text,
            "sourceLocale": source_code,
            "targetLocale": target_code,
            "tone": options.tone.value,
            "context": options.context.strip(),
            "hints": list(normalise_terms(options.preserve_terms)),
        }

        data = await self._post(payload, error_cls=TranslationError)
        translated = data.get("text")
        if not isinstance(translated, str):
            raise TranslationError(
                "Translation response malformed: missing text.", ErrorCategory.MALFORMED
            )
        return translated

    async def _post(
        self,
        payload: Dict[str, Any],
        *,
        error_cls: Type[EngineError],
    ) -> Dict[str, Any]:
        self._log_debug("engine.request.payload", payload)
        try:
            response = await self._client.post(self.endpoint, json=payload)
        except httpx.TimeoutException as exc:
            raise error_cls(
                f"Translation service timed out ({exc.__class__.__name__}).",
                ErrorCategory.TIMEOUT,
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise error_cls(
                f"Translation service unreachable: {exc}", ErrorCategory.NETWORK
            ) from exc

        try:
            data = response.json()
        except ValueError:
            data = None
        self._log_debug("engine.response.body", data if data is not None else response.text)

        backend_error = data.get("error") if isinstance(data, dict) else None
        if not response.is_success:
            message = (
                str(backend_error)
                if backend_error
                else f"Translation service returned HTTP {response.status_code}."
            )
            raise error_cls(message, ErrorCategory.HTTP_STATUS)
        if not isinstance(data, dict):
            raise error_cls(
                "Translation service returned an unrecognised response.",
                ErrorCategory.MALFORMED,
            )
        if backend_error:
            raise error_cls(str(backend_error), ErrorCategory.BACKEND)
        return data

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class OpenAITranslationEngine(TranslationEngine):
    """Engine that calls OpenAI chat models directly."""

    name = "openai"

    DEFAULT_MODEL = "gpt-4o-mini"

    DETECT_PROMPT = (
        "Identify the language of the user's text. Respond with only its locale "
        "code, such as en, fr, pt-BR or zh-Hans. Do not add commentary."
    )

    def __init__(
        self,
        *,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        debug: bool = False,
    ) -> None:
        self.model = model or self.DEFAULT_MODEL
        self.timeout = timeout
        self.debug = debug
        self._clients: Dict[str, AsyncOpenAI] = {}

    def _client_for(self, api_key: str) -> AsyncOpenAI:
        client = self._clients.get(api_key)
        if client is None:
            client = AsyncOpenAI(api_key=api_key, timeout=self.timeout)
            self._clients[api_key] = client
        return client

    def _system_prompt(
        self,
        *,
        source_code: Optional[str],
        target_code: str,
        options: TranslationOptions,
    ) -> str:
        source = source_code or "the detected source language"
        prompt = (
            f"You are a professional translator. Translate the user's text from {source} "
            f"into the language with locale code {target_code}. Preserve formatting, "
            "placeholders, numbers, and markup. Return only the translation. "
            "Do not add commentary. Do not wrap the answer in markdown code fences."
        )
        hints = build_hint_payload(options)
        if hints is not None:
            prompt = f"{prompt}\n{hints['_context'][0]}"
        return prompt

    async def detect_locale(self, text: str, *, api_key: str) -> str:
        _require_text(text, DetectionError)
        content = await self._complete(
            system_prompt=self.DETECT_PROMPT,
            user_text=text,
            api_key=api_key,
            error_cls=DetectionError,
        )
        locale = content.split()[0].strip(" .\"'`") if content.split() else ""
        if not locale:
            raise DetectionError(
                "Language detection returned no locale.", ErrorCategory.MALFORMED
            )
        return locale

    async def translate(
        self,
        text: str,
        *,
        source_code: Optional[str],
        target_code: str,
        options: TranslationOptions,
        api_key: str,
    ) -> str:
        _require_text(text, TranslationError)
        return await self._complete(
            system_prompt=self._system_prompt(
                source_code=source_code, target_code=target_code, options=options
            ),
            user_text=text,
            api_key=api_key,
            error_cls=TranslationError,
        )

    async def _complete(
        self,
        *,
        system_prompt: str,
        user_text: str,
        api_key: str,
        error_cls: Type[EngineError],
    ) -> str:
        """Call the Chat Completions API and return the stripped message text."""

        self._log_debug("engine.request.system_prompt", system_prompt)
        try:
            response = await self._client_for(api_key).chat.completions.create(
                model=self.model,
                temperature=0,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_text},
                ],
            )
        except openai.APITimeoutError as exc:
            raise error_cls("Translation service timed out.", ErrorCategory.TIMEOUT) from exc
        except openai.APIConnectionError as exc:
            raise error_cls(
                f"Translation service unreachable: {exc}", ErrorCategory.NETWORK
            ) from exc
        except openai.APIStatusError as exc:
            raise error_cls(
                f"Translation service returned HTTP {exc.status_code}: {exc.message}",
                ErrorCategory.HTTP_STATUS,
            ) from exc
        except openai.OpenAIError as exc:
            raise error_cls(str(exc), ErrorCategory.BACKEND) from exc

        content: Optional[str] = None
        for choice in getattr(response, "choices", None) or []:
            message = getattr(choice, "message", None)
            message_content = getattr(message, "content", None)
            if message_content:
                content = str(message_content)
                break
        self._log_debug("engine.response.content", content)

        if content is None:
            raise error_cls(
                "Translation provider response empty or unrecognised.",
                ErrorCategory.MALFORMED,
            )
        return _strip_code_fence(content)

    async def aclose(self) -> None:
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.close()


def _strip_code_fence(text: str) -> str:
    """Remove leading/trailing markdown code fences if present."""

    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped

    # Drop opening fence and optional language hint.
    first_newline = stripped.find("\n")
    if first_newline == -1:
        return stripped
    body = stripped[first_newline + 1 :]
    closing_index = body.rfind("```")
    if closing_index != -1:
        body = body[:closing_index]
    return body.strip()


def build_engine(
    name: Optional[str],
    *,
    endpoint: str = DEFAULT_ENDPOINT,
    model: Optional[str] = None,
    timeout: Optional[float] = None,
    debug: bool = False,
) -> TranslationEngine:
    """Factory to create engines by name."""

    normalized = (name or "http").strip().lower()
    if normalized in {"http", "default", "lingo"}:
        return HttpTranslationEngine(endpoint=endpoint, timeout=timeout, debug=debug)
    if normalized in {"openai", "gpt"}:
        return OpenAITranslationEngine(model=model, timeout=timeout, debug=debug)
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslationEngine()
    raise ConfigurationError(f"Unknown translation engine '{name}'.")
