"""Shared fixtures for the Multilingo test suite."""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional

import pytest

from multilingo.engines import TranslationEngine
from multilingo.hints import TranslationOptions
from multilingo.languages import DEFAULT_CATALOG
from multilingo.session import SessionStore


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedEngine(TranslationEngine):
    """Engine whose answers and timing are controlled by the test."""

    name = "scripted"

    def __init__(
        self,
        *,
        detected: "str | Exception" = "fr",
        results: Optional[Dict[str, "str | Exception"]] = None,
    ) -> None:
        self.detected = detected
        self.results = results or {}
        self.detect_calls: List[str] = []
        self.translate_calls: List[dict] = []
        self.detect_gate: Optional[asyncio.Event] = None
        self._holds: Dict[str, List[asyncio.Event]] = {}
        self.closed = False

    def hold(self, code: str) -> asyncio.Event:
        """Block the next translate call for ``code`` until the returned event is set."""

        event = asyncio.Event()
        self._holds.setdefault(code, []).append(event)
        return event

    async def detect_locale(self, text: str, *, api_key: str) -> str:
        self.detect_calls.append(text)
        if self.detect_gate is not None:
            await self.detect_gate.wait()
        if isinstance(self.detected, Exception):
            raise self.detected
        return self.detected

    async def translate(
        self,
        text: str,
        *,
        source_code: Optional[str],
        target_code: str,
        options: TranslationOptions,
        api_key: str,
    ) -> str:
        self.translate_calls.append(
            {
                "text": text,
                "source_code": source_code,
                "target_code": target_code,
                "options": options,
                "api_key": api_key,
            }
        )
        holds = self._holds.get(target_code)
        if holds:
            await holds.pop(0).wait()
        result = self.results.get(target_code, f"{text}|{target_code}")
        if isinstance(result, Exception):
            raise result
        return result

    async def aclose(self) -> None:
        self.closed = True


async def wait_until(predicate: Callable[[], bool], *, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog():
    return DEFAULT_CATALOG


@pytest.fixture
def make_store(catalog):
    def factory(
        *,
        text: str = "Hello",
        source: Optional[str] = "en",
        targets=("es", "fr"),
        api_key: str = "secret",
        clock: Optional[Callable[[], float]] = None,
    ) -> SessionStore:
        kwargs = {"api_key": api_key}
        if clock is not None:
            kwargs["clock"] = clock
        store = SessionStore(catalog=catalog, **kwargs)
        store.set_source_text(text)
        store.set_source_language(catalog.get(source) if source else None)
        store.set_target_languages(catalog.get(code) for code in targets)
        return store

    return factory
