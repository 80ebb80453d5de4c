"""High-level orchestration of multi-language translation batches."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Dict, List, Optional, Set, Type

from .engines import TranslationEngine
from .errors import (
    ConfigurationError,
    DetectionError,
    EngineError,
    ErrorCategory,
    TranslationError,
)
from .hints import TranslationOptions
from .languages import DEFAULT_CATALOG, Language, LanguageCatalog
from .session import SessionStore
from .structures import TaskState

logger = logging.getLogger(__name__)

AUTO = "auto"
DEFAULT_AUTO_CLOSE_DELAY = 3.5


class BatchPhase(Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    FANNING_OUT = "fanning_out"
    SETTLING = "settling"
    DONE = "done"


@dataclass
class BatchSummary:
    """Report returned once a batch has settled."""

    generation: int
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    elapsed_ms: Optional[float] = None
    detected_language: Optional[Language] = None
    superseded: bool = False

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


class ImmersiveDisplayController:
    """Closes the auto-closing immersive display a fixed dwell after a batch settles."""

    def __init__(self, store: SessionStore, *, delay: float = DEFAULT_AUTO_CLOSE_DELAY) -> None:
        self.store = store
        self.delay = delay
        self._timer: Optional[asyncio.Task] = None
        self._timer_generation: Optional[int] = None
        self._unsubscribe = store.subscribe(self._on_change)

    @property
    def close_pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def _on_change(self, store: SessionStore, event: str) -> None:
        if not store.immersive_open or not store.immersive_auto_close:
            self.cancel()
            return
        if event == "batch_started":
            self.cancel()
        if store.batch is None or not store.is_settled:
            return
        if self.close_pending and self._timer_generation == store.generation:
            return
        self._schedule(store.generation)

    def _schedule(self, generation: Optional[int]) -> None:
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Without a running loop there is nothing to wait on; close at once.
            self._close(generation)
            return
        self._timer_generation = generation
        self._timer = loop.create_task(self._close_later(generation))

    async def _close_later(self, generation: Optional[int]) -> None:
        await asyncio.sleep(self.delay)
        self._timer = None
        self._timer_generation = None
        self._close(generation)

    def _close(self, generation: Optional[int]) -> None:
        store = self.store
        if (
            store.generation == generation
            and store.immersive_open
            and store.immersive_auto_close
        ):
            logger.debug("Auto-closing immersive display for batch %s", generation)
            store.set_immersive_display(False)

    def cancel(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
        self._timer_generation = None

    def detach(self) -> None:
        self.cancel()
        self._unsubscribe()


class TranslationOrchestrator:
    """Fans one source text out to every selected target language.

    All mutations flow through the :class:`SessionStore`; each call's result is
    written with the generation of the batch that issued it, so results from a
    superseded batch never touch the current one.
    """

    def __init__(
        self,
        store: SessionStore,
        engine: TranslationEngine,
        *,
        catalog: Optional[LanguageCatalog] = None,
        request_timeout: Optional[float] = None,
        auto_close_delay: float = DEFAULT_AUTO_CLOSE_DELAY,
    ) -> None:
        self.store = store
        self.engine = engine
        self.catalog = catalog or store.catalog or DEFAULT_CATALOG
        self.request_timeout = request_timeout
        self.display = ImmersiveDisplayController(store, delay=auto_close_delay)
        self._phases: Dict[int, BatchPhase] = {}
        self._inflight: Set[asyncio.Task] = set()
        self._detecting_generation: Optional[int] = None

    # UI commands ------------------------------------------------------------

    def set_source_text(self, text: str) -> None:
        self.store.set_source_text(text)

    def set_source_language(self, code: Optional[str]) -> None:
        """Select a source language by code; ``None``, blank or ``"auto"`` means auto-detect."""

        if code is None or not code.strip() or code.strip().lower() == AUTO:
            self.store.set_source_language(None)
            return
        self.store.set_source_language(self.catalog.get(code))

    def toggle_target_language(self, code: str) -> bool:
        return self.store.toggle_target_language(self.catalog.get(code))

    def dismiss_immersive_display(self) -> None:
        self.store.dismiss_immersive_display()

    @property
    def phase(self) -> BatchPhase:
        """Phase of the batch currently held by the store."""

        generation = self.store.generation
        if generation is None:
            return BatchPhase.IDLE
        if self.store.is_settled:
            return BatchPhase.DONE
        return self._phases.get(generation, BatchPhase.FANNING_OUT)

    # Orchestration ----------------------------------------------------------

    async def submit_batch(self) -> Optional[BatchSummary]:
        """Run one batch to completion.

        Returns ``None`` when there is nothing to translate. Raises
        :class:`ConfigurationError` before any network call when no
        credential is available.
        """

        store = self.store
        if not store.has_credential:
            store.request_credential()
            raise ConfigurationError(
                "An API key is required before translating. Provide one and try again."
            )

        text = store.source_text
        targets = store.target_languages
        if not text.strip() or not targets:
            logger.debug("Nothing to translate; submission ignored.")
            return None

        source = store.source_language
        options = store.options
        api_key = store.api_key

        generation = store.start_batch(targets)
        store.open_immersive_display(auto_close=True)
        logger.info(
            "Batch %d started for %d languages: %s",
            generation,
            len(targets),
            ", ".join(language.code for language in targets),
        )

        if source is None:
            self._phases[generation] = BatchPhase.DETECTING
            await self._detect(text, generation=generation, api_key=api_key)
            if store.generation != generation:
                logger.info("Batch %d superseded during detection.", generation)
                self._phases.pop(generation, None)
                return BatchSummary(generation=generation, superseded=True)
        elif store.detected_language is not None:
            store.set_detected_language(None)

        self._phases[generation] = BatchPhase.FANNING_OUT
        handles: List[asyncio.Task] = []
        for task in store.tasks:
            store.update_task(task.code, TaskState.IN_FLIGHT, generation=generation)
            handle = asyncio.create_task(
                self._translate_one(
                    text,
                    task.language,
                    generation=generation,
                    source_code=source.code if source is not None else None,
                    options=options,
                    api_key=api_key,
                )
            )
            self._inflight.add(handle)
            handle.add_done_callback(self._inflight.discard)
            handles.append(handle)
        self._phases[generation] = BatchPhase.SETTLING

        # Joined for bookkeeping only; every call records its own result.
        await asyncio.gather(*handles, return_exceptions=True)
        self._phases.pop(generation, None)
        return self._summarise(generation, [language.code for language in targets])

    async def _detect(self, text: str, *, generation: int, api_key: str) -> None:
        store = self.store
        store.set_detected_language(None)
        self._detecting_generation = generation
        store.set_detecting(True)
        try:
            code = await self._with_timeout(
                self.engine.detect_locale(text, api_key=api_key), DetectionError
            )
        except DetectionError as exc:
            logger.info("Language detection failed, continuing with auto: %s", exc)
            return
        except Exception:
            logger.exception("Unexpected engine failure during language detection")
            return
        finally:
            if self._detecting_generation == generation:
                self._detecting_generation = None
                store.set_detecting(False)

        if store.generation != generation:
            return
        language = self.catalog.lookup(code)
        if language is None:
            logger.info("Detected locale %r is not in the catalog; ignoring.", code)
            return
        store.set_detected_language(language)

    async def _translate_one(
        self,
        text: str,
        language: Language,
        *,
        generation: int,
        source_code: Optional[str],
        options: TranslationOptions,
        api_key: str,
    ) -> None:
        code = language.code
        try:
            translated = await self._with_timeout(
                self.engine.translate(
                    text,
                    source_code=source_code,
                    target_code=code,
                    options=options,
                    api_key=api_key,
                ),
                TranslationError,
            )
        except TranslationError as exc:
            logger.info("Translation to %s failed: %s", code, exc.message)
            self.store.update_task(
                code, TaskState.FAILED, generation=generation, error=exc.message
            )
            return
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Unexpected engine failure while translating to %s", code)
            self.store.update_task(
                code,
                TaskState.FAILED,
                generation=generation,
                error=str(exc) or "Translation failed",
            )
            return

        applied = self.store.update_task(
            code, TaskState.SUCCEEDED, generation=generation, text=translated
        )
        if applied:
            logger.debug("Translation to %s settled for batch %d", code, generation)

    async def _with_timeout(
        self,
        call: Awaitable[str],
        error_cls: Type[EngineError],
    ) -> str:
        if self.request_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self.request_timeout)
        except asyncio.TimeoutError as exc:
            raise error_cls(
                f"Request timed out after {self.request_timeout:g} seconds.",
                ErrorCategory.TIMEOUT,
            ) from exc

    def _summarise(self, generation: int, codes: List[str]) -> BatchSummary:
        store = self.store
        if store.generation != generation:
            return BatchSummary(generation=generation, superseded=True)

        summary = BatchSummary(
            generation=generation,
            elapsed_ms=store.elapsed_ms,
            detected_language=store.batch.detected_language,
        )
        for code in codes:
            task = store.task(code)
            if task is None:
                continue
            if task.state is TaskState.SUCCEEDED:
                summary.succeeded.append(code)
            elif task.state is TaskState.FAILED:
                summary.failed[code] = task.error or "Translation failed"
        return summary

    async def aclose(self) -> None:
        """Cancel outstanding calls and the auto-close timer, then release the engine."""

        self.display.detach()
        pending = [handle for handle in self._inflight if not handle.done()]
        for handle in pending:
            handle.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self.engine.aclose()
