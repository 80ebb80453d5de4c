"""Session state container shared by the orchestrator and the display layer."""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .hints import Tone, TranslationOptions, normalise_terms
from .languages import DEFAULT_CATALOG, Language, LanguageCatalog
from .structures import (
    Batch,
    SessionStats,
    TaskState,
    TranslationTask,
    can_transition,
)

logger = logging.getLogger(__name__)

Listener = Callable[["SessionStore", str], None]
Clock = Callable[[], float]

DEFAULT_SOURCE_CODE = "en"
DEFAULT_TARGET_CODES = ("es", "fr", "ja")


def _unique_by_code(languages: Iterable[Language]) -> Tuple[Language, ...]:
    seen: dict[str, Language] = {}
    for language in languages:
        seen.setdefault(language.code, language)
    return tuple(seen.values())


class SessionStore:
    """Holds the mutable state of one translation session.

    Every mutation is a single synchronous call, so observers never see a
    half-applied update when the store is driven from one event loop. Batch
    tasks are keyed by generation and language code; updates addressed to a
    generation other than the current one are ignored.
    """

    def __init__(
        self,
        *,
        catalog: LanguageCatalog = DEFAULT_CATALOG,
        clock: Clock = time.monotonic,
        api_key: str = "",
    ) -> None:
        self.catalog = catalog
        self._clock = clock
        self._generations = itertools.count(1)
        self._listeners: List[Listener] = []

        self._source_text = ""
        self._source_language: Optional[Language] = None
        self._detected_language: Optional[Language] = None
        self._target_languages: Tuple[Language, ...] = ()
        self._batch: Optional[Batch] = None
        self._is_detecting = False

        self._api_key = api_key
        self._credential_prompt_open = False

        self._options = TranslationOptions()

        self._immersive_open = False
        self._immersive_auto_close = False

    @classmethod
    def with_defaults(
        cls,
        catalog: LanguageCatalog = DEFAULT_CATALOG,
        **kwargs,
    ) -> "SessionStore":
        """Create a store preselecting English as source and es/fr/ja as targets."""

        store = cls(catalog=catalog, **kwargs)
        store._source_language = catalog.lookup(DEFAULT_SOURCE_CODE)
        store._target_languages = tuple(
            language
            for language in (catalog.lookup(code) for code in DEFAULT_TARGET_CODES)
            if language is not None
        )
        return store

    # Subscription -----------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener and return a callable that removes it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(self, event)
            except Exception:
                logger.exception("Session listener failed while handling %r", event)

    # Source and selection ---------------------------------------------------

    @property
    def source_text(self) -> str:
        return self._source_text

    def set_source_text(self, text: str) -> None:
        self._source_text = text
        self._notify("source_text")

    @property
    def source_language(self) -> Optional[Language]:
        """The explicit source language, or ``None`` when auto-detect is selected."""

        return self._source_language

    def set_source_language(self, language: Optional[Language]) -> None:
        self._source_language = language
        self._notify("source_language")

    @property
    def detected_language(self) -> Optional[Language]:
        return self._detected_language

    def set_detected_language(self, language: Optional[Language]) -> None:
        self._detected_language = language
        if self._batch is not None:
            self._batch.detected_language = language
        self._notify("detected_language")

    @property
    def is_detecting(self) -> bool:
        return self._is_detecting

    def set_detecting(self, detecting: bool) -> None:
        self._is_detecting = detecting
        self._notify("detecting")

    @property
    def target_languages(self) -> Tuple[Language, ...]:
        return self._target_languages

    def is_target_selected(self, code: str) -> bool:
        return any(language.code == code for language in self._target_languages)

    def set_target_languages(self, languages: Iterable[Language]) -> None:
        self._target_languages = _unique_by_code(languages)
        self._notify("target_languages")

    def toggle_target_language(self, language: Language) -> bool:
        """Select or deselect a target language; returns whether it is now selected.

        Deselecting also drops the language's task from the current batch. An
        in-flight call for it keeps running; its result is discarded on arrival.
        """

        if self.is_target_selected(language.code):
            self._target_languages = tuple(
                selected
                for selected in self._target_languages
                if selected.code != language.code
            )
            if self._batch is not None and language.code in self._batch.tasks:
                del self._batch.tasks[language.code]
                logger.debug(
                    "Removed %s from batch %d", language.code, self._batch.generation
                )
                self._finish_if_settled()
            self._notify("target_languages")
            return False

        self._target_languages = self._target_languages + (language,)
        self._notify("target_languages")
        return True

    # Credential -------------------------------------------------------------

    @property
    def api_key(self) -> str:
        return self._api_key

    @property
    def has_credential(self) -> bool:
        return bool(self._api_key.strip())

    def set_api_key(self, key: str) -> None:
        self._api_key = key
        if self.has_credential:
            self._credential_prompt_open = False
        self._notify("api_key")

    @property
    def credential_prompt_open(self) -> bool:
        return self._credential_prompt_open

    def request_credential(self) -> None:
        self._credential_prompt_open = True
        self._notify("credential_prompt")

    def close_credential_prompt(self) -> None:
        self._credential_prompt_open = False
        self._notify("credential_prompt")

    # Translation options ----------------------------------------------------

    @property
    def options(self) -> TranslationOptions:
        return self._options

    def set_tone(self, tone: "Tone | str") -> None:
        self._options = replace(self._options, tone=Tone.parse(tone))
        self._notify("options")

    def set_context(self, context: str) -> None:
        self._options = replace(self._options, context=context)
        self._notify("options")

    def set_preserve_terms(self, terms: Sequence[str]) -> None:
        self._options = replace(self._options, preserve_terms=normalise_terms(terms))
        self._notify("options")

    # Batch lifecycle --------------------------------------------------------

    @property
    def batch(self) -> Optional[Batch]:
        return self._batch

    @property
    def generation(self) -> Optional[int]:
        return self._batch.generation if self._batch is not None else None

    @property
    def tasks(self) -> Tuple[TranslationTask, ...]:
        return self._batch.snapshot() if self._batch is not None else ()

    def task(self, code: str) -> Optional[TranslationTask]:
        if self._batch is None:
            return None
        return self._batch.tasks.get(code)

    @property
    def elapsed_ms(self) -> Optional[float]:
        return self._batch.elapsed_ms if self._batch is not None else None

    @property
    def is_settled(self) -> bool:
        return self._batch is not None and self._batch.is_settled

    @property
    def is_translating(self) -> bool:
        return self._batch is not None and not self._batch.is_settled

    def start_batch(self, languages: Iterable[Language]) -> int:
        """Replace the current batch with fresh pending tasks; returns its generation."""

        generation = next(self._generations)
        batch = Batch(generation=generation, started_at=self._clock())
        for language in _unique_by_code(languages):
            batch.tasks[language.code] = TranslationTask(
                language=language,
                generation=generation,
            )
        if self._batch is not None and not self._batch.is_settled:
            logger.info(
                "Batch %d superseded by batch %d", self._batch.generation, generation
            )
        self._batch = batch
        self._notify("batch_started")
        self._finish_if_settled()
        return generation

    def update_task(
        self,
        code: str,
        state: TaskState,
        *,
        generation: int,
        text: Optional[str] = None,
        error: Optional[str] = None,
    ) -> bool:
        """Apply a state change to one task of the current batch.

        Returns ``False`` without touching anything when the update targets a
        superseded generation, an unknown code, or would move the task backwards.
        """

        batch = self._batch
        if batch is None or batch.generation != generation:
            logger.debug("Discarded %s update for stale batch %d", code, generation)
            return False
        current = batch.tasks.get(code)
        if current is None:
            logger.debug("Discarded update for %s, not part of batch %d", code, generation)
            return False
        if not can_transition(current.state, state):
            return False

        batch.tasks[code] = replace(
            current,
            state=state,
            text=text if state is TaskState.SUCCEEDED else None,
            error=error if state is TaskState.FAILED else None,
        )
        self._notify("task_updated")
        if state.is_terminal:
            self._finish_if_settled()
        return True

    def finish_batch(self) -> bool:
        """Record the elapsed time once every task of the batch has settled."""

        batch = self._batch
        if batch is None or batch.elapsed_ms is not None or not batch.is_settled:
            return False
        batch.elapsed_ms = max(0.0, (self._clock() - batch.started_at) * 1000.0)
        logger.info(
            "Batch %d settled in %.0f ms", batch.generation, batch.elapsed_ms
        )
        self._notify("batch_finished")
        return True

    def _finish_if_settled(self) -> None:
        if self._batch is not None and self._batch.is_settled:
            self.finish_batch()

    def clear_batch(self) -> None:
        self._batch = None
        self._notify("batch_cleared")

    # Immersive display ------------------------------------------------------

    @property
    def immersive_open(self) -> bool:
        return self._immersive_open

    @property
    def immersive_auto_close(self) -> bool:
        return self._immersive_auto_close

    def open_immersive_display(self, *, auto_close: bool = True) -> None:
        self._immersive_open = True
        self._immersive_auto_close = auto_close
        self._notify("immersive")

    def set_immersive_display(self, open_: bool) -> None:
        """Manual toggle; a manually opened display never auto-closes."""

        self._immersive_open = open_
        self._immersive_auto_close = False
        self._notify("immersive")

    def dismiss_immersive_display(self) -> None:
        self.set_immersive_display(False)

    # Derived views ----------------------------------------------------------

    def stats(self) -> SessionStats:
        stripped = self._source_text.strip()
        tasks = self.tasks
        return SessionStats(
            word_count=len(stripped.split()) if stripped else 0,
            char_count=len(self._source_text),
            completed=sum(1 for task in tasks if task.state is TaskState.SUCCEEDED),
            settled=sum(1 for task in tasks if task.is_settled),
            total=len(tasks),
            elapsed_ms=self.elapsed_ms,
        )
