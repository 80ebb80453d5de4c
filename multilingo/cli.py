"""Command line interface for the Multilingo translator."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from typing import Callable, Iterable, Optional, Sequence, Set, Tuple

from .configuration import MultilingoConfig, get_settings
from .engines import TranslationEngine, build_engine
from .errors import ConfigurationError, MultilingoError, UnknownLanguageError
from .hints import Tone
from .languages import DEFAULT_CATALOG, LanguageCatalog
from .orchestrator import BatchSummary, TranslationOrchestrator
from .presets import PRESETS, get_preset
from .session import SessionStore
from .structures import TaskState

CredentialPrompt = Callable[[], str]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="multilingo",
        description="Translate one text into several languages at once.",
    )
    parser.add_argument(
        "text",
        nargs="?",
        help="Source text to translate.",
    )
    parser.add_argument(
        "-t",
        "--target",
        nargs="+",
        metavar="CODE",
        help="Target language codes (default: es fr ja).",
    )
    parser.add_argument(
        "-s",
        "--source",
        default="en",
        help="Source language code, or 'auto' to detect it (default: en).",
    )
    parser.add_argument(
        "--tone",
        choices=[tone.value for tone in Tone],
        default=Tone.DEFAULT.value,
        help="Tone applied to every translation (default: default).",
    )
    parser.add_argument(
        "--context",
        default="",
        help="Free-form description of the domain or register of the text.",
    )
    parser.add_argument(
        "--preserve",
        nargs="+",
        metavar="TERM",
        default=[],
        help="Terms the backend should keep as-is.",
    )
    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        help="Use a sample text instead of TEXT.",
    )
    parser.add_argument(
        "-e",
        "--engine",
        help="Translation engine: http, openai or echo.",
    )
    parser.add_argument(
        "--endpoint",
        help="URL of the translate endpoint for the http engine.",
    )
    parser.add_argument(
        "--model",
        help="Model identifier for the openai engine.",
    )
    parser.add_argument(
        "--api-key",
        help="Credential sent with each request.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds before a single call fails.",
    )
    parser.add_argument(
        "--list-languages",
        action="store_true",
        help="List the supported languages and exit.",
    )
    parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Never prompt; fail when the credential is missing.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete engine requests and responses for troubleshooting.",
    )
    return parser


def configure_logging(*, verbose: bool, provider_debug: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if provider_debug:
        logging.getLogger("multilingo.engines").setLevel(logging.DEBUG)


def format_languages(catalog: LanguageCatalog) -> str:
    lines = []
    for language in catalog:
        direction = " (rtl)" if language.is_rtl else ""
        lines.append(f"{language.code:<8} {language.name} / {language.native_name}{direction}")
    return "\n".join(lines)


class ProgressPrinter:
    """Prints each language once as soon as its task settles."""

    def __init__(self, write: Callable[[str], None] = print) -> None:
        self.write = write
        self._printed: Set[Tuple[int, str]] = set()

    def __call__(self, store: SessionStore, event: str) -> None:
        if event != "task_updated":
            return
        for task in store.tasks:
            key = (task.generation, task.code)
            if not task.is_settled or key in self._printed:
                continue
            self._printed.add(key)
            label = f"{task.language.name} ({task.language.native_name})"
            if task.state is TaskState.SUCCEEDED:
                self.write(f"[{task.code}] {label}: {task.text}")
            else:
                self.write(f"[{task.code}] {label} failed: {task.error}")


def _prompt_for_credential() -> str:
    return getpass.getpass("API key: ").strip()


async def run_session(
    *,
    store: SessionStore,
    engine: TranslationEngine,
    request_timeout: Optional[float],
    auto_close_delay: float,
    credential_prompt: Optional[CredentialPrompt],
    write: Callable[[str], None] = print,
) -> Optional[BatchSummary]:
    """Submit one batch for the prepared store, prompting once for a missing credential."""

    orchestrator = TranslationOrchestrator(
        store,
        engine,
        catalog=store.catalog,
        request_timeout=request_timeout,
        auto_close_delay=auto_close_delay,
    )
    unsubscribe = store.subscribe(ProgressPrinter(write))
    try:
        try:
            return await orchestrator.submit_batch()
        except ConfigurationError:
            if credential_prompt is None:
                raise
            key = credential_prompt()
            if not key:
                raise
            store.set_api_key(key)
            return await orchestrator.submit_batch()
    finally:
        unsubscribe()
        await orchestrator.aclose()


def prepare_store(
    *,
    text: str,
    source: str,
    targets: Optional[Sequence[str]],
    tone: str,
    context: str,
    preserve: Sequence[str],
    api_key: str,
    catalog: LanguageCatalog = DEFAULT_CATALOG,
) -> SessionStore:
    """Build a session store from command line selections."""

    store = SessionStore.with_defaults(catalog, api_key=api_key)
    store.set_source_text(text)
    if source.strip().lower() == "auto":
        store.set_source_language(None)
    else:
        store.set_source_language(catalog.get(source))
    if targets:
        store.set_target_languages(catalog.get(code) for code in targets)
    store.set_tone(tone)
    store.set_context(context)
    store.set_preserve_terms(preserve)
    return store


def print_summary(summary: BatchSummary, store: SessionStore) -> None:
    """Output a friendly report once processing completes."""

    stats = store.stats()
    print("\nTranslation complete.")
    print(f"  Words:           {stats.word_count} ({stats.char_count} chars)")
    print(f"  Languages:       {len(summary.succeeded)} translated / {summary.total} total")
    if summary.detected_language is not None:
        print(f"  Detected source: {summary.detected_language.name}")
    if summary.elapsed_ms is not None:
        print(f"  Elapsed time:    {summary.elapsed_ms / 1000:.2f} seconds")
    if summary.failed:
        print("  Notes:")
        for code, message in summary.failed.items():
            print(f"    - {code}: {message}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.list_languages:
        print(format_languages(DEFAULT_CATALOG))
        return 0

    text = args.text
    if args.preset:
        preset = get_preset(args.preset)
        text = preset.text if preset is not None else text
    if not text:
        parser.error("the following arguments are required: text (or --preset)")

    try:
        settings: MultilingoConfig = get_settings()
    except ConfigurationError as exc:
        print(exc)
        return 1

    provider_debug = bool(args.debug_provider or settings.MULTILINGO_PROVIDER_DEBUG)
    configure_logging(verbose=args.verbose, provider_debug=provider_debug)

    engine_name = args.engine or settings.MULTILINGO_ENGINE
    timeout = args.timeout if args.timeout is not None else settings.MULTILINGO_REQUEST_TIMEOUT
    api_key = args.api_key or settings.credential(engine_name)

    try:
        store = prepare_store(
            text=text,
            source=args.source,
            targets=args.target,
            tone=args.tone,
            context=args.context,
            preserve=args.preserve,
            api_key=api_key,
        )
        engine = build_engine(
            engine_name,
            endpoint=args.endpoint or settings.MULTILINGO_ENDPOINT,
            model=args.model or settings.MULTILINGO_OPENAI_MODEL,
            timeout=timeout,
            debug=provider_debug,
        )
    except (UnknownLanguageError, ConfigurationError, ValueError) as exc:
        print(exc)
        return 1

    interactive = not args.non_interactive and sys.stdin.isatty()
    try:
        summary = asyncio.run(
            run_session(
                store=store,
                engine=engine,
                request_timeout=timeout,
                auto_close_delay=settings.MULTILINGO_AUTO_CLOSE_DELAY,
                credential_prompt=_prompt_for_credential if interactive else None,
            )
        )
    except ConfigurationError as exc:
        print(exc)
        return 1
    except MultilingoError as exc:
        print(exc)
        return 1
    except KeyboardInterrupt:
        print("Translation interrupted by user.")
        return 2

    if summary is None:
        print("Nothing to translate.")
        return 1
    print_summary(summary, store)
    return 0 if not summary.failed else 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
