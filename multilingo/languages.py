"""Static language catalog."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, Optional, Tuple

from .errors import UnknownLanguageError


class TextDirection(Enum):
    LTR = "ltr"
    RTL = "rtl"


@dataclass(frozen=True)
class Coordinates:
    """Geographic anchor used only by globe visualisations."""

    lat: float
    lng: float


@dataclass(frozen=True)
class Language:
    """A supported language entry."""

    code: str
    name: str
    native_name: str
    flag: str
    coordinates: Coordinates
    direction: TextDirection = TextDirection.LTR
    font_class: Optional[str] = None

    @property
    def is_rtl(self) -> bool:
        return self.direction is TextDirection.RTL


LANGUAGES: Tuple[Language, ...] = (
    Language("en", "English", "English", "🇺🇸", Coordinates(37.09, -95.71)),
    Language("es", "Spanish", "Español", "🇪🇸", Coordinates(40.46, -3.75)),
    Language("fr", "French", "Français", "🇫🇷", Coordinates(46.23, 2.21)),
    Language("de", "German", "Deutsch", "🇩🇪", Coordinates(51.17, 10.45)),
    Language("it", "Italian", "Italiano", "🇮🇹", Coordinates(41.87, 12.57)),
    Language("pt-BR", "Portuguese", "Português", "🇧🇷", Coordinates(-14.24, -51.93)),
    Language("ru", "Russian", "Русский", "🇷🇺", Coordinates(61.52, 105.32)),
    Language(
        "ja",
        "Japanese",
        "日本語",
        "🇯🇵",
        Coordinates(36.2, 138.25),
        font_class="font-japanese",
    ),
    Language("ko", "Korean", "한국어", "🇰🇷", Coordinates(35.91, 127.77)),
    Language(
        "zh-Hans",
        "Chinese (Simplified)",
        "简体中文",
        "🇨🇳",
        Coordinates(35.86, 104.2),
        font_class="font-chinese",
    ),
    Language(
        "ar",
        "Arabic",
        "العربية",
        "🇸🇦",
        Coordinates(23.89, 45.08),
        direction=TextDirection.RTL,
        font_class="font-arabic",
    ),
    Language("hi", "Hindi", "हिन्दी", "🇮🇳", Coordinates(20.59, 78.96)),
    Language("tr", "Turkish", "Türkçe", "🇹🇷", Coordinates(38.96, 35.24)),
    Language("nl", "Dutch", "Nederlands", "🇳🇱", Coordinates(52.13, 5.29)),
    Language("pl", "Polish", "Polski", "🇵🇱", Coordinates(51.92, 19.15)),
    Language("sv", "Swedish", "Svenska", "🇸🇪", Coordinates(60.13, 18.64)),
)


class LanguageCatalog:
    """Read-only, ordered collection of languages addressed by code."""

    def __init__(self, languages: Iterable[Language]) -> None:
        self._languages: Tuple[Language, ...] = tuple(languages)
        self._by_code: Dict[str, Language] = {}
        self._by_folded: Dict[str, Language] = {}
        for language in self._languages:
            if language.code in self._by_code:
                raise ValueError(f"Duplicate language code '{language.code}' in catalog.")
            self._by_code[language.code] = language
            self._by_folded.setdefault(language.code.casefold(), language)

    def lookup(self, code: str) -> Optional[Language]:
        """Return the language for ``code`` or ``None`` when it is not catalogued."""

        if not code:
            return None
        found = self._by_code.get(code)
        if found is not None:
            return found
        return self._by_folded.get(code.strip().casefold())

    def get(self, code: str) -> Language:
        language = self.lookup(code)
        if language is None:
            raise UnknownLanguageError(code)
        return language

    def all(self) -> Tuple[Language, ...]:
        return self._languages

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and self.lookup(code) is not None

    def __iter__(self) -> Iterator[Language]:
        return iter(self._languages)

    def __len__(self) -> int:
        return len(self._languages)


DEFAULT_CATALOG = LanguageCatalog(LANGUAGES)
