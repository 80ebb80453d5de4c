"""Tone, context and term hints sent alongside a translation request."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple


class Tone(Enum):
    DEFAULT = "default"
    FORMAL = "formal"
    CASUAL = "casual"
    TECHNICAL = "technical"
    CREATIVE = "creative"

    @classmethod
    def parse(cls, value: "str | Tone | None") -> "Tone":
        """Resolve a tone from user input; blank input means the default tone."""

        if isinstance(value, Tone):
            return value
        normalized = (value or "default").strip().lower()
        try:
            return cls(normalized)
        except ValueError as exc:
            choices = ", ".join(tone.value for tone in cls)
            raise ValueError(f"Unknown tone '{value}'. Choose one of: {choices}.") from exc


TONE_INSTRUCTIONS: Dict[Tone, str] = {
    Tone.DEFAULT: "",
    Tone.FORMAL: "Translate in a formal, professional tone suitable for business communication. ",
    Tone.CASUAL: "Translate in a casual, friendly tone suitable for everyday conversation. ",
    Tone.TECHNICAL: (
        "Translate in a precise, technical tone suitable for documentation. "
        "Preserve technical terms. "
    ),
    Tone.CREATIVE: "Translate in an expressive, creative tone that captures the artistic intent. ",
}

HintPayload = Dict[str, List[str]]


def normalise_terms(terms: Iterable[str]) -> Tuple[str, ...]:
    """Drop blank terms and collapse duplicates while keeping first-seen order."""

    seen: List[str] = []
    for term in terms:
        cleaned = term.strip()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return tuple(seen)


@dataclass(frozen=True)
class TranslationOptions:
    """Optional guidance applied to every call of a batch."""

    tone: Tone = Tone.DEFAULT
    context: str = ""
    preserve_terms: Tuple[str, ...] = field(default_factory=tuple)

    def instruction(self) -> str:
        """Concatenate tone, context and preserve-term instructions."""

        tone_part = TONE_INSTRUCTIONS[self.tone]
        context = self.context.strip()
        context_part = f"Context: {context}. " if context else ""
        terms = normalise_terms(self.preserve_terms)
        terms_part = (
            "Important: Preserve these terms as-is or translate appropriately: "
            f"{', '.join(terms)}. "
            if terms
            else ""
        )
        return tone_part + context_part + terms_part


def build_hint_payload(options: TranslationOptions) -> Optional[HintPayload]:
    """Return the hint payload for a request, or ``None`` when there is nothing to send."""

    instruction = options.instruction()
    if not instruction:
        return None

    payload: HintPayload = {"_context": [instruction.strip()]}
    for term in normalise_terms(options.preserve_terms):
        payload[term] = [term]
    return payload
