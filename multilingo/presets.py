"""Sample source texts for quick demonstrations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class Preset:
    preset_id: str
    label: str
    text: str


PRESETS: Dict[str, Preset] = {
    preset.preset_id: preset
    for preset in (
        Preset(
            "business",
            "Business",
            "We are pleased to announce our new partnership that will drive innovation "
            "and create value for our customers worldwide.",
        ),
        Preset(
            "casual",
            "Casual",
            "Hey! How's it going? I was thinking we could grab some coffee this "
            "weekend if you're free.",
        ),
        Preset(
            "technical",
            "Technical",
            "The API endpoint accepts POST requests with JSON payloads. Authentication "
            "is handled via Bearer tokens in the Authorization header.",
        ),
        Preset(
            "marketing",
            "Marketing",
            "Unlock your potential with our revolutionary platform. Join millions of "
            "satisfied users and transform the way you work today!",
        ),
        Preset(
            "legal",
            "Legal",
            "The parties hereby agree to the terms and conditions set forth in this "
            "agreement, which shall be binding upon execution.",
        ),
        Preset(
            "creative",
            "Creative",
            "The sunset painted the sky in hues of gold and crimson, as waves "
            "whispered secrets to the ancient shore.",
        ),
    )
}


def get_preset(preset_id: str) -> Optional[Preset]:
    return PRESETS.get(preset_id.strip().lower())
