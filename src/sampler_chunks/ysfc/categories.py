"""Yamaha Montage/MODX category tables.

Waveform and performance categories are stored as small integers. The
main category is the value divided by 16, the sub category the full
value. Performance flags are a 16-bit mask with one bit per main
category.
"""

from __future__ import annotations

from types import MappingProxyType

NO_ASSIGN = "No Assign"
_ACOUSTIC = "Acoustic"
_ROCK_POP = "Rock / Pop"
_SYNTH = "Synth"
_R_B_HIP_HOP = "R&B / Hip Hop"
_JAZZ_WORLD = "Jazz / World"
_ELECTRONIC = "Electronic"
_ANALOG = "Analog"

MAIN_CATEGORIES: tuple[str, ...] = (
    "Piano", "Keyboard", "Organ", "Guitar", "Bass", "Strings", "Brass", "Winds",
    "Lead", "Pad", "Synth", "Chromatic Percussion", "Drum", "FX", "FX", "World",
    NO_ASSIGN,
)

WAVEFORM_CATEGORY_INDICES = MappingProxyType({
    "Acoustic Drum": 192,
    "Bass": 64,
    "Bell": 177,
    "Brass": 96,
    "Chip": 162,
    "Vocal": 146,
    "Chromatic Percussion": 176,
    "Clap": 192,
    "Destruction": 162,
    "Drone": 162,
    "Drum": 192,
    "Ensemble": 81,
    "FX": 208,
    "Guitar": 48,
    "Hi-Hat": 194,
    "Keyboard": 16,
    "Kick": 192,
    "Lead": 128,
    "Monosynth": 128,
    "Orchestral": 81,
    "Organ": 32,
    "Pad": 147,
    "Percussion": 197,
    "Piano": 0,
    "Pipe": 33,
    "Pluck": 241,
    "Snare": 193,
    "Strings": 81,
    "Synth": 162,
    "Winds": 113,
    "Loops": 209,
    "World": 240,
})

# Each block of 16 lists its own sub categories followed by the same
# genre entries and "No Assign".
_GENRES = (_ROCK_POP, _R_B_HIP_HOP, _ELECTRONIC, _JAZZ_WORLD, NO_ASSIGN)

_SUB_CATEGORY_HEADS: tuple[tuple[str, ...], ...] = (
    (_ACOUSTIC, "Layer", "Modern", "Vintage"),
    ("Electric Piano", "FM Piano", "Clavi", _SYNTH),
    ("Tone Wheel", "Combo", "Pipe", _SYNTH),
    (_ACOUSTIC, "Electric Clean", "Distortion", _SYNTH),
    (_ACOUSTIC, "Electric", _SYNTH),
    ("Solo", "Ensemble", "Pizzicato", _SYNTH),
    ("Solo", "Ensemble", "Orchestra", _SYNTH),
    ("Saxophone", "Flute", "Woodwind", "Reed / Pipe"),
    (_ANALOG, "Digital", "Hip Hop", "Dance"),
    (_ANALOG, "Warm", "Bright", "Choir"),
    (_ANALOG, "Digital", "Decay", "Hook"),
    ("Mallet", "Bell", "Synth Bell", "Pitched Drum"),
    ("Drums", "Percussion", _SYNTH),
    ("Moving", "Ambient", "Nature", "Sci-Fi"),
    ("Moving", "Ambient", "Sweep", "Hit"),
    ("Bowed", "Plucked", "Struck", "Blown"),
)


def _build_sub_categories() -> MappingProxyType:
    table: dict[int, str] = {}
    for block, heads in enumerate(_SUB_CATEGORY_HEADS):
        for offset, name in enumerate(heads + _GENRES):
            table[block * 16 + offset] = name
    table[256] = NO_ASSIGN
    return MappingProxyType(table)


PERFORMANCE_SUB_CATEGORIES = _build_sub_categories()

PERFORMANCE_CATEGORIES = MappingProxyType({
    0x0001: "Piano",
    0x0002: "Keyboard",
    0x0004: "Organ",
    0x0008: "Guitar",
    0x0010: "Bass",
    0x0020: "Strings",
    0x0040: "Brass",
    0x0080: "Woodwind",
    0x0100: "Syn Lead",
    0x0200: "Pad / Choir",
    0x0400: "Syn Comp",
    0x0800: "Chromatic Perc",
    0x1000: "Drum / Perc",
    0x2000: "Sound FX",
    0x4000: "Musical FX",
    0x8000: "Ethnic",
})


def main_category(value: int) -> str:
    return MAIN_CATEGORIES[min(256, max(0, value)) // 16]


def waveform_category_index(category: str) -> int | None:
    return WAVEFORM_CATEGORY_INDICES.get(category)


def performance_category(flags: int) -> str:
    """Name of the lowest category bit set in ``flags``."""
    for bit in sorted(PERFORMANCE_CATEGORIES):
        if flags & bit:
            return PERFORMANCE_CATEGORIES[bit]
    return NO_ASSIGN


def performance_sub_category(value: int) -> str:
    return PERFORMANCE_SUB_CATEGORIES.get(value, NO_ASSIGN)
