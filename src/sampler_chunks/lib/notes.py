"""Note name helpers for human-readable dumps."""

from __future__ import annotations

import math

import pretty_midi


def note_label(note: int) -> str:
    """``60`` -> ``"C4 (60)"``; out-of-range numbers are shown bare."""
    if 0 <= note <= 127:
        return f"{pretty_midi.note_number_to_name(note)} ({note})"
    return str(note)


def key_range_label(low: int, high: int) -> str:
    if low == high:
        return note_label(low)
    return f"{note_label(low)} - {note_label(high)}"


def denormalize_frequency(value: float, low: float = 20.0, high: float = 20000.0) -> float:
    """Map 0..1 onto ``low``..``high`` Hz on an exponential curve."""
    value = min(1.0, max(0.0, value))
    return low * math.exp(value * math.log(high / low))
