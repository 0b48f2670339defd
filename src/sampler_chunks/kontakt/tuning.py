"""Volume and tune conversions for Kontakt data.

Kontakt 5 program chunks store zone, group and program tune as frequency
ratios (1.0 = no change) and combine them by multiplication. The Kontakt 2
XML stores only the zone tune as a ratio; group and program tune are plain
octave offsets. Both variants are kept and selected explicitly.
"""

from __future__ import annotations

import math
from enum import Enum

from sampler_chunks.errors import FormatError

MINUS_INFINITY_DB = -150.0
_DB_FACTOR = 20.0 / math.log(10.0)


class TuneVariant(Enum):
    KONTAKT5 = "kontakt5"
    K2_XML = "k2-xml"


def value_to_db(value: float) -> float:
    """Linear gain to dB; zero and negative values map to the floor."""
    if value <= 0:
        return MINUS_INFINITY_DB
    return math.log(value) * _DB_FACTOR


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _log2_ratio(ratio: float) -> float:
    if not 0 < ratio < math.inf:
        raise FormatError(f"Tune ratio must be a positive number, got {ratio}")
    return math.log2(ratio)


def kontakt5_tune(zone: float, group: float, program: float) -> float:
    """Combined tune when zone, group and program are all ratios."""
    return 0.12 * _log2_ratio(zone * group * program)


def k2_xml_tune(zone: float, group: float, program: float) -> float:
    """Combined tune in semitones; only ``zone`` is a ratio."""
    return round(12.0 * (_log2_ratio(zone) + group + program), 5)


def combine_tune(variant: TuneVariant, zone: float, group: float, program: float) -> float:
    if variant is TuneVariant.KONTAKT5:
        return kontakt5_tune(zone, group, program)
    if variant is TuneVariant.K2_XML:
        return k2_xml_tune(zone, group, program)
    raise ValueError(f"Unknown tune variant: {variant!r}")
