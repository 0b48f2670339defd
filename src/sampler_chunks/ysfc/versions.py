"""YSFC format generations.

The header carries a version string such as ``"4.0.5"``. The digits at
positions 0, 2 and 4 form a three-digit number that identifies the
instrument family which wrote the file.
"""

from __future__ import annotations

from enum import Enum


class YsfcFormat(Enum):
    MOTIF_XS = ("Motif XS", "1.0.1")
    MOTIF_XF = ("Motif XF", "1.0.2")
    MOXF = ("MOXF", "1.0.3")
    MONTAGE = ("Montage", "4.0.5")
    MONTAGE_M = ("Montage M", "4.1.0")
    MODX = ("MODX", "5.0.1")
    UNKNOWN = ("Unknown", "")

    def __init__(self, title: str, version_string: str) -> None:
        self.title = title
        self.version_string = version_string

    @classmethod
    def from_version(cls, version: int) -> YsfcFormat:
        if version <= 101:
            return cls.MOTIF_XS
        if version == 102:
            return cls.MOTIF_XF
        if version == 103:
            return cls.MOXF
        if 400 <= version < 410:
            return cls.MONTAGE
        if 410 <= version < 420:
            return cls.MONTAGE_M
        if 500 <= version < 510:
            return cls.MODX
        return cls.UNKNOWN


def parse_version(text: str) -> int:
    """``"4.0.5"`` -> ``405``; anything unparsable gives 100."""
    if len(text) >= 5 and all(text[i].isdigit() for i in (0, 2, 4)):
        return int(text[0] + text[2] + text[4])
    return 100
