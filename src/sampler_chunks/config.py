"""Reader and writer settings."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ReaderSettings:
    """Knobs shared by the codecs.

    Attributes:
        zlib_level: Compression level used when writing ZLIB bodies. Level 1
            matches what the Kontakt 2 writer has always produced.
        max_program_version: Highest Kontakt program chunk version accepted.
        verify_checksums: Compare CRC32 checksums where a format stores one.
        fastlz_level: Level used by the FastLZ compressor.
    """
    zlib_level: int = 1
    max_program_version: int = 0xAF
    verify_checksums: bool = True
    fastlz_level: int = 1


DEFAULT_SETTINGS = ReaderSettings()
