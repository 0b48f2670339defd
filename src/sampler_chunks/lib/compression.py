"""ZLIB bodies and CRC32 checks."""

from __future__ import annotations

import logging
import zlib

from sampler_chunks.errors import DecompressionSizeMismatchError
from sampler_chunks.lib.stream import ByteReader
from sampler_chunks.notifier import Notifier

logger = logging.getLogger(__name__)


def inflate_zlib(reader: ByteReader) -> bytes:
    """Decompress the ZLIB stream that starts at the reader's position.

    The cursor is left directly after the last compressed byte, so anything
    stored behind the stream (e.g. Kontakt sound info) can be read next.
    """
    decompressor = zlib.decompressobj()
    try:
        result = decompressor.decompress(reader.data[reader.pos:])
        result += decompressor.flush()
    except zlib.error as exc:
        raise DecompressionSizeMismatchError(f"Corrupt ZLIB stream at offset {reader.pos}: {exc}") from exc
    if not decompressor.eof:
        raise DecompressionSizeMismatchError(f"Truncated ZLIB stream at offset {reader.pos}")
    consumed = reader.remaining - len(decompressor.unused_data)
    logger.debug("Inflated %d bytes into %d bytes", consumed, len(result))
    reader.skip(consumed)
    return result


def deflate_zlib(data: bytes, level: int = 1) -> bytes:
    return zlib.compress(data, level)


def crc32(data: bytes) -> int:
    """Standard reflected CRC32 (polynomial 0xEDB88320)."""
    return zlib.crc32(data) & 0xFFFFFFFF


def verify_crc32(data: bytes, expected: int, notifier: Notifier | None = None) -> bool:
    """Compare a checksum and warn on mismatch.

    A mismatch never raises; older writers are known to have stored stale
    checksums while the payload itself is fine.
    """
    actual = crc32(data)
    if actual == expected:
        return True
    message = "CRC32 mismatch: stored 0x%08X, calculated 0x%08X"
    if notifier is not None:
        notifier.warning(message, expected, actual)
    else:
        logger.warning(message, expected, actual)
    return False
