"""Byte cursor helpers shared by all codecs.

Every multi-byte read takes the byte order explicitly, using the ``struct``
order characters ``"<"`` (:data:`LITTLE`) and ``">"`` (:data:`BIG`).
Several formats switch order between fields (Kontakt containers read a
header in the file's order but chunk trees always little-endian, YSFC is
big-endian throughout) so there is no per-reader default.

Reads never move the cursor when they fail.
"""

from __future__ import annotations

import struct
from datetime import datetime, timedelta, timezone

from sampler_chunks.errors import TruncatedInputError, UnexpectedTagError

LITTLE = "<"
BIG = ">"

# Kontakt and Akai tools stored local time of the authoring machine; the
# legacy converter always rendered it in central European time.
LEGACY_TIMEZONE = timezone(timedelta(hours=1))
TIMESTAMP_FORMAT = "%d.%m.%Y %H:%M:%S"


def _check_order(order: str) -> str:
    if order not in (LITTLE, BIG):
        raise ValueError(f"Unknown byte order: {order!r}")
    return order


class ByteReader:
    """A read cursor over an immutable byte buffer."""

    def __init__(self, data: bytes | bytearray | memoryview, pos: int = 0) -> None:
        self.data = bytes(data)
        if not 0 <= pos <= len(self.data):
            raise TruncatedInputError(f"Start position {pos} outside buffer of {len(self.data)} bytes")
        self.pos = pos

    def __len__(self) -> int:
        return len(self.data)

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def at_end(self) -> bool:
        return self.pos >= len(self.data)

    def seek(self, pos: int) -> None:
        if not 0 <= pos <= len(self.data):
            raise TruncatedInputError(f"Cannot seek to {pos}, buffer has {len(self.data)} bytes")
        self.pos = pos

    def skip(self, n: int) -> None:
        self._require(n)
        self.pos += n

    def _require(self, n: int) -> None:
        if n < 0:
            raise ValueError(f"Negative length: {n}")
        if self.remaining < n:
            raise TruncatedInputError(
                f"Need {n} bytes at offset {self.pos}, only {self.remaining} left"
            )

    def read(self, n: int) -> bytes:
        self._require(n)
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def peek(self, n: int) -> bytes:
        self._require(n)
        return self.data[self.pos:self.pos + n]

    def read_rest(self) -> bytes:
        return self.read(self.remaining)

    def _unpack(self, fmt: str, order: str) -> int | float:
        layout = struct.Struct(_check_order(order) + fmt)
        return layout.unpack(self.read(layout.size))[0]

    # -- integers -----------------------------------------------------------

    def read_u8(self) -> int:
        return self.read(1)[0]

    def read_s8(self) -> int:
        return struct.unpack("b", self.read(1))[0]

    def read_u16(self, order: str) -> int:
        return self._unpack("H", order)

    def read_s16(self, order: str) -> int:
        return self._unpack("h", order)

    def read_u32(self, order: str) -> int:
        return self._unpack("I", order)

    def read_s32(self, order: str) -> int:
        return self._unpack("i", order)

    def read_u64(self, order: str) -> int:
        return self._unpack("Q", order)

    def read_f32(self, order: str) -> float:
        return self._unpack("f", order)

    def read_f64(self, order: str) -> float:
        return self._unpack("d", order)

    def read_bool(self) -> bool:
        return self.read_u8() != 0

    # -- strings ------------------------------------------------------------

    def read_ascii(self, length: int, reverse: bool = False, encoding: str = "ascii") -> str:
        """Read a fixed-length string; ``reverse`` flips the bytes first."""
        raw = self.read(length)
        if reverse:
            raw = raw[::-1]
        return raw.decode(encoding, errors="replace")

    def read_null_terminated_ascii(self, max_length: int | None = None, encoding: str = "ascii") -> str:
        """Read a zero-terminated string.

        Without ``max_length`` the terminator is consumed and the cursor stops
        right after it. With ``max_length`` exactly that many bytes are
        consumed and the text ends at the first zero inside them.
        """
        if max_length is not None:
            raw = self.read(max_length)
            return raw.split(b"\x00", 1)[0].decode(encoding, errors="replace")
        end = self.data.find(b"\x00", self.pos)
        if end < 0:
            raise TruncatedInputError(f"Unterminated string at offset {self.pos}")
        text = self.data[self.pos:end].decode(encoding, errors="replace")
        self.pos = end + 1
        return text

    def read_utf16(self) -> str:
        """Read a zero-terminated UTF-16LE string."""
        start = self.pos
        while True:
            if self.remaining < 2:
                self.pos = start
                raise TruncatedInputError(f"Unterminated UTF-16 string at offset {start}")
            unit = self.read(2)
            if unit == b"\x00\x00":
                return self.data[start:self.pos - 2].decode("utf-16-le", errors="replace")

    def read_utf16_with_length(self) -> str:
        """Read a u32 LE character count followed by that many UTF-16LE units."""
        start = self.pos
        count = self.read_u32(LITTLE)
        try:
            raw = self.read(count * 2)
        except TruncatedInputError:
            self.pos = start
            raise
        return raw.decode("utf-16-le", errors="replace")

    def expect_tag(self, expected: bytes) -> None:
        found = self.peek(len(expected))
        if found != expected:
            raise UnexpectedTagError(
                f"Expected {expected!r} at offset {self.pos}, found {found!r}"
            )
        self.pos += len(expected)

    # -- misc ---------------------------------------------------------------

    def read_timestamp(self, order: str) -> datetime:
        return datetime.fromtimestamp(self.read_u32(order), LEGACY_TIMEZONE)


class ByteWriter:
    """Append-only counterpart of :class:`ByteReader`."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    def write(self, data: bytes | bytearray) -> None:
        self._buffer += data

    def pad(self, n: int, value: int = 0) -> None:
        self._buffer += bytes([value]) * n

    def _pack(self, fmt: str, order: str, value: int | float) -> None:
        self._buffer += struct.pack(_check_order(order) + fmt, value)

    def write_u8(self, value: int) -> None:
        self._buffer += struct.pack("B", value)

    def write_s8(self, value: int) -> None:
        self._buffer += struct.pack("b", value)

    def write_u16(self, value: int, order: str) -> None:
        self._pack("H", order, value)

    def write_s16(self, value: int, order: str) -> None:
        self._pack("h", order, value)

    def write_u32(self, value: int, order: str) -> None:
        self._pack("I", order, value)

    def write_s32(self, value: int, order: str) -> None:
        self._pack("i", order, value)

    def write_u64(self, value: int, order: str) -> None:
        self._pack("Q", order, value)

    def write_f32(self, value: float, order: str) -> None:
        self._pack("f", order, value)

    def write_f64(self, value: float, order: str) -> None:
        self._pack("d", order, value)

    def write_bool(self, value: bool) -> None:
        self.write_u8(1 if value else 0)

    def write_ascii(self, text: str, length: int | None = None, reverse: bool = False,
                    fill: int = 0, encoding: str = "ascii") -> None:
        """Write ``text``; with ``length`` the field is truncated or filled to size."""
        raw = text.encode(encoding, errors="replace")
        if reverse:
            raw = raw[::-1]
        if length is not None:
            raw = raw[:length].ljust(length, bytes([fill]))
        self._buffer += raw

    def write_null_terminated_ascii(self, text: str, encoding: str = "ascii") -> None:
        self._buffer += text.encode(encoding, errors="replace") + b"\x00"

    def write_utf16(self, text: str) -> None:
        self._buffer += text.encode("utf-16-le") + b"\x00\x00"

    def write_utf16_with_length(self, text: str) -> None:
        raw = text.encode("utf-16-le")
        self.write_u32(len(raw) // 2, LITTLE)
        self._buffer += raw

    def write_timestamp(self, value: datetime, order: str) -> None:
        self.write_u32(int(value.timestamp()), order)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp the way the legacy tools display it."""
    return value.astimezone(LEGACY_TIMEZONE).strftime(TIMESTAMP_FORMAT)


def to_signed_complement(value: int) -> int:
    """Encode a signed value as an unsigned 16-bit two's complement number."""
    return value & 0xFFFF


def from_signed_complement(value: int) -> int:
    """Decode an unsigned 16-bit two's complement number."""
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value
