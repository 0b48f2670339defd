"""In-memory RIFF chunk."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from sampler_chunks.errors import ChunkSizeMismatchError, TruncatedInputError


@dataclass
class RawChunk:
    """A RIFF chunk: either a leaf with a payload or a container with children.

    ``size`` is the size declared in the file. Leaves keep the payload in
    ``data``; containers (RIFF/LIST style) have a ``form_type`` and
    ``children`` instead.
    """
    tag: bytes
    size: int = 0
    data: bytes = b""
    form_type: bytes | None = None
    children: list[RawChunk] = field(default_factory=list)
    # Top-level chunk stored a size of 0 and runs to the end of the file.
    open_ended: bool = field(default=False, compare=False)

    @property
    def is_container(self) -> bool:
        return self.form_type is not None

    @property
    def tag_name(self) -> str:
        return self.tag.decode("ascii", errors="replace")

    @property
    def form_name(self) -> str:
        return (self.form_type or b"").decode("ascii", errors="replace")

    def set_data(self, data: bytes, size: int | None = None) -> None:
        """Replace the payload; the buffer must hold at least ``size`` bytes."""
        if size is None:
            size = len(data)
        if len(data) < size:
            raise ChunkSizeMismatchError(
                f"Chunk '{self.tag_name}' declares {size} bytes but only {len(data)} given"
            )
        self.data = bytes(data)
        self.size = size

    def find(self, tag: bytes) -> RawChunk | None:
        for child in self.children:
            if child.tag == tag:
                return child
        return None

    def find_list(self, form_type: bytes) -> RawChunk | None:
        for child in self.children:
            if child.is_container and child.form_type == form_type:
                return child
        return None

    # -- payload accessors --------------------------------------------------

    def _check(self, offset: int, length: int) -> None:
        if offset < 0 or offset + length > len(self.data):
            raise TruncatedInputError(
                f"Read of {length} bytes at {offset} outside chunk '{self.tag_name}' "
                f"of {len(self.data)} bytes"
            )

    def byte_as_unsigned(self, offset: int) -> int:
        self._check(offset, 1)
        return self.data[offset]

    def byte_as_signed(self, offset: int) -> int:
        self._check(offset, 1)
        return struct.unpack_from("b", self.data, offset)[0]

    def two_bytes_as_int(self, offset: int) -> int:
        self._check(offset, 2)
        return struct.unpack_from("<H", self.data, offset)[0]

    def four_bytes_as_int(self, offset: int) -> int:
        self._check(offset, 4)
        return struct.unpack_from("<I", self.data, offset)[0]

    def null_terminated_string(self, offset: int, max_length: int | None = None,
                               default: str = "") -> str:
        if offset >= len(self.data):
            return default
        end = len(self.data) if max_length is None else min(len(self.data), offset + max_length)
        raw = self.data[offset:end].split(b"\x00", 1)[0]
        if not raw:
            return default
        return raw.decode("ascii", errors="replace")
