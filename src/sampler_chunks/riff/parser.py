"""RIFF style chunk parser and writer.

Layout of a chunk::

    tag    4 bytes ASCII
    size   u32 (little-endian for RIFF)
    data   size bytes
    pad    1 zero byte if size is odd

Container chunks (``RIFF``, ``LIST`` and any tag registered with
:meth:`RiffParser.declare_list`) start their data with a 4-byte form type
followed by child chunks.
"""

from __future__ import annotations

import logging

from sampler_chunks.errors import ChunkSizeMismatchError, TruncatedInputError
from sampler_chunks.lib.stream import LITTLE, ByteReader, ByteWriter
from sampler_chunks.riff.chunk import RawChunk

logger = logging.getLogger(__name__)

_HEADER_SIZE = 8


class RiffParser:
    """Reads a chunk tree from bytes and writes it back."""

    def __init__(self, list_tags: set[bytes] | None = None, order: str = LITTLE) -> None:
        self.list_tags = set(list_tags) if list_tags is not None else {b"RIFF", b"LIST"}
        self.order = order

    def declare_list(self, tag: bytes) -> None:
        self.list_tags.add(tag)

    def parse(self, data: bytes) -> RawChunk:
        """Parse the top-level chunk of ``data``.

        Raises:
            TruncatedInputError: The buffer cannot hold a chunk header.
            ChunkSizeMismatchError: A declared size overruns its parent.
        """
        reader = ByteReader(data)
        if reader.remaining < _HEADER_SIZE:
            raise TruncatedInputError(f"Need {_HEADER_SIZE} bytes for a chunk header, got {len(data)}")
        tag = reader.read(4)
        size = reader.read_u32(self.order)
        open_ended = False
        if size == 0 and tag in self.list_tags:
            # Akai S5000/S6000 write 0 here; the chunk spans the whole file.
            size = reader.remaining
            open_ended = True
            logger.debug("Top-level chunk '%s' has no size, using %d", tag, size)
        elif size > reader.remaining:
            raise ChunkSizeMismatchError(
                f"Top-level chunk {tag!r} declares {size} bytes, file has {reader.remaining}"
            )
        chunk = self._read_body(reader, tag, size)
        chunk.open_ended = open_ended
        if open_ended:
            chunk.size = 0
        return chunk

    def _read_body(self, reader: ByteReader, tag: bytes, size: int) -> RawChunk:
        if tag not in self.list_tags:
            return RawChunk(tag=tag, size=size, data=reader.read(size))
        if size < 4:
            raise ChunkSizeMismatchError(f"Container {tag!r} too small for a form type: {size}")
        end = reader.pos + size
        form_type = reader.read(4)
        chunk = RawChunk(tag=tag, size=size, form_type=form_type)
        chunk.children = self._read_children(reader, end)
        return chunk

    def _read_children(self, reader: ByteReader, end: int) -> list[RawChunk]:
        children: list[RawChunk] = []
        while reader.pos < end:
            left = end - reader.pos
            if left < _HEADER_SIZE:
                raise ChunkSizeMismatchError(
                    f"{left} stray bytes at offset {reader.pos}, not enough for a chunk header"
                )
            start = reader.pos
            tag = reader.read(4)
            size = reader.read_u32(self.order)
            if reader.pos + size > end:
                raise ChunkSizeMismatchError(
                    f"Chunk {tag!r} at offset {start} declares {size} bytes, "
                    f"parent ends after {end - reader.pos}"
                )
            children.append(self._read_body(reader, tag, size))
            if size % 2 and reader.pos < end:
                reader.skip(1)
        return children

    # -- write ----------------------------------------------------------------

    def write(self, chunk: RawChunk) -> bytes:
        """Serialize a chunk; sizes are recomputed from the payload."""
        writer = ByteWriter()
        self._write_chunk(writer, chunk)
        return writer.getvalue()

    def _write_chunk(self, writer: ByteWriter, chunk: RawChunk) -> None:
        if chunk.is_container:
            body = ByteWriter()
            body.write(chunk.form_type or b"")
            for child in chunk.children:
                self._write_chunk(body, child)
            payload = body.getvalue()
        else:
            payload = chunk.data
        writer.write(chunk.tag)
        writer.write_u32(0 if chunk.open_ended else len(payload), self.order)
        writer.write(payload)
        if len(payload) % 2:
            writer.pad(1)
