"""The Kontakt 5 preset chunk tree.

Every chunk starts with a little-endian header::

    u16  chunk ID
    u32  size of the body

IDs in :data:`~sampler_chunks.kontakt.ids.STRUCTURED_IDS` carry a body of::

    u8   structured flag (0 = the rest of the body is public data)
    u16  version
    u32  private size, private data
    u32  public size, public data
    u32  children size, child chunks

Group and zone lists (:data:`~sampler_chunks.kontakt.ids.LIST_IDS`) hold a
u32 item count followed by item chunks. Items always use the structured
layout; their ID is an index (a zone item's ID is its group index).

All other IDs are plain public data. Region boundaries are taken from the
declared sizes only; nothing is inferred from the content.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sampler_chunks.errors import ChunkSizeMismatchError, UnexpectedTagError
from sampler_chunks.kontakt import ids
from sampler_chunks.lib.stream import LITTLE, ByteReader, ByteWriter

HEADER_SIZE = 6


@dataclass
class PresetChunk:
    chunk_id: int
    public_data: bytes = b""
    private_data: bytes = b""
    version: int = 0
    structured: bool = False
    children: list[PresetChunk] = field(default_factory=list)
    is_item: bool = False

    @property
    def name(self) -> str:
        if self.is_item:
            return "Item"
        return ids.chunk_name(self.chunk_id)

    @property
    def has_structured_layout(self) -> bool:
        return self.is_item or ids.is_structured(self.chunk_id)

    @property
    def is_list(self) -> bool:
        return not self.is_item and self.chunk_id in ids.LIST_IDS

    @classmethod
    def read(cls, reader: ByteReader, base: int = 0, item: bool = False) -> PresetChunk:
        """Read one chunk at the cursor.

        ``base`` is added to offsets in error messages when ``reader`` covers
        a slice of a larger buffer.

        Raises:
            UnexpectedTagError: The chunk ID is unknown.
            TruncatedInputError: A declared size runs past the data.
            ChunkSizeMismatchError: The regions of a chunk do not fill its
                body exactly.
        """
        offset = base + reader.pos
        chunk_id = reader.read_u16(LITTLE)
        if not item and not ids.is_known(chunk_id):
            raise UnexpectedTagError(f"Unknown preset chunk ID 0x{chunk_id:02X} at offset {offset}")
        size = reader.read_u32(LITTLE)
        body_offset = base + reader.pos
        body = reader.read(size)

        chunk = cls(chunk_id, is_item=item)
        if chunk.is_list:
            chunk.children = parse_items(body, body_offset)
        elif chunk.has_structured_layout and size > 0:
            chunk._read_structure(ByteReader(body), body_offset)
        else:
            chunk.public_data = body
        return chunk

    def _read_structure(self, reader: ByteReader, base: int) -> None:
        if reader.read_u8() == 0:
            self.public_data = reader.read_rest()
            return
        self.structured = True
        self.version = reader.read_u16(LITTLE)
        self.private_data = reader.read(reader.read_u32(LITTLE))
        self.public_data = reader.read(reader.read_u32(LITTLE))
        children_size = reader.read_u32(LITTLE)
        children_offset = base + reader.pos
        self.children = parse_chunks(reader.read(children_size), children_offset)
        self._check_consumed(reader, base)

    def _check_consumed(self, reader: ByteReader, base: int) -> None:
        if not reader.at_end():
            raise ChunkSizeMismatchError(
                f"Preset chunk 0x{self.chunk_id:02X} with body at offset {base} declares "
                f"{len(reader)} bytes but its regions use {reader.pos}"
            )

    def body(self) -> bytes:
        if self.is_list:
            return write_items(self.children)
        if not self.has_structured_layout:
            return self.public_data
        writer = ByteWriter()
        if not self.structured:
            writer.write_u8(0)
            writer.write(self.public_data)
            return writer.getvalue()
        writer.write_u8(1)
        writer.write_u16(self.version, LITTLE)
        writer.write_u32(len(self.private_data), LITTLE)
        writer.write(self.private_data)
        writer.write_u32(len(self.public_data), LITTLE)
        writer.write(self.public_data)
        children = b"".join(child.write() for child in self.children)
        writer.write_u32(len(children), LITTLE)
        writer.write(children)
        return writer.getvalue()

    def write(self) -> bytes:
        body = self.body()
        writer = ByteWriter()
        writer.write_u16(self.chunk_id, LITTLE)
        writer.write_u32(len(body), LITTLE)
        writer.write(body)
        return writer.getvalue()

    def find_all(self, chunk_id: int) -> list[PresetChunk]:
        """All descendants with ``chunk_id``; matches are not searched further."""
        return find_all(self.children, chunk_id)

    def first_child(self, chunk_id: int) -> PresetChunk | None:
        for child in self.children:
            if not child.is_item and child.chunk_id == chunk_id:
                return child
        return None

    def dump(self, level: int = 0) -> str:
        indent = " " * (level * 4)
        lines = [
            f"{indent}ID: 0x{self.chunk_id:X} {self.name}",
            f"{indent}    Private Size: {len(self.private_data)}",
            f"{indent}    Public  Size: {len(self.public_data)}",
        ]
        if not self.children:
            lines.append(f"{indent}    Children: None")
            return "\n".join(lines) + "\n"
        lines.append(f"{indent}    Children:")
        return "\n".join(lines) + "\n" + "".join(child.dump(level + 1) for child in self.children)


def parse_chunks(data: bytes, base: int = 0) -> list[PresetChunk]:
    """Read chunks back to back until ``data`` is used up."""
    reader = ByteReader(data)
    chunks = []
    while not reader.at_end():
        chunks.append(PresetChunk.read(reader, base))
    return chunks


def parse_items(data: bytes, base: int = 0) -> list[PresetChunk]:
    """Read a u32 item count and that many item chunks filling ``data``."""
    reader = ByteReader(data)
    count = reader.read_u32(LITTLE)
    items = [PresetChunk.read(reader, base, item=True) for _ in range(count)]
    if not reader.at_end():
        raise ChunkSizeMismatchError(
            f"Item list at offset {base} holds {count} items in {reader.pos} of {len(reader)} bytes"
        )
    return items


def write_items(items: list[PresetChunk]) -> bytes:
    writer = ByteWriter()
    writer.write_u32(len(items), LITTLE)
    for item in items:
        writer.write(item.write())
    return writer.getvalue()


def find_all(chunks: list[PresetChunk], chunk_id: int) -> list[PresetChunk]:
    result = []
    for chunk in chunks:
        if not chunk.is_item and chunk.chunk_id == chunk_id:
            result.append(chunk)
        else:
            result.extend(find_all(chunk.children, chunk_id))
    return result
