"""YSFC chunks.

A chunk is a 4-character type, a u32 BE length and a u32 BE item count
followed by the items. A chunk holds either ``Entr`` items (catalog
entries, see :mod:`sampler_chunks.ysfc.entry`) or ``Data`` items (a u32
BE length followed by opaque bytes); the chunk type tells which.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sampler_chunks.errors import UnexpectedTagError
from sampler_chunks.lib.stream import BIG, ByteReader, ByteWriter
from sampler_chunks.ysfc.entry import YsfcEntry

ENTRY_TAG = b"Entr"
DATA_TAG = b"Data"

ENTRY_LIST_PERFORMANCE = "EPFM"
DATA_LIST_PERFORMANCE = "DPFM"
ENTRY_LIST_WAVEFORM_METADATA = "EWFM"
DATA_LIST_WAVEFORM_METADATA = "DWFM"
ENTRY_LIST_WAVEFORM_DATA = "EWIM"
DATA_LIST_WAVEFORM_DATA = "DWIM"

# Entry-list chunk type -> data-list chunk type.
DATA_LIST_FOR = {
    ENTRY_LIST_PERFORMANCE: DATA_LIST_PERFORMANCE,
    ENTRY_LIST_WAVEFORM_METADATA: DATA_LIST_WAVEFORM_METADATA,
    ENTRY_LIST_WAVEFORM_DATA: DATA_LIST_WAVEFORM_DATA,
}

# Chunk order used when writing a waveform library.
WRITE_ORDER = (
    ENTRY_LIST_WAVEFORM_METADATA,
    DATA_LIST_WAVEFORM_METADATA,
    ENTRY_LIST_WAVEFORM_DATA,
    DATA_LIST_WAVEFORM_DATA,
)


@dataclass
class YsfcChunk:
    chunk_id: str
    entries: list[YsfcEntry] = field(default_factory=list)
    data_arrays: list[bytes] = field(default_factory=list)

    @property
    def is_entry_list(self) -> bool:
        return self.chunk_id.startswith("E")

    @classmethod
    def read(cls, reader: ByteReader, version: int) -> YsfcChunk:
        """Read one chunk.

        Raises:
            UnexpectedTagError: An item is neither ``Entr`` nor ``Data``.
            TruncatedInputError: The chunk ends early.
        """
        chunk = cls(reader.read_ascii(4))
        length = reader.read_u32(BIG)
        body = ByteReader(reader.read(length))
        count = body.read_u32(BIG)
        for _ in range(count):
            tag = body.read(4)
            if tag == ENTRY_TAG:
                chunk.entries.append(YsfcEntry.read(body, version))
            elif tag == DATA_TAG:
                chunk.data_arrays.append(body.read(body.read_u32(BIG)))
            else:
                raise UnexpectedTagError(
                    f"Unknown item {tag!r} in YSFC chunk '{chunk.chunk_id}' at offset {body.pos - 4}"
                )
        return chunk

    def _items(self, version: int) -> list[bytes]:
        if self.entries:
            return [ENTRY_TAG + entry.write(version) for entry in self.entries]
        items = []
        for data in self.data_arrays:
            writer = ByteWriter()
            writer.write(DATA_TAG)
            writer.write_u32(len(data), BIG)
            writer.write(data)
            items.append(writer.getvalue())
        return items

    def length(self, version: int) -> int:
        """Value of the length field: the count plus all items."""
        return 4 + sum(len(item) for item in self._items(version))

    def write(self, version: int) -> bytes:
        items = self._items(version)
        writer = ByteWriter()
        writer.write_ascii(self.chunk_id, 4)
        writer.write_u32(4 + sum(len(item) for item in items), BIG)
        writer.write_u32(len(items), BIG)
        for item in items:
            writer.write(item)
        return writer.getvalue()

    def dump(self, level: int = 0) -> str:
        indent = "    " * level
        lines = [f"{indent}Chunk '{self.chunk_id}'"]
        for entry in self.entries:
            lines.append(entry.dump(level + 1))
        for data in self.data_arrays:
            lines.append(f"{indent}    Data ({len(data)} bytes)")
        return "\n".join(lines)
