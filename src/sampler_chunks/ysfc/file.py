"""Yamaha YSFC library files (Motif XS/XF, MOXF, Montage, MODX).

File overview, big-endian throughout::

    "YAMAHA-YSFC"      16 bytes, space or zero padded
    version string     16 bytes, e.g. "4.0.5"
    catalog size       u32
    padding            12 bytes
    library size       u32 (0xFFFFFFFF = no library block)
    padding            8 bytes
    max entry ID       u32
    catalog            chunk ID + u32 file offset per chunk
    library            references to other libraries
    chunks             until end of file

Entry-list chunks (``E...``) and data-list chunks (``D...``) come in pairs:
the n-th entry describes the n-th data item of the matching chunk.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sampler_chunks.errors import UnexpectedTagError, UnresolvedReferenceError
from sampler_chunks.lib.stream import BIG, ByteReader, ByteWriter
from sampler_chunks.notifier import Notifier
from sampler_chunks.ysfc.chunk import (
    DATA_LIST_FOR,
    ENTRY_LIST_WAVEFORM_DATA,
    ENTRY_LIST_WAVEFORM_METADATA,
    WRITE_ORDER,
    YsfcChunk,
)
from sampler_chunks.ysfc.entry import YsfcEntry
from sampler_chunks.ysfc.versions import YsfcFormat, parse_version

logger = logging.getLogger(__name__)

YAMAHA_YSFC = "YAMAHA-YSFC"
HEADER_SIZE = 64
LIBRARY_SIZE = 81
NO_LIBRARY = 0xFFFFFFFF

FIRST_DATA_OFFSET = 12
FIRST_ENTRY_IDS = {
    ENTRY_LIST_WAVEFORM_METADATA: 10001,
    ENTRY_LIST_WAVEFORM_DATA: 10002,
}


def _ascii_prefix(raw: bytes) -> str:
    # Older firmware pads the version with 0xFF instead of zero.
    end = len(raw)
    while end > 0 and raw[end - 1] > 127:
        end -= 1
    return raw[:end].decode("ascii").rstrip("\x00").strip()


@dataclass
class YsfcPairing:
    """Entries of an entry-list chunk next to the items of its data-list chunk."""

    entry_type: str
    entries: list[YsfcEntry]
    data: list[bytes]

    @property
    def is_broken(self) -> bool:
        return len(self.entries) != len(self.data)

    def pairs(self) -> list[tuple[YsfcEntry, bytes]]:
        """Matched ``(entry, data)`` tuples.

        Raises:
            UnresolvedReferenceError: The two lists differ in length.
        """
        if self.is_broken:
            raise UnresolvedReferenceError(
                f"'{self.entry_type}' has {len(self.entries)} entries but "
                f"{len(self.data)} data items"
            )
        return list(zip(self.entries, self.data))


@dataclass
class YsfcFile:
    version_string: str = "4.0.5"
    max_entry_id: int = 0xFFFFFFFF
    chunks: dict[str, YsfcChunk] = field(default_factory=dict)

    @classmethod
    def new(cls, version_string: str = "4.0.5") -> YsfcFile:
        """An empty waveform library."""
        return cls(version_string, chunks={chunk_id: YsfcChunk(chunk_id) for chunk_id in WRITE_ORDER})

    @property
    def version(self) -> int:
        return parse_version(self.version_string)

    @property
    def format(self) -> YsfcFormat:
        return YsfcFormat.from_version(self.version)

    @classmethod
    def read(cls, data: bytes) -> YsfcFile:
        """Parse a YSFC buffer.

        Raises:
            UnexpectedTagError: The ``YAMAHA-YSFC`` tag is missing.
            TruncatedInputError: A block ends early.
        """
        reader = ByteReader(data)
        tag = reader.read(16).decode("ascii", errors="replace").strip(" \x00")
        if tag != YAMAHA_YSFC:
            raise UnexpectedTagError(f"Not a YSFC file, found tag '{tag}'")
        result = cls(_ascii_prefix(reader.read(16)))
        catalog_size = reader.read_u32(BIG)
        reader.skip(12)
        library_size = reader.read_u32(BIG)
        if library_size >= NO_LIBRARY:
            library_size = 0
        reader.skip(8)
        result.max_entry_id = reader.read_u32(BIG)

        # The catalog only repeats the chunk offsets; libraries referencing
        # other libraries are not resolved.
        reader.skip(catalog_size)
        reader.skip(library_size)

        version = result.version
        while not reader.at_end():
            chunk = YsfcChunk.read(reader, version)
            result.chunks[chunk.chunk_id] = chunk
        logger.debug("Read YSFC %s (%s) with chunks %s",
                     result.version_string, result.format.title, ", ".join(result.chunks))
        return result

    @classmethod
    def from_file(cls, path: str | Path) -> YsfcFile:
        return cls.read(Path(path).read_bytes())

    # -- pairing --------------------------------------------------------------

    def entry_list_chunks(self) -> list[YsfcChunk]:
        return [chunk for chunk in self.chunks.values() if chunk.is_entry_list]

    def data_arrays(self, entry_type: str) -> list[bytes]:
        """Items of the data-list chunk that belongs to ``entry_type``."""
        chunk = self.chunks.get(DATA_LIST_FOR.get(entry_type, "D" + entry_type[1:]))
        return list(chunk.data_arrays) if chunk is not None else []

    def pair(self, entry_type: str, notifier: Notifier | None = None) -> YsfcPairing:
        chunk = self.chunks.get(entry_type)
        pairing = YsfcPairing(entry_type, list(chunk.entries) if chunk else [],
                              self.data_arrays(entry_type))
        if pairing.is_broken:
            message = "Broken YSFC pairing '%s': %d entries, %d data items"
            args = (entry_type, len(pairing.entries), len(pairing.data))
            if notifier is not None:
                notifier.error(message, *args)
            else:
                logger.error(message, *args)
        return pairing

    def update_entry_references(self, entry_type: str) -> None:
        """Renumber the entries of ``entry_type`` and point them at their data.

        Raises:
            UnresolvedReferenceError: The entry and data lists differ in length.
        """
        pairs = self.pair(entry_type).pairs()
        first_id = FIRST_ENTRY_IDS.get(entry_type, 10001)
        offset = FIRST_DATA_OFFSET
        for i, (entry, data) in enumerate(pairs):
            entry.entry_id = first_id + i * 2
            entry.data_offset = offset
            entry.data_size = len(data)
            offset += 8 + len(data)

    # -- writing --------------------------------------------------------------

    def _ordered_chunks(self) -> list[YsfcChunk]:
        ordered = [self.chunks[chunk_id] for chunk_id in WRITE_ORDER if chunk_id in self.chunks]
        ordered += [chunk for chunk_id, chunk in self.chunks.items() if chunk_id not in WRITE_ORDER]
        return ordered

    def write(self) -> bytes:
        """Serialize as a self-contained library.

        Waveform entries are renumbered first, which also updates
        :attr:`max_entry_id`.
        """
        for entry_type in FIRST_ENTRY_IDS:
            if entry_type in self.chunks:
                self.update_entry_references(entry_type)
        metadata = self.chunks.get(ENTRY_LIST_WAVEFORM_METADATA)
        if metadata is not None:
            self.max_entry_id = 10001 + len(metadata.entries) * 2

        version = self.version
        ordered = self._ordered_chunks()
        catalog_size = len(ordered) * 8

        writer = ByteWriter()
        writer.write_ascii(YAMAHA_YSFC, 16)
        writer.write_ascii(self.version_string, 16)
        writer.write_u32(catalog_size, BIG)
        writer.pad(12, 0xFF)
        writer.write_u32(LIBRARY_SIZE, BIG)
        writer.pad(8, 0xFF)
        writer.write_u32(self.max_entry_id, BIG)

        offset = HEADER_SIZE + catalog_size + LIBRARY_SIZE
        for chunk in ordered:
            writer.write_ascii(chunk.chunk_id, 4)
            writer.write_u32(offset, BIG)
            offset += 8 + chunk.length(version)

        writer.pad(LIBRARY_SIZE - 1, 0xFF)
        writer.pad(1)
        for chunk in ordered:
            writer.write(chunk.write(version))
        return writer.getvalue()

    def dump(self) -> str:
        lines = [f"YSFC {self.version_string} ({self.format.title}), max entry ID {self.max_entry_id}"]
        lines += [chunk.dump(1) for chunk in self.chunks.values()]
        return "\n".join(lines)
