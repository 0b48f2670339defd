"""NI file containers, the wrapper Kontakt 5+ uses for monolith files.

Layout (all integers u64 little-endian)::

    header    "/\\ NI FC MTD  /\\", 248 bytes padding, F0 x 8,
              file count, total size
    TOC       "/\\ NI FC TOC  /\\", 600 bytes unknown, then per file:
              index (1-based), 16 bytes unknown, 600 bytes UTF-16LE name,
              u64 unknown, end offset of the file data
    TOC end   F1 x 8, 16 bytes unknown, TOC magic again, 592 bytes padding
    data      the files back to back, in index order

Only the offsets of the end of each file are stored; a file's size is the
distance to the end of the previous one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sampler_chunks.errors import UnexpectedTagError
from sampler_chunks.kontakt import ids
from sampler_chunks.lib.stream import LITTLE, ByteReader

logger = logging.getLogger(__name__)

HEADER_PADDING = 248
TOC_UNKNOWN = 600
ENTRY_UNKNOWN = 16
ENTRY_NAME_SIZE = 600
TOC_END_UNKNOWN = 16
TOC_END_PADDING = 592
MAIN_FILE_EXTENSIONS = (".nki", ".nkm")


@dataclass
class ContainerFile:
    index: int
    name: str
    end_offset: int
    data: bytes = b""

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()


@dataclass
class NiContainer:
    total_size: int = 0
    files: list[ContainerFile] = field(default_factory=list)

    @classmethod
    def read(cls, data: bytes) -> NiContainer:
        """Read the table of contents and the data of every contained file.

        Raises:
            UnexpectedTagError: A magic or marker of the container is wrong.
            TruncatedInputError: The file data is shorter than the table of
                contents claims.
        """
        reader = ByteReader(data)
        count, total_size = _read_header(reader)
        entries = _read_table_of_contents(reader, count)
        entries.sort(key=lambda entry: entry.index)

        previous_end = 0
        for entry in entries:
            entry.data = reader.read(entry.end_offset - previous_end)
            previous_end = entry.end_offset
        logger.debug("NI container with %d files: %s", len(entries),
                     ", ".join(entry.name for entry in entries))
        return cls(total_size, entries)

    @classmethod
    def from_file(cls, path: str | Path) -> NiContainer:
        return cls.read(Path(path).read_bytes())

    def main_file(self, extension: str | None = None) -> ContainerFile:
        """The embedded instrument or multi.

        Args:
            extension: ``.nki`` or ``.nkm`` to pick one kind; by default the
                first file with either extension is returned.

        Raises:
            UnexpectedTagError: The container holds no such file.
        """
        wanted = (extension.lower(),) if extension else MAIN_FILE_EXTENSIONS
        for entry in self.files:
            if entry.extension in wanted:
                return entry
        raise UnexpectedTagError(f"No {' or '.join(wanted)} file in the NI container")

    def file(self, name: str) -> ContainerFile | None:
        for entry in self.files:
            if entry.name == name:
                return entry
        return None

    def dump(self) -> str:
        lines = [f"NI container, {len(self.files)} files, {self.total_size} bytes"]
        for entry in self.files:
            lines.append(f"    {entry.index:3d} {entry.name} ({len(entry.data)} bytes)")
        return "\n".join(lines)


def _expect(reader: ByteReader, expected: bytes, what: str) -> None:
    offset = reader.pos
    found = reader.read(len(expected))
    if found != expected:
        raise UnexpectedTagError(f"Not an NI file container: bad {what} at offset {offset}")


def _read_header(reader: ByteReader) -> tuple[int, int]:
    _expect(reader, ids.NI_CONTAINER_MAGIC, "header magic")
    reader.skip(HEADER_PADDING)
    _expect(reader, ids.NI_CONTAINER_HEADER_END, "header end marker")
    count = reader.read_u64(LITTLE)
    total_size = reader.read_u64(LITTLE)
    return count, total_size


def _read_table_of_contents(reader: ByteReader, count: int) -> list[ContainerFile]:
    _expect(reader, ids.NI_CONTAINER_TOC_MAGIC, "table of contents magic")
    reader.skip(TOC_UNKNOWN)

    entries = []
    for _ in range(count):
        index = reader.read_u64(LITTLE)
        reader.skip(ENTRY_UNKNOWN)
        raw_name = reader.read(ENTRY_NAME_SIZE)
        name = raw_name.decode("utf-16-le", errors="replace").replace("\x00", "").strip()
        reader.read_u64(LITTLE)
        end_offset = reader.read_u64(LITTLE)
        entries.append(ContainerFile(index, name, end_offset))

    _expect(reader, ids.NI_CONTAINER_TOC_END, "table of contents end marker")
    reader.skip(TOC_END_UNKNOWN)
    _expect(reader, ids.NI_CONTAINER_TOC_MAGIC, "closing table of contents magic")
    reader.skip(TOC_END_PADDING)
    return entries
