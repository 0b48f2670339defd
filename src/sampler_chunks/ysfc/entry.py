"""One catalog entry of a YSFC entry-list chunk.

An entry is a u32 BE length followed by a content block whose layout
depends on the file version::

    [reserved u32]          version <= 102
    data size      u32
    [reserved u32]          version <= 102
    data offset    u32      offset of the matching item in the data chunk
    content number u32
    1 pad byte              version <= 101
    2 pad bytes             version == 102
    6 flag bytes            version >= 400
    entry ID       u32      402 < version < 410 or version >= 500
    9 unknown bytes         410 <= version < 500 (Montage M)
    item name, NUL terminated
    item title, NUL terminated   optional
    additional data              optional, rest of the block
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sampler_chunks.lib.stream import BIG, ByteReader, ByteWriter
from sampler_chunks.ysfc.categories import main_category

NO_ENTRY_ID = 0xFFFFFFFF
FLAGS_LENGTH = 6
MONTAGE_M_EXTRA_LENGTH = 9


def _has_entry_id(version: int) -> bool:
    return 402 < version < 410 or version >= 500


def _has_montage_m_extra(version: int) -> bool:
    return 410 <= version < 500


@dataclass
class YsfcEntry:
    data_size: int = 0
    data_offset: int = 0
    content_number: int = 0
    flags: bytes = bytes(FLAGS_LENGTH)
    item_name: str = ""
    item_title: str = ""
    additional_data: bytes = b""
    entry_id: int = NO_ENTRY_ID
    extra: bytes = bytes(MONTAGE_M_EXTRA_LENGTH)

    @classmethod
    def read(cls, reader: ByteReader, version: int) -> YsfcEntry:
        length = reader.read_u32(BIG)
        content = ByteReader(reader.read(length))
        entry = cls()
        if version <= 102:
            content.skip(4)
        entry.data_size = content.read_u32(BIG)
        if version <= 102:
            content.skip(4)
        entry.data_offset = content.read_u32(BIG)
        entry.content_number = content.read_u32(BIG)
        if version <= 102:
            content.skip(1 if version <= 101 else 2)
        elif version >= 400:
            entry.flags = content.read(FLAGS_LENGTH)
            if _has_entry_id(version):
                entry.entry_id = content.read_u32(BIG)
            if _has_montage_m_extra(version):
                entry.extra = content.read(MONTAGE_M_EXTRA_LENGTH)
        entry.item_name = content.read_null_terminated_ascii()
        if not content.at_end():
            entry.item_title = content.read_null_terminated_ascii()
            entry.additional_data = content.read_rest()
        return entry

    def content(self, version: int) -> bytes:
        writer = ByteWriter()
        if version <= 102:
            writer.pad(4)
        writer.write_u32(self.data_size, BIG)
        if version <= 102:
            writer.pad(4)
        writer.write_u32(self.data_offset, BIG)
        writer.write_u32(self.content_number, BIG)
        if version <= 102:
            writer.pad(1 if version <= 101 else 2)
        elif version >= 400:
            writer.write(self.flags[:FLAGS_LENGTH].ljust(FLAGS_LENGTH, b"\x00"))
            if _has_entry_id(version):
                writer.write_u32(self.entry_id, BIG)
            if _has_montage_m_extra(version):
                writer.write(self.extra[:MONTAGE_M_EXTRA_LENGTH].ljust(MONTAGE_M_EXTRA_LENGTH, b"\x00"))
        writer.write_null_terminated_ascii(self.item_name)
        writer.write_null_terminated_ascii(self.item_title)
        writer.write(self.additional_data)
        return writer.getvalue()

    def write(self, version: int) -> bytes:
        content = self.content(version)
        writer = ByteWriter()
        writer.write_u32(len(content), BIG)
        writer.write(content)
        return writer.getvalue()

    def length(self, version: int) -> int:
        """Size of the content block, without the length prefix."""
        return len(self.content(version))

    def category_and_name(self) -> tuple[int, str]:
        """Split ``"12:Name"`` into ``(12, "Name")``; ``-1`` without a category."""
        parts = self.item_name.split(":")
        if len(parts) >= 2 and parts[0].strip():
            try:
                return int(parts[0]), parts[1]
            except ValueError:
                pass
        return -1, self.item_name

    def dump(self, level: int = 0) -> str:
        indent = "    " * level
        inner = indent + "    "
        lines = [
            f"{indent}Ysfc Entry",
            f"{inner}Item Name      : '{self.item_name}'",
            f"{inner}Item Title     : '{self.item_title}'",
            f"{inner}Data Size      : {self.data_size}",
            f"{inner}Data Offset    : {self.data_offset}",
            f"{inner}Content Number : {self.content_number}",
            f"{inner}Flags          : {self.flags.hex(' ')}",
            f"{inner}Entry ID       : {self.entry_id}",
        ]
        category, _ = self.category_and_name()
        if category >= 0:
            lines.append(f"{inner}Category       : {main_category(category)}")
        return "\n".join(lines)
