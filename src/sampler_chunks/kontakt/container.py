"""Kontakt 2 to 4.2 instrument files.

File layout::

    Kontakt 2    header (170 bytes) | ZLIB XML body | soundinfo
    monolith     header (170 bytes) | dictionary ... samples ... NKI block
    Kontakt 4.2  header (222 bytes) | FastLZ preset chunks  | soundinfo

The first four bytes select the byte order of everything that follows:
``12 90 A8 7F`` is little-endian, ``7F A8 90 12`` big-endian. The header
version tells Kontakt 2 (0x100) and 4.2 (0x110) apart.

Reading walks through explicit states, one per region of the file.
"""

from __future__ import annotations

import enum
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path

from sampler_chunks.config import DEFAULT_SETTINGS, ReaderSettings
from sampler_chunks.errors import FormatError, UnexpectedTagError
from sampler_chunks.kontakt import ids, k2_xml
from sampler_chunks.kontakt.monolith import Monolith
from sampler_chunks.kontakt.preset_data import PresetChunkData
from sampler_chunks.kontakt.records import none_if_null
from sampler_chunks.lib import fastlz
from sampler_chunks.lib.compression import crc32, deflate_zlib, inflate_zlib, verify_crc32
from sampler_chunks.lib.stream import (
    BIG,
    LEGACY_TIMEZONE,
    LITTLE,
    ByteReader,
    ByteWriter,
    format_timestamp,
)
from sampler_chunks.model.multisample import Multisample
from sampler_chunks.notifier import Notifier

logger = logging.getLogger(__name__)

HEADER_KONTAKT_2 = 0x100
HEADER_KONTAKT_42 = 0x110
ZLIB_MARKER = 0x78
KNOWN_BLOCK_IDS = frozenset({
    "Kon2",     # Kontakt 2
    "Kon3",     # Kontakt 3
    "Kon4",     # Kontakt 4
    "AkPi",     # Akustik Piano from the Kontakt 3 library
    "ElPi",     # Elektrik Piano from the Kontakt 3 library
})

SOUNDINFO_HEADER = bytes.fromhex("AEE10EB001010C00D9000000")
# A soundinfo block is recognized by its first four bytes
SOUNDINFO_MAGIC = SOUNDINFO_HEADER[:4]
SOUNDINFO_IGNORED_CATEGORIES = frozenset({"KontaktInstrument"})


def byte_order(data: bytes) -> str:
    """Byte order of a Kontakt 2 file from its first four bytes.

    Raises:
        UnexpectedTagError: The file does not start with a Kontakt 2 magic.
    """
    magic = int.from_bytes(data[:4], "big")
    if magic == ids.KONTAKT2_LITTLE_ENDIAN:
        return LITTLE
    if magic == ids.KONTAKT2_BIG_ENDIAN:
        return BIG
    raise UnexpectedTagError(f"Not a Kontakt 2 file: magic {data[:4].hex(' ')}")


# -- header ------------------------------------------------------------------


@dataclass
class Kontakt2Header:
    order: str = LITTLE
    compressed_length: int = 0
    header_version: int = HEADER_KONTAKT_2
    patch_info: bytes = bytes(6)
    version_bytes: bytes = bytes(4)
    block_id: str = "Kon4"
    timestamp: int = 0
    unknown_a: bytes = bytes(4)
    zones: int = 0
    groups: int = 0
    instruments: int = 0
    unknown_b: bytes = bytes(16)
    icon_id: int = 0
    creator_bytes: bytes = bytes(9)
    unknown_c: bytes = bytes(2)
    website_bytes: bytes = bytes(87)
    unknown_d: bytes = bytes(6)
    extra_42: bytes = bytes(12)
    checksum: int = 0
    patch_level: int = 0
    unknown_42: int = 0
    decompressed_length: int = 0
    padding_42: bytes = bytes(32)

    @property
    def is_four_dot_two(self) -> bool:
        return self.header_version == HEADER_KONTAKT_42

    @property
    def size(self) -> int:
        return ids.K42_HEADER_SIZE if self.is_four_dot_two else ids.K2_HEADER_SIZE

    @property
    def kontakt_version(self) -> str:
        """Version as ``a.b.c.ddd``; an unset build number shows the patch level."""
        raw = self.version_bytes[::-1] if self.order == LITTLE else self.version_bytes
        prefix = ".".join(str(b) for b in raw[:3])
        if raw[3] == 0xFF:
            return f"{prefix}.{self.patch_level}"
        return f"{prefix}.{raw[3]:03d}"

    @property
    def created(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, LEGACY_TIMEZONE)

    @property
    def creator(self) -> str:
        return self.creator_bytes.split(b"\x00", 1)[0].decode("iso-8859-1").strip()

    @property
    def website(self) -> str | None:
        text = self.website_bytes.split(b"\x00", 1)[0].decode("ascii", errors="replace")
        return none_if_null(text.strip())

    @property
    def icon_name(self) -> str | None:
        return ids.icon_name(self.icon_id)

    @classmethod
    def read(cls, reader: ByteReader, notifier: Notifier | None = None) -> Kontakt2Header:
        """Read the header including the magic at the cursor.

        Raises:
            UnexpectedTagError: The magic is not a Kontakt 2 magic.
            TruncatedInputError: The data ends inside the header.
        """
        order = byte_order(reader.peek(4))
        reader.skip(4)
        header = cls(order=order)
        header.compressed_length = reader.read_u32(order)
        header.header_version = reader.read_u16(order)
        header.patch_info = reader.read(6)
        header.version_bytes = reader.read(4)
        header.block_id = reader.read_ascii(4, reverse=order == LITTLE)
        if header.block_id not in KNOWN_BLOCK_IDS:
            message = "Unknown Kontakt block ID '%s'"
            if notifier is not None:
                notifier.info(message, header.block_id)
            else:
                logger.info(message, header.block_id)
        header.timestamp = reader.read_u32(order)
        header.unknown_a = reader.read(4)
        header.zones = reader.read_u16(order)
        header.groups = reader.read_u16(order)
        header.instruments = reader.read_u16(order)
        header.unknown_b = reader.read(16)
        header.icon_id = reader.read_u32(order)
        header.creator_bytes = reader.read(9)
        header.unknown_c = reader.read(2)
        header.website_bytes = reader.read(87)
        header.unknown_d = reader.read(6)
        if header.is_four_dot_two:
            header.extra_42 = reader.read(12)
        header.checksum = reader.read_u32(order)
        header.patch_level = reader.read_u32(order)
        if header.is_four_dot_two:
            header.unknown_42 = reader.read_u32(order)
            header.decompressed_length = reader.read_u32(order)
            header.padding_42 = reader.read(32)
        return header

    def write(self) -> bytes:
        order = self.order
        writer = ByteWriter()
        magic = ids.KONTAKT2_LITTLE_ENDIAN if order == LITTLE else ids.KONTAKT2_BIG_ENDIAN
        writer.write(magic.to_bytes(4, "big"))
        writer.write_u32(self.compressed_length, order)
        writer.write_u16(self.header_version, order)
        writer.write(self.patch_info)
        writer.write(self.version_bytes)
        writer.write_ascii(self.block_id, 4, reverse=order == LITTLE)
        writer.write_u32(self.timestamp, order)
        writer.write(self.unknown_a)
        writer.write_u16(self.zones, order)
        writer.write_u16(self.groups, order)
        writer.write_u16(self.instruments, order)
        writer.write(self.unknown_b)
        writer.write_u32(self.icon_id, order)
        writer.write(self.creator_bytes)
        writer.write(self.unknown_c)
        writer.write(self.website_bytes)
        writer.write(self.unknown_d)
        if self.is_four_dot_two:
            writer.write(self.extra_42)
        writer.write_u32(self.checksum, order)
        writer.write_u32(self.patch_level, order)
        if self.is_four_dot_two:
            writer.write_u32(self.unknown_42, order)
            writer.write_u32(self.decompressed_length, order)
            writer.write(self.padding_42)
        return writer.getvalue()

    def describe(self) -> str:
        lines = [
            f"Kontakt {'4.2' if self.is_four_dot_two else '2'} "
            f"({'big' if self.order == BIG else 'little'}-endian), version {self.kontakt_version}",
            f"Block ID: {self.block_id}",
            f"Created: {format_timestamp(self.created)}",
            f"Zones: {self.zones}, groups: {self.groups}, instruments: {self.instruments}",
        ]
        if self.creator:
            lines.append(f"Creator: {self.creator}")
        if self.website:
            lines.append(f"Website: {self.website}")
        if self.icon_name:
            lines.append(f"Icon: {self.icon_name}")
        return "\n".join(lines)


# -- soundinfo ---------------------------------------------------------------


@dataclass
class SoundinfoDocument:
    name: str | None = None
    author: str | None = None
    categories: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, content: str) -> SoundinfoDocument:
        """Read name, author and attribute values.

        Raises:
            xml.etree.ElementTree.ParseError: The content is not XML.
        """
        top = ET.fromstring(content)
        document = cls()
        properties = top.find("properties")
        if properties is not None:
            document.name = properties.findtext("name")
            document.author = properties.findtext("author")
        attributes = top.find("attributes")
        if attributes is not None:
            for attribute in attributes.findall("attribute"):
                value = (attribute.findtext("value") or "").strip()
                if value and value not in SOUNDINFO_IGNORED_CATEGORIES and value not in document.categories:
                    document.categories.append(value)
        return document

    def to_xml(self) -> str:
        top = ET.Element("soundinfo", {"version": "400"})
        properties = ET.SubElement(top, "properties")
        ET.SubElement(properties, "name").text = self.name or ""
        ET.SubElement(properties, "author").text = self.author or ""
        attributes = ET.SubElement(top, "attributes")
        for category in self.categories:
            attribute = ET.SubElement(attributes, "attribute")
            ET.SubElement(attribute, "value").text = category
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(top, encoding="unicode")


# -- reading -----------------------------------------------------------------


class ReadState(enum.Enum):
    HEADER = "header"
    CHECKSUM_CHECK = "checksum-check"
    FASTLZ_BODY = "fastlz-body"
    COMPRESSED_BODY = "compressed-body"
    SOUNDINFO = "soundinfo"
    DONE = "done"


@dataclass
class KontaktFile:
    header: Kontakt2Header
    xml: str | None = None
    preset: PresetChunkData | None = None
    monolith: Monolith | None = None
    soundinfo: SoundinfoDocument | None = None
    checksum_ok: bool | None = None

    @classmethod
    def read(cls, data: bytes, settings: ReaderSettings = DEFAULT_SETTINGS,
             notifier: Notifier | None = None) -> KontaktFile:
        """Decode a Kontakt 2 or 4.2 file.

        A CRC mismatch of a 4.2 body is reported and reading continues; so
        is broken soundinfo XML. Everything else raises.

        Raises:
            UnexpectedTagError: The magic is unknown.
            TruncatedInputError: A region ends early.
            DecompressionSizeMismatchError: A compressed body is corrupt.
            FormatError: A Kontakt 2 body is not UTF-8 text.
        """
        return _Reader(data, settings, notifier).run()

    @classmethod
    def from_file(cls, path: str | Path, settings: ReaderSettings = DEFAULT_SETTINGS,
                  notifier: Notifier | None = None) -> KontaktFile:
        return cls.read(Path(path).read_bytes(), settings, notifier)

    @property
    def is_monolith(self) -> bool:
        return self.monolith is not None

    def to_multisamples(self, notifier: Notifier | None = None) -> list[Multisample]:
        """Translate the programs and add the header and soundinfo metadata."""
        if self.preset is not None:
            results = []
            for program in self.preset.programs:
                multisample = Multisample()
                program.fill_into(multisample)
                results.append(multisample)
        elif self.xml is not None:
            results = k2_xml.read_programs(self.xml, notifier)
        else:
            results = []
        for multisample in results:
            self._apply_metadata(multisample)
        return results

    def _apply_metadata(self, multisample: Multisample) -> None:
        header = self.header
        creator = header.creator or None
        category = header.icon_name
        categories: list[str] = []
        if self.soundinfo is not None:
            categories = self.soundinfo.categories
            if categories:
                category = categories[0]
            if self.soundinfo.author and self.soundinfo.author.strip():
                creator = self.soundinfo.author
        if creator:
            multisample.creator = creator
        if category:
            multisample.category = category
        for keyword in categories:
            if keyword not in multisample.keywords:
                multisample.keywords.append(keyword)

        description = f"Creation: {format_timestamp(header.created)}"
        if header.website:
            description += f"\nWebsite : {header.website}"
        if multisample.description:
            description += "\n" + multisample.description
        multisample.description = description

    # -- writing ------------------------------------------------------------

    @staticmethod
    def write_k2(xml: str, header: Kontakt2Header | None = None,
                 soundinfo: SoundinfoDocument | None = None,
                 settings: ReaderSettings = DEFAULT_SETTINGS) -> bytes:
        """Encode a Kontakt 2 file with a ZLIB XML body.

        The header is written as given apart from the compressed length and
        header version, which are set on a copy.
        """
        body = deflate_zlib(xml.encode("utf-8"), settings.zlib_level)
        header = replace(header or Kontakt2Header(), header_version=HEADER_KONTAKT_2,
                         compressed_length=len(body))

        writer = ByteWriter()
        writer.write(header.write())
        writer.write(body)
        _write_soundinfo(writer, soundinfo)
        return writer.getvalue()

    @staticmethod
    def write_42(preset: PresetChunkData, header: Kontakt2Header | None = None,
                 soundinfo: SoundinfoDocument | None = None,
                 settings: ReaderSettings = DEFAULT_SETTINGS) -> bytes:
        """Encode a Kontakt 4.2 file with a FastLZ preset chunk body and its CRC32."""
        data = preset.write()
        body = fastlz.compress(data, settings.fastlz_level)
        header = replace(header or Kontakt2Header(), header_version=HEADER_KONTAKT_42,
                         compressed_length=len(body), decompressed_length=len(data),
                         checksum=crc32(body))

        writer = ByteWriter()
        writer.write(header.write())
        writer.write(body)
        _write_soundinfo(writer, soundinfo)
        return writer.getvalue()

    def dump(self) -> str:
        parts = [self.header.describe()]
        if self.checksum_ok is False:
            parts.append("Checksum: mismatch")
        if self.monolith is not None:
            parts.append("Monolith dictionary:\n" + self.monolith.dictionary.dump(1))
            for name, sample in self.monolith.samples.items():
                parts.append(f"    sample {name} at {sample.offset} ({len(sample.data)} bytes)")
        if self.preset is not None:
            parts.append(self.preset.dump().rstrip("\n"))
        if self.soundinfo is not None:
            parts.append(f"Soundinfo: {self.soundinfo.name} by {self.soundinfo.author}, "
                         f"categories {', '.join(self.soundinfo.categories) or '-'}")
        return "\n".join(parts)


def _write_soundinfo(writer: ByteWriter, soundinfo: SoundinfoDocument | None) -> None:
    if soundinfo is not None:
        writer.write(SOUNDINFO_HEADER)
        writer.write(soundinfo.to_xml().encode("utf-8"))


class _Reader:
    """One pass over a file; each state method returns the next state."""

    def __init__(self, data: bytes, settings: ReaderSettings, notifier: Notifier | None) -> None:
        self.reader = ByteReader(data)
        self.settings = settings
        self.notifier = notifier
        self.result: KontaktFile | None = None
        self.compressed = b""

    def run(self) -> KontaktFile:
        steps = {
            ReadState.HEADER: self._header,
            ReadState.CHECKSUM_CHECK: self._checksum_check,
            ReadState.FASTLZ_BODY: self._fastlz_body,
            ReadState.COMPRESSED_BODY: self._compressed_body,
            ReadState.SOUNDINFO: self._soundinfo,
        }
        state = ReadState.HEADER
        while state is not ReadState.DONE:
            logger.debug("Kontakt reader state %s at offset %d", state.value, self.reader.pos)
            state = steps[state]()
        return self.result

    def _header(self) -> ReadState:
        header = Kontakt2Header.read(self.reader, self.notifier)
        self.result = KontaktFile(header)
        logger.debug("Kontakt %s header, version %s",
                     "4.2" if header.is_four_dot_two else "2", header.kontakt_version)
        if header.is_four_dot_two:
            return ReadState.CHECKSUM_CHECK
        return ReadState.COMPRESSED_BODY

    def _checksum_check(self) -> ReadState:
        header = self.result.header
        self.compressed = self.reader.read(header.compressed_length)
        if self.settings.verify_checksums:
            self.result.checksum_ok = verify_crc32(self.compressed, header.checksum, self.notifier)
        return ReadState.FASTLZ_BODY

    def _fastlz_body(self) -> ReadState:
        data = fastlz.decompress(self.compressed, self.result.header.decompressed_length)
        self.result.preset = PresetChunkData.parse(data, self.settings)
        return ReadState.SOUNDINFO

    def _compressed_body(self) -> ReadState:
        header = self.result.header
        if self.reader.peek(1)[0] != ZLIB_MARKER:
            monolith = Monolith.read(self.reader, header.order, self.notifier)
            self.result.monolith = monolith
            self.reader.seek(monolith.body_offset)
        offset = self.reader.pos
        try:
            self.result.xml = inflate_zlib(self.reader).decode("utf-8").strip()
        except UnicodeDecodeError as exc:
            raise FormatError(f"Kontakt 2 body at offset {offset} is not UTF-8: {exc}") from exc
        return ReadState.SOUNDINFO

    def _soundinfo(self) -> ReadState:
        if self.reader.at_end():
            return ReadState.DONE
        offset = self.reader.pos
        if self.reader.remaining < len(SOUNDINFO_HEADER):
            self._report("Ignoring %d trailing bytes at offset %d", self.reader.remaining, offset)
            return ReadState.DONE
        magic = self.reader.read(len(SOUNDINFO_HEADER))[:len(SOUNDINFO_MAGIC)]
        if magic != SOUNDINFO_MAGIC:
            self._report("No soundinfo at offset %d, found %s", offset, magic.hex(" "))
            return ReadState.DONE
        content = self.reader.read_rest().decode("utf-8", errors="replace")
        try:
            self.result.soundinfo = SoundinfoDocument.parse(content)
        except ET.ParseError as exc:
            self._report("Unreadable soundinfo: %s", exc)
        return ReadState.DONE

    def _report(self, message: str, *args: object) -> None:
        if self.notifier is not None:
            self.notifier.error(message, *args)
        else:
            logger.error(message, *args)
