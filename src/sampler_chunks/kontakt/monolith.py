"""Kontakt 2 monoliths: instruments with the samples embedded.

A monolith keeps a dictionary right after the file header. Items point to
absolute file offsets: the embedded NKI block, a ``Samples`` sub-dictionary
listing the sample file names, and so on::

    dictionary header (22 bytes, 54 AC 70 5E ..., item count at byte 14)
    item: u16 length, u32 pointer, u16 reference type, length-8 bytes name

The sample offsets themselves are not stored anywhere known. They are found
by scanning backwards from the NKI block for the 4-byte header that
precedes every embedded sample; the WAV data starts 31 bytes after it.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from sampler_chunks.errors import (
    FormatError,
    SampleCountMismatchError,
    UnexpectedTagError,
    UnsupportedFeatureError,
)
from sampler_chunks.kontakt import ids
from sampler_chunks.lib.stream import BIG, LITTLE, ByteReader
from sampler_chunks.notifier import Notifier

logger = logging.getLogger(__name__)

DICTIONARY_MAGIC = b"\x54\xac\x70\x5e"
DICTIONARY_HEADER_SIZE = 22
ITEM_COUNT_OFFSET = 14
ITEM_HEADER_SIZE = 8
SAMPLE_HEADER_ID = b"\x0a\xf8\xcc\x16"
SAMPLE_DATA_OFFSET = 31
SAMPLES_DICTIONARY_NAME = "Samples"

# The embedded NKI block starts with 27 bytes of its own before a regular
# Kontakt 2 header.
NKI_BLOCK_PREFIX = 27


class DictionaryItemReferenceType(enum.IntEnum):
    UNKNOWN = 0
    SAMPLE = 1
    DICTIONARY = 2
    NKI = 3
    END = 4


@dataclass
class DictionaryItem:
    length: int
    pointer: int
    reference_type: DictionaryItemReferenceType
    content: bytes
    dictionary: Dictionary | None = None

    @classmethod
    def read(cls, reader: ByteReader, order: str = LITTLE) -> DictionaryItem:
        length = reader.read_u16(order)
        pointer = reader.read_u32(order)
        raw_type = reader.read_u16(order)
        try:
            kind = DictionaryItemReferenceType(raw_type)
        except ValueError as exc:
            raise FormatError(f"Unknown dictionary item reference type {raw_type}") from exc
        if length < ITEM_HEADER_SIZE:
            raise FormatError(f"Dictionary item length {length} is shorter than its header")
        return cls(length, pointer, kind, reader.read(length - ITEM_HEADER_SIZE))

    def as_wide_string(self) -> str:
        """The content as UTF-16LE text up to the first zero character."""
        text = self.content[:len(self.content) & ~1].decode("utf-16-le", errors="replace")
        return text.split("\x00", 1)[0]


@dataclass
class Dictionary:
    items: list[DictionaryItem] = field(default_factory=list)

    @classmethod
    def read(cls, reader: ByteReader, order: str = LITTLE,
             _visited: frozenset[int] = frozenset()) -> Dictionary:
        """Read a dictionary at the cursor and all dictionaries it references.

        Referenced dictionaries are read by seeking to their pointer; the
        cursor is left wherever the last of them ended.

        Raises:
            UnsupportedFeatureError: ``order`` is big-endian.
            UnexpectedTagError: The header magic is missing.
            FormatError: An item has an unknown reference type, or
                dictionaries reference each other in a cycle.
        """
        if order == BIG:
            raise UnsupportedFeatureError("Big-endian monoliths are not supported")
        offset = reader.pos
        if offset in _visited:
            raise FormatError(f"Dictionary at offset {offset} references itself")
        header = reader.read(DICTIONARY_HEADER_SIZE)
        if header[:4] != DICTIONARY_MAGIC:
            raise UnexpectedTagError(f"No dictionary at offset {offset}: {header[:4].hex(' ')}")
        count = header[ITEM_COUNT_OFFSET]
        dictionary = cls([DictionaryItem.read(reader, order) for _ in range(count)])
        for item in dictionary.items:
            if item.reference_type == DictionaryItemReferenceType.DICTIONARY:
                reader.seek(item.pointer)
                item.dictionary = cls.read(reader, order, _visited | {offset})
        return dictionary

    def nki_pointer(self) -> int | None:
        for item in self.items:
            if item.reference_type == DictionaryItemReferenceType.NKI:
                return item.pointer
        return None

    def samples_dictionary(self) -> Dictionary:
        """The first sub-dictionary, which has to be the ``Samples`` one.

        Raises:
            UnexpectedTagError: The first sub-dictionary has another name.
            FormatError: There is no sub-dictionary.
        """
        for item in self.items:
            if item.reference_type == DictionaryItemReferenceType.DICTIONARY:
                name = item.as_wide_string()
                if name != SAMPLES_DICTIONARY_NAME:
                    raise UnexpectedTagError(f"Unexpected dictionary '{name}', expected Samples")
                return item.dictionary or Dictionary()
        raise FormatError("Monolith has no Samples dictionary")

    def dump(self, level: int = 0) -> str:
        indent = " " * (level * 4)
        lines = []
        for item in self.items:
            lines.append(f"{indent}{item.reference_type.name:<10} 0x{item.pointer:08X} {item.as_wide_string()}")
            if item.dictionary is not None:
                lines.append(item.dictionary.dump(level + 1))
        return "\n".join(lines)


@dataclass
class MonolithSample:
    offset: int
    data: bytes


@dataclass
class Monolith:
    dictionary: Dictionary
    nki_pointer: int
    samples: dict[str, MonolithSample] = field(default_factory=dict)

    @property
    def body_offset(self) -> int:
        """Where the Kontakt 2 body of the embedded NKI starts."""
        return self.nki_pointer + NKI_BLOCK_PREFIX + ids.K2_HEADER_SIZE

    @classmethod
    def read(cls, reader: ByteReader, order: str = LITTLE,
             notifier: Notifier | None = None) -> Monolith:
        dictionary = Dictionary.read(reader, order)
        nki_pointer = dictionary.nki_pointer()
        if nki_pointer is None:
            raise FormatError("Monolith dictionary has no NKI entry")
        samples = locate_samples(reader.data, dictionary, notifier)
        return cls(dictionary, nki_pointer, samples)


def sample_names(dictionary: Dictionary, notifier: Notifier | None = None) -> list[str]:
    names = []
    for item in dictionary.items:
        kind = item.reference_type
        if kind == DictionaryItemReferenceType.SAMPLE:
            names.append(item.as_wide_string())
        elif kind == DictionaryItemReferenceType.DICTIONARY:
            message = "Ignoring nested dictionary '%s' in the samples dictionary"
            if notifier is not None:
                notifier.info(message, item.as_wide_string())
            else:
                logger.info(message, item.as_wide_string())
        elif kind != DictionaryItemReferenceType.END:
            raise FormatError(f"Unexpected {kind.name} item in the samples dictionary")
    return names


def find_sample_headers(data: bytes, end: int, count: int) -> list[int]:
    """Offsets of the last ``count`` sample headers before ``end``, ascending."""
    positions = []
    pos = end - len(SAMPLE_HEADER_ID)
    while len(positions) < count and pos >= 0:
        pos = data.rfind(SAMPLE_HEADER_ID, 0, pos + len(SAMPLE_HEADER_ID))
        if pos < 0:
            break
        positions.append(pos)
        pos -= 1
    positions.reverse()
    return positions


def locate_samples(data: bytes, dictionary: Dictionary,
                   notifier: Notifier | None = None) -> dict[str, MonolithSample]:
    """Map each sample name of the monolith to its embedded WAV data.

    Raises:
        FormatError: The dictionary has no NKI entry or no Samples dictionary.
        UnexpectedTagError: The first sub-dictionary is not named Samples.
        SampleCountMismatchError: The scan found fewer sample headers than
            there are sample names.
    """
    nki_pointer = dictionary.nki_pointer()
    if nki_pointer is None:
        raise FormatError("Monolith dictionary has no NKI entry")
    names = sample_names(dictionary.samples_dictionary(), notifier)
    positions = find_sample_headers(data, nki_pointer, len(names))
    if len(positions) != len(names):
        raise SampleCountMismatchError(
            f"Found {len(positions)} sample headers for {len(names)} samples"
        )

    samples = {}
    for index, (name, position) in enumerate(zip(names, positions)):
        start = position + SAMPLE_DATA_OFFSET
        limit = positions[index + 1] if index + 1 < len(positions) else nki_pointer
        end = limit
        if data[start:start + 4] == b"RIFF" and start + 8 <= len(data):
            end = min(limit, start + 8 + int.from_bytes(data[start + 4:start + 8], "little"))
        samples[name] = MonolithSample(start, data[start:end])
    logger.debug("Located %d monolith samples", len(samples))
    return samples
