"""Top level of a Kontakt preset: chunk list, file list and programs.

Instruments (NKI) keep their programs at the top of the chunk list. Multis
(NKM) store them inside ``BANK`` -> ``SLOT_LIST``: the slot list starts
with a 64-bit slot mask, followed by one ``PROGRAM_CONTAINER`` chunk per
used slot whose ``PROGRAM_LIST`` holds the program as its first item.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field

from sampler_chunks.config import DEFAULT_SETTINGS, ReaderSettings
from sampler_chunks.errors import FormatError
from sampler_chunks.kontakt import ids
from sampler_chunks.kontakt.preset_chunk import PresetChunk, find_all, parse_chunks, parse_items
from sampler_chunks.kontakt.records import FileList, Program
from sampler_chunks.lib.stream import LITTLE, ByteReader, ByteWriter

logger = logging.getLogger(__name__)

SLOT_COUNT = 64
CONTAINER_ITEM_MAGIC = 0x8565620D


@dataclass
class PresetChunkData:
    chunks: list[PresetChunk] = field(default_factory=list)
    file_paths: list[str] = field(default_factory=list)
    programs: list[Program] = field(default_factory=list)

    @classmethod
    def parse(cls, data: bytes, settings: ReaderSettings = DEFAULT_SETTINGS) -> PresetChunkData:
        """Parse a preset chunk list and decode its programs.

        Raises:
            UnexpectedTagError: A chunk ID is unknown.
            TruncatedInputError: A declared size runs past the data.
            UnsupportedVersionError: A program, group or zone is too new.
        """
        result = cls(chunks=parse_chunks(data))
        result.file_paths = result._read_file_paths()
        for chunk in find_all(result.chunks, ids.PROGRAM):
            result.programs.append(Program.parse(chunk, result.file_paths, settings))

        bank = result.top_chunk(ids.BANK)
        if bank is not None:
            for child in bank.children:
                if child.chunk_id == ids.SLOT_LIST:
                    result.programs.extend(_read_slot_list(child, result.file_paths, settings))
        logger.debug("Preset chunk data with %d files and %d programs",
                     len(result.file_paths), len(result.programs))
        return result

    def top_chunk(self, chunk_id: int) -> PresetChunk | None:
        for chunk in self.chunks:
            if chunk.chunk_id == chunk_id:
                return chunk
        return None

    def _read_file_paths(self) -> list[str]:
        chunk = self.top_chunk(ids.FILENAME_LIST) or self.top_chunk(ids.FILENAME_LIST_EX)
        if chunk is None:
            return []
        return FileList.parse(chunk).file_paths

    def write(self) -> bytes:
        return b"".join(chunk.write() for chunk in self.chunks)

    def dump(self) -> str:
        return "".join(chunk.dump() for chunk in self.chunks)


def _read_slot_list(chunk: PresetChunk, file_paths: list[str],
                    settings: ReaderSettings) -> list[Program]:
    reader = ByteReader(chunk.public_data)
    slots = int.from_bytes(reader.read(8), "little")
    programs = []
    for slot in range(SLOT_COUNT):
        if not slots & (1 << slot):
            continue
        container = PresetChunk.read(reader)
        if container.chunk_id != ids.PROGRAM_CONTAINER:
            logger.debug("Slot %d holds %s instead of a program container", slot, container.name)
            continue
        for child in container.children:
            if child.chunk_id != ids.PROGRAM_LIST:
                continue
            items = parse_items(child.public_data)
            if not items:
                continue
            # The program comes as a list item and has no program ID of its own.
            program_chunk = dataclasses.replace(items[0], chunk_id=ids.PROGRAM, is_item=False)
            program = Program.parse(program_chunk, file_paths, settings)
            program.slot_index = slot
            programs.append(program)
    return programs


# -- NI container items ------------------------------------------------------


@dataclass
class ContainerItem:
    """A preset chunk list wrapped in a one-entry dictionary."""

    dictionary_id: int = 0
    reference: int = 0
    data: bytes = b""
    checksum: int = CONTAINER_ITEM_MAGIC

    def write(self) -> bytes:
        writer = ByteWriter()
        writer.write_u32(self.dictionary_id, LITTLE)
        writer.write_u32(1, LITTLE)
        writer.write_u32(len(self.data), LITTLE)
        writer.write_u32(self.reference, LITTLE)
        writer.write(self.data)
        writer.write_u32(0, LITTLE)
        writer.write_u32(self.checksum, LITTLE)
        return writer.getvalue()


def read_container_item(data: bytes) -> ContainerItem:
    """Unwrap the preset data of an NI container item.

    Raises:
        FormatError: The dictionary has more than one item, the padding is
            not zero or bytes follow the checksum.
        TruncatedInputError: The item is shorter than its declared size.
    """
    reader = ByteReader(data)
    dictionary_id = reader.read_u32(LITTLE)
    count = reader.read_u32(LITTLE)
    if count != 1:
        raise FormatError(f"Expected exactly one dictionary item, found {count}")
    size = reader.read_u32(LITTLE)
    reference = reader.read_u32(LITTLE)
    payload = reader.read(size)
    padding = reader.read_u32(LITTLE)
    if padding != 0:
        raise FormatError(f"Container item padding is 0x{padding:X}, expected 0")
    checksum = reader.read_u32(LITTLE)
    if not reader.at_end():
        raise FormatError(f"{reader.remaining} unexpected bytes after container item")
    return ContainerItem(dictionary_id, reference, payload, checksum)


def programs_from_container_item(data: bytes,
                                 settings: ReaderSettings = DEFAULT_SETTINGS) -> list[Program]:
    return PresetChunkData.parse(read_container_item(data).data, settings).programs
