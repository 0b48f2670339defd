"""SoundFont 2 (.sf2) reader.

SF2 file overview::

    RIFF 'sfbk'
      LIST 'INFO'   ifil, isng, INAM, irom, iver, ICRD, IENG, IPRD, ICOP, ICMT, ISFT
      LIST 'sdta'   smpl, sm24
      LIST 'pdta'   phdr, pbag, pmod, pgen, inst, ibag, imod, igen, shdr

The ``pdta`` records are collected first and resolved afterwards so that
their order inside the file does not matter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sampler_chunks.errors import (
    ChunkSizeMismatchError,
    FormatError,
    UnexpectedTagError,
    UnresolvedReferenceError,
)
from sampler_chunks.riff.chunk import RawChunk
from sampler_chunks.riff.parser import RiffParser
from sampler_chunks.sf2 import generators as gen
from sampler_chunks.sf2.zones import (
    GENERATOR_RECORD,
    INSTRUMENT_HEADER,
    MODULATOR_RECORD,
    PRESET_HEADER,
    SAMPLE_HEADER,
    Instrument,
    InstrumentZone,
    Preset,
    PresetZone,
    SampleDescriptor,
)

logger = logging.getLogger(__name__)

SOUND_ENGINE_DEFAULT = "EMU8000"
BAG_RECORD_SIZE = 4

_RECORD_SIZES = {
    b"phdr": PRESET_HEADER.size,
    b"pbag": BAG_RECORD_SIZE,
    b"pmod": MODULATOR_RECORD.size,
    b"pgen": GENERATOR_RECORD.size,
    b"inst": INSTRUMENT_HEADER.size,
    b"ibag": BAG_RECORD_SIZE,
    b"imod": MODULATOR_RECORD.size,
    b"igen": GENERATOR_RECORD.size,
    b"shdr": SAMPLE_HEADER.size,
}

_INFO_TEXT_FIELDS = {
    b"isng": "sound_engine",
    b"INAM": "compatible_bank",
    b"irom": "sound_data_rom",
    b"ICRD": "creation_date",
    b"IENG": "sound_designer",
    b"IPRD": "intended_product",
    b"ICOP": "copyright",
    b"ICMT": "comment",
    b"ISFT": "creation_tool",
}


def _version(chunk: RawChunk) -> float:
    return chunk.two_bytes_as_int(0) + chunk.two_bytes_as_int(2) / 100.0


@dataclass
class Sf2File:
    version: float = -1.0
    sound_engine: str | None = None
    compatible_bank: str | None = None
    sound_data_rom: str | None = None
    rom_revision: float = -1.0
    creation_date: str | None = None
    sound_designer: str | None = None
    intended_product: str | None = None
    copyright: str | None = None
    comment: str | None = None
    creation_tool: str | None = None
    sample_data: bytes = b""
    sample24_data: bytes | None = None
    presets: list[Preset] = field(default_factory=list)
    instruments: list[Instrument] = field(default_factory=list)
    samples: list[SampleDescriptor] = field(default_factory=list)
    ignored_tags: set[str] = field(default_factory=set)

    @classmethod
    def read(cls, data: bytes) -> Sf2File:
        """Parse an SF2 buffer.

        Raises:
            UnexpectedTagError: Not a RIFF 'sfbk' file.
            ChunkSizeMismatchError: A record chunk is not a multiple of its record size.
            UnresolvedReferenceError: A bag, generator, instrument or sample index is invalid.
            FormatError: The mandatory version chunk is missing.
        """
        top = RiffParser().parse(data)
        if top.tag != b"RIFF" or top.form_type != b"sfbk":
            raise UnexpectedTagError(f"Not an SF2 file: {top.tag!r}/{top.form_type!r}")

        sf2 = cls()
        records: dict[bytes, bytes] = {}
        for group in top.children:
            if not group.is_container:
                sf2.ignored_tags.add(group.tag_name)
                continue
            for chunk in group.children:
                sf2._visit(group.form_type, chunk, records)

        if sf2.version < 0:
            raise FormatError("No version found in SF2 file")
        # Mandatory too, but many files in the wild omit them.
        if sf2.sound_engine is None:
            sf2.sound_engine = SOUND_ENGINE_DEFAULT
        if sf2.compatible_bank is None:
            sf2.compatible_bank = ""

        sf2._resolve(records)
        return sf2

    @classmethod
    def from_file(cls, path: str | Path) -> Sf2File:
        return cls.read(Path(path).read_bytes())

    def _visit(self, form_type: bytes | None, chunk: RawChunk, records: dict[bytes, bytes]) -> None:
        tag = chunk.tag
        if form_type == b"INFO":
            if tag == b"ifil":
                self.version = _version(chunk)
            elif tag == b"iver":
                self.rom_revision = _version(chunk)
            elif tag in _INFO_TEXT_FIELDS:
                default = SOUND_ENGINE_DEFAULT if tag == b"isng" else ""
                setattr(self, _INFO_TEXT_FIELDS[tag], chunk.null_terminated_string(0, default=default).strip())
            else:
                self.ignored_tags.add(chunk.tag_name)
        elif form_type == b"sdta" and tag == b"smpl":
            self.sample_data = chunk.data
        elif form_type == b"sdta" and tag == b"sm24":
            self.sample24_data = chunk.data
        elif form_type == b"pdta" and tag in _RECORD_SIZES:
            if chunk.size % _RECORD_SIZES[tag]:
                raise ChunkSizeMismatchError(
                    f"'{chunk.tag_name}' size {chunk.size} is not a multiple of {_RECORD_SIZES[tag]}"
                )
            records[tag] = chunk.data
        else:
            self.ignored_tags.add(chunk.tag_name)

    def _resolve(self, records: dict[bytes, bytes]) -> None:
        phdr = records.get(b"phdr", b"")
        self.presets = [Preset.read(phdr, offset)
                        for offset in range(0, len(phdr), PRESET_HEADER.size)]
        inst = records.get(b"inst", b"")
        self.instruments = [Instrument.read(inst, offset)
                            for offset in range(0, len(inst), INSTRUMENT_HEADER.size)]
        shdr = records.get(b"shdr", b"")
        self.samples = [SampleDescriptor.read(shdr, i * SAMPLE_HEADER.size, i)
                        for i in range(len(shdr) // SAMPLE_HEADER.size)]

        # The last preset (EOP) and instrument (EOI) only terminate the lists.
        for preset, following in zip(self.presets, self.presets[1:]):
            for first_gen, gen_count, first_mod, mod_count in _bags(
                    records.get(b"pbag", b""), preset.first_zone_index, following.first_zone_index):
                zone = PresetZone(first_gen, gen_count, first_mod, mod_count)
                zone.apply_generators(records.get(b"pgen", b""))
                zone.apply_modulators(records.get(b"pmod", b""))
                zone.is_global = not zone.has_generator(gen.INSTRUMENT)
                zone.apply_instrument(self.instruments)
                preset.zones.append(zone)

        for instrument, following in zip(self.instruments, self.instruments[1:]):
            for first_gen, gen_count, first_mod, mod_count in _bags(
                    records.get(b"ibag", b""), instrument.first_zone_index, following.first_zone_index):
                zone = InstrumentZone(first_gen, gen_count, first_mod, mod_count)
                zone.apply_generators(records.get(b"igen", b""))
                zone.apply_modulators(records.get(b"imod", b""))
                zone.is_global = not zone.has_generator(gen.SAMPLE_ID)
                zone.apply_sample(self.samples)
                instrument.zones.append(zone)

        logger.debug("SF2 with %d presets, %d instruments, %d samples",
                     max(0, len(self.presets) - 1), max(0, len(self.instruments) - 1),
                     len(self.samples))

    def real_presets(self) -> list[Preset]:
        """Presets without the terminating EOP record."""
        return self.presets[:-1]


def _bags(bags: bytes, first: int, end: int) -> list[tuple[int, int, int, int]]:
    count = len(bags) // BAG_RECORD_SIZE
    if first > end or (end > first and end >= count):
        raise UnresolvedReferenceError(f"Bag range {first}..{end} outside {count} bag records")
    result = []
    for index in range(first, end):
        gen_index, mod_index = GENERATOR_RECORD.unpack_from(bags, index * BAG_RECORD_SIZE)
        next_gen, next_mod = GENERATOR_RECORD.unpack_from(bags, (index + 1) * BAG_RECORD_SIZE)
        result.append((gen_index, next_gen - gen_index, mod_index, next_mod - mod_index))
    return result
