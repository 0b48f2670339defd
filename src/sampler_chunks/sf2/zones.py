"""SoundFont 2 presets, instruments, zones and sample headers.

A zone does not own its generator and modulator records. It keeps index
ranges into the shared ``pgen``/``igen`` and ``pmod``/``imod`` arrays and
resolves them on demand with :meth:`Zone.apply_generators` and
:meth:`Zone.apply_modulators`.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from types import MappingProxyType

from sampler_chunks.errors import UnresolvedReferenceError, UnsupportedFeatureError
from sampler_chunks.sf2 import generators as gen

logger = logging.getLogger(__name__)

GENERATOR_RECORD = struct.Struct("<HH")
MODULATOR_RECORD = struct.Struct("<HHhHH")
PRESET_HEADER = struct.Struct("<20sHHHIII")
INSTRUMENT_HEADER = struct.Struct("<20sH")
SAMPLE_HEADER = struct.Struct("<20sIIIIIBbHH")

PRESET_LEVEL = "preset"
INSTRUMENT_LEVEL = "instrument"

MODULATOR_NAMES = MappingProxyType({
    0: "No Controller",
    2: "Note-On Velocity",
    3: "Note-On Key Number",
    10: "Poly Pressure",
    13: "Channel Pressure",
    14: "Pitch Wheel",
    16: "Pitch Wheel Sensitivity",
    127: "Link",
})
MODULATOR_VELOCITY = 2
MODULATOR_PITCH_BEND = 14


def _name(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("ascii", errors="replace").strip()


@dataclass
class Modulator:
    source: int
    destination: int
    amount: int
    amount_source: int
    transform: int

    def __post_init__(self) -> None:
        self.source &= 0x7F

    @property
    def source_name(self) -> str:
        return MODULATOR_NAMES.get(self.source, "Unknown")


@dataclass
class Zone:
    first_generator: int = 0
    number_of_generators: int = 0
    first_modulator: int = 0
    number_of_modulators: int = 0
    is_global: bool = False
    generators: dict[int, int] = field(default_factory=dict)
    generator_order: list[int] = field(default_factory=list)
    modulators: list[Modulator] = field(default_factory=list)

    LEVEL = INSTRUMENT_LEVEL

    def add_generator(self, generator: int, value: int) -> None:
        """Add a generator; the first value for an ID wins."""
        if generator in self.generators:
            return
        self.generators[generator] = value
        self.generator_order.append(generator)

    def add_range_generator(self, generator: int, low: int, high: int) -> None:
        self.add_generator(generator, (high << 8) | (low & 0xFF))

    def has_generator(self, generator: int) -> bool:
        return generator in self.generators

    def generator_value(self, generator: int, default: int | None = None) -> int | None:
        return self.generators.get(generator, default)

    def signed_generator_value(self, generator: int, default: int = 0) -> int:
        value = self.generators.get(generator)
        if value is None:
            return default
        return value - 0x10000 if value & 0x8000 else value

    def range_value(self, generator: int) -> tuple[int, int] | None:
        value = self.generators.get(generator)
        if value is None:
            return None
        return value & 0xFF, (value >> 8) & 0xFF

    def apply_generators(self, records: bytes) -> None:
        count = len(records) // GENERATOR_RECORD.size
        if self.first_generator + self.number_of_generators > count or self.number_of_generators < 0:
            raise UnresolvedReferenceError(
                f"Generator range {self.first_generator}+{self.number_of_generators} "
                f"outside {count} records"
            )
        for index in range(self.first_generator, self.first_generator + self.number_of_generators):
            generator, value = GENERATOR_RECORD.unpack_from(records, index * GENERATOR_RECORD.size)
            if self.LEVEL == PRESET_LEVEL and gen.is_only_instrument(generator):
                logger.debug("Ignoring instrument-only generator %s in preset zone",
                             gen.generator_name(generator))
                continue
            self.add_generator(generator, value)

    def apply_modulators(self, records: bytes) -> None:
        count = len(records) // MODULATOR_RECORD.size
        if self.first_modulator + self.number_of_modulators > count or self.number_of_modulators < 0:
            raise UnresolvedReferenceError(
                f"Modulator range {self.first_modulator}+{self.number_of_modulators} "
                f"outside {count} records"
            )
        for index in range(self.first_modulator, self.first_modulator + self.number_of_modulators):
            self.modulators.append(Modulator(*MODULATOR_RECORD.unpack_from(
                records, index * MODULATOR_RECORD.size)))

    def modulators_for(self, source: int) -> list[Modulator]:
        return [m for m in self.modulators if m.source == source]


@dataclass
class PresetZone(Zone):
    instrument: Instrument | None = None

    LEVEL = PRESET_LEVEL

    def apply_instrument(self, instruments: list[Instrument]) -> None:
        index = self.generators.get(gen.INSTRUMENT)
        if index is None:
            return
        if index >= len(instruments):
            raise UnresolvedReferenceError(f"Preset zone references missing instrument {index}")
        self.instrument = instruments[index]


@dataclass
class InstrumentZone(Zone):
    sample: SampleDescriptor | None = None

    def apply_sample(self, samples: list[SampleDescriptor]) -> None:
        index = self.generators.get(gen.SAMPLE_ID)
        if index is None:
            if self.is_global:
                return
            raise UnresolvedReferenceError("Instrument zone has no sample generator")
        if index >= len(samples):
            raise UnresolvedReferenceError(f"Instrument zone references missing sample {index}")
        self.sample = samples[index]


@dataclass
class SampleDescriptor:
    MONO = 1
    RIGHT = 2
    LEFT = 4
    LINKED = 8
    ROM_MONO = 0x8001
    ROM_RIGHT = 0x8002
    ROM_LEFT = 0x8004
    ROM_LINKED = 0x8008

    name: str = ""
    start: int = 0
    end: int = 0
    start_loop: int = 0
    end_loop: int = 0
    sample_rate: int = 44100
    original_pitch: int = 60
    pitch_correction: int = 0
    link: int = 0
    sample_type: int = MONO
    index: int = field(default=0, compare=False)

    @classmethod
    def read(cls, data: bytes, offset: int, index: int = 0) -> SampleDescriptor:
        (name, start, end, start_loop, end_loop, rate, pitch, correction,
         link, sample_type) = SAMPLE_HEADER.unpack_from(data, offset)
        if sample_type >= cls.LINKED:
            raise UnsupportedFeatureError(f"Unsupported sample type 0x{sample_type:X}")
        return cls(_name(name), start, end, start_loop, end_loop, rate, pitch,
                   correction, link, sample_type, index)

    def write(self) -> bytes:
        return SAMPLE_HEADER.pack(
            self.name.encode("ascii", errors="replace")[:20], self.start, self.end,
            self.start_loop, self.end_loop, self.sample_rate, self.original_pitch,
            self.pitch_correction, self.link, self.sample_type,
        )


@dataclass
class Instrument:
    name: str
    first_zone_index: int
    zones: list[InstrumentZone] = field(default_factory=list)

    @classmethod
    def read(cls, data: bytes, offset: int) -> Instrument:
        name, bag_index = INSTRUMENT_HEADER.unpack_from(data, offset)
        return cls(_name(name), bag_index)


@dataclass
class Preset:
    name: str
    number: int
    bank: int
    first_zone_index: int
    zones: list[PresetZone] = field(default_factory=list)

    @classmethod
    def read(cls, data: bytes, offset: int) -> Preset:
        name, number, bank, bag_index, _library, _genre, _morphology = (
            PRESET_HEADER.unpack_from(data, offset)
        )
        return cls(_name(name), number, bank, bag_index)
