"""Typed chunks of Akai S5000/S6000 programs (.akp) and multis (.akm).

Akai documents the program layout as one flat block of absolute offsets.
Each chunk type covers a slice of that block; accessors take the absolute
offset and subtract the chunk's base, so the numbers here match the
published tables.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from sampler_chunks.errors import ChunkSizeMismatchError
from sampler_chunks.lib.notes import denormalize_frequency
from sampler_chunks.model.multisample import (
    Envelope,
    EnvelopeModulator,
    Filter,
    FilterType,
    SampleLoop,
    SampleZone,
)
from sampler_chunks.riff.chunk import RawChunk
from sampler_chunks.riff.registry import ChunkRegistry, TypedChunk, require_length

AKP_CHUNKS = ChunkRegistry("AKP")
AKM_CHUNKS = ChunkRegistry("AKM")

# 0-2 LP, 3-5 BP, 6-8 HP, 12-15 notch; the morphing types have no equivalent.
FILTER_TYPES = MappingProxyType({
    0: FilterType.LOW_PASS, 1: FilterType.LOW_PASS, 2: FilterType.LOW_PASS,
    3: FilterType.BAND_PASS, 4: FilterType.BAND_PASS, 5: FilterType.BAND_PASS,
    6: FilterType.HIGH_PASS, 7: FilterType.HIGH_PASS, 8: FilterType.HIGH_PASS,
    12: FilterType.BAND_REJECTION, 13: FilterType.BAND_REJECTION,
    14: FilterType.BAND_REJECTION, 15: FilterType.BAND_REJECTION,
})

FILTER_POLES = MappingProxyType({
    0: 2, 1: 4, 2: 2,
    3: 2, 4: 4, 5: 2,
    6: 1, 7: 2, 8: 1,
    12: 1, 13: 2, 14: 3, 15: 4,
})

AUX_ENVELOPE_SOURCE = 11


class _OffsetChunk(TypedChunk):
    """Chunk whose fields are addressed by absolute Akai offsets."""

    BASE = 0

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)

    def _index(self, position: int) -> int:
        index = position - self.BASE
        if not 0 <= index < len(self.data):
            raise ChunkSizeMismatchError(
                f"Offset 0x{position:X} outside '{self.TAG.decode()}' chunk of {len(self.data)} bytes"
            )
        return index

    def value(self, position: int) -> int:
        return struct.unpack_from("b", self.data, self._index(position))[0]

    def unsigned_value(self, position: int) -> int:
        return self.data[self._index(position)]


# ---------------------------------------------------------------------------
# AKP
# ---------------------------------------------------------------------------

@AKP_CHUNKS.register(b"prg ")
@dataclass
class AkpProgram(TypedChunk):
    LENGTH = 6

    program_number: int = 0
    number_of_keygroups: int = 0

    @classmethod
    def read(cls, raw: RawChunk) -> AkpProgram:
        require_length(raw, cls.LENGTH)
        return cls(program_number=raw.byte_as_unsigned(1),
                   number_of_keygroups=raw.byte_as_unsigned(2))

    def write(self) -> bytes:
        return bytes([0, self.program_number, self.number_of_keygroups, 0, 0, 0])


@AKP_CHUNKS.register(b"out ")
@dataclass
class AkpOutput(TypedChunk):
    LENGTH = 8

    loudness: int = 85              # 0..100
    amp_mod_1: int = 0              # 0..100
    amp_mod_2: int = 0
    pan_mod_1: int = 0
    pan_mod_2: int = 0
    pan_mod_3: int = 0
    velocity_sensitivity: int = 25  # -100..100

    @classmethod
    def read(cls, raw: RawChunk) -> AkpOutput:
        require_length(raw, cls.LENGTH)
        return cls(
            loudness=raw.byte_as_unsigned(1),
            amp_mod_1=raw.byte_as_unsigned(2),
            amp_mod_2=raw.byte_as_unsigned(3),
            pan_mod_1=raw.byte_as_unsigned(4),
            pan_mod_2=raw.byte_as_unsigned(5),
            pan_mod_3=raw.byte_as_unsigned(6),
            velocity_sensitivity=raw.byte_as_signed(7),
        )

    def write(self) -> bytes:
        return struct.pack(
            "<BBBBBBBb", 0, self.loudness, self.amp_mod_1, self.amp_mod_2,
            self.pan_mod_1, self.pan_mod_2, self.pan_mod_3, self.velocity_sensitivity,
        )


@AKP_CHUNKS.register(b"tune")
class AkpTuning(_OffsetChunk):
    LENGTH = 22
    BASE = 0x32

    @classmethod
    def read(cls, raw: RawChunk) -> AkpTuning:
        require_length(raw, cls.LENGTH)
        return cls(raw.data)

    @classmethod
    def empty(cls) -> AkpTuning:
        return cls(bytes(cls.LENGTH))

    @property
    def semitone(self) -> int:
        return self.value(0x33)

    @property
    def fine(self) -> int:
        return self.value(0x34)

    @property
    def bend_up(self) -> int:
        return self.unsigned_value(0x41)

    @property
    def bend_down(self) -> int:
        return self.unsigned_value(0x42)

    def write(self) -> bytes:
        return self.data


@AKP_CHUNKS.register(b"mods")
class AkpModulations(_OffsetChunk):
    """Modulation routing. Read-only, the layout is only partially known."""

    LENGTH = 38
    BASE = 0x78

    @classmethod
    def read(cls, raw: RawChunk) -> AkpModulations:
        require_length(raw, cls.LENGTH)
        return cls(raw.data)

    @classmethod
    def empty(cls) -> AkpModulations:
        return cls(bytes(cls.LENGTH))

    def uses_aux_envelope(self, slot: int) -> bool:
        """True if pitch modulation ``slot`` (1 or 2) is driven by AUX ENV."""
        if slot not in (1, 2):
            raise ValueError(f"Pitch modulation slot must be 1 or 2, got {slot}")
        return self.unsigned_value(0x92 + slot) == AUX_ENVELOPE_SOURCE


@dataclass
class AkpZoneInfo:
    """One of the up to four sample slots of a keygroup."""
    sample_name: str
    velocity_low: int
    velocity_high: int
    fine: int
    semitone: int
    panning: int
    loop_type: int
    level: int


@AKP_CHUNKS.register(b"kgrp")
class AkpKeygroup(_OffsetChunk):
    BASE = 0xA6
    ZONE_START = 0x11E
    MAX_ZONES = 4

    @classmethod
    def read(cls, raw: RawChunk) -> AkpKeygroup:
        return cls(raw.data)

    @property
    def low_note(self) -> int:
        return self.value(0xB2)

    @property
    def high_note(self) -> int:
        return self.value(0xB3)

    def zone_infos(self) -> list[AkpZoneInfo]:
        zones: list[AkpZoneInfo] = []
        position = self.ZONE_START
        for _ in range(self.MAX_ZONES):
            if position - self.BASE >= len(self.data) or self.value(position) == 0:
                break
            size = self.unsigned_value(position + 4)
            name_start = position + 9
            name_length = self.unsigned_value(name_start)
            if name_length > 0:
                name = "".join(chr(self.unsigned_value(name_start + 1 + n)) for n in range(name_length))
                zones.append(AkpZoneInfo(
                    sample_name=name.strip(),
                    velocity_low=self.unsigned_value(position + 0x2A),
                    velocity_high=self.unsigned_value(position + 0x2B),
                    fine=self.value(position + 0x2C),
                    semitone=self.value(position + 0x2D),
                    panning=self.value(position + 0x2F),
                    loop_type=self.unsigned_value(position + 0x30),
                    level=self.value(position + 0x32),
                ))
            position += size + 8
        return zones

    def create_sample_zones(self, mods: AkpModulations, tuning: AkpTuning,
                            output: AkpOutput) -> list[SampleZone]:
        keygroup_tuning = (tuning.semitone + tuning.fine / 100.0
                           + self.value(0xB4) + self.value(0xB5) / 100.0)
        pitch_mod_1 = self.value(0xB8)
        pitch_mod_2 = self.value(0xB9)

        amp_envelope = Envelope(
            attack=_to_seconds(self.unsigned_value(0xC7)),
            decay=_to_seconds(self.unsigned_value(0xC9)),
            sustain=self.unsigned_value(0xCD) / 100.0,
            release=_to_seconds(self.unsigned_value(0xCA)),
        )

        aux_envelope = Envelope(
            attack=_to_seconds(self.unsigned_value(0xFB)),
            hold=_to_seconds(self.unsigned_value(0xFC)),
            decay=_to_seconds(self.unsigned_value(0xFD)),
            release=_to_seconds(self.unsigned_value(0xFE)),
            start_level=self.unsigned_value(0xFF) / 100.0,
            hold_level=self.unsigned_value(0x100) / 100.0,
            sustain=self.unsigned_value(0x101) / 100.0,
            end_level=self.unsigned_value(0x102) / 100.0,
        )
        mod_1_aux = mods.uses_aux_envelope(1)
        mod_2_aux = mods.uses_aux_envelope(2)

        filter_mode = self.unsigned_value(0x115)
        filter_type = FILTER_TYPES.get(filter_mode)
        cutoff = denormalize_frequency(self.unsigned_value(0x116) / 100.0)
        resonance = self.unsigned_value(0x117) / 12.0 / 2.0

        zones: list[SampleZone] = []
        for info in self.zone_infos():
            zone = SampleZone(
                name=info.sample_name,
                key_low=self.low_note,
                key_high=self.high_note,
                velocity_low=info.velocity_low,
                velocity_high=info.velocity_high,
                tune=keygroup_tuning + info.semitone + info.fine / 100.0 + 12.0,
                panning=info.panning / 50.0,
                gain=info.level / 100.0 * 6.0,
                amplitude_envelope=replace(amp_envelope),
                amplitude_velocity_depth=output.velocity_sensitivity / 100.0,
                bend_up=tuning.bend_up,
                bend_down=tuning.bend_down,
            )
            if filter_type is not None:
                zone.filter = Filter(
                    filter_type=filter_type,
                    poles=FILTER_POLES[filter_mode],
                    cutoff=cutoff,
                    resonance=resonance,
                    cutoff_envelope=EnvelopeModulator(
                        depth=self.value(0xE9) / 100.0,
                        envelope=Envelope(
                            attack=_to_seconds(self.unsigned_value(0xE1)),
                            decay=_to_seconds(self.unsigned_value(0xE3)),
                            sustain=self.unsigned_value(0xE7) / 100.0,
                            release=_to_seconds(self.unsigned_value(0xE4)),
                        ),
                    ),
                )
            # 0 no loop, 1 one shot, 2 loop in release, 3 loop until release, 4 as sample
            if info.loop_type > 1:
                zone.loops.append(SampleLoop())
            if mod_1_aux or mod_2_aux:
                depth = pitch_mod_1 if mod_1_aux else pitch_mod_2
                zone.pitch_envelope = EnvelopeModulator(
                    depth=depth / 100.0, envelope=replace(aux_envelope))
            zones.append(zone)
        return zones


def _to_seconds(value: int) -> float:
    # 0..100 mapped onto 0..6 seconds
    return value / 100.0 * 6.0


# ---------------------------------------------------------------------------
# AKM
# ---------------------------------------------------------------------------

@AKM_CHUNKS.register(b"part")
@dataclass
class AkmPart(TypedChunk):
    """One part of a multi. Read-only."""

    LENGTH = 0x30

    preset_name: str = ""
    midi_channel: int = 0
    panning: int = 0       # -50..50
    low_key: int = 0
    high_key: int = 127
    volume: int = 0        # 0..100
    unused: bytes = field(default=b"", repr=False)

    @classmethod
    def read(cls, raw: RawChunk) -> AkmPart:
        require_length(raw, cls.LENGTH)
        return cls(
            preset_name=raw.null_terminated_string(2, 32),
            midi_channel=raw.byte_as_unsigned(0x22),
            panning=raw.byte_as_signed(0x23),
            low_key=raw.byte_as_unsigned(0x24),
            high_key=raw.byte_as_unsigned(0x25),
            volume=raw.byte_as_unsigned(0x26),
            unused=raw.data[0x27:0x2C],
        )
