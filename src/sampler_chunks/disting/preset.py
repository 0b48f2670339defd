"""Expert Sleepers Disting EX SD multisample presets (.dexpreset).

A preset is a fixed 1024-byte block, little-endian, without chunking:

    offset  size  field
    0       8     "DEXBPRST"
    8       4     file version (1)
    12      500   zeros
    512     4     preset version (0x14)
    516     16    name, space padded
    532     4     unknown
    536     32    dual mode settings (zero in single mode)
    568     4     algorithm (2 = SD multisample)
    572     160   80 parameters, 16-bit two's complement
    732     21    sample sub-folder, null terminated
    753     271   second/third folder and device constants
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path

from sampler_chunks.errors import FormatError, UnsupportedVersionError
from sampler_chunks.lib.stream import (
    LITTLE,
    ByteReader,
    ByteWriter,
    from_signed_complement,
    to_signed_complement,
)
from sampler_chunks.model.multisample import Envelope, SampleZone
from sampler_chunks.notifier import Notifier

logger = logging.getLogger(__name__)

MAGIC = b"DEXBPRST"
FILE_VERSION = 1
PRESET_VERSION = 0x14
ALGORITHM_SD_MULTISAMPLE = 2
PRESET_SIZE = 1024
NAME_LENGTH = 16
FOLDER_LENGTH = 21
PARAMETER_COUNT = 80

PARAMETER_NAMES: tuple[str, ...] = (
    "Attenuverter 1", "Attenuverter 2", "Attenuverter 3", "Attenuverter 4",
    "Attenuverter 5", "Attenuverter 6", "Folder", "Attack time",
    "Decay time", "Sustain level", "Release time", "Octave",
    "Transpose", "Fine tune", "Gain", "Saturation",
    "Sustain", "Max voices", "Bend range", "Pitch bend input",
    "Voice 1 detune", "Voice 2 detune", "Voice 3 detune", "Voice 4 detune",
    "Voice 5 detune", "Voice 6 detune", "Voice 7 detune", "Voice 8 detune",
    "Chord enable", "Chord key", "Chord scale", "Chord shape",
    "Chord inversion", "Arpeggio 1 mode", "Arpeggio 2 mode", "Arpeggio 3 mode",
    "Arpeggio 1 range", "Arpeggio 2 range", "Arpeggio 3 range", "Scala/MTS",
    "Scala KBM", "Folder 2", "Folder 3", "Min note 1",
    "Max note 1", "Min note 2", "Max note 2", "Min note 3",
    "Max note 3", "Output spread", "Delay mode", "Delay level",
    "Delay time", "Delay feedback", "Tone bass", "Tone treble",
    "Break time", "Break direction", "Voice 1 bend input", "Voice 2 bend input",
    "Voice 3 bend input", "Voice 4 bend input", "Voice 5 bend input", "Voice 6 bend input",
    "Voice 7 bend input", "Voice 8 bend input", "Output mode", "Input mode",
    "Sustain mode", "MIDI vel curve", "Arp reset input", "Gate offset",
    "Round robin mode",
) + ("Unused",) * 7

_DEFAULT_PARAMETERS: tuple[int, ...] = (
    100, 100, 100, 100, 100, 100, 0, 0,
    60, 127, 77, 0, 0, 0, 0, 1,
    0, 8, 2, 0, 0, 0, 0, 0,
    0, 0, 0, 0, 0, 0, 0, 0,
    0, 0, 0, 0, 1, 1, 1, 0,
    0, -1, -1, 0, 127, 0, 127, 0,
    127, 0, 0, -3, 500, 50, 0, 0,
    0, 0, 0, 0, 0, 0, 0, 0,
    0, 0, 0, 0, 0, 0, 0, 0,
    0, 0, 0, 0, 0, 0, 0, 0,
)

ATTACK = 7
DECAY = 8
SUSTAIN_LEVEL = 9
RELEASE = 10
OCTAVE = 11
TRANSPOSE = 12
FINE_TUNE = 13
GAIN = 14
BEND_RANGE = 18


def default_parameters() -> list[int]:
    return list(_DEFAULT_PARAMETERS)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


@dataclass
class DistingExPreset:
    name: str = ""
    sample_folder: str = ""
    parameters: list[int] = field(default_factory=default_parameters)
    preset_version: int = PRESET_VERSION
    dual_mode: bytes = bytes(32)

    @classmethod
    def read(cls, data: bytes, notifier: Notifier | None = None) -> DistingExPreset:
        """Decode a preset.

        Raises:
            UnexpectedTagError: The magic is missing.
            UnsupportedVersionError: The file version is not 1.
            FormatError: The preset is not an SD multisample preset.
            TruncatedInputError: The buffer ends early.
        """
        reader = ByteReader(data)
        reader.expect_tag(MAGIC)
        file_version = reader.read_s32(LITTLE)
        if file_version != FILE_VERSION:
            raise UnsupportedVersionError(f"Unknown Disting EX file version {file_version}")
        reader.skip(500)
        preset_version = reader.read_s32(LITTLE)
        if preset_version != PRESET_VERSION:
            message = "Unknown Disting EX preset version %d"
            if notifier is not None:
                notifier.error(message, preset_version)
            else:
                logger.error(message, preset_version)
        name = reader.read_ascii(NAME_LENGTH).strip()
        reader.read_s32(LITTLE)
        dual_mode = reader.read(32)
        algorithm = reader.read_s32(LITTLE)
        if algorithm != ALGORITHM_SD_MULTISAMPLE:
            raise FormatError(f"Not an SD multisample preset (algorithm {algorithm})")
        parameters = [from_signed_complement(reader.read_u16(LITTLE))
                      for _ in range(PARAMETER_COUNT)]
        folder = reader.read_null_terminated_ascii(FOLDER_LENGTH).strip()
        return cls(name=name, sample_folder=folder, parameters=parameters,
                   preset_version=preset_version, dual_mode=dual_mode)

    @classmethod
    def from_file(cls, path: str | Path, notifier: Notifier | None = None) -> DistingExPreset:
        return cls.read(Path(path).read_bytes(), notifier)

    def write(self) -> bytes:
        if len(self.parameters) != PARAMETER_COUNT:
            raise FormatError(f"Expected {PARAMETER_COUNT} parameters, got {len(self.parameters)}")
        writer = ByteWriter()
        writer.write(MAGIC)
        writer.write_s32(FILE_VERSION, LITTLE)
        writer.pad(500)
        writer.write_s32(PRESET_VERSION, LITTLE)
        writer.write_ascii(self.name, NAME_LENGTH, fill=0x20)
        writer.write_s32(0, LITTLE)
        writer.write(self.dual_mode[:32].ljust(32, b"\x00"))
        writer.write_s32(ALGORITHM_SD_MULTISAMPLE, LITTLE)
        for parameter in self.parameters:
            writer.write_u16(to_signed_complement(parameter), LITTLE)

        # The device expects 0xFF instead of zero padding after the terminator.
        folder = bytearray(self.sample_folder.encode("ascii", errors="replace")[:FOLDER_LENGTH]
                           .ljust(FOLDER_LENGTH, b"\x00"))
        terminator = folder.find(0)
        if terminator >= 0:
            folder[terminator + 1:] = b"\xff" * (FOLDER_LENGTH - terminator - 1)
        writer.write(folder)

        writer.pad(1)
        writer.pad(FOLDER_LENGTH)   # folder 2
        writer.pad(FOLDER_LENGTH)   # folder 3
        writer.pad(4)
        writer.write(b"\x00\x80\xbb\x46")
        writer.pad(76)
        writer.write(b"\x01\x07\x00\x7f\x00")
        writer.pad(139)
        return writer.getvalue()

    # -- parameter mapping -----------------------------------------------------

    def envelope(self) -> Envelope:
        p = self.parameters
        return Envelope(
            attack=0.001 * math.exp(0.0757 * p[ATTACK]),     # 1 ms .. 15 s
            decay=0.02 * math.exp(0.0521 * p[DECAY]),        # 20 ms .. 15 s
            sustain=p[SUSTAIN_LEVEL] / 127.0,
            release=0.01 * math.exp(0.0630 * p[RELEASE]),    # 10 ms .. 30 s
        )

    def tune(self) -> float:
        p = self.parameters
        return p[OCTAVE] * 12 + p[TRANSPOSE] + p[FINE_TUNE] / 100.0

    def apply_to(self, zone: SampleZone) -> None:
        zone.tune = self.tune()
        zone.gain = float(self.parameters[GAIN])
        zone.bend_up = self.parameters[BEND_RANGE]
        zone.bend_down = -self.parameters[BEND_RANGE]
        zone.amplitude_envelope = self.envelope()

    def set_from_zone(self, zone: SampleZone, envelope: Envelope | None = None) -> None:
        p = self.parameters
        p[BEND_RANGE] = zone.bend_up if zone.bend_up > 0 else 2
        tune = zone.tune
        octaves = int(tune / 12)
        p[OCTAVE] = octaves
        tune -= octaves * 12
        p[TRANSPOSE] = int(tune)
        tune -= p[TRANSPOSE]
        p[FINE_TUNE] = int(tune * 100.0)
        p[GAIN] = _clamp(round(zone.gain), -40, 24)
        if envelope is not None:
            if envelope.attack > 0:
                p[ATTACK] = _clamp(round(math.log(envelope.attack / 0.001) / 0.0757), 0, 127)
            if envelope.decay > 0:
                p[DECAY] = _clamp(round(math.log(envelope.decay / 0.02) / 0.0521), 0, 127)
            if envelope.release > 0:
                p[RELEASE] = _clamp(round(math.log(envelope.release / 0.01) / 0.0630), 0, 127)

    def named_parameters(self) -> dict[str, int]:
        return {f"{i:02d} {PARAMETER_NAMES[i]}": value for i, value in enumerate(self.parameters)}
