"""Programs, groups, zones, loops and file lists of a Kontakt 5 preset.

These records decode the public data of the preset chunks and translate
them into the :mod:`sampler_chunks.model.multisample` model.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sampler_chunks.config import DEFAULT_SETTINGS, ReaderSettings
from sampler_chunks.errors import (
    FormatError,
    UnexpectedTagError,
    UnresolvedReferenceError,
    UnsupportedFeatureError,
    UnsupportedVersionError,
)
from sampler_chunks.kontakt import ids
from sampler_chunks.kontakt.preset_chunk import PresetChunk
from sampler_chunks.kontakt.tuning import TuneVariant, clamp, combine_tune, value_to_db
from sampler_chunks.lib.stream import LITTLE, ByteReader
from sampler_chunks.model.multisample import (
    Group as ModelGroup,
    LoopType,
    Multisample,
    SampleLoop,
    SampleZone,
    TriggerType,
)

logger = logging.getLogger(__name__)

NULL_ENTRY = "(null)"
MAX_ZONE_VERSION = 0x9A
MAX_GROUP_VERSION = 0x9A
MAX_FILE_LIST_VERSION = 2
LOOP_ARRAY_MARKER = 0x60
MAX_LOOPS = 8

# Children of a program that carry nothing for the conversion.
_IGNORED_PROGRAM_CHILDREN = frozenset({
    ids.VOICE_GROUPS,
    ids.PARAMETER_ARRAY_8,
    ids.PAR_SCRIPT,
    ids.PAR_MOD_BASE,
    ids.INSERT_BUS,
    ids.QUICK_BROWSE_DATA,
    ids.SAVE_SETTINGS,
})

SEGMENT_DIRECTORY = 2
SEGMENT_FILENAME = 4


def none_if_null(text: str | None) -> str | None:
    """Blank strings and the ``"(null)"`` placeholder mean "not set"."""
    if text is None or not text.strip() or text == NULL_ENTRY:
        return None
    return text


# -- loops -------------------------------------------------------------------


@dataclass
class ZoneLoop:
    MODE_UNTIL_END = 0x1
    MODE_UNTIL_END_ALT = 0x1006000
    MODE_UNTIL_RELEASE = 0x0
    MODE_UNTIL_RELEASE_ALT = 0x3F80
    MODE_ONESHOT = -0x7FFFFFFF      # 0x80000001 as a signed 32-bit value

    mode: int = MODE_UNTIL_END
    start: int = 0
    length: int = 0
    count: int = 0
    alternating: int = 0
    tuning: float = 1.0
    crossfade_length: int = 0

    @classmethod
    def read(cls, reader: ByteReader) -> ZoneLoop:
        return cls(
            mode=reader.read_s32(LITTLE),
            start=reader.read_u32(LITTLE),
            length=reader.read_u32(LITTLE),
            count=reader.read_u32(LITTLE),
            alternating=reader.read_u8(),
            tuning=reader.read_f32(LITTLE),
            crossfade_length=reader.read_u32(LITTLE),
        )

    def to_sample_loop(self) -> SampleLoop:
        return SampleLoop(
            loop_type=LoopType.ALTERNATING if self.alternating > 0 else LoopType.FORWARDS,
            start=self.start,
            end=self.start + self.length,
            crossfade=self.crossfade_length / self.length if self.length else 0.0,
        )


def parse_loops(data: bytes) -> list[ZoneLoop]:
    """Decode a loop array: an enable mask, a marker and one loop per set bit."""
    if len(data) < 2:
        return []
    reader = ByteReader(data)
    enabled = reader.read_u16(LITTLE)
    marker = reader.read_u16(LITTLE)
    if marker != LOOP_ARRAY_MARKER:
        raise FormatError(f"Unknown loop array marker 0x{marker:X}")
    return [ZoneLoop.read(reader) for bit in range(MAX_LOOPS) if enabled & (1 << bit)]


# -- zones and groups --------------------------------------------------------


@dataclass
class Zone:
    group_index: int
    sample_start: int = 0
    sample_end: int = 0
    low_velocity: int = 0
    high_velocity: int = 127
    low_key: int = 0
    high_key: int = 127
    fade_low_velocity: int = 0
    fade_high_velocity: int = 0
    fade_low_key: int = 0
    fade_high_key: int = 0
    root_key: int = 60
    volume: float = 1.0
    pan: float = 0.0
    tune: float = 1.0
    filename_id: int = -1
    sample_data_type: int = 0
    sample_rate: int = 0
    channels: int = 0
    num_frames: int = 0
    root_note: int = 0
    tuning: float = 1.0
    loops: list[ZoneLoop] = field(default_factory=list)

    @classmethod
    def parse(cls, data: bytes, version: int, group_index: int = 0) -> Zone:
        """Decode zone public data.

        Raises:
            UnsupportedVersionError: ``version`` is above 0x9A.
            TruncatedInputError: The data is shorter than the layout.
        """
        if version > MAX_ZONE_VERSION:
            raise UnsupportedVersionError(f"Unsupported zone version 0x{version:X}")
        reader = ByteReader(data)
        zone = cls(group_index)
        zone.sample_start = reader.read_u32(LITTLE)
        zone.sample_end = reader.read_u32(LITTLE)
        reader.read_u32(LITTLE)             # sample start modulation range
        zone.low_velocity = reader.read_u16(LITTLE)
        zone.high_velocity = reader.read_u16(LITTLE)
        zone.low_key = reader.read_u16(LITTLE)
        zone.high_key = reader.read_u16(LITTLE)
        zone.fade_low_velocity = reader.read_u16(LITTLE)
        zone.fade_high_velocity = reader.read_u16(LITTLE)
        zone.fade_low_key = reader.read_u16(LITTLE)
        zone.fade_high_key = reader.read_u16(LITTLE)
        zone.root_key = reader.read_u16(LITTLE)
        zone.volume = reader.read_f32(LITTLE)
        zone.pan = reader.read_f32(LITTLE)
        zone.tune = reader.read_f32(LITTLE)

        if version == MAX_ZONE_VERSION:
            reader.skip(2)
            reader.read_u32(LITTLE)
            # Script-only instruments end here.
            if reader.at_end():
                return zone

        zone.filename_id = reader.read_u32(LITTLE)
        zone.sample_data_type = reader.read_u32(LITTLE)
        zone.sample_rate = reader.read_u32(LITTLE)
        zone.channels = reader.read_u8()
        zone.num_frames = reader.read_u32(LITTLE)
        reader.read_u32(LITTLE)
        if version <= 0x93:
            reader.read_u32(LITTLE)
        zone.root_note = reader.read_u32(LITTLE)
        zone.tuning = reader.read_f32(LITTLE)
        reader.skip(1)
        reader.read_u32(LITTLE)
        return zone


@dataclass
class Group:
    name: str = ""
    volume: float = 1.0
    pan: float = 0.0
    tune: float = 1.0
    key_tracking: bool = True
    reverse: bool = False
    release_trigger: bool = False
    release_trigger_note_monophonic: bool = False
    release_trigger_counter: int = 0
    midi_channel: int = -1
    voice_group_index: int = -1
    fx_index: int = 0
    muted: bool = False
    soloed: bool = False
    interpolation_quality: int = 0

    @classmethod
    def parse(cls, data: bytes, version: int) -> Group:
        if version > MAX_GROUP_VERSION:
            raise UnsupportedVersionError(f"Unsupported group version 0x{version:X}")
        reader = ByteReader(data)
        return cls(
            name=reader.read_utf16_with_length(),
            volume=reader.read_f32(LITTLE),
            pan=reader.read_f32(LITTLE),
            tune=reader.read_f32(LITTLE),
            key_tracking=reader.read_bool(),
            reverse=reader.read_bool(),
            release_trigger=reader.read_bool(),
            release_trigger_note_monophonic=reader.read_bool(),
            release_trigger_counter=reader.read_u32(LITTLE),
            midi_channel=reader.read_s16(LITTLE),
            voice_group_index=reader.read_s32(LITTLE),
            fx_index=reader.read_u32(LITTLE),
            muted=reader.read_bool(),
            soloed=reader.read_bool(),
            interpolation_quality=reader.read_u32(LITTLE),
        )


# -- file list ---------------------------------------------------------------


@dataclass
class FileList:
    file_paths: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, chunk: PresetChunk) -> FileList:
        """Decode a ``FILENAME_LIST`` or ``FILENAME_LIST_EX`` chunk.

        Raises:
            UnexpectedTagError: ``chunk`` is not a file list.
            UnsupportedVersionError: The list version is above 2.
            FormatError: A path segment has an unknown type.
        """
        if chunk.chunk_id not in (ids.FILENAME_LIST, ids.FILENAME_LIST_EX):
            raise UnexpectedTagError(f"Not a file list chunk: 0x{chunk.chunk_id:02X}")
        reader = ByteReader(chunk.public_data)
        version = reader.read_u16(LITTLE)
        if version > MAX_FILE_LIST_VERSION:
            raise UnsupportedVersionError(f"Unsupported file list version {version}")
        if chunk.chunk_id == ids.FILENAME_LIST_EX:
            reader.read_u32(LITTLE)

        paths = []
        for _ in range(reader.read_u32(LITTLE)):
            parts = []
            for _ in range(reader.read_u32(LITTLE)):
                segment_type = reader.read_u8()
                if segment_type == SEGMENT_DIRECTORY:
                    parts.append(reader.read_utf16_with_length() + "/")
                elif segment_type == SEGMENT_FILENAME:
                    parts.append(reader.read_utf16_with_length())
                else:
                    raise FormatError(f"Unknown file path segment type {segment_type}")
            paths.append("".join(parts))
        if not reader.at_end():
            logger.debug("%d unread bytes after file list", reader.remaining)
        return cls(paths)


# -- program -----------------------------------------------------------------


@dataclass
class Program:
    name: str = ""
    version: int = 0
    total_sample_size: float = 0.0
    transpose: int = 0
    volume: float = 1.0
    pan: float = 0.0
    tune: float = 1.0
    key_switch: int = -1
    library_id: int = 0
    icon_id: int = 0
    icon_name: str | None = None
    author: str | None = None
    url: str | None = None
    categories: tuple[bytes, bytes, bytes] = (b"\x00\x00", b"\x00\x00", b"\x00\x00")
    groups: list[Group] = field(default_factory=list)
    zones: list[Zone] = field(default_factory=list)
    file_paths: list[str] = field(default_factory=list)
    slot_index: int = -1

    @classmethod
    def parse(cls, chunk: PresetChunk, file_paths: list[str],
              settings: ReaderSettings = DEFAULT_SETTINGS) -> Program:
        """Decode a ``PROGRAM`` chunk and its group and zone lists.

        Raises:
            UnexpectedTagError: ``chunk`` is not a program, or it has a child
                that is not known to belong to a program.
            UnsupportedVersionError: The program version is above
                ``settings.max_program_version``.
        """
        if chunk.chunk_id != ids.PROGRAM:
            raise UnexpectedTagError(f"Not a program chunk: 0x{chunk.chunk_id:02X}")
        # Known versions: 0x80 4.2, 0xA5 5.3, 0xA8 5.4-5.5, 0xAB 5.6-5.8,
        # 0xAE 6.5-6.8, 0xAF 7.1
        if chunk.version > settings.max_program_version:
            raise UnsupportedVersionError(f"Unsupported program version 0x{chunk.version:X}")

        program = cls(version=chunk.version, file_paths=list(file_paths))
        program._read_public_data(chunk.public_data)
        for child in chunk.children:
            if child.chunk_id == ids.GROUP_LIST:
                program.groups = [Group.parse(item.public_data, item.version) for item in child.children]
            elif child.chunk_id == ids.ZONE_LIST:
                program.zones = [_parse_zone(item) for item in child.children]
            elif child.chunk_id in _IGNORED_PROGRAM_CHILDREN:
                continue
            else:
                raise UnexpectedTagError(
                    f"Unsupported program child 0x{child.chunk_id:02X} {child.name}"
                )
        return program

    def _read_public_data(self, data: bytes) -> None:
        reader = ByteReader(data)
        self.name = reader.read_utf16_with_length()
        self.total_sample_size = reader.read_f64(LITTLE)
        self.transpose = reader.read_s8()
        self.volume = reader.read_f32(LITTLE)
        self.pan = reader.read_f32(LITTLE)
        self.tune = reader.read_f32(LITTLE)
        reader.skip(4)                      # velocity and key clipping
        self.key_switch = reader.read_s16(LITTLE)
        reader.skip(4)                      # DFD preload size
        self.library_id = reader.read_u32(LITTLE)
        reader.skip(4 + 4 + 1)              # fingerprint, loading flags, group solo
        self.icon_id = reader.read_u32(LITTLE)
        self.icon_name = ids.icon_name(self.icon_id)
        reader.read_utf16_with_length()     # credits
        author = reader.read_utf16_with_length()
        self.author = author if author.strip() else None
        self.url = none_if_null(reader.read_utf16_with_length())
        self.categories = (reader.read(2), reader.read(2), reader.read(2))

    def sample_file(self, zone: Zone) -> str:
        if not 0 <= zone.filename_id < len(self.file_paths):
            raise UnresolvedReferenceError(f"Zone references missing file index {zone.filename_id}")
        filename = self.file_paths[zone.filename_id]
        if filename.lower().endswith(".ncw"):
            raise UnsupportedFeatureError(f"NCW compressed samples are not supported: {filename}")
        return filename

    def fill_into(self, multisample: Multisample, source_folder: str | Path | None = None) -> None:
        """Translate the program into ``multisample``.

        Every group becomes a model group, including groups without zones.

        Raises:
            UnresolvedReferenceError: A zone references a missing group or
                file index.
            UnsupportedFeatureError: A zone uses an NCW compressed sample.
            FormatError: The combined tune ratio of a zone is not positive.
        """
        multisample.name = self.name
        if self.author:
            multisample.creator = self.author
        if self.url:
            multisample.description = self.url
        multisample.category = self.icon_name

        model_groups = []
        for group in self.groups:
            model_group = ModelGroup(name=group.name)
            if group.release_trigger:
                model_group.trigger = TriggerType.RELEASE
            model_groups.append(model_group)

        for zone in self.zones:
            if not 0 <= zone.group_index < len(self.groups):
                raise UnresolvedReferenceError(f"Zone references missing group {zone.group_index}")
            group = self.groups[zone.group_index]
            filename = self.sample_file(zone)
            sample_path = str(Path(source_folder) / filename) if source_folder is not None else filename

            offset = 0 if zone.root_note == 0 else (zone.root_note - zone.root_key) * 100
            tune = combine_tune(TuneVariant.KONTAKT5, zone.tune, group.tune, self.tune)
            sample_zone = SampleZone(
                name=Path(filename).stem,
                sample_path=sample_path,
                start=zone.sample_start,
                stop=zone.num_frames - zone.sample_end,
                key_low=zone.low_key,
                key_high=zone.high_key,
                key_root=zone.root_key,
                key_crossfade_low=zone.fade_low_key,
                key_crossfade_high=zone.fade_high_key,
                velocity_low=zone.low_velocity,
                velocity_high=zone.high_velocity,
                velocity_crossfade_low=zone.fade_low_velocity,
                velocity_crossfade_high=zone.fade_high_velocity,
                gain=value_to_db(self.volume + zone.volume),
                panning=clamp(self.pan + zone.pan, -1.0, 1.0),
                tune=(offset + tune) / 1000,
                reversed=group.reverse,
                loops=[loop.to_sample_loop() for loop in zone.loops],
            )
            if group.release_trigger:
                sample_zone.trigger = TriggerType.RELEASE
            model_groups[zone.group_index].zones.append(sample_zone)

        multisample.groups = model_groups


def _parse_zone(item: PresetChunk) -> Zone:
    zone = Zone.parse(item.public_data, item.version, group_index=item.chunk_id)
    for child in item.children:
        if child.chunk_id == ids.LOOP_ARRAY:
            zone.loops.extend(parse_loops(child.public_data))
    return zone
