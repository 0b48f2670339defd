"""Format-neutral multisample model filled by the codecs.

The chunk codecs translate their binary fields into these dataclasses. The
model is deliberately flat: a :class:`Multisample` has groups, groups have
zones, zones reference sample files by path or by an in-memory provider.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol


class LoopType(Enum):
    FORWARDS = "forwards"
    BACKWARDS = "backwards"
    ALTERNATING = "alternating"


class TriggerType(Enum):
    ATTACK = "attack"
    RELEASE = "release"


class FilterType(Enum):
    LOW_PASS = "low-pass"
    HIGH_PASS = "high-pass"
    BAND_PASS = "band-pass"
    BAND_REJECTION = "band-rejection"


@dataclass
class Envelope:
    """ADSR envelope; times in seconds, sustain 0..1, -1 = not set."""
    delay: float = -1.0
    attack: float = -1.0
    hold: float = -1.0
    decay: float = -1.0
    sustain: float = -1.0
    release: float = -1.0
    start_level: float = -1.0
    hold_level: float = -1.0
    end_level: float = -1.0

    def is_set(self) -> bool:
        return any(v >= 0 for v in (self.delay, self.attack, self.hold,
                                    self.decay, self.sustain, self.release))


@dataclass
class EnvelopeModulator:
    depth: float = 0.0
    envelope: Envelope = field(default_factory=Envelope)


@dataclass
class Filter:
    filter_type: FilterType
    poles: int
    cutoff: float          # Hz
    resonance: float       # 0..1
    cutoff_envelope: EnvelopeModulator = field(default_factory=EnvelopeModulator)


@dataclass
class SampleLoop:
    loop_type: LoopType = LoopType.FORWARDS
    start: int = 0
    end: int = 0
    crossfade: float = 0.0  # 0..1 of the loop length


@dataclass
class SampleZone:
    """One sample mapped onto a key and velocity range."""
    name: str = ""
    sample_path: str | None = None
    key_low: int = 0
    key_high: int = 127
    key_crossfade_low: int = 0
    key_crossfade_high: int = 0
    velocity_low: int = 1
    velocity_high: int = 127
    velocity_crossfade_low: int = 0
    velocity_crossfade_high: int = 0
    key_root: int = -1
    key_tracking: float = 1.0
    tune: float = 0.0           # semitones
    gain: float = 0.0           # dB
    panning: float = 0.0        # -1..1
    start: int = 0
    stop: int = -1
    reversed: bool = False
    trigger: TriggerType = TriggerType.ATTACK
    bend_up: int = 0            # cents
    bend_down: int = 0          # cents
    loops: list[SampleLoop] = field(default_factory=list)
    amplitude_envelope: Envelope = field(default_factory=Envelope)
    amplitude_velocity_depth: float = 0.0
    pitch_envelope: EnvelopeModulator | None = None
    filter: Filter | None = None


@dataclass
class Group:
    name: str = ""
    zones: list[SampleZone] = field(default_factory=list)
    trigger: TriggerType = TriggerType.ATTACK


@dataclass
class Multisample:
    name: str = ""
    creator: str | None = None
    description: str | None = None
    category: str | None = None
    keywords: list[str] = field(default_factory=list)
    groups: list[Group] = field(default_factory=list)

    def zones(self) -> list[SampleZone]:
        return [zone for group in self.groups for zone in group.zones]


class SampleDataProvider(Protocol):
    """Supplies audio for a zone; implemented outside this library."""

    def add_zone_data(self, zone: SampleZone) -> None: ...
