"""Akai S5000/S6000 program (.akp) and multi (.akm) files."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sampler_chunks.akai.chunks import (
    AKM_CHUNKS,
    AKP_CHUNKS,
    AkmPart,
    AkpKeygroup,
    AkpModulations,
    AkpOutput,
    AkpProgram,
    AkpTuning,
)
from sampler_chunks.errors import UnexpectedTagError
from sampler_chunks.model.multisample import Group
from sampler_chunks.notifier import Notifier
from sampler_chunks.riff.chunk import RawChunk
from sampler_chunks.riff.parser import RiffParser

logger = logging.getLogger(__name__)

APRG = b"APRG"
AMUL = b"AMUL"
INFO = b"INFO"

# Known but without meaning for the conversion.
_SKIPPED_AKP = frozenset({b"lfo "})
_SKIPPED_AKM = frozenset({b"fx  "})


def _parse(data: bytes, form_type: bytes) -> RawChunk:
    parser = RiffParser()
    parser.declare_list(form_type)
    top = parser.parse(data)
    if top.tag != b"RIFF" or top.form_type != form_type:
        raise UnexpectedTagError(
            f"Expected RIFF form {form_type!r}, found {top.tag!r}/{top.form_type!r}"
        )
    return top


@dataclass
class AkpFile:
    """An Akai program. Read-only."""

    program: AkpProgram = field(default_factory=AkpProgram)
    output: AkpOutput = field(default_factory=AkpOutput)
    modulations: AkpModulations = field(default_factory=AkpModulations.empty)
    tuning: AkpTuning = field(default_factory=AkpTuning.empty)
    keygroups: list[AkpKeygroup] = field(default_factory=list)
    info: list[RawChunk] = field(default_factory=list)
    ignored_tags: set[str] = field(default_factory=set)
    is_s5000_series: bool = False

    @classmethod
    def read(cls, data: bytes, notifier: Notifier | None = None) -> AkpFile:
        top = _parse(data, APRG)
        result = cls(is_s5000_series=top.open_ended)
        for chunk in top.children:
            if chunk.is_container:
                if chunk.form_type == INFO:
                    result.info.extend(chunk.children)
                else:
                    result.ignored_tags.add(chunk.form_name)
                continue
            if chunk.tag in _SKIPPED_AKP:
                continue
            typed = AKP_CHUNKS.decode(chunk, notifier)
            if isinstance(typed, AkpProgram):
                result.program = typed
            elif isinstance(typed, AkpOutput):
                result.output = typed
            elif isinstance(typed, AkpModulations):
                result.modulations = typed
            elif isinstance(typed, AkpTuning):
                result.tuning = typed
            elif isinstance(typed, AkpKeygroup):
                result.keygroups.append(typed)
            else:
                result.ignored_tags.add(chunk.tag_name)
        logger.debug("Read AKP program %d with %d keygroups",
                     result.program.program_number, len(result.keygroups))
        return result

    @classmethod
    def from_file(cls, path: str | Path, notifier: Notifier | None = None) -> AkpFile:
        return cls.read(Path(path).read_bytes(), notifier)

    def create_group(self) -> Group:
        group = Group()
        for keygroup in self.keygroups:
            group.zones.extend(keygroup.create_sample_zones(self.modulations, self.tuning, self.output))
        _fix_panning(group)
        return group


def _fix_panning(group: Group) -> None:
    # Programs converted from older Akai formats often have every zone hard
    # left or hard right.
    pannings = {zone.panning for zone in group.zones}
    if len(pannings) == 1 and pannings.pop() in (-1.0, 1.0):
        for zone in group.zones:
            zone.panning = 0.0


@dataclass
class AkmFile:
    """An Akai multi. Read-only."""

    parts: list[AkmPart] = field(default_factory=list)
    version: str | None = None
    ignored_tags: set[str] = field(default_factory=set)
    is_s5000_series: bool = False

    @classmethod
    def read(cls, data: bytes, notifier: Notifier | None = None) -> AkmFile:
        top = _parse(data, AMUL)
        result = cls(is_s5000_series=top.open_ended)
        for chunk in top.children:
            if chunk.is_container:
                result.ignored_tags.add(chunk.form_name)
                continue
            if chunk.tag in _SKIPPED_AKM:
                continue
            if chunk.tag == b"vers":
                result.version = ".".join(str(chunk.byte_as_signed(i)) for i in range(4))
                continue
            typed = AKM_CHUNKS.decode(chunk, notifier)
            if isinstance(typed, AkmPart):
                if typed.preset_name.strip():
                    result.parts.append(typed)
            else:
                result.ignored_tags.add(chunk.tag_name)
        return result

    @classmethod
    def from_file(cls, path: str | Path, notifier: Notifier | None = None) -> AkmFile:
        return cls.read(Path(path).read_bytes(), notifier)
