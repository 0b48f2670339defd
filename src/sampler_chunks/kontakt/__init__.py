"""Native Instruments Kontakt instruments and multis."""

from sampler_chunks.kontakt.container import Kontakt2Header, KontaktFile, SoundinfoDocument
from sampler_chunks.kontakt.monolith import Dictionary, DictionaryItemReferenceType, Monolith
from sampler_chunks.kontakt.ni_container import NiContainer
from sampler_chunks.kontakt.preset_chunk import PresetChunk, parse_chunks
from sampler_chunks.kontakt.preset_data import PresetChunkData
from sampler_chunks.kontakt.records import FileList, Group, Program, Zone, ZoneLoop
from sampler_chunks.kontakt.tuning import TuneVariant, combine_tune

__all__ = [
    "Kontakt2Header",
    "KontaktFile",
    "SoundinfoDocument",
    "Dictionary",
    "DictionaryItemReferenceType",
    "Monolith",
    "NiContainer",
    "PresetChunk",
    "parse_chunks",
    "PresetChunkData",
    "FileList",
    "Group",
    "Program",
    "Zone",
    "ZoneLoop",
    "TuneVariant",
    "combine_tune",
]
