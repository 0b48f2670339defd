"""RIFF style chunk containers."""

from sampler_chunks.riff.chunk import RawChunk
from sampler_chunks.riff.parser import RiffParser
from sampler_chunks.riff.registry import ChunkRegistry, TypedChunk, require_length

__all__ = [
    "RawChunk",
    "RiffParser",
    "ChunkRegistry",
    "TypedChunk",
    "require_length",
]
