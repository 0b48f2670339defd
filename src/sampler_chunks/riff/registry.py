"""Tag to codec registry for typed RIFF chunks."""

from __future__ import annotations

from typing import Any, Callable

from sampler_chunks.errors import ChunkSizeMismatchError
from sampler_chunks.notifier import Notifier
from sampler_chunks.riff.chunk import RawChunk


def require_length(raw: RawChunk, length: int) -> None:
    if raw.size < length or len(raw.data) < length:
        raise ChunkSizeMismatchError(
            f"Chunk '{raw.tag_name}' has {raw.size} bytes, expected at least {length}"
        )


class TypedChunk:
    """Base for chunk classes decoded from a :class:`RawChunk`."""

    TAG: bytes = b"    "

    def write(self) -> bytes:
        raise NotImplementedError(f"Chunk '{self.TAG.decode()}' is read-only")

    def to_raw(self) -> RawChunk:
        payload = self.write()
        return RawChunk(tag=self.TAG, size=len(payload), data=payload)


class ChunkRegistry:
    """Maps 4-byte tags to decoder callables.

    Populate with the decorator::

        AKP_CHUNKS = ChunkRegistry("AKP")

        @AKP_CHUNKS.register(b"prg ")
        class AkpProgram(TypedChunk): ...
    """

    def __init__(self, format_name: str) -> None:
        self.format_name = format_name
        self._decoders: dict[bytes, Callable[[RawChunk], Any]] = {}

    def register(self, tag: bytes) -> Callable[[type], type]:
        if len(tag) != 4:
            raise ValueError(f"Chunk tags are 4 bytes, got {tag!r}")

        def decorator(cls: type) -> type:
            if tag in self._decoders:
                raise ValueError(f"Tag {tag!r} already registered for {self.format_name}")
            cls.TAG = tag
            self._decoders[tag] = cls.read
            return cls

        return decorator

    def __contains__(self, tag: bytes) -> bool:
        return tag in self._decoders

    @property
    def tags(self) -> frozenset[bytes]:
        return frozenset(self._decoders)

    def decode(self, raw: RawChunk, notifier: Notifier | None = None) -> Any:
        """Return the typed chunk for ``raw``, or ``raw`` itself if the tag is unknown."""
        decoder = self._decoders.get(raw.tag)
        if decoder is None:
            if notifier is not None:
                notifier.unknown_tag(self.format_name, raw.tag_name)
            return raw
        return decoder(raw)
