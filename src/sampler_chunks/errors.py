"""Custom exception hierarchy for sampler-chunks."""

from __future__ import annotations


class ChunkError(Exception):
    """Base exception for all sampler-chunks errors."""


class FormatError(ChunkError, ValueError):
    """Structurally invalid data.

    Subclasses both ChunkError and ValueError so generic ``except ValueError``
    handlers around file loading keep working.
    """


class TruncatedInputError(FormatError, EOFError):
    """Fewer bytes are available than a read or a declared size requires."""


class ChunkSizeMismatchError(FormatError):
    """Declared chunk sizes do not add up, or a chunk is shorter than its layout."""


class UnexpectedTagError(FormatError):
    """A magic number, signature or chunk tag does not match."""


class UnsupportedVersionError(FormatError):
    """A version field is outside the supported range."""


class DecompressionSizeMismatchError(FormatError):
    """Decompressed output does not have the expected size, or input is cut short."""


class SampleCountMismatchError(FormatError):
    """The monolith sample scan found a different number of headers than listed."""


class UnresolvedReferenceError(FormatError, LookupError):
    """An index into a file list, group list or record table points nowhere."""


class UnsupportedFeatureError(ChunkError):
    """Valid data that uses a feature this library does not handle."""
