"""Magic-byte sniffing and dispatch to the matching codec.

Every format is described by a :class:`FormatSignature` whose matcher looks
at the first bytes of a file only. Decoders are plain callables keyed by
format name; there is no codec class hierarchy.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from sampler_chunks.akai.files import AkmFile, AkpFile
from sampler_chunks.config import DEFAULT_SETTINGS, ReaderSettings
from sampler_chunks.disting.preset import MAGIC as DISTING_MAGIC
from sampler_chunks.disting.preset import DistingExPreset
from sampler_chunks.errors import ChunkError, UnexpectedTagError, UnsupportedFeatureError
from sampler_chunks.kontakt import ids
from sampler_chunks.kontakt.container import KontaktFile
from sampler_chunks.kontakt.ni_container import NiContainer
from sampler_chunks.notifier import Notifier
from sampler_chunks.sf2.file import Sf2File
from sampler_chunks.ysfc.file import YAMAHA_YSFC, YsfcFile

logger = logging.getLogger(__name__)

# Enough for every signature below
SNIFF_SIZE = 16

Matcher = Callable[[bytes], bool]
Decoder = Callable[[bytes, ReaderSettings, Notifier], Any]


@dataclass(frozen=True)
class FormatSignature:
    name: str
    extensions: tuple[str, ...]
    matcher: Matcher

    def matches(self, head: bytes) -> bool:
        return self.matcher(head)


# -- matchers ----------------------------------------------------------------


def _riff_form(form_type: bytes) -> Matcher:
    def match(head: bytes) -> bool:
        return head[:4] == b"RIFF" and head[8:12] == form_type
    return match


def _u32_magic(*magics: int) -> Matcher:
    def match(head: bytes) -> bool:
        if len(head) < 4:
            return False
        big = int.from_bytes(head[:4], "big")
        little = int.from_bytes(head[:4], "little")
        return big in magics or little in magics
    return match


def _prefix(tag: bytes) -> Matcher:
    def match(head: bytes) -> bool:
        return head.startswith(tag)
    return match


def _kontakt2(head: bytes) -> bool:
    return int.from_bytes(head[:4], "big") in (ids.KONTAKT2_LITTLE_ENDIAN, ids.KONTAKT2_BIG_ENDIAN)


def _kontakt5_monolith(head: bytes) -> bool:
    return len(head) >= 4 and int.from_bytes(head[:4], "big") == ids.KONTAKT5_MONOLITH


FORMATS: tuple[FormatSignature, ...] = (
    FormatSignature("akp", (".akp",), _riff_form(b"APRG")),
    FormatSignature("akm", (".akm",), _riff_form(b"AMUL")),
    FormatSignature("sf2", (".sf2",), _riff_form(b"sfbk")),
    FormatSignature("kontakt1", (".nki", ".nkm"),
                    _u32_magic(ids.KONTAKT1_INSTRUMENT, ids.KONTAKT1_MULTI)),
    FormatSignature("kontakt2", (".nki", ".nkm"), _kontakt2),
    FormatSignature("kontakt5-monolith", (".nki", ".nkm"), _kontakt5_monolith),
    FormatSignature("ni-container", (".nicnt", ".nkx", ".nkc"), _prefix(ids.NI_CONTAINER_MAGIC)),
    FormatSignature("ysfc", (".x7a", ".x7l", ".x7u", ".x8a", ".x8l", ".x8u", ".x3a", ".x6a",
                             ".x0a", ".x0w", ".y2a", ".y2l", ".y2u"),
                    _prefix(YAMAHA_YSFC.encode("ascii"))),
    FormatSignature("disting-ex", (".dexpreset",), _prefix(DISTING_MAGIC)),
)


def detect(data: bytes, filename: str | Path | None = None) -> FormatSignature:
    """Find the format of ``data`` from its first bytes.

    A Kontakt 5 monolith is an NI container with another extension, so when
    several formats match, the one claiming the file's extension wins;
    without a file name the first match in :data:`FORMATS` is returned.

    Raises:
        UnexpectedTagError: No format matches.
    """
    head = bytes(data[:SNIFF_SIZE])
    candidates = [signature for signature in FORMATS if signature.matches(head)]
    if not candidates:
        raise UnexpectedTagError(f"Unknown file format, starts with {head[:8].hex(' ')}")
    if len(candidates) > 1 and filename is not None:
        extension = Path(filename).suffix.lower()
        for signature in candidates:
            if extension in signature.extensions:
                return signature
    return candidates[0]


def detect_file(path: str | Path) -> FormatSignature:
    with open(path, "rb") as handle:
        head = handle.read(SNIFF_SIZE)
    return detect(head, path)


# -- decoders ----------------------------------------------------------------


def _decode_kontakt1(data: bytes, settings: ReaderSettings, notifier: Notifier) -> Any:
    raise UnsupportedFeatureError("Kontakt 1 files are not supported")


DECODERS: MappingProxyType[str, Decoder] = MappingProxyType({
    "akp": lambda data, settings, notifier: AkpFile.read(data, notifier),
    "akm": lambda data, settings, notifier: AkmFile.read(data, notifier),
    "sf2": lambda data, settings, notifier: Sf2File.read(data),
    "kontakt1": _decode_kontakt1,
    "kontakt2": lambda data, settings, notifier: KontaktFile.read(data, settings, notifier),
    "kontakt5-monolith": lambda data, settings, notifier: NiContainer.read(data),
    "ni-container": lambda data, settings, notifier: NiContainer.read(data),
    "ysfc": lambda data, settings, notifier: YsfcFile.read(data),
    "disting-ex": lambda data, settings, notifier: DistingExPreset.read(data, notifier),
})


def decode(data: bytes, filename: str | Path | None = None,
           settings: ReaderSettings = DEFAULT_SETTINGS,
           notifier: Notifier | None = None) -> tuple[FormatSignature, Any]:
    signature = detect(data, filename)
    decoder = DECODERS[signature.name]
    return signature, decoder(data, settings, notifier or Notifier())


def open_file(path: str | Path, settings: ReaderSettings = DEFAULT_SETTINGS,
              notifier: Notifier | None = None) -> tuple[FormatSignature, Any]:
    """Detect the format of ``path`` and decode it with the matching codec."""
    data = Path(path).read_bytes()
    logger.debug("Opening %s (%d bytes)", path, len(data))
    return decode(data, path, settings, notifier)


def decode_many(paths: Iterable[str | Path], settings: ReaderSettings = DEFAULT_SETTINGS,
                notifier: Notifier | None = None) -> tuple[dict[Path, Any], dict[Path, Exception]]:
    """Decode each file; a failing file is logged and the batch continues.

    Returns the decoded files and the failures, both keyed by path.
    """
    notifier = notifier or Notifier()
    decoded: dict[Path, Any] = {}
    failed: dict[Path, Exception] = {}
    for path in map(Path, paths):
        try:
            decoded[path] = open_file(path, settings, notifier)[1]
        except (ChunkError, OSError) as exc:
            notifier.error("Could not decode %s: %s", path, exc)
            failed[path] = exc
    return decoded, failed
