"""Command line entry point: ``sampler-chunks detect|dump FILE...``."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from sampler_chunks.akai.files import AkmFile, AkpFile
from sampler_chunks.config import ReaderSettings
from sampler_chunks.detection import decode_many, detect_file
from sampler_chunks.disting.preset import DistingExPreset
from sampler_chunks.errors import ChunkError
from sampler_chunks.kontakt.container import KontaktFile
from sampler_chunks.kontakt.ni_container import NiContainer
from sampler_chunks.lib.notes import key_range_label, note_label
from sampler_chunks.model.multisample import Multisample
from sampler_chunks.notifier import Notifier
from sampler_chunks.sf2 import generators as gen
from sampler_chunks.sf2.file import Sf2File
from sampler_chunks.ysfc.file import YsfcFile

logger = logging.getLogger("sampler_chunks")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sampler-chunks",
        description="Inspect sampler instrument files (Akai, SF2, Kontakt, Yamaha, Disting EX).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    parser.add_argument("--no-checksums", action="store_true",
                        help="Skip CRC32 verification of Kontakt 4.2 bodies")
    commands = parser.add_subparsers(dest="command", required=True)

    detect_parser = commands.add_parser("detect", help="Print the detected format of each file")
    detect_parser.add_argument("files", nargs="+", type=Path)

    dump_parser = commands.add_parser("dump", help="Print a readable tree of each decoded file")
    dump_parser.add_argument("files", nargs="+", type=Path)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    settings = ReaderSettings(verify_checksums=not args.no_checksums)
    if args.command == "detect":
        return _detect(args.files)
    return _dump(args.files, settings)


def _detect(paths: list[Path]) -> int:
    status = 0
    for path in paths:
        try:
            signature = detect_file(path)
        except (ChunkError, OSError) as exc:
            logger.error("%s: %s", path, exc)
            status = 1
            continue
        print(f"{path}: {signature.name}")
    return status


def _dump(paths: list[Path], settings: ReaderSettings) -> int:
    notifier = Notifier(logger)
    decoded, failed = decode_many(paths, settings, notifier)
    status = 1 if failed else 0
    for path, item in decoded.items():
        try:
            text = render(item)
        except ChunkError as exc:
            logger.error("%s: %s", path, exc)
            status = 1
            continue
        print(f"== {path}")
        print(text)
    return status


# -- rendering ---------------------------------------------------------------


def render(item: Any) -> str:
    if isinstance(item, KontaktFile):
        text = item.dump()
        programs = [render_multisample(m) for m in item.to_multisamples()]
        return "\n".join([text, *programs])
    if isinstance(item, (NiContainer, YsfcFile)):
        return item.dump()
    if isinstance(item, AkpFile):
        group = item.create_group()
        lines = [f"AKP program {item.program.program_number}, {len(item.keygroups)} keygroups"]
        lines += [f"    {zone.name or '-'}: {key_range_label(zone.key_low, zone.key_high)}"
                  for zone in group.zones]
        return "\n".join(lines)
    if isinstance(item, AkmFile):
        lines = [f"AKM multi, version {item.version or '?'}"]
        lines += [f"    {part.preset_name}: channel {part.midi_channel}, "
                  f"{key_range_label(part.low_key, part.high_key)}" for part in item.parts]
        return "\n".join(lines)
    if isinstance(item, Sf2File):
        return render_sf2(item)
    if isinstance(item, DistingExPreset):
        lines = ["Disting EX preset"]
        lines += [f"    {name} = {value}" for name, value in item.named_parameters().items()]
        return "\n".join(lines)
    return repr(item)


def render_sf2(sf2: Sf2File) -> str:
    lines = [f"SF2 version {sf2.version}, {len(sf2.real_presets())} presets, "
             f"{len(sf2.samples)} samples"]
    for preset in sf2.real_presets():
        lines.append(f"    {preset.bank:03d}:{preset.number:03d} {preset.name}")
        for zone in preset.zones:
            if zone.instrument is None:
                continue
            lines.append(f"        {zone.instrument.name}")
            for instrument_zone in zone.instrument.zones:
                if instrument_zone.sample is None:
                    continue
                keys = instrument_zone.range_value(gen.KEY_RANGE) or (0, 127)
                lines.append(f"            {instrument_zone.sample.name}: "
                             f"{key_range_label(*keys)}")
    return "\n".join(lines)


def render_multisample(multisample: Multisample) -> str:
    lines = [f"Program '{multisample.name}'"]
    if multisample.creator:
        lines.append(f"    Creator: {multisample.creator}")
    if multisample.category:
        lines.append(f"    Category: {multisample.category}")
    for group in multisample.groups:
        lines.append(f"    Group '{group.name}' ({len(group.zones)} zones)")
        for zone in group.zones:
            root = note_label(zone.key_root) if zone.key_root >= 0 else "-"
            lines.append(
                f"        {zone.sample_path}: keys {key_range_label(zone.key_low, zone.key_high)}, "
                f"root {root}, velocity {zone.velocity_low}-{zone.velocity_high}"
            )
    return "\n".join(lines)


if __name__ == "__main__":
    raise SystemExit(main())
