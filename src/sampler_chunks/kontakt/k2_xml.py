"""The Kontakt 2 instrument XML found inside the ZLIB body of K2-K4 files.

Only the parts that map onto the multisample model are read::

    K2_Container
      Programs
        K2_Program name=...
          Parameters/V name=... value=...
          Groups/K2_Group name=... index=...
          Zones/K2_Zone groupIdx=...
            Parameters/V
            Sample/V name="file_ex2" value="@d003Foo F...bar.wav"
            Loops/Loop/V

A file may also start with a ``K2_Bank`` that holds several containers.
Parameters are plain strings; the K2 dialect stores group and program tune
as octaves, the zone tune as a ratio.
"""

from __future__ import annotations

import logging
import math
import xml.etree.ElementTree as ET
from pathlib import PurePosixPath

from sampler_chunks.errors import FormatError
from sampler_chunks.kontakt.tuning import TuneVariant, clamp, combine_tune, value_to_db
from sampler_chunks.model.multisample import (
    Group,
    LoopType,
    Multisample,
    SampleLoop,
    SampleZone,
    TriggerType,
)
from sampler_chunks.notifier import Notifier

logger = logging.getLogger(__name__)

ROOT_CONTAINER = "K2_Container"
BANK_ELEMENT = "K2_Bank"
PROGRAMS = "Programs"
PROGRAM = "K2_Program"
GROUPS = "Groups"
GROUP = "K2_Group"
ZONES = "Zones"
ZONE = "K2_Zone"
PARAMETERS = "Parameters"
VALUE = "V"
ZONE_SAMPLE = "Sample"
LOOPS = "Loops"
LOOP = "Loop"

SAMPLE_FILE_PARAM = "file_ex2"
YES = "yes"

# Lengths in the encoded sample path
FOLDER_LENGTH_DIGITS = 3
FILENAME_PREFIX = 11

UNTIL_END = "until_end"
UNTIL_RELEASE = "until_release"
ONESHOT = "oneshot"


class MissingValueError(FormatError):
    """A required parameter is missing from a value map."""


# -- value maps --------------------------------------------------------------


def value_map(element: ET.Element | None) -> dict[str, str]:
    """The ``V`` children of ``element`` as a name -> value dict."""
    if element is None:
        return {}
    return {v.get("name", ""): v.get("value", "") for v in element.findall(VALUE)}


def parameters(element: ET.Element) -> dict[str, str]:
    return value_map(element.find(PARAMETERS))


def get_float(values: dict[str, str], name: str) -> float:
    try:
        value = float(values[name])
    except KeyError:
        raise MissingValueError(f"Missing value '{name}'") from None
    except ValueError as exc:
        raise FormatError(f"Value '{name}' is not a number: {values[name]!r}") from exc
    if not math.isfinite(value):
        raise FormatError(f"Value '{name}' is not finite: {values[name]!r}")
    return value


def get_int(values: dict[str, str], name: str) -> int:
    return int(get_float(values, name))


def get_string(values: dict[str, str], name: str) -> str:
    try:
        return values[name]
    except KeyError:
        raise MissingValueError(f"Missing value '{name}'") from None


# -- sample paths ------------------------------------------------------------


def decode_sample_path(encoded: str) -> str:
    """Decode a ``file_ex2`` path.

    The encoding is a sequence of one-letter commands: ``@`` marks a
    relative path, ``b`` goes up one folder, ``d`` and ``m`` are followed by
    a 3-digit length and a folder (``m`` is a library and resets the path),
    ``F`` is followed by 11 unknown characters and the file name.

    Raises:
        FormatError: The path breaks off or has an unknown command.
    """
    parts: list[str] = []
    pos = 0
    while pos < len(encoded):
        command = encoded[pos]
        pos += 1
        if command == "@":
            continue
        if command == "b":
            parts.append("../")
        elif command in "dm":
            folder, pos = _read_folder(encoded, pos)
            if command == "d":
                parts.append(folder + "/")
            else:
                parts = []
        elif command == "F":
            if pos + FILENAME_PREFIX > len(encoded):
                break
            return "".join(parts) + encoded[pos + FILENAME_PREFIX:]
        else:
            raise FormatError(f"Unknown command '{command}' in sample path {encoded!r}")
    raise FormatError(f"Sample path ends without a file name: {encoded!r}")


def _read_folder(encoded: str, pos: int) -> tuple[str, int]:
    digits = encoded[pos:pos + FOLDER_LENGTH_DIGITS]
    if len(digits) != FOLDER_LENGTH_DIGITS or not digits.isdigit():
        raise FormatError(f"Bad folder length in sample path {encoded!r}")
    pos += FOLDER_LENGTH_DIGITS
    length = int(digits)
    if pos + length > len(encoded):
        raise FormatError(f"Folder name runs past the end of {encoded!r}")
    return encoded[pos:pos + length], pos + length


# -- programs ----------------------------------------------------------------


def find_program_elements(top: ET.Element) -> list[ET.Element]:
    if top.tag == ROOT_CONTAINER:
        containers = [top]
    elif top.tag == BANK_ELEMENT:
        containers = list(top.iter(ROOT_CONTAINER))
    else:
        raise FormatError(f"Unexpected top-level element <{top.tag}>")
    programs = []
    for container in containers:
        element = container.find(PROGRAMS)
        if element is None:
            return []
        programs.extend(element.findall(PROGRAM))
    return programs


def read_programs(xml: str, notifier: Notifier | None = None) -> list[Multisample]:
    """Decode every program of a Kontakt 2 XML document.

    Zones that miss a required parameter or a sample reference are reported
    and skipped.

    Raises:
        FormatError: The document is not well-formed or has an unexpected
            top-level element.
    """
    try:
        top = ET.fromstring(xml.strip())
    except ET.ParseError as exc:
        raise FormatError(f"Broken Kontakt 2 XML: {exc}") from exc

    result = []
    for element in find_program_elements(top):
        multisample = Multisample(name=element.get("name", ""))
        program_params = parameters(element)
        groups_element = element.find(GROUPS)
        zones_element = element.find(ZONES)
        zone_elements = zones_element.findall(ZONE) if zones_element is not None else []
        if groups_element is not None:
            for group_element in groups_element.findall(GROUP):
                multisample.groups.append(
                    _read_group(group_element, zone_elements, program_params, notifier)
                )
        result.append(multisample)
    logger.debug("Read %d programs from Kontakt 2 XML", len(result))
    return result


def read_zones(xml: str, notifier: Notifier | None = None) -> list[SampleZone]:
    """All zones of all programs in document order."""
    return [zone for program in read_programs(xml, notifier)
            for group in program.groups for zone in group.zones]


def _read_group(element: ET.Element, zone_elements: list[ET.Element],
                program_params: dict[str, str], notifier: Notifier | None) -> Group:
    group_params = parameters(element)
    group = Group(name=element.get("name", ""))
    if group_params.get("releaseTrigger") == YES:
        group.trigger = TriggerType.RELEASE

    index = element.get("index")
    if index is None:
        return group
    for zone_element in zone_elements:
        if zone_element.get("groupIdx") != index:
            continue
        try:
            zone = _read_zone(zone_element, group_params, program_params)
        except FormatError as exc:
            _report(notifier, "Skipping zone of group '%s': %s", group.name, exc)
            continue
        zone.trigger = group.trigger
        group.zones.append(zone)
    return group


def _read_zone(element: ET.Element, group_params: dict[str, str],
               program_params: dict[str, str]) -> SampleZone:
    encoded = value_map(element.find(ZONE_SAMPLE)).get(SAMPLE_FILE_PARAM)
    if encoded is None:
        raise MissingValueError(f"Zone has no '{SAMPLE_FILE_PARAM}' sample reference")
    sample_path = decode_sample_path(encoded)

    zone_params = parameters(element)
    zone = SampleZone(
        name=PurePosixPath(sample_path).stem,
        sample_path=sample_path,
        key_root=get_int(zone_params, "rootKey"),
        key_low=get_int(zone_params, "lowKey"),
        key_high=get_int(zone_params, "highKey"),
        velocity_low=get_int(zone_params, "lowVelocity"),
        velocity_high=get_int(zone_params, "highVelocity"),
        key_crossfade_low=get_int(zone_params, "fadeLowKey"),
        key_crossfade_high=get_int(zone_params, "fadeHighKey"),
        velocity_crossfade_low=get_int(zone_params, "fadeLowVelo"),
        velocity_crossfade_high=get_int(zone_params, "fadeHighVelo"),
    )
    start = get_int(zone_params, "sampleStart")
    end = get_int(zone_params, "sampleEnd")
    if end > start:
        zone.start = start
        zone.stop = end

    zone.key_tracking = 1.0 if group_params.get("keyTracking") == YES else 0.0
    zone.gain = value_to_db(
        get_float(zone_params, "zoneVolume")
        * get_float(group_params, "volume")
        * get_float(program_params, "volume")
    )
    zone.tune = combine_tune(
        TuneVariant.K2_XML,
        get_float(zone_params, "zoneTune"),
        get_float(group_params, "tune"),
        get_float(program_params, "tune"),
    )
    pan = (get_float(zone_params, "zonePan") + get_float(group_params, "pan")
           + get_float(program_params, "pan"))
    zone.panning = clamp(pan, -1.0, 1.0)
    if "reverse" in group_params:
        zone.reversed = group_params["reverse"] == YES
    zone.loops = _read_loops(element)
    return zone


def _read_loops(element: ET.Element) -> list[SampleLoop]:
    loops_element = element.find(LOOPS)
    if loops_element is None:
        return []
    loops = []
    for loop_element in loops_element.findall(LOOP):
        values = value_map(loop_element)
        try:
            start = get_int(values, "loopStart")
            length = get_int(values, "loopLength")
            mode = get_string(values, "mode")
            xfade = get_int(values, "xfadeLength")
            alternating = get_string(values, "alternatingLoop")
        except MissingValueError:
            break
        if mode == ONESHOT:
            continue
        loop = SampleLoop(start=start, end=start + length)
        if mode in (UNTIL_END, UNTIL_RELEASE) and alternating == YES:
            loop.loop_type = LoopType.ALTERNATING
        if xfade > 0 and length > 0:
            loop.crossfade = min(1.0, xfade / length)
        loops.append(loop)
    return loops


def _report(notifier: Notifier | None, message: str, *args: object) -> None:
    if notifier is not None:
        notifier.error(message, *args)
    else:
        logger.error(message, *args)
