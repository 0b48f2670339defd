"""Kontakt chunk IDs, magic numbers and lookup tables."""

from __future__ import annotations

from types import MappingProxyType

# -- preset chunk IDs --------------------------------------------------------

PAR_MOD_BASE = 0x00
BANK = 0x03
GROUP = 0x04
PAR_SCRIPT = 0x06
PAR_EXTERNAL_MOD = 0x0C
PAR_INTERNAL_MOD = 0x0D
PAR_FX_SEND_LEVELS = 0x17
PAR_FX = 0x25
PROGRAM = 0x28
PROGRAM_CONTAINER = 0x29
ZONE = 0x2C
VOICE_GROUPS = 0x32
GROUP_LIST = 0x33
ZONE_LIST = 0x34
PRIVATE_RAW_OBJECT = 0x35
PROGRAM_LIST = 0x36
SLOT_LIST = 0x37
STAR_CRIT_LIST = 0x38
LOOP_ARRAY = 0x39
PARAMETER_ARRAY_8 = 0x3A
PARAMETER_ARRAY_16 = 0x3B
PARAMETER_ARRAY_32 = 0x3C
FILENAME_LIST = 0x3D
OUTPUT_CONFIGURATION = 0x3E
INSERT_BUS = 0x45
SAVE_SETTINGS = 0x47
MULTI_CONFIGURATION = 0x48
PAR_GROUP_DYNAMICS = 0x4A
FILENAME_LIST_EX = 0x4B
QUICK_BROWSE_DATA = 0x4E

CHUNK_NAMES = MappingProxyType({
    PAR_MOD_BASE: "Parameter Modulation Base",
    BANK: "Bank",
    GROUP: "Group",
    PAR_SCRIPT: "Parameter Script",
    PAR_EXTERNAL_MOD: "Parameter External Modulator",
    PAR_INTERNAL_MOD: "Parameter Internal Modulator",
    PAR_FX_SEND_LEVELS: "Parameter FX Send Levels",
    PAR_FX: "Parameter FX",
    PROGRAM: "Program",
    PROGRAM_CONTAINER: "Program Container",
    ZONE: "Zone",
    VOICE_GROUPS: "Voice Groups",
    GROUP_LIST: "Group List",
    ZONE_LIST: "Zone List",
    PRIVATE_RAW_OBJECT: "Private Raw Object",
    PROGRAM_LIST: "Program List",
    SLOT_LIST: "Slot List",
    STAR_CRIT_LIST: "Star Crit List",
    LOOP_ARRAY: "Loop Array",
    PARAMETER_ARRAY_8: "Parameter Array 8",
    PARAMETER_ARRAY_16: "Parameter Array 16",
    PARAMETER_ARRAY_32: "Parameter Array 32",
    FILENAME_LIST: "Filename List",
    OUTPUT_CONFIGURATION: "Output Configuration",
    INSERT_BUS: "Insert Bus",
    SAVE_SETTINGS: "Save Settings",
    MULTI_CONFIGURATION: "Multi Configuration",
    PAR_GROUP_DYNAMICS: "Parameter Group Dynamics",
    FILENAME_LIST_EX: "Filename List Ex",
    QUICK_BROWSE_DATA: "Quick Browse Data",
})

# Chunks with a version, private data, public data and child chunks.
STRUCTURED_IDS: frozenset[int] = frozenset({
    BANK,
    PAR_SCRIPT,
    PAR_FX_SEND_LEVELS,
    PROGRAM,
    PROGRAM_CONTAINER,
    VOICE_GROUPS,
    PARAMETER_ARRAY_8,
    INSERT_BUS,
    SAVE_SETTINGS,
    QUICK_BROWSE_DATA,
})

# Chunks whose body is a u32 count followed by that many item chunks. Items
# always use the structured layout and their ID is an index, not a chunk type.
LIST_IDS: frozenset[int] = frozenset({GROUP_LIST, ZONE_LIST})


def chunk_name(chunk_id: int) -> str:
    return CHUNK_NAMES.get(chunk_id, "Unknown")


def is_known(chunk_id: int) -> bool:
    return chunk_id in CHUNK_NAMES


def is_structured(chunk_id: int) -> bool:
    return chunk_id in STRUCTURED_IDS


# -- file magic --------------------------------------------------------------

KONTAKT1_INSTRUMENT = 0x5EE56EB3
KONTAKT1_MULTI = 0x5AE5D6A4
KONTAKT2_LITTLE_ENDIAN = 0x1290A87F
KONTAKT2_BIG_ENDIAN = 0x7FA89012
KONTAKT5_MONOLITH = 0x2F5C204E

NI_CONTAINER_MAGIC = b"/\\ NI FC MTD  /\\"
NI_CONTAINER_TOC_MAGIC = b"/\\ NI FC TOC  /\\"
NI_CONTAINER_HEADER_END = b"\xf0" * 8
NI_CONTAINER_TOC_END = b"\xf1" * 8

# Header sizes including the magic
K2_HEADER_SIZE = 170
K42_HEADER_SIZE = 222

# -- icons -------------------------------------------------------------------

KONTAKT_ICONS = MappingProxyType({
    0x00: "Organ",
    0x01: "Cello",
    0x02: "Drum Kit",
    0x03: "Bell",
    0x04: "Trumpet",
    0x05: "Guitar",
    0x06: "Piano",
    0x07: "Marimba",
    0x08: "Record Player",
    0x09: "E-Piano",
    0x0A: "Drum Pads",
    0x0B: "Bass Guitar",
    0x0C: "Electric Guitar",
    0x0D: "Wave",
    0x0E: "Asian Symbol",
    0x0F: "Flute",
    0x10: "Speaker",
    0x11: "Score",
    0x12: "Conga",
    0x13: "Pipe Organ",
    0x14: "FX",
    0x15: "Computer",
    0x16: "Violin",
    0x17: "Surround",
    0x18: "Synthesizer",
    0x19: "Microphone",
    0x1A: "Oboe",
    0x1B: "Saxophone",
    0x1C: "New",
})


def icon_name(icon_id: int) -> str | None:
    return KONTAKT_ICONS.get(icon_id)


# -- Kontakt 2 header categories ----------------------------------------------

CATEGORY_OTHER = "Other"

K2_INSTRUMENT_CATEGORY_1: tuple[str, ...] = (
    CATEGORY_OTHER, "Piano", "Guitar", "Bass", "Drums", "Keyboard", "Synthesizer",
    "Strings", "Brass", "Organ", "Vocal", "Mallet", "Athmosphere", "Loop/Beat",
    "Pad", "Lead", "Soundeffect", "Woodwinds", "Percussion",
)

K2_INSTRUMENT_CATEGORY_2: tuple[str, ...] = (
    CATEGORY_OTHER, "Acoustic", "Electric", "Solo", "Ensemble", "Analog", "Digital",
    "Synthetic", "Mixed", "Ethnic", "Steel", "Surround", "Synced", "KSP",
    "Convoluted", "Sequenced", "Spacious",
)

K2_INSTRUMENT_CATEGORY_3: tuple[str, ...] = (
    CATEGORY_OTHER, "Noisy", "Metallic", "Clean", "Distorted", "Dark", "Light",
    "Groovy", "Harmonic", "Melodic", "Full", "Hard", "Dissonant", "Intense",
    "Relaxed", "Big", "Small", "Soft",
)


def category_name(table: tuple[str, ...], index: int) -> str:
    """Look up a header category; out-of-range indices fall back to "Other"."""
    if 0 <= index < len(table):
        return table[index]
    return CATEGORY_OTHER
