"""SoundFont 2 generator table.

The 61 generator IDs of SF2 2.01 with their names and default values. The
tables are immutable tuples indexed by generator ID.
"""

from __future__ import annotations

START_ADDRS_OFFSET = 0
END_ADDRS_OFFSET = 1
STARTLOOP_ADDRS_OFFSET = 2
ENDLOOP_ADDRS_OFFSET = 3
START_ADDRS_COARSE_OFFSET = 4
MOD_ENV_TO_PITCH = 7
INITIAL_FILTER_CUTOFF = 8
INITIAL_FILTER_RESONANCE = 9
MOD_ENV_TO_FILTER_CUTOFF = 11
END_ADDRS_COARSE_OFFSET = 12
PANORAMA = 17
MOD_ENV_DELAY = 25
MOD_ENV_ATTACK = 26
MOD_ENV_HOLD = 27
MOD_ENV_DECAY = 28
MOD_ENV_SUSTAIN = 29
MOD_ENV_RELEASE = 30
VOL_ENV_DELAY = 33
VOL_ENV_ATTACK = 34
VOL_ENV_HOLD = 35
VOL_ENV_DECAY = 36
VOL_ENV_SUSTAIN = 37
VOL_ENV_RELEASE = 38
INSTRUMENT = 41
KEY_RANGE = 43
VELOCITY_RANGE = 44
STARTLOOP_ADDRS_COARSE_OFFSET = 45
KEYNUM = 46
VELOCITY = 47
INITIAL_ATTENUATION = 48
ENDLOOP_ADDRS_COARSE_OFFSET = 50
COARSE_TUNE = 51
FINE_TUNE = 52
SAMPLE_ID = 53
SAMPLE_MODES = 54
SCALE_TUNE = 56
EXCLUSIVE_CLASS = 57
OVERRIDING_ROOT_KEY = 58

GENERATOR_NAMES: tuple[str, ...] = (
    "startAddrsOffset", "endAddrsOffset", "startloopAddrsOffset", "endloopAddrsOffset",
    "startAddrsCoarseOffset", "modLfoToPitch", "vibLfoToPitch", "modEnvToPitch",
    "initialFilterFc", "initialFilterQ", "modLfoToFilterFc", "modEnvToFilterFc",
    "endAddrsCoarseOffset", "modLfoToVolume", "unused1", "chorusEffectsSend",
    "reverbEffectsSend", "pan", "unused2", "unused3",
    "unused4", "delayModLFO", "freqModLFO", "delayVibLFO",
    "freqVibLFO", "delayModEnv", "attackModEnv", "holdModEnv",
    "decayModEnv", "sustainModEnv", "releaseModEnv", "keynumToModEnvHold",
    "keynumToModEnvDecay", "delayVolEnv", "attackVolEnv", "holdVolEnv",
    "decayVolEnv", "sustainVolEnv", "releaseVolEnv", "keynumToVolEnvHold",
    "keynumToVolEnvDecay", "instrument", "reserved1", "keyRange",
    "velRange", "startloopAddrsCoarseOffset", "keynum", "velocity",
    "initialAttenuation", "reserved2", "endloopAddrsCoarseOffset", "coarseTune",
    "fineTune", "sampleID", "sampleModes", "reserved3",
    "scaleTuning", "exclusiveClass", "overridingRootKey", "unused5",
    "endOper",
)


def _build_defaults() -> tuple[int, ...]:
    defaults = [0] * len(GENERATOR_NAMES)
    defaults[INITIAL_FILTER_CUTOFF] = 13500
    for generator in (21, 23, MOD_ENV_DELAY, MOD_ENV_ATTACK, MOD_ENV_HOLD, MOD_ENV_DECAY,
                      MOD_ENV_RELEASE, VOL_ENV_DELAY, VOL_ENV_ATTACK, VOL_ENV_HOLD,
                      VOL_ENV_DECAY, VOL_ENV_RELEASE):
        defaults[generator] = -12000
    defaults[KEYNUM] = -1
    defaults[VELOCITY] = -1
    defaults[SCALE_TUNE] = 100
    defaults[OVERRIDING_ROOT_KEY] = -1
    return tuple(defaults)


GENERATOR_DEFAULTS: tuple[int, ...] = _build_defaults()

# Generators that are only meaningful inside an instrument zone: sample
# address offsets, fixed key/velocity, sample ID and mode, exclusive class
# and root key override.
ONLY_INSTRUMENT: frozenset[int] = frozenset({
    START_ADDRS_OFFSET, END_ADDRS_OFFSET, STARTLOOP_ADDRS_OFFSET, ENDLOOP_ADDRS_OFFSET,
    START_ADDRS_COARSE_OFFSET, END_ADDRS_COARSE_OFFSET, STARTLOOP_ADDRS_COARSE_OFFSET,
    KEYNUM, VELOCITY, ENDLOOP_ADDRS_COARSE_OFFSET, SAMPLE_ID, SAMPLE_MODES,
    EXCLUSIVE_CLASS, OVERRIDING_ROOT_KEY,
})


def generator_name(generator_id: int) -> str:
    if 0 <= generator_id < len(GENERATOR_NAMES):
        return GENERATOR_NAMES[generator_id]
    return "Undefined"


def default_value(generator_id: int) -> int:
    if not 0 <= generator_id < len(GENERATOR_DEFAULTS):
        raise KeyError(f"Unknown generator ID {generator_id}")
    return GENERATOR_DEFAULTS[generator_id]


def is_only_instrument(generator_id: int) -> bool:
    return generator_id in ONLY_INSTRUMENT
