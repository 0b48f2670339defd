"""Tests for the SoundFont 2 reader."""

from __future__ import annotations

import struct

import pytest

from sampler_chunks.errors import (
    ChunkSizeMismatchError,
    FormatError,
    UnexpectedTagError,
    UnresolvedReferenceError,
    UnsupportedFeatureError,
)
from sampler_chunks.sf2 import generators as gen
from sampler_chunks.sf2.file import Sf2File
from sampler_chunks.sf2.zones import SampleDescriptor


# -----------------------------------------------------------------------
# Fixture helpers
# -----------------------------------------------------------------------

def _chunk(tag: bytes, payload: bytes) -> bytes:
    pad = b"\x00" if len(payload) % 2 else b""
    return tag + struct.pack("<I", len(payload)) + payload + pad


def _list(form_type: bytes, *chunks: bytes) -> bytes:
    body = form_type + b"".join(chunks)
    return b"LIST" + struct.pack("<I", len(body)) + body


def _riff(*chunks: bytes, form_type: bytes = b"sfbk") -> bytes:
    body = form_type + b"".join(chunks)
    return b"RIFF" + struct.pack("<I", len(body)) + body


def _name(text: str) -> bytes:
    return text.encode("ascii").ljust(20, b"\x00")


def _phdr(*presets: tuple[str, int, int, int]) -> bytes:
    return b"".join(struct.pack("<20sHHHIII", _name(name), number, bank, bag, 0, 0, 0)
                    for name, number, bank, bag in presets)


def _inst(*instruments: tuple[str, int]) -> bytes:
    return b"".join(struct.pack("<20sH", _name(name), bag) for name, bag in instruments)


def _records(*pairs: tuple[int, int]) -> bytes:
    return b"".join(struct.pack("<HH", a, b) for a, b in pairs)


def _shdr(name: str, sample_type: int = 1, pitch: int = 60) -> bytes:
    return struct.pack("<20sIIIIIBbHH", _name(name), 0, 100, 10, 90, 44100, pitch, 0, 0,
                       sample_type)


def _sf2(pgen: list[tuple[int, int]] | None = None, igen: list[tuple[int, int]] | None = None,
         info: bytes | None = None, sample_type: int = 1) -> bytes:
    if pgen is None:
        pgen = [(gen.INSTRUMENT, 0)]
    if igen is None:
        igen = [(gen.KEY_RANGE, (72 << 8) | 48), (gen.SAMPLE_ID, 0)]
    if info is None:
        info = _chunk(b"ifil", struct.pack("<HH", 2, 1)) + _chunk(b"INAM", b"Test Bank\x00")
    pdta = _list(
        b"pdta",
        _chunk(b"phdr", _phdr(("Piano", 5, 1, 0), ("EOP", 0, 0, 1))),
        _chunk(b"pbag", _records((0, 0), (len(pgen), 0))),
        _chunk(b"pmod", bytes(10)),
        _chunk(b"pgen", _records(*pgen, (0, 0))),
        _chunk(b"inst", _inst(("Grand", 0), ("EOI", 1))),
        _chunk(b"ibag", _records((0, 0), (len(igen), 0))),
        _chunk(b"imod", bytes(10)),
        _chunk(b"igen", _records(*igen, (0, 0))),
        _chunk(b"shdr", _shdr("Grand C4", sample_type) + _shdr("EOS", 0)),
    )
    return _riff(_list(b"INFO", info), _list(b"sdta", _chunk(b"smpl", bytes(200))), pdta)


# -----------------------------------------------------------------------
# Reading
# -----------------------------------------------------------------------

class TestSf2File:
    def test_info(self) -> None:
        sf2 = Sf2File.read(_sf2())
        assert sf2.version == pytest.approx(2.01)
        assert sf2.compatible_bank == "Test Bank"
        assert sf2.sound_engine == "EMU8000"
        assert len(sf2.sample_data) == 200

    def test_preset_tree(self) -> None:
        sf2 = Sf2File.read(_sf2())
        preset, = sf2.real_presets()
        assert (preset.name, preset.bank, preset.number) == ("Piano", 1, 5)
        zone, = preset.zones
        assert not zone.is_global
        assert zone.instrument is sf2.instruments[0]

        instrument_zone, = zone.instrument.zones
        assert instrument_zone.sample is not None
        assert instrument_zone.sample.name == "Grand C4"
        assert instrument_zone.sample.original_pitch == 60
        assert instrument_zone.range_value(gen.KEY_RANGE) == (48, 72)

    def test_instrument_only_generator_ignored_at_preset_level(self) -> None:
        sf2 = Sf2File.read(_sf2(pgen=[(gen.SAMPLE_ID, 0), (gen.PANORAMA, 0xFE0C),
                                      (gen.INSTRUMENT, 0)]))
        zone = sf2.real_presets()[0].zones[0]
        assert not zone.has_generator(gen.SAMPLE_ID)
        assert zone.signed_generator_value(gen.PANORAMA) == -500

    def test_first_generator_value_wins(self) -> None:
        sf2 = Sf2File.read(_sf2(igen=[(gen.COARSE_TUNE, 2), (gen.COARSE_TUNE, 7),
                                      (gen.SAMPLE_ID, 0)]))
        zone = sf2.instruments[0].zones[0]
        assert zone.generator_value(gen.COARSE_TUNE) == 2
        assert zone.generator_order == [gen.COARSE_TUNE, gen.SAMPLE_ID]

    def test_global_instrument_zone(self) -> None:
        sf2 = Sf2File.read(_sf2(igen=[(gen.PANORAMA, 100)]))
        zone = sf2.instruments[0].zones[0]
        assert zone.is_global
        assert zone.sample is None

    def test_missing_instrument(self) -> None:
        with pytest.raises(UnresolvedReferenceError):
            Sf2File.read(_sf2(pgen=[(gen.INSTRUMENT, 9)]))

    def test_missing_sample(self) -> None:
        with pytest.raises(UnresolvedReferenceError):
            Sf2File.read(_sf2(igen=[(gen.SAMPLE_ID, 9)]))

    def test_linked_samples_are_unsupported(self) -> None:
        with pytest.raises(UnsupportedFeatureError):
            Sf2File.read(_sf2(sample_type=SampleDescriptor.ROM_LEFT))

    def test_missing_version(self) -> None:
        with pytest.raises(FormatError):
            Sf2File.read(_sf2(info=_chunk(b"INAM", b"Bank\x00")))

    def test_bad_record_size(self) -> None:
        data = _riff(
            _list(b"INFO", _chunk(b"ifil", struct.pack("<HH", 2, 1))),
            _list(b"pdta", _chunk(b"pbag", bytes(6))),
        )
        with pytest.raises(ChunkSizeMismatchError):
            Sf2File.read(data)

    def test_not_sfbk(self) -> None:
        with pytest.raises(UnexpectedTagError):
            Sf2File.read(_riff(form_type=b"WAVE"))

    def test_unknown_info_chunk_is_recorded(self) -> None:
        info = _chunk(b"ifil", struct.pack("<HH", 2, 4)) + _chunk(b"IXYZ", b"ab")
        sf2 = Sf2File.read(_sf2(info=info))
        assert sf2.ignored_tags == {"IXYZ"}
        assert sf2.compatible_bank == ""


class TestGenerators:
    def test_names_and_defaults(self) -> None:
        assert gen.generator_name(gen.KEY_RANGE) == "keyRange"
        assert gen.generator_name(999) == "Undefined"
        assert gen.default_value(gen.INITIAL_FILTER_CUTOFF) == 13500
        assert gen.default_value(gen.OVERRIDING_ROOT_KEY) == -1
        with pytest.raises(KeyError):
            gen.default_value(100)

    def test_only_instrument(self) -> None:
        assert gen.is_only_instrument(gen.SAMPLE_ID)
        assert not gen.is_only_instrument(gen.KEY_RANGE)
        assert not gen.is_only_instrument(gen.VELOCITY_RANGE)
