"""Tests for format sniffing and dispatch."""

from __future__ import annotations

import struct
import zlib

import pytest

from sampler_chunks.akai.files import AkmFile
from sampler_chunks.detection import FORMATS, decode, decode_many, detect, detect_file, open_file
from sampler_chunks.disting.preset import DistingExPreset
from sampler_chunks.errors import FormatError, UnexpectedTagError, UnsupportedFeatureError
from sampler_chunks.kontakt import ids
from sampler_chunks.kontakt.container import Kontakt2Header, KontaktFile
from sampler_chunks.ysfc.file import YsfcFile


def _riff(form_type: bytes) -> bytes:
    return b"RIFF" + struct.pack("<I", 4) + form_type


class TestDetect:
    @pytest.mark.parametrize(("head", "name"), [
        (_riff(b"APRG"), "akp"),
        (_riff(b"AMUL"), "akm"),
        (_riff(b"sfbk"), "sf2"),
        (struct.pack(">I", ids.KONTAKT1_INSTRUMENT), "kontakt1"),
        (struct.pack("<I", ids.KONTAKT1_MULTI), "kontakt1"),
        (bytes.fromhex("1290A87F"), "kontakt2"),
        (bytes.fromhex("7FA89012"), "kontakt2"),
        (ids.NI_CONTAINER_MAGIC, "kontakt5-monolith"),
        (b"YAMAHA-YSFC\x00\x00\x00\x00\x00", "ysfc"),
        (b"DEXBPRST\x01\x00\x00\x00", "disting-ex"),
    ])
    def test_magic(self, head: bytes, name: str) -> None:
        assert detect(head).name == name

    def test_extension_breaks_ties(self) -> None:
        assert detect(ids.NI_CONTAINER_MAGIC, "Library.nicnt").name == "ni-container"
        assert detect(ids.NI_CONTAINER_MAGIC, "Piano.NKI").name == "kontakt5-monolith"
        assert detect(ids.NI_CONTAINER_MAGIC, "Piano.txt").name == "kontakt5-monolith"

    def test_extension_alone_is_not_enough(self) -> None:
        with pytest.raises(UnexpectedTagError):
            detect(b"RIFF\x04\x00\x00\x00WAVE", "fake.akp")

    def test_short_input(self) -> None:
        with pytest.raises(UnexpectedTagError):
            detect(b"RI")

    def test_names_are_unique(self) -> None:
        names = [signature.name for signature in FORMATS]
        assert len(names) == len(set(names))

    def test_detect_file(self, tmp_path) -> None:
        path = tmp_path / "bank.sf2"
        path.write_bytes(_riff(b"sfbk") + bytes(100))
        assert detect_file(path).name == "sf2"


class TestDecode:
    def test_disting(self) -> None:
        signature, preset = decode(DistingExPreset(name="Keys").write(), "Keys.dexpreset")
        assert signature.name == "disting-ex"
        assert isinstance(preset, DistingExPreset)
        assert preset.name == "Keys"

    def test_kontakt2(self) -> None:
        data = KontaktFile.write_k2("<K2_Container/>", Kontakt2Header())
        signature, kontakt = decode(data)
        assert signature.name == "kontakt2"
        assert kontakt.xml == "<K2_Container/>"

    def test_kontakt1_is_unsupported(self) -> None:
        with pytest.raises(UnsupportedFeatureError):
            decode(struct.pack(">I", ids.KONTAKT1_INSTRUMENT) + bytes(60))

    def test_open_file(self, tmp_path) -> None:
        path = tmp_path / "multi.akm"
        path.write_bytes(_riff(b"AMUL"))
        signature, akm = open_file(path)
        assert signature.name == "akm"
        assert isinstance(akm, AkmFile)
        assert akm.parts == []

    def test_decode_many_continues_after_failure(self, tmp_path, notifier, caplog) -> None:
        good = tmp_path / "lib.x7l"
        good.write_bytes(YsfcFile.new().write())
        bad = tmp_path / "broken.sf2"
        bad.write_bytes(_riff(b"sfbk"))
        missing = tmp_path / "missing.akp"

        decoded, failed = decode_many([bad, good, missing], notifier=notifier)
        assert list(decoded) == [good]
        assert isinstance(decoded[good], YsfcFile)
        assert set(failed) == {bad, missing}
        assert "Could not decode" in caplog.text

    def test_decode_many_reports_undecodable_kontakt_body(self, tmp_path, notifier, caplog) -> None:
        body = zlib.compress(b"\xff\xfe<K2_Container/>")
        bad = tmp_path / "broken.nki"
        bad.write_bytes(Kontakt2Header(compressed_length=len(body)).write() + body)
        good = tmp_path / "lib.x7l"
        good.write_bytes(YsfcFile.new().write())

        decoded, failed = decode_many([bad, good], notifier=notifier)
        assert list(decoded) == [good]
        assert isinstance(failed[bad], FormatError)
        assert "Could not decode" in caplog.text
