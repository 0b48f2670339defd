"""Tests for Kontakt 2/4.2 files, monoliths, NI containers and the K2 XML."""

from __future__ import annotations

import logging
import struct
import zlib

import pytest

from sampler_chunks.errors import (
    DecompressionSizeMismatchError,
    FormatError,
    SampleCountMismatchError,
    TruncatedInputError,
    UnexpectedTagError,
    UnsupportedFeatureError,
)
from sampler_chunks.kontakt import ids, k2_xml
from sampler_chunks.kontakt.container import (
    HEADER_KONTAKT_42,
    SOUNDINFO_HEADER,
    Kontakt2Header,
    KontaktFile,
    SoundinfoDocument,
    byte_order,
)
from sampler_chunks.kontakt.monolith import (
    DICTIONARY_MAGIC,
    NKI_BLOCK_PREFIX,
    SAMPLE_HEADER_ID,
    Dictionary,
    DictionaryItemReferenceType as RefType,
)
from sampler_chunks.kontakt.ni_container import NiContainer
from sampler_chunks.kontakt.preset_chunk import PresetChunk
from sampler_chunks.kontakt.preset_data import PresetChunkData
from sampler_chunks.lib import fastlz
from sampler_chunks.lib.compression import crc32
from sampler_chunks.lib.stream import BIG, LITTLE, ByteReader, format_timestamp
from sampler_chunks.model.multisample import LoopType, TriggerType


# -----------------------------------------------------------------------
# Fixture helpers
# -----------------------------------------------------------------------

TIMESTAMP = 1_200_000_000

PAD_XML = """<?xml version="1.0" encoding="UTF-8"?>
<K2_Container>
  <Programs>
    <K2_Program name="Soft Pad">
      <Parameters>
        <V name="volume" value="1.0"/><V name="tune" value="0"/><V name="pan" value="0"/>
      </Parameters>
      <Groups>
        <K2_Group name="Attack" index="0">
          <Parameters>
            <V name="volume" value="0.5"/><V name="tune" value="1"/><V name="pan" value="0.25"/>
            <V name="keyTracking" value="yes"/><V name="reverse" value="no"/>
          </Parameters>
        </K2_Group>
        <K2_Group name="Release" index="1">
          <Parameters>
            <V name="volume" value="1"/><V name="tune" value="0"/><V name="pan" value="0"/>
            <V name="releaseTrigger" value="yes"/>
          </Parameters>
        </K2_Group>
      </Groups>
      <Zones>
        <K2_Zone groupIdx="0">
          <Parameters>
            <V name="rootKey" value="60"/><V name="lowKey" value="48"/><V name="highKey" value="72"/>
            <V name="lowVelocity" value="1"/><V name="highVelocity" value="127"/>
            <V name="fadeLowKey" value="0"/><V name="fadeHighKey" value="2"/>
            <V name="fadeLowVelo" value="3"/><V name="fadeHighVelo" value="0"/>
            <V name="sampleStart" value="10"/><V name="sampleEnd" value="1000"/>
            <V name="zoneVolume" value="1"/><V name="zoneTune" value="1"/><V name="zonePan" value="1"/>
          </Parameters>
          <Sample><V name="file_ex2" value="@bd007SamplesF00000000000Pad C4.wav"/></Sample>
          <Loops>
            <Loop>
              <V name="loopStart" value="100"/><V name="loopLength" value="400"/>
              <V name="mode" value="until_end"/><V name="xfadeLength" value="100"/>
              <V name="alternatingLoop" value="yes"/>
            </Loop>
            <Loop>
              <V name="loopStart" value="0"/><V name="loopLength" value="10"/>
              <V name="mode" value="oneshot"/><V name="xfadeLength" value="0"/>
              <V name="alternatingLoop" value="no"/>
            </Loop>
          </Loops>
        </K2_Zone>
        <K2_Zone groupIdx="1">
          <Parameters><V name="lowKey" value="0"/></Parameters>
          <Sample><V name="file_ex2" value="@F00000000000Broken.wav"/></Sample>
        </K2_Zone>
      </Zones>
    </K2_Program>
  </Programs>
</K2_Container>
"""


def _header(**fields) -> Kontakt2Header:
    values = dict(
        timestamp=TIMESTAMP,
        version_bytes=bytes([0x0A, 0, 5, 4]),
        zones=1,
        groups=2,
        instruments=1,
        icon_id=0x18,
        creator_bytes=b"Studio".ljust(9, b"\x00"),
        website_bytes=b"example.org".ljust(87, b"\x00"),
    )
    values.update(fields)
    return Kontakt2Header(**values)


def _wide(text: str) -> bytes:
    return struct.pack("<I", len(text)) + text.encode("utf-16-le")


def _preset_bytes() -> bytes:
    program_data = (_wide("Strings") + struct.pack("<d", 0.0) + b"\x00"
                    + struct.pack("<fff", 1.0, 0.0, 1.0) + bytes(4) + struct.pack("<h", -1)
                    + bytes(4) + struct.pack("<I", 0) + bytes(9) + struct.pack("<I", 0x16)
                    + _wide("") + _wide("(null)") + _wide("") + bytes(6))
    group_data = (_wide("Legato") + struct.pack("<fff", 1.0, 0.0, 1.0) + bytes([1, 0, 0, 0])
                  + struct.pack("<IhiI", 0, -1, -1, 0) + b"\x00\x00" + struct.pack("<I", 0))
    zone_data = (struct.pack("<III", 0, 0, 0) + struct.pack("<9H", 1, 127, 0, 127, 0, 0, 0, 0, 60)
                 + struct.pack("<fff", 0.0, 0.0, 1.0) + struct.pack("<III", 0, 0, 44100) + b"\x01"
                 + struct.pack("<IIII", 500, 0, 0, 0) + struct.pack("<f", 1.0) + b"\x00"
                 + struct.pack("<I", 0))
    files = PresetChunk(ids.FILENAME_LIST,
                        public_data=struct.pack("<HII", 1, 1, 1) + b"\x04" + _wide("Violin.wav"))
    program = PresetChunk(ids.PROGRAM, public_data=program_data, version=0x80, structured=True,
                          children=[
                              PresetChunk(ids.GROUP_LIST, children=[PresetChunk(
                                  0, public_data=group_data, version=0x9A, structured=True,
                                  is_item=True)]),
                              PresetChunk(ids.ZONE_LIST, children=[PresetChunk(
                                  0, public_data=zone_data, version=0x90, structured=True,
                                  is_item=True)]),
                          ])
    return files.write() + program.write()


def _kontakt42(checksum: int | None = None, trailer: bytes = b"") -> bytes:
    preset = _preset_bytes()
    body = fastlz.compress(preset)
    header = _header(header_version=HEADER_KONTAKT_42, compressed_length=len(body),
                     decompressed_length=len(preset),
                     checksum=crc32(body) if checksum is None else checksum)
    return header.write() + body + trailer


def _wstr(text: str) -> bytes:
    return (text + "\x00").encode("utf-16-le")


def _dictionary(*items: tuple[RefType, int, bytes]) -> bytes:
    header = DICTIONARY_MAGIC + bytes(10) + bytes([len(items)]) + bytes(7)
    return header + b"".join(struct.pack("<HIH", 8 + len(content), pointer, kind) + content
                             for kind, pointer, content in items)


def _monolith(xml: str, embedded_samples: int = 2) -> bytes:
    header = _header().write()
    names = ["a.wav", "b.wav"]

    def main_dictionary(samples_offset: int, nki_pointer: int) -> bytes:
        return _dictionary((RefType.DICTIONARY, samples_offset, _wstr("Samples")),
                           (RefType.NKI, nki_pointer, _wstr("Pad")),
                           (RefType.END, 0, b""))

    samples_offset = len(header) + len(main_dictionary(0, 0))
    samples_dictionary = _dictionary(*((RefType.SAMPLE, 0, _wstr(name)) for name in names),
                                     (RefType.END, 0, b""))
    wav = b"RIFF" + struct.pack("<I", 4) + b"WAVE"
    samples = b"".join(SAMPLE_HEADER_ID + bytes(27) + wav for _ in range(embedded_samples))
    nki_pointer = samples_offset + len(samples_dictionary) + len(samples)
    nki = bytes(NKI_BLOCK_PREFIX) + _header().write() + zlib.compress(xml.encode("utf-8"))
    return (header + main_dictionary(samples_offset, nki_pointer) + samples_dictionary
            + samples + nki)


def _ni_container(*files: tuple[int, str, bytes]) -> bytes:
    body = b"".join(data for _, _, data in sorted(files))
    ends = {}
    end = 0
    for index, _, data in sorted(files):
        end += len(data)
        ends[index] = end
    toc = b""
    for index, name, _ in files:
        toc += (struct.pack("<Q", index) + bytes(16)
                + name.encode("utf-16-le").ljust(600, b"\x00")
                + struct.pack("<QQ", 0, ends[index]))
    return (ids.NI_CONTAINER_MAGIC + bytes(248) + ids.NI_CONTAINER_HEADER_END
            + struct.pack("<QQ", len(files), len(body))
            + ids.NI_CONTAINER_TOC_MAGIC + bytes(600) + toc
            + ids.NI_CONTAINER_TOC_END + bytes(16) + ids.NI_CONTAINER_TOC_MAGIC + bytes(592)
            + body)


# -----------------------------------------------------------------------
# Header
# -----------------------------------------------------------------------

class TestKontakt2Header:
    @pytest.mark.parametrize("order", [LITTLE, BIG])
    @pytest.mark.parametrize("header_version", [0x100, HEADER_KONTAKT_42])
    def test_round_trip(self, order: str, header_version: int) -> None:
        header = _header(order=order, header_version=header_version, checksum=0xDEADBEEF,
                         unknown_b=bytes(range(16)))
        data = header.write()
        assert len(data) == header.size
        assert Kontakt2Header.read(ByteReader(data)) == header

    def test_fields(self) -> None:
        header = _header()
        assert header.kontakt_version == "4.5.0.010"
        assert header.creator == "Studio"
        assert header.website == "example.org"
        assert header.icon_name == "Synthesizer"
        assert header.write()[:4] == bytes.fromhex("1290A87F")
        assert header.write()[20:24] == b"4noK"

    def test_patch_level_version(self) -> None:
        header = _header(version_bytes=bytes([0xFF, 1, 2, 4]), patch_level=7)
        assert header.kontakt_version == "4.2.1.7"

    def test_null_website(self) -> None:
        assert _header(website_bytes=b"(null)".ljust(87, b"\x00")).website is None

    def test_byte_order(self) -> None:
        assert byte_order(bytes.fromhex("7FA89012")) == BIG
        with pytest.raises(UnexpectedTagError):
            byte_order(b"RIFF")

    def test_unknown_block_id_is_reported(self, notifier, caplog) -> None:
        data = _header(block_id="Xyz1").write()
        with caplog.at_level(logging.INFO):
            header = Kontakt2Header.read(ByteReader(data), notifier)
        assert header.block_id == "Xyz1"
        assert "Unknown Kontakt block ID 'Xyz1'" in caplog.text

    def test_describe(self) -> None:
        text = _header().describe()
        assert text.startswith("Kontakt 2 (little-endian), version 4.5.0.010")
        assert "Creator: Studio" in text


# -----------------------------------------------------------------------
# Kontakt 2 and 4.2 files
# -----------------------------------------------------------------------

class TestKontaktFile:
    def test_k2_round_trip(self, settings) -> None:
        soundinfo = SoundinfoDocument("Soft Pad", "Jane", ["Pad", "Synth"])
        data = KontaktFile.write_k2(PAD_XML, _header(), soundinfo, settings)
        kontakt = KontaktFile.read(data, settings)
        assert not kontakt.header.is_four_dot_two
        assert kontakt.header.compressed_length == len(zlib.compress(PAD_XML.encode(), 1))
        assert kontakt.xml == PAD_XML.strip()
        assert kontakt.soundinfo == soundinfo
        assert not kontakt.is_monolith

    def test_k2_multisamples(self, notifier, caplog) -> None:
        soundinfo = SoundinfoDocument("Soft Pad", "Jane", ["Pad", "Synth"])
        kontakt = KontaktFile.read(KontaktFile.write_k2(PAD_XML, _header(), soundinfo))
        multisample, = kontakt.to_multisamples(notifier)
        assert multisample.name == "Soft Pad"
        assert multisample.creator == "Jane"
        assert multisample.category == "Pad"
        assert multisample.keywords == ["Pad", "Synth"]
        created = format_timestamp(_header().created)
        assert multisample.description == f"Creation: {created}\nWebsite : example.org"
        assert [len(group.zones) for group in multisample.groups] == [1, 0]
        assert "Skipping zone of group 'Release'" in caplog.text

    def test_header_metadata_without_soundinfo(self) -> None:
        kontakt = KontaktFile.read(KontaktFile.write_k2(PAD_XML, _header()))
        multisample, = kontakt.to_multisamples()
        assert kontakt.soundinfo is None
        assert multisample.creator == "Studio"
        assert multisample.category == "Synthesizer"

    def test_big_endian_k2(self) -> None:
        data = KontaktFile.write_k2(PAD_XML, _header(order=BIG))
        kontakt = KontaktFile.read(data)
        assert kontakt.header.order == BIG
        assert kontakt.header.block_id == "Kon4"
        assert kontakt.xml == PAD_XML.strip()

    def test_broken_soundinfo_is_reported(self, notifier, caplog) -> None:
        data = KontaktFile.write_k2(PAD_XML, _header()) + SOUNDINFO_HEADER + b"<soundinfo"
        kontakt = KontaktFile.read(data, notifier=notifier)
        assert kontakt.soundinfo is None
        assert "Unreadable soundinfo" in caplog.text

    def test_body_that_is_not_utf8(self) -> None:
        body = zlib.compress(b"\xff\xfe<K2_Container/>")
        data = _header(compressed_length=len(body)).write() + body
        with pytest.raises(FormatError, match="not UTF-8"):
            KontaktFile.read(data)

    def test_short_trailer_is_reported(self, notifier, caplog) -> None:
        data = KontaktFile.write_k2(PAD_XML, _header()) + SOUNDINFO_HEADER[:2]
        kontakt = KontaktFile.read(data, notifier=notifier)
        assert kontakt.soundinfo is None
        assert kontakt.xml == PAD_XML.strip()
        assert "Ignoring 2 trailing bytes" in caplog.text

    def test_trailer_without_soundinfo_magic(self, notifier, caplog) -> None:
        data = KontaktFile.write_k2(PAD_XML, _header()) + bytes(12) + b"<soundinfo/>"
        kontakt = KontaktFile.read(data, notifier=notifier)
        assert kontakt.soundinfo is None
        assert "No soundinfo at offset" in caplog.text

    def test_writers_leave_header_alone(self) -> None:
        header = _header()
        KontaktFile.write_k2(PAD_XML, header)
        KontaktFile.write_42(PresetChunkData.parse(_preset_bytes()), header)
        assert header == _header()
        assert header.compressed_length == 0
        assert not header.is_four_dot_two

    def test_corrupt_zlib_body(self) -> None:
        data = KontaktFile.write_k2(PAD_XML, _header())
        with pytest.raises(DecompressionSizeMismatchError):
            KontaktFile.read(data[:200])

    def test_k42(self, settings) -> None:
        kontakt = KontaktFile.read(_kontakt42(), settings)
        assert kontakt.header.is_four_dot_two
        assert kontakt.checksum_ok is True
        assert kontakt.preset is not None
        multisample, = kontakt.to_multisamples()
        assert multisample.name == "Strings"
        assert multisample.category == "Synthesizer"
        zone, = multisample.zones()
        assert zone.sample_path == "Violin.wav"
        assert zone.stop == 500

    def test_k42_write_round_trip(self, settings) -> None:
        preset = PresetChunkData.parse(_preset_bytes())
        soundinfo = SoundinfoDocument(name="Strings", author="Jane", categories=["Orchestral"])
        data = KontaktFile.write_42(preset, _header(), soundinfo)

        kontakt = KontaktFile.read(data, settings)
        assert kontakt.header.is_four_dot_two
        assert kontakt.checksum_ok is True
        assert kontakt.header.decompressed_length == len(_preset_bytes())
        assert kontakt.preset.write() == _preset_bytes()
        assert kontakt.soundinfo.categories == ["Orchestral"]
        multisample, = kontakt.to_multisamples()
        assert multisample.creator == "Jane"
        assert multisample.category == "Orchestral"

    def test_k42_bad_checksum_is_not_fatal(self, settings, notifier, caplog) -> None:
        kontakt = KontaktFile.read(_kontakt42(checksum=1), settings, notifier)
        assert kontakt.checksum_ok is False
        assert "CRC32 mismatch" in caplog.text
        assert len(kontakt.preset.programs) == 1
        assert "Checksum: mismatch" in kontakt.dump()

    def test_k42_without_checksum_verification(self, lenient_settings) -> None:
        kontakt = KontaktFile.read(_kontakt42(checksum=1), lenient_settings)
        assert kontakt.checksum_ok is None

    def test_k42_with_soundinfo(self) -> None:
        soundinfo = SoundinfoDocument("Strings", "Jim", ["Strings"])
        kontakt = KontaktFile.read(_kontakt42(trailer=SOUNDINFO_HEADER
                                              + soundinfo.to_xml().encode("utf-8")))
        assert kontakt.soundinfo == soundinfo
        multisample, = kontakt.to_multisamples()
        assert multisample.creator == "Jim"

    def test_k42_truncated_body(self) -> None:
        with pytest.raises(TruncatedInputError):
            KontaktFile.read(_kontakt42()[:-5])

    def test_dump(self) -> None:
        text = KontaktFile.read(_kontakt42()).dump()
        assert text.startswith("Kontakt 4.2 (little-endian)")
        assert "ID: 0x28 Program" in text


class TestSoundinfo:
    def test_categories(self) -> None:
        content = """<soundinfo version="400">
          <properties><name>Pad</name><author>Jane</author></properties>
          <attributes>
            <attribute><value>KontaktInstrument</value></attribute>
            <attribute><value>Pad</value></attribute>
            <attribute><value>Pad</value></attribute>
            <attribute><value> Warm </value></attribute>
          </attributes>
        </soundinfo>"""
        document = SoundinfoDocument.parse(content)
        assert (document.name, document.author) == ("Pad", "Jane")
        assert document.categories == ["Pad", "Warm"]

    def test_to_xml(self) -> None:
        document = SoundinfoDocument("Lead", None, ["Synth"])
        parsed = SoundinfoDocument.parse(document.to_xml())
        assert parsed.name == "Lead"
        assert not parsed.author
        assert parsed.categories == ["Synth"]


# -----------------------------------------------------------------------
# Monoliths
# -----------------------------------------------------------------------

class TestMonolith:
    def test_read(self) -> None:
        kontakt = KontaktFile.read(_monolith(PAD_XML))
        assert kontakt.is_monolith
        assert kontakt.xml == PAD_XML.strip()
        samples = kontakt.monolith.samples
        assert list(samples) == ["a.wav", "b.wav"]
        assert all(sample.data.startswith(b"RIFF") and len(sample.data) == 12
                   for sample in samples.values())
        assert samples["a.wav"].offset < samples["b.wav"].offset
        assert "sample a.wav" in kontakt.dump()

    def test_sample_count_mismatch(self) -> None:
        with pytest.raises(SampleCountMismatchError):
            KontaktFile.read(_monolith(PAD_XML, embedded_samples=1))

    def test_big_endian_is_unsupported(self) -> None:
        data = _header(order=BIG).write() + _dictionary((RefType.END, 0, b""))
        with pytest.raises(UnsupportedFeatureError):
            KontaktFile.read(data)

    def test_dictionary_cycle(self) -> None:
        data = _dictionary((RefType.DICTIONARY, 0, _wstr("Samples")))
        with pytest.raises(FormatError):
            Dictionary.read(ByteReader(data))

    def test_unknown_reference_type(self) -> None:
        data = DICTIONARY_MAGIC + bytes(10) + b"\x01" + bytes(7) + struct.pack("<HIH", 8, 0, 9)
        with pytest.raises(FormatError):
            Dictionary.read(ByteReader(data))

    def test_missing_magic(self) -> None:
        with pytest.raises(UnexpectedTagError):
            Dictionary.read(ByteReader(bytes(22)))


# -----------------------------------------------------------------------
# NI containers
# -----------------------------------------------------------------------

class TestNiContainer:
    def test_read(self) -> None:
        data = _ni_container((2, "Pad.nki", b"instrument"), (1, "Samples/a.ncw", b"audio"))
        container = NiContainer.read(data)
        assert [entry.name for entry in container.files] == ["Samples/a.ncw", "Pad.nki"]
        assert container.file("Pad.nki").data == b"instrument"
        assert container.main_file().name == "Pad.nki"
        assert container.total_size == 15
        assert "Pad.nki (10 bytes)" in container.dump()

    def test_missing_main_file(self) -> None:
        container = NiContainer.read(_ni_container((1, "a.ncw", b"audio")))
        assert container.file("nothing") is None
        with pytest.raises(UnexpectedTagError):
            container.main_file(".nkm")

    def test_bad_magic(self) -> None:
        with pytest.raises(UnexpectedTagError):
            NiContainer.read(b"/\\ NI FC XXX  /\\" + bytes(300))

    def test_truncated_data(self) -> None:
        with pytest.raises(TruncatedInputError):
            NiContainer.read(_ni_container((1, "Pad.nki", b"instrument"))[:-3])


# -----------------------------------------------------------------------
# K2 XML
# -----------------------------------------------------------------------

class TestK2Xml:
    def test_zone(self, notifier) -> None:
        zone, = k2_xml.read_zones(PAD_XML, notifier)
        assert zone.sample_path == "../Samples/Pad C4.wav"
        assert zone.name == "Pad C4"
        assert (zone.key_low, zone.key_high, zone.key_root) == (48, 72, 60)
        assert (zone.key_crossfade_high, zone.velocity_crossfade_low) == (2, 3)
        assert (zone.start, zone.stop) == (10, 1000)
        assert zone.tune == pytest.approx(12.0)
        assert zone.gain == pytest.approx(-6.0206, abs=1e-3)
        assert zone.panning == pytest.approx(1.0)
        assert zone.key_tracking == 1.0
        assert not zone.reversed

    def test_loops(self, notifier) -> None:
        zone, = k2_xml.read_zones(PAD_XML, notifier)
        loop, = zone.loops
        assert loop.loop_type is LoopType.ALTERNATING
        assert (loop.start, loop.end) == (100, 500)
        assert loop.crossfade == pytest.approx(0.25)

    def test_release_group(self, notifier) -> None:
        program, = k2_xml.read_programs(PAD_XML, notifier)
        assert program.groups[1].trigger is TriggerType.RELEASE

    @pytest.mark.parametrize(("parameter", "value"), [
        ("zoneTune", "0"),
        ("zoneTune", "-1"),
        ("zoneTune", "nan"),
        ("rootKey", "nan"),
        ("lowKey", "inf"),
    ])
    def test_bad_zone_value_skips_zone(self, notifier, caplog, parameter: str, value: str) -> None:
        original = {"zoneTune": "1", "rootKey": "60", "lowKey": "48"}[parameter]
        xml = PAD_XML.replace(f'name="{parameter}" value="{original}"',
                              f'name="{parameter}" value="{value}"')
        program, = k2_xml.read_programs(xml, notifier)
        assert [len(group.zones) for group in program.groups] == [0, 0]
        assert "Skipping zone of group 'Attack'" in caplog.text

    def test_bank(self) -> None:
        bank = f"<K2_Bank>{PAD_XML.split('?>', 1)[1]}{PAD_XML.split('?>', 1)[1]}</K2_Bank>"
        assert len(k2_xml.read_programs(bank)) == 2

    def test_unexpected_top_element(self) -> None:
        with pytest.raises(FormatError):
            k2_xml.read_programs("<Something/>")

    def test_broken_xml(self) -> None:
        with pytest.raises(FormatError):
            k2_xml.read_programs("<K2_Container>")

    @pytest.mark.parametrize(("encoded", "expected"), [
        ("@bd007SamplesF01234567890Pad.wav", "../Samples/Pad.wav"),
        ("@d003Oldm004LibsF00000000000a.wav", "a.wav"),
        ("@bbF00000000000b.wav", "../../b.wav"),
    ])
    def test_decode_sample_path(self, encoded: str, expected: str) -> None:
        assert k2_xml.decode_sample_path(encoded) == expected

    @pytest.mark.parametrize("encoded", ["@x", "@d003Samp", "@d0", "@F123", "@d003Lib"])
    def test_bad_sample_path(self, encoded: str) -> None:
        with pytest.raises(FormatError):
            k2_xml.decode_sample_path(encoded)
