"""Tests for Yamaha YSFC libraries."""

from __future__ import annotations

import struct

import pytest

from sampler_chunks.errors import UnexpectedTagError, UnresolvedReferenceError
from sampler_chunks.lib.stream import ByteReader
from sampler_chunks.ysfc import categories
from sampler_chunks.ysfc.chunk import YsfcChunk
from sampler_chunks.ysfc.entry import YsfcEntry
from sampler_chunks.ysfc.file import YsfcFile
from sampler_chunks.ysfc.versions import YsfcFormat, parse_version


# -----------------------------------------------------------------------
# Fixture helpers
# -----------------------------------------------------------------------

def _library(*names: str, version: str = "4.0.5") -> YsfcFile:
    ysfc = YsfcFile.new(version)
    for index, name in enumerate(names):
        ysfc.chunks["EWFM"].entries.append(YsfcEntry(item_name=name, content_number=index))
        ysfc.chunks["DWFM"].data_arrays.append(bytes([index]) * 4)
        ysfc.chunks["EWIM"].entries.append(YsfcEntry(item_name=name, content_number=index))
        ysfc.chunks["DWIM"].data_arrays.append(bytes([index]) * (16 + index))
    return ysfc


def _header(version: bytes) -> bytes:
    return (b"YAMAHA-YSFC".ljust(16, b"\x00") + version.ljust(16, b"\x00")
            + struct.pack(">I", 0) + b"\xff" * 12 + struct.pack(">I", 0xFFFFFFFF)
            + b"\xff" * 8 + struct.pack(">I", 7))


# -----------------------------------------------------------------------
# Files
# -----------------------------------------------------------------------

class TestYsfcFile:
    def test_write_read(self) -> None:
        data = _library("64:Bass Pluck", "Pad").write()
        ysfc = YsfcFile.read(data)
        assert ysfc.version_string == "4.0.5"
        assert ysfc.format is YsfcFormat.MONTAGE
        assert list(ysfc.chunks) == ["EWFM", "DWFM", "EWIM", "DWIM"]
        assert ysfc.max_entry_id == 10005

        pairs = ysfc.pair("EWIM").pairs()
        assert [entry.item_name for entry, _ in pairs] == ["64:Bass Pluck", "Pad"]
        assert [len(data) for _, data in pairs] == [16, 17]

    def test_entries_are_renumbered(self) -> None:
        ysfc = YsfcFile.read(_library("A", "B").write())
        metadata = ysfc.chunks["EWFM"].entries
        assert [entry.entry_id for entry in metadata] == [10001, 10003]
        assert [entry.data_offset for entry in metadata] == [12, 24]
        assert [entry.data_size for entry in metadata] == [4, 4]
        waveforms = ysfc.chunks["EWIM"].entries
        assert [entry.entry_id for entry in waveforms] == [10002, 10004]

    def test_montage_m_extra_bytes_survive(self) -> None:
        ysfc = _library("Voice", version="4.1.0")
        ysfc.chunks["EWFM"].entries[0].extra = bytes(range(1, 10))
        read_back = YsfcFile.read(ysfc.write())
        assert read_back.format is YsfcFormat.MONTAGE_M
        assert read_back.chunks["EWFM"].entries[0].extra == bytes(range(1, 10))

    def test_other_chunks_are_written_last(self) -> None:
        ysfc = _library("Voice")
        ysfc.chunks = {"DPFM": YsfcChunk("DPFM", data_arrays=[b"perf"]), **ysfc.chunks}
        assert list(YsfcFile.read(ysfc.write()).chunks)[-1] == "DPFM"

    def test_broken_pairing(self, notifier, caplog) -> None:
        ysfc = _library("A", "B")
        ysfc.chunks["DWIM"].data_arrays.pop()
        pairing = ysfc.pair("EWIM", notifier)
        assert pairing.is_broken
        assert "Broken YSFC pairing 'EWIM'" in caplog.text
        with pytest.raises(UnresolvedReferenceError):
            pairing.pairs()
        with pytest.raises(UnresolvedReferenceError):
            ysfc.write()

    def test_missing_data_chunk_pairs_empty(self) -> None:
        ysfc = YsfcFile(chunks={"EPFM": YsfcChunk("EPFM")})
        assert ysfc.pair("EPFM").pairs() == []

    def test_old_firmware_version_padding(self) -> None:
        data = _header(b"1.0.2".ljust(16, b"\xff"))
        ysfc = YsfcFile.read(data)
        assert ysfc.version_string == "1.0.2"
        assert ysfc.format is YsfcFormat.MOTIF_XF
        assert ysfc.max_entry_id == 7
        assert ysfc.chunks == {}

    def test_not_ysfc(self) -> None:
        with pytest.raises(UnexpectedTagError):
            YsfcFile.read(b"YAMAHA-XXXX".ljust(64, b"\x00"))

    def test_unknown_item(self) -> None:
        chunk = b"EPFM" + struct.pack(">II", 12, 1) + b"Xxxx" + bytes(4)
        with pytest.raises(UnexpectedTagError):
            YsfcFile.read(_header(b"4.0.5") + chunk)

    def test_dump(self) -> None:
        text = _library("Pad").dump()
        assert text.startswith("YSFC 4.0.5 (Montage)")
        assert "Item Name      : 'Pad'" in text
        assert "Category" not in text

    def test_dump_shows_category(self) -> None:
        text = YsfcEntry(item_name="64:Fretless").dump()
        assert "Category       : Bass" in text


class TestYsfcEntry:
    @pytest.mark.parametrize("version", [101, 102, 405, 410, 501])
    def test_layout_per_version(self, version: int) -> None:
        entry = YsfcEntry(data_size=3, data_offset=12, content_number=5, item_name="Piano",
                          item_title="Grand", additional_data=b"\x01\x02", entry_id=10001)
        read_back = YsfcEntry.read(ByteReader(entry.write(version)), version)
        assert (read_back.data_size, read_back.data_offset) == (3, 12)
        assert read_back.content_number == 5
        assert (read_back.item_name, read_back.item_title) == ("Piano", "Grand")
        assert read_back.additional_data == b"\x01\x02"
        expected_id = 10001 if version in (405, 501) else 0xFFFFFFFF
        assert read_back.entry_id == expected_id

    def test_entry_without_title(self) -> None:
        content = struct.pack(">III", 1, 2, 3) + bytes(6) + struct.pack(">I", 9) + b"Name\x00"
        entry = YsfcEntry.read(ByteReader(struct.pack(">I", len(content)) + content), 405)
        assert entry.item_name == "Name"
        assert entry.item_title == ""

    def test_category_and_name(self) -> None:
        assert YsfcEntry(item_name="12:Rhodes").category_and_name() == (12, "Rhodes")
        assert YsfcEntry(item_name="Rhodes").category_and_name() == (-1, "Rhodes")
        assert YsfcEntry(item_name="x:Rhodes").category_and_name() == (-1, "x:Rhodes")


class TestVersionsAndCategories:
    def test_parse_version(self) -> None:
        assert parse_version("5.0.1") == 501
        assert parse_version("bogus") == 100
        assert YsfcFormat.from_version(501) is YsfcFormat.MODX
        assert YsfcFormat.from_version(300) is YsfcFormat.UNKNOWN

    def test_categories(self) -> None:
        assert categories.main_category(64) == "Bass"
        assert categories.main_category(256) == categories.NO_ASSIGN
        assert categories.waveform_category_index("Snare") == 193
        assert categories.performance_category(0x0030) == "Bass"
        assert categories.performance_category(0) == categories.NO_ASSIGN
        assert categories.performance_sub_category(0) == "Acoustic"
        assert categories.performance_sub_category(4) == "Rock / Pop"
        assert categories.performance_sub_category(999) == categories.NO_ASSIGN
