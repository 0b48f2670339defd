"""Tests for ZLIB bodies, CRC32 and FastLZ blocks."""

from __future__ import annotations

import logging
import zlib

import pytest

from sampler_chunks.errors import DecompressionSizeMismatchError, FormatError
from sampler_chunks.lib import fastlz
from sampler_chunks.lib.compression import crc32, deflate_zlib, inflate_zlib, verify_crc32
from sampler_chunks.lib.stream import ByteReader


class TestCrc32:
    def test_check_value(self) -> None:
        assert crc32(b"123456789") == 0xCBF43926

    def test_verify_match(self) -> None:
        assert verify_crc32(b"123456789", 0xCBF43926)

    def test_verify_mismatch_only_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            assert not verify_crc32(b"123456789", 0)
        assert "CRC32 mismatch" in caplog.text


class TestZlib:
    def test_inflate_stops_after_stream(self) -> None:
        body = zlib.compress(b"<K2_Container/>", 1)
        reader = ByteReader(body + b"TRAILER")
        assert inflate_zlib(reader) == b"<K2_Container/>"
        assert reader.read_rest() == b"TRAILER"

    def test_deflate_round_trip(self) -> None:
        text = b"zone " * 200
        assert inflate_zlib(ByteReader(deflate_zlib(text, 1))) == text

    def test_truncated_stream(self) -> None:
        body = zlib.compress(b"x" * 1000 + bytes(range(256)))
        with pytest.raises(DecompressionSizeMismatchError):
            inflate_zlib(ByteReader(body[:-6]))

    def test_corrupt_stream(self) -> None:
        with pytest.raises(DecompressionSizeMismatchError):
            inflate_zlib(ByteReader(b"\x78\x01garbage"))


class TestFastLZDecompress:
    def test_literal_run(self) -> None:
        assert fastlz.decompress(b"\x04hello", 5) == b"hello"

    def test_back_reference_repeats_pattern(self) -> None:
        # three literals, then a match of 6 bytes at distance 3
        assert fastlz.decompress(b"\x02abc\x80\x02", 9) == b"abcabcabc"

    def test_empty(self) -> None:
        assert fastlz.decompress(b"", 0) == b""
        with pytest.raises(DecompressionSizeMismatchError):
            fastlz.decompress(b"", 4)

    def test_truncated_input(self) -> None:
        with pytest.raises(DecompressionSizeMismatchError):
            fastlz.decompress(b"\x04hel", 5)

    def test_truncated_match(self) -> None:
        with pytest.raises(DecompressionSizeMismatchError):
            fastlz.decompress(b"\x02abc\x80", 9)

    def test_size_mismatch(self) -> None:
        with pytest.raises(DecompressionSizeMismatchError):
            fastlz.decompress(b"\x04hello", 6)
        with pytest.raises(DecompressionSizeMismatchError):
            fastlz.decompress(b"\x04hello", 4)

    def test_reference_before_start(self) -> None:
        with pytest.raises(DecompressionSizeMismatchError):
            fastlz.decompress(b"\x00a\x80\x05", 7)

    def test_unknown_level(self) -> None:
        with pytest.raises(FormatError):
            fastlz.decompress(b"\x64abc", 3)


class TestFastLZCompress:
    @pytest.mark.parametrize("data", [
        b"a",
        b"abcdefgh" * 50,
        bytes(range(256)) * 4,
        b"\x00" * 5000,
        b"Kontakt preset chunk " * 3 + bytes(range(40)) + b"Kontakt preset chunk ",
    ])
    def test_round_trip(self, data: bytes) -> None:
        packed = fastlz.compress(data)
        assert fastlz.decompress(packed, len(data)) == data

    def test_repetitive_input_shrinks(self) -> None:
        data = b"\x00" * 5000
        assert len(fastlz.compress(data)) < len(data) // 10

    def test_only_level_one(self) -> None:
        with pytest.raises(ValueError):
            fastlz.compress(b"abc", level=2)
