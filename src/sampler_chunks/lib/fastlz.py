"""FastLZ block compression (levels 1 and 2).

Kontakt 4.2 instruments store their preset chunk tree FastLZ-compressed.
The block format is a stream of instructions, each introduced by a control
byte:

* ``ctrl < 32``: a literal run of ``ctrl + 1`` bytes follows.
* otherwise a back-reference: the top three bits hold the match length
  (7 means "more length bytes follow"), the low five bits the high part of
  the distance, and one more byte the low part.

The top three bits of the very first byte carry the level minus one.
Level 2 adds unbounded length extension (runs of 255) and 16-bit far
distances.
"""

from __future__ import annotations

from sampler_chunks.errors import DecompressionSizeMismatchError, FormatError

MAX_COPY = 32
MAX_LEN = 264
MAX_DISTANCE = 8192
MAX_L2_DISTANCE = 8191

HASH_LOG = 13
HASH_SIZE = 1 << HASH_LOG
HASH_MASK = HASH_SIZE - 1


def decompress(data: bytes, expected_size: int) -> bytes:
    """Decompress a FastLZ block into exactly ``expected_size`` bytes.

    Raises:
        FormatError: The level encoded in the first byte is not 1 or 2.
        DecompressionSizeMismatchError: The input is truncated or corrupt,
            or the output size differs from ``expected_size``.
    """
    if not data:
        if expected_size:
            raise DecompressionSizeMismatchError(f"Empty input, expected {expected_size} bytes")
        return b""

    level = (data[0] >> 5) + 1
    if level not in (1, 2):
        raise FormatError(f"Unsupported FastLZ level {level}")

    out = bytearray()
    ip = 1
    ip_limit = len(data)
    ctrl = data[0] & 31

    while True:
        if ctrl >= 32:
            length = (ctrl >> 5) - 1
            ofs = (ctrl & 31) << 8
            if length == 6:
                if level == 1:
                    length += _byte_at(data, ip)
                    ip += 1
                else:
                    while True:
                        code = _byte_at(data, ip)
                        ip += 1
                        length += code
                        if code != 255:
                            break
            code = _byte_at(data, ip)
            ip += 1
            ref = len(out) - ofs - code
            if level == 2 and code == 255 and ofs == (31 << 8):
                ofs = (_byte_at(data, ip) << 8) | _byte_at(data, ip + 1)
                ip += 2
                ref = len(out) - ofs - MAX_L2_DISTANCE
            ref -= 1
            length += 3
            if ref < 0:
                raise DecompressionSizeMismatchError(
                    f"Back-reference before start of output at input offset {ip}"
                )
            if len(out) + length > expected_size:
                raise DecompressionSizeMismatchError(
                    f"Match overruns output of {expected_size} bytes"
                )
            # Byte-by-byte so that overlapping references repeat the pattern.
            for i in range(length):
                out.append(out[ref + i])
        else:
            count = ctrl + 1
            if ip + count > ip_limit:
                raise DecompressionSizeMismatchError(
                    f"Literal run of {count} bytes overruns input at offset {ip}"
                )
            if len(out) + count > expected_size:
                raise DecompressionSizeMismatchError(
                    f"Literal run overruns output of {expected_size} bytes"
                )
            out += data[ip:ip + count]
            ip += count

        if ip >= ip_limit:
            break
        ctrl = data[ip]
        ip += 1

    if len(out) != expected_size:
        raise DecompressionSizeMismatchError(
            f"Decompressed {len(out)} bytes, expected {expected_size}"
        )
    return bytes(out)


def _byte_at(data: bytes, index: int) -> int:
    if index >= len(data):
        raise DecompressionSizeMismatchError(f"Input ends inside an instruction at offset {index}")
    return data[index]


def _hash(data: bytes, pos: int) -> int:
    v = data[pos] | (data[pos + 1] << 8)
    v ^= (data[pos + 1] | (data[pos + 2] << 8)) ^ (v >> (16 - HASH_LOG))
    return v & HASH_MASK


def compress(data: bytes, level: int = 1) -> bytes:
    """Compress ``data`` into a level 1 FastLZ block.

    Greedy matching over a 13-bit hash of three-byte prefixes. Only level 1
    is produced; every reader of level 2 also accepts level 1 blocks.
    """
    if level != 1:
        raise ValueError(f"Only FastLZ level 1 compression is supported, got {level}")
    if not data:
        return b""

    out = bytearray()
    literals = bytearray()
    table = [-1] * HASH_SIZE
    size = len(data)
    ip = 0

    def flush_literals() -> None:
        if literals:
            out.append(len(literals) - 1)
            out.extend(literals)
            literals.clear()

    while ip < size:
        match_length = 0
        distance = 0
        if ip + 3 <= size:
            h = _hash(data, ip)
            ref = table[h]
            table[h] = ip
            if ref >= 0 and 0 < ip - ref <= MAX_DISTANCE and data[ref:ref + 3] == data[ip:ip + 3]:
                limit = min(MAX_LEN, size - ip)
                match_length = 3
                while match_length < limit and data[ref + match_length] == data[ip + match_length]:
                    match_length += 1
                distance = ip - ref

        if match_length:
            flush_literals()
            ofs = distance - 1
            if match_length < 9:
                out.append(((match_length - 2) << 5) | (ofs >> 8))
            else:
                out.append((7 << 5) | (ofs >> 8))
                out.append(match_length - 9)
            out.append(ofs & 0xFF)
            ip += match_length
        else:
            literals.append(data[ip])
            if len(literals) == MAX_COPY:
                flush_literals()
            ip += 1

    flush_literals()
    return bytes(out)
