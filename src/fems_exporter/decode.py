"""Decode groups of 16-bit input registers and render values as exposition text."""

import math
import struct
from decimal import Decimal
from typing import Sequence

from .errors import DecodeContractError
from .types import ValueType

# Registers are big-endian and the first register carries the most significant word.
_STRUCT_FORMAT: dict[ValueType, str] = {
    ValueType.FLOAT32: ">f",
    ValueType.FLOAT64: ">d",
}


def _words_to_bytes(words: Sequence[int]) -> bytes:
    return b"".join(struct.pack(">H", w) for w in words)


def decode(value_type: ValueType, words: Sequence[int]) -> int | float:
    """
    Decode `words` (exactly ``value_type.word_count`` registers) into a number.

    - UINT16: the register as-is, no sign extension.
    - FLOAT32 / FLOAT64: words concatenated big-endian into IEEE-754 binary32 / binary64.

    A wrong number of words is a caller bug and raises DecodeContractError.
    """
    expected = value_type.word_count
    if len(words) != expected:
        raise DecodeContractError(value_type, expected, len(words))
    if value_type == ValueType.UINT16:
        return int(words[0])
    return struct.unpack(_STRUCT_FORMAT[value_type], _words_to_bytes(words))[0]


def encode(value_type: ValueType, value: int | float) -> list[int]:
    """Inverse of decode(): split a value into big-endian registers."""
    if value_type == ValueType.UINT16:
        if not 0 <= int(value) <= 0xFFFF:
            raise ValueError(f"Unsigned 16-bit integer out of range: {value}")
        return [int(value)]
    raw = struct.pack(_STRUCT_FORMAT[value_type], value)
    return [w for (w,) in struct.iter_unpack(">H", raw)]


def _shortest_float32(value: float) -> str:
    """Fewest significant digits that read back to the same binary32."""
    packed = struct.pack(">f", value)
    for precision in range(1, 10):
        text = f"{value:.{precision}g}"
        if struct.pack(">f", float(text)) == packed:
            return text
    return repr(value)


def format_value(value_type: ValueType, value: int | float) -> str:
    """
    Render a decoded value with the shortest text that round-trips at its width.

    Integers are plain digits; floats are positional (never exponent form) and drop a
    trailing ``.0``, so 10.0 renders as ``10``. NaN and infinities use the Prometheus
    spellings.
    """
    if value_type == ValueType.UINT16:
        return str(int(value))
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    shortest = _shortest_float32(value) if value_type == ValueType.FLOAT32 else repr(value)
    text = format(Decimal(shortest), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
