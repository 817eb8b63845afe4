"""Conversions between 0x-prefixed hex wire strings and Python values."""

from decimal import Decimal
from typing import Union

from walletsync.exceptions import MalformedHex
from walletsync.infra.blockchain.evm.block_tag import BlockTag

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

# Largest value an SQLite INTEGER column can hold
MAX_INT64 = 2**63 - 1


def strip_hex_prefix(value: str) -> str:
    if value[:2] in ("0x", "0X"):
        return value[2:]
    return value


def _parse_hex(value: str) -> int:
    if not isinstance(value, str):
        raise MalformedHex(f"Expected hex string, got {type(value).__name__}")
    digits = strip_hex_prefix(value)
    if not digits or not _HEX_DIGITS.issuperset(digits):
        raise MalformedHex(f"Invalid hex value: {value!r}")
    return int(digits, 16)


def decode_int(value: str) -> int:
    """Parse a hex quantity such as ``"0x1a"`` or ``"1a"`` into a signed 64-bit int.

    Heights, nonces, gas and indexes are stored as native integers, so a
    value above ``MAX_INT64`` is rejected as malformed.
    """
    result = _parse_hex(value)
    if result > MAX_INT64:
        raise MalformedHex(f"Hex value {value!r} exceeds 64-bit range")
    return result


def decode_big_int(value: str) -> int:
    """Parse a hex amount that may exceed 64 bits (wei, token units)."""
    return _parse_hex(value)


def decode_decimal(value: str) -> Decimal:
    return Decimal(decode_big_int(value))


def encode_int(value: int) -> str:
    if value < 0:
        raise ValueError(f"Cannot hex-encode negative value {value}")
    return hex(value)


def encode_block_tag(block: Union[int, BlockTag]) -> str:
    """Wire form of a block reference: ``0x``-hex height or a symbolic tag."""
    if isinstance(block, BlockTag):
        return block.value
    return encode_int(block)
