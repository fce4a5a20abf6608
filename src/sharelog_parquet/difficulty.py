"""
Difficulty decoding for BEAM sharelogs.

Two packed 32-bit encodings appear in archived shares:

- ``block_bits``: BEAM's own packed difficulty (order byte + 24-bit mantissa
  with an implicit leading bit).
- ``bits_reached``: a bitcoin-style target. Older sharelogs stored the bit
  length of the target (values up to 0xff); newer ones store the full compact
  form (``GetCompact``) for better precision.
"""

import math
from typing import Tuple

MAX_UINT256 = (1 << 256) - 1

BEAM_LEADING_BIT = 1 << 24
BEAM_ORDER_BIAS = 24

LEGACY_BITS_MAX = 0xFF


def unpack_beam_bits(packed: int) -> Tuple[int, int]:
    """Split BEAM packed bits into ``(order, mantissa)``."""
    order = packed >> 24
    mantissa = BEAM_LEADING_BIT | (packed & (BEAM_LEADING_BIT - 1))
    return order, mantissa


def beam_bits_to_difficulty(packed: int) -> float:
    """
    Convert BEAM packed bits to a difficulty.

    Args:
        packed: uint32 packed difficulty from the share's ``block_bits``

    Returns:
        ``mantissa * 2**(order - 24)``, or 0.0 for a zero input
    """
    if packed == 0:
        return 0.0

    order, mantissa = unpack_beam_bits(packed)
    return math.ldexp(mantissa, order - BEAM_ORDER_BIAS)


def set_compact(compact: int) -> int:
    """
    Expand a compact target into its 256-bit integer.

    The sign bit (0x00800000) is dropped; the result is truncated to 256 bits
    the way a fixed-width target would be.
    """
    size = compact >> 24
    word = compact & 0x007FFFFF
    if size <= 3:
        return word >> (8 * (3 - size))
    return (word << (8 * (size - 3))) & MAX_UINT256


def compact_target_to_difficulty(bits: int) -> float:
    """
    Convert ``bits_reached`` to a difficulty, ``MAX_UINT256 / target``.

    Values up to 0xff are the legacy bit-length form, anything larger is a
    compact target. Division is done on exact integers before the cast.
    """
    if bits == 0:
        return 0.0

    if bits <= LEGACY_BITS_MAX:
        target = (1 << bits) - 1
    else:
        target = set_compact(bits)

    # A zero compact mantissa expands to a zero target.
    if target == 0:
        return 0.0
    return float(MAX_UINT256 // target)
