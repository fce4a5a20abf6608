"""Tests for difficulty decoding."""

import math

import pytest

from sharelog_parquet.difficulty import (
    MAX_UINT256,
    beam_bits_to_difficulty,
    compact_target_to_difficulty,
    set_compact,
    unpack_beam_bits,
)


class TestBeamBits:
    def test_zero(self):
        assert beam_bits_to_difficulty(0) == 0.0

    def test_unpack_sets_leading_bit(self):
        order, mantissa = unpack_beam_bits(0x18000000)
        assert order == 24
        assert mantissa == 0x01000000

    def test_order_24_no_low_bits(self):
        # mantissa 2**24, exponent 0
        assert beam_bits_to_difficulty(0x18000000) == 16777216.0

    def test_order_zero_is_fractional(self):
        # 0x01000001 * 2**-24
        assert beam_bits_to_difficulty(0x00000001) == 1.0 + 2.0 ** -24

    def test_large_order(self):
        packed = (40 << 24) | 0x123456
        expected = float(0x01123456 * 2 ** 16)
        assert beam_bits_to_difficulty(packed) == expected

    def test_max_value(self):
        assert beam_bits_to_difficulty(0xFFFFFFFF) == math.ldexp(0x01FFFFFF, 255 - 24)


class TestSetCompact:
    def test_bitcoin_genesis_target(self):
        assert set_compact(0x1D00FFFF) == 0xFFFF << 208

    def test_small_size_shifts_right(self):
        assert set_compact(0x02123456) == 0x1234
        assert set_compact(0x01123456) == 0x12

    def test_sign_bit_ignored(self):
        assert set_compact(0x04923456) == 0x12345600

    def test_truncated_to_256_bits(self):
        assert set_compact(0xFF123456) <= MAX_UINT256


class TestCompactTarget:
    def test_zero(self):
        assert compact_target_to_difficulty(0) == 0.0

    def test_legacy_bit_length(self):
        expected = float(MAX_UINT256 // ((1 << 32) - 1))
        assert compact_target_to_difficulty(32) == expected

    def test_legacy_upper_bound(self):
        expected = float(MAX_UINT256 // ((1 << 255) - 1))
        assert compact_target_to_difficulty(0xFF) == expected
        assert compact_target_to_difficulty(0xFF) == 2.0

    def test_legacy_one_bit_is_max(self):
        assert compact_target_to_difficulty(1) == float(MAX_UINT256)

    def test_modern_compact(self):
        expected = float(MAX_UINT256 // (0xFFFF << 208))
        assert compact_target_to_difficulty(0x1D00FFFF) == expected
        # Bitcoin difficulty 1 in pool units
        assert compact_target_to_difficulty(0x1D00FFFF) == pytest.approx(2 ** 32, rel=1e-4)

    def test_first_modern_value(self):
        # 0x100 has size 0 and expands to a zero target
        assert compact_target_to_difficulty(0x100) == 0.0

    def test_zero_mantissa(self):
        assert compact_target_to_difficulty(0x1D000000) == 0.0

    def test_branch_boundary(self):
        legacy = compact_target_to_difficulty(0xFF)
        modern = compact_target_to_difficulty(0x03000100)
        assert legacy == 2.0
        assert modern == float(MAX_UINT256 // 0x100)
