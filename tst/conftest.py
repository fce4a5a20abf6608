"""
Pytest fixtures for sharelog_parquet tests.

Provides synthetic shares, sharelog byte streams and output paths.
"""

import struct

import pytest

from sharelog_parquet.models import CURRENT_VERSION, ShareBeam


def make_share(i: int = 0, **overrides) -> ShareBeam:
    """Build a supported-version share whose fields vary with ``i``."""
    values = dict(
        version=CURRENT_VERSION,
        worker_hash_id=1_000_000_000_000 + i,
        user_id=10 + i,
        status=1798084231,
        timestamp=1_560_000_000 + i,
        ip=f"10.0.{i % 256}.1",
        input_prefix=500 + i,
        share_diff=8000 + i,
        block_bits=0x18000000,
        height=250_000 + i,
        nonce=0x1122334455 + i,
        session_id=i,
        output_hash=-i,
        ext_user_id=20 + i,
        bits_reached=0x1D00FFFF,
    )
    values.update(overrides)
    return ShareBeam(**values)


def versioned_frame(share: ShareBeam) -> bytes:
    """Sharelog frame ``<u32 size><u32 version><payload>``."""
    body = share.encode_version_prefixed()
    return struct.pack("<I", len(body)) + body


def invalid_ip_body() -> bytes:
    """Version-prefixed record whose ip field holds bytes that are not UTF-8."""
    body = make_share(1, ip="10.0.1.1").encode_version_prefixed()
    assert body.count(b"10.0.1.1") == 1
    return body.replace(b"10.0.1.1", b"\xff\xfe.0.1.1")


@pytest.fixture
def sample_share() -> ShareBeam:
    return make_share(7)


@pytest.fixture
def sample_shares():
    return [make_share(i) for i in range(10)]


@pytest.fixture
def versioned_sharelog_bytes(sample_shares) -> bytes:
    """Ten valid shares in versioned framing."""
    return b"".join(versioned_frame(s) for s in sample_shares)


@pytest.fixture
def length_prefixed_sharelog_bytes(sample_shares) -> bytes:
    """Ten valid shares in length-prefixed framing."""
    return b"".join(s.encode_length_prefixed() for s in sample_shares)


@pytest.fixture
def mixed_sharelog_bytes(sample_shares) -> bytes:
    """
    Versioned sharelog with one foreign-version frame, one garbage payload
    and a truncated tail between valid shares.
    """
    foreign = make_share(99, version=0x0BEA0002)
    garbage_body = struct.pack("<I", CURRENT_VERSION) + b"\xff\xff\xff"
    data = versioned_frame(sample_shares[0])
    data += versioned_frame(foreign)
    data += versioned_frame(sample_shares[1])
    data += struct.pack("<I", len(garbage_body)) + garbage_body
    data += versioned_frame(sample_shares[2])
    data += struct.pack("<I", 64) + b"\x00" * 10
    return data


@pytest.fixture
def sharelog_file(tmp_path, versioned_sharelog_bytes):
    path = tmp_path / "sharelog-2019-06-01.bin"
    path.write_bytes(versioned_sharelog_bytes)
    return path


@pytest.fixture
def output_path(tmp_path):
    return tmp_path / "out" / "shares.parquet"
