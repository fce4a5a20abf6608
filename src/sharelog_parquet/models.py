"""
Pydantic models for BEAM share records and conversion bookkeeping.

``ShareBeam`` is the in-memory share plus its sharelog wire contract; the other
models configure the Parquet writer and report on a conversion run.
"""

import struct
from enum import Enum
from typing import Annotated, Literal, Optional

from google.protobuf.message import DecodeError, EncodeError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import (
    EmptyInputError,
    MalformedPayloadError,
    SerializationError,
    UnsupportedVersionError,
)
from .wire import BEAM_MSG_FIELDS, PROTO_TO_ATTR, BeamMsg

# first 0bea: BEAM, second 0001: version 1
CURRENT_VERSION = 0x0BEA0001

# uint32 prefix carrying either the payload length or the version tag
PREFIX_FORMAT = "<I"
PREFIX_SIZE = struct.calcsize(PREFIX_FORMAT)

# Integer widths of the BeamMsg fields
Int32 = Annotated[int, Field(ge=-(2 ** 31), le=2 ** 31 - 1)]
Int64 = Annotated[int, Field(ge=-(2 ** 63), le=2 ** 63 - 1)]
UInt32 = Annotated[int, Field(ge=0, le=2 ** 32 - 1)]


class ShareFraming(str, Enum):
    """How records are framed inside a sharelog file."""
    VERSIONED = "versioned"
    LENGTH_PREFIXED = "length-prefixed"


# ==================== Share Record ====================


class ShareBeam(BaseModel):
    """
    One accepted BEAM share.

    A default-constructed record is the zero record. Records are frozen: once
    decoded they are handed to the writer as-is.
    """
    model_config = ConfigDict(frozen=True)

    version: UInt32 = Field(default=0, description="Format tag, CURRENT_VERSION for decodable records")
    worker_hash_id: Int64 = Field(default=0, description="Worker name hash")
    user_id: Int32 = Field(default=0, description="Pool user id")
    status: Int32 = Field(default=0, description="Stratum share status code")
    timestamp: Int64 = Field(default=0, description="Submission time, unix seconds")
    ip: str = Field(default="0.0.0.0", description="Miner address in textual form")
    input_prefix: Int64 = Field(default=0, description="Job id the share was submitted for")
    share_diff: Int64 = Field(default=0, description="Share difficulty assigned to the session")
    block_bits: UInt32 = Field(default=0, description="BEAM packed network difficulty")
    height: Int32 = Field(default=0, description="Block height")
    nonce: Int64 = Field(default=0, description="Share nonce")
    session_id: Int32 = Field(default=0, description="Stratum session id")
    output_hash: Int32 = Field(default=0, description="Truncated PoW output hash")
    ext_user_id: Int32 = Field(default=0, description="External user id")
    bits_reached: UInt32 = Field(default=0, description="Compact target reached by the share")

    # ---------- decoding ----------

    @classmethod
    def from_message(cls, msg) -> "ShareBeam":
        """Build a record from a parsed ``BeamMsg``."""
        values = {}
        for _, proto_name, attr, _, _ in BEAM_MSG_FIELDS:
            values[attr] = getattr(msg, proto_name)
        return cls(**values)

    @classmethod
    def _parse_payload(cls, payload: bytes) -> "ShareBeam":
        msg = BeamMsg()
        try:
            msg.ParseFromString(payload)
        except (DecodeError, UnicodeDecodeError) as e:
            raise MalformedPayloadError(f"share payload parse failed: {e}") from e
        if not msg.IsInitialized():
            missing = ", ".join(msg.FindInitializationErrors())
            raise MalformedPayloadError(f"share payload missing required fields: {missing}")
        try:
            return cls.from_message(msg)
        except ValidationError as e:
            # e.g. an ip string that is not valid UTF-8
            raise MalformedPayloadError(f"share payload has invalid fields: {e}") from e

    @classmethod
    def decode(cls, data: bytes) -> "ShareBeam":
        """
        Decode a version-prefixed record.

        Args:
            data: ``<u32 version><BeamMsg payload>``

        Returns:
            The decoded share

        Raises:
            EmptyInputError: data is empty or None
            UnsupportedVersionError: version tag missing or not CURRENT_VERSION
            MalformedPayloadError: payload is not a valid BeamMsg
        """
        if not data:
            raise EmptyInputError("empty share buffer")
        if len(data) < PREFIX_SIZE:
            raise UnsupportedVersionError()

        (version,) = struct.unpack_from(PREFIX_FORMAT, data)
        if version != CURRENT_VERSION:
            raise UnsupportedVersionError(version)

        return cls._parse_payload(bytes(data[PREFIX_SIZE:]))

    @classmethod
    def decode_length_prefixed(cls, data: bytes) -> "ShareBeam":
        """
        Decode a length-prefixed record, ``<u32 length><BeamMsg payload>``.

        The version carried inside the payload must still be CURRENT_VERSION.
        """
        if not data:
            raise EmptyInputError("empty share buffer")
        if len(data) < PREFIX_SIZE:
            raise MalformedPayloadError("share buffer shorter than its length prefix")

        (size,) = struct.unpack_from(PREFIX_FORMAT, data)
        payload = bytes(data[PREFIX_SIZE:])
        if size != len(payload):
            raise MalformedPayloadError(
                f"declared payload length {size} does not match {len(payload)} bytes"
            )

        share = cls._parse_payload(payload)
        if share.version != CURRENT_VERSION:
            raise UnsupportedVersionError(share.version)
        return share

    # ---------- encoding ----------

    def to_message(self):
        """Copy the record into a ``BeamMsg``."""
        msg = BeamMsg()
        for proto_name, attr in PROTO_TO_ATTR.items():
            try:
                setattr(msg, proto_name, getattr(self, attr))
            except (TypeError, ValueError) as e:
                raise SerializationError(f"field {attr}: {e}") from e
        return msg

    def serialize_payload(self) -> bytes:
        """Serialize the structured payload without any prefix."""
        msg = self.to_message()
        try:
            return msg.SerializeToString()
        except EncodeError as e:
            raise SerializationError(f"share serialization failed: {e}") from e

    def encode_length_prefixed(self) -> bytes:
        """Serialize as ``<u32 payload length><payload>`` for stream framing."""
        payload = self.serialize_payload()
        return struct.pack(PREFIX_FORMAT, len(payload)) + payload

    def encode_version_prefixed(self) -> bytes:
        """Serialize as ``<u32 version><payload>``, the form ``decode`` reads."""
        payload = self.serialize_payload()
        try:
            prefix = struct.pack(PREFIX_FORMAT, self.version)
        except struct.error as e:
            raise SerializationError(f"version does not fit in uint32: {self.version}") from e
        return prefix + payload


# ==================== Writer Configuration ====================


class WriterConfig(BaseModel):
    """Parquet writer settings."""
    model_config = ConfigDict(frozen=True)

    rows_per_row_group: int = Field(
        default=1_000_000, gt=0, description="Rows buffered before a row group is flushed"
    )
    compression: Literal["none", "snappy", "gzip", "zstd", "brotli", "lz4"] = Field(
        default="snappy", description="Parquet column compression codec"
    )


# ==================== Conversion Summary (Output) ====================


class ConversionSummary(BaseModel):
    """Counts collected while converting or validating one sharelog."""
    input_path: str = Field(description="Sharelog that was read")
    output_path: Optional[str] = Field(default=None, description="Parquet file written, None for validation")
    framing: ShareFraming = Field(default=ShareFraming.VERSIONED, description="Record framing used")
    records_read: int = Field(default=0, description="Frames read from the input")
    records_written: int = Field(default=0, description="Shares appended to the writer")
    unsupported_version: int = Field(default=0, description="Frames skipped for their version tag")
    malformed: int = Field(default=0, description="Frames skipped for a bad payload")
    truncated: int = Field(default=0, description="Incomplete trailing frames")
    row_groups: int = Field(default=0, description="Row groups written")
    malformed_ips: int = Field(default=0, description="Shares whose ip did not parse as IPv4")

    @property
    def skipped(self) -> int:
        return self.unsupported_version + self.malformed

    def to_row(self) -> dict:
        """Flatten to a dictionary for tabular display."""
        row = self.model_dump()
        row["framing"] = self.framing.value
        row["skipped"] = self.skipped
        return row
