"""
Sharelog reader and Parquet converter for BEAM shares.

A sharelog is a stream of ``<u32 size><size bytes>`` frames. Depending on the
archive generation each frame body is either a version-prefixed record, or the
frame itself is a length-prefixed record.
"""

import gzip
import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, Optional

import pandas as pd
import pyarrow.parquet as pq

from .errors import MalformedPayloadError, UnsupportedVersionError
from .models import (
    PREFIX_FORMAT,
    PREFIX_SIZE,
    ConversionSummary,
    ShareBeam,
    ShareFraming,
    WriterConfig,
)
from .writer import TABLE_METADATA_KEY, ParquetBatchWriter

logger = logging.getLogger(__name__)

# ==================== Frame Reader ====================


@dataclass(frozen=True)
class RawFrame:
    offset: int
    data: bytes
    truncated: bool = False


def open_sharelog(path: Path) -> BinaryIO:
    """Open a sharelog for reading, transparently gunzipping ``.gz`` files."""
    path = Path(path)
    if path.suffix == ".gz":
        return gzip.open(path, "rb")
    return open(path, "rb")


def iter_frames(stream: BinaryIO) -> Iterator[RawFrame]:
    """
    Yield ``<u32 size><body>`` frames from a sharelog stream.

    Each frame's ``data`` is the complete frame, prefix included. An incomplete
    trailing frame is yielded once with ``truncated=True`` and ends the stream.
    """
    offset = 0
    while True:
        header = stream.read(PREFIX_SIZE)
        if not header:
            return
        if len(header) < PREFIX_SIZE:
            yield RawFrame(offset, header, truncated=True)
            return

        (size,) = struct.unpack(PREFIX_FORMAT, header)
        body = stream.read(size)
        if len(body) < size:
            yield RawFrame(offset, header + body, truncated=True)
            return

        yield RawFrame(offset, header + body)
        offset += PREFIX_SIZE + size


def decode_frame(frame: RawFrame, framing: ShareFraming) -> ShareBeam:
    """Decode one complete frame according to the archive's framing."""
    if framing is ShareFraming.LENGTH_PREFIXED:
        return ShareBeam.decode_length_prefixed(frame.data)
    return ShareBeam.decode(frame.data[PREFIX_SIZE:])


def read_sharelog(
    stream: BinaryIO,
    framing: ShareFraming,
    summary: ConversionSummary,
) -> Iterator[ShareBeam]:
    """
    Yield decodable shares from ``stream``, counting the rest in ``summary``.

    Unsupported versions and malformed payloads are skipped; the stream
    continues with the next frame.
    """
    for frame in iter_frames(stream):
        if frame.truncated:
            summary.truncated += 1
            logger.warning(
                "truncated frame at offset %d (%d bytes), stopping",
                frame.offset,
                len(frame.data),
            )
            return

        summary.records_read += 1
        try:
            share = decode_frame(frame, framing)
        except UnsupportedVersionError as e:
            summary.unsupported_version += 1
            logger.debug("skipping frame at offset %d: %s", frame.offset, e)
            continue
        except MalformedPayloadError as e:
            summary.malformed += 1
            logger.warning("skipping frame at offset %d: %s", frame.offset, e)
            continue
        yield share


# ==================== Conversion ====================


def default_output_path(input_path: Path) -> Path:
    """``shares.bin`` -> ``shares.parquet``; ``shares.bin.gz`` -> ``shares.parquet``."""
    input_path = Path(input_path)
    if input_path.suffix == ".gz":
        input_path = input_path.with_suffix("")
    return input_path.with_suffix(".parquet")


def convert_sharelog(
    input_path: Path,
    output_path: Optional[Path] = None,
    framing: ShareFraming = ShareFraming.VERSIONED,
    config: Optional[WriterConfig] = None,
) -> ConversionSummary:
    """
    Convert one sharelog file to Parquet.

    Args:
        input_path: Sharelog to read (``.gz`` accepted)
        output_path: Parquet file to write (default: input with ``.parquet``)
        framing: Record framing of the sharelog
        config: Writer settings

    Returns:
        ConversionSummary with read/skip/write counts
    """
    input_path = Path(input_path)
    output_path = Path(output_path) if output_path else default_output_path(input_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    summary = ConversionSummary(
        input_path=str(input_path),
        output_path=str(output_path),
        framing=framing,
    )

    logger.info("Converting %s -> %s (%s)", input_path, output_path, framing.value)

    # The writer is closed on every exit path, flushing what was read so far.
    with open_sharelog(input_path) as stream, ParquetBatchWriter(output_path, config=config) as writer:
        for share in read_sharelog(stream, framing, summary):
            writer.append(share)
            summary.records_written += 1

    summary.row_groups = writer.row_groups_written
    summary.malformed_ips = writer.layout.malformed_ips

    logger.info(
        "Done: read=%d written=%d skipped=%d truncated=%d row_groups=%d",
        summary.records_read,
        summary.records_written,
        summary.skipped,
        summary.truncated,
        summary.row_groups,
    )
    return summary


def validate_sharelog(
    input_path: Path,
    framing: ShareFraming = ShareFraming.VERSIONED,
) -> ConversionSummary:
    """Decode every frame of a sharelog without writing any output."""
    input_path = Path(input_path)
    summary = ConversionSummary(input_path=str(input_path), framing=framing)

    with open_sharelog(input_path) as stream:
        for _ in read_sharelog(stream, framing, summary):
            summary.records_written += 1

    return summary


def append_summary_csv(summary: ConversionSummary, csv_path: Path) -> None:
    """Append one conversion summary row to ``csv_path``, creating it if needed."""
    csv_path = Path(csv_path)
    csv_path.parent.mkdir(parents=True, exist_ok=True)

    summary_df = pd.DataFrame([summary.to_row()])
    if csv_path.exists():
        existing_df = pd.read_csv(csv_path)
        summary_df = pd.concat([existing_df, summary_df], ignore_index=True)
    summary_df.to_csv(csv_path, index=False)
    logger.info("Appended summary to %s", csv_path)


# ==================== Output Inspection ====================


def summarize_parquet(path: Path) -> Dict[str, object]:
    """
    Summarize a converted Parquet file.

    Returns:
        Dictionary with table name, row and row group counts, index range and
        difficulty statistics
    """
    path = Path(path)
    parquet_file = pq.ParquetFile(path)
    metadata = parquet_file.schema_arrow.metadata or {}

    df = pd.read_parquet(path, columns=["index", "network_diff", "diff_reached"])

    result: Dict[str, object] = {
        "table": metadata.get(TABLE_METADATA_KEY, b"").decode("utf-8"),
        "rows": len(df),
        "row_groups": parquet_file.num_row_groups,
        "columns": parquet_file.schema_arrow.names,
    }
    if df.empty:
        return result

    result.update(
        {
            "index_min": int(df["index"].min()),
            "index_max": int(df["index"].max()),
            "index_contiguous": bool((df["index"].diff().dropna() == 1).all()),
            "network_diff_max": float(df["network_diff"].max()),
            "diff_reached_mean": float(df["diff_reached"].mean()),
            "diff_reached_max": float(df["diff_reached"].max()),
        }
    )
    return result
