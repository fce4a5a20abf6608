"""
Buffered Parquet writer for share records.

Rows are collected in preallocated per-column buffers and written as one
Parquet row group whenever the buffers fill up, and once more on close. The
column set comes from a ``ShareLayout``; ``BeamShareLayout`` describes BEAM
shares.
"""

import ipaddress
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np
import pyarrow as pa
import pyarrow.parquet as pq

from .difficulty import beam_bits_to_difficulty, compact_target_to_difficulty
from .errors import OutputWriteError, WriterClosedError
from .models import ShareBeam, WriterConfig

logger = logging.getLogger(__name__)

INDEX_COLUMN = "index"
TABLE_METADATA_KEY = b"table"


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    arrow_type: pa.DataType

    def allocate(self, capacity: int) -> np.ndarray:
        """Preallocate a buffer for ``capacity`` values of this column."""
        if pa.types.is_string(self.arrow_type):
            return np.empty(capacity, dtype=object)
        return np.empty(capacity, dtype=self.arrow_type.to_pandas_dtype())

    def field(self) -> pa.Field:
        return pa.field(self.name, self.arrow_type, nullable=False)


@runtime_checkable
class ShareLayout(Protocol):
    # Logical table name stored in the file metadata.
    name: str

    # Ordered columns, starting with the writer-assigned index column.
    def columns(self) -> Sequence[ColumnSpec]: ...

    # One row of values in column order for ``record``.
    def extract(self, record, index: int) -> Tuple: ...


def layout_schema(layout: ShareLayout) -> pa.Schema:
    """Arrow schema for a layout, tagged with the layout's table name."""
    return pa.schema(
        [col.field() for col in layout.columns()],
        metadata={TABLE_METADATA_KEY: layout.name.encode("utf-8")},
    )


def ip_octets(text: str) -> Optional[bytes]:
    """
    Packed 4-octet form of an IPv4 address.

    IPv4-mapped IPv6 addresses are unwrapped. Returns None when ``text`` is
    not an IPv4 address.
    """
    try:
        addr = ipaddress.ip_address(text)
    except ValueError:
        return None
    if addr.version == 6:
        addr = addr.ipv4_mapped
        if addr is None:
            return None
    return addr.packed


# ==================== BEAM Layout ====================


BEAM_COLUMNS = (
    ColumnSpec(INDEX_COLUMN, pa.int64()),
    ColumnSpec("worker_id", pa.int64()),
    ColumnSpec("user_id", pa.int32()),
    ColumnSpec("status", pa.int32()),
    ColumnSpec("timestamp", pa.int64()),
    ColumnSpec("ip", pa.string()),
    ColumnSpec("job_id", pa.int64()),
    ColumnSpec("share_diff", pa.int64()),
    ColumnSpec("network_diff", pa.float64()),
    ColumnSpec("height", pa.int32()),
    ColumnSpec("nonce", pa.int64()),
    ColumnSpec("session_id", pa.int32()),
    ColumnSpec("output_hash", pa.int32()),
    ColumnSpec("ext_user_id", pa.int32()),
    ColumnSpec("diff_reached", pa.float64()),
)


class BeamShareLayout:
    """Column layout of the ``share_beam`` table."""

    name = "share_beam"

    def __init__(self) -> None:
        self.malformed_ips = 0

    def columns(self) -> Sequence[ColumnSpec]:
        return BEAM_COLUMNS

    def extract(self, record: ShareBeam, index: int) -> Tuple:
        if ip_octets(record.ip) is None:
            # The text is still written unchanged; only counted here.
            self.malformed_ips += 1
            logger.debug("share %d has unparseable ip %r", index, record.ip)

        return (
            index,
            record.worker_hash_id,
            record.user_id,
            record.status,
            record.timestamp,
            record.ip,
            record.input_prefix,
            record.share_diff,
            beam_bits_to_difficulty(record.block_bits),
            record.height,
            record.nonce,
            record.session_id,
            record.output_hash,
            record.ext_user_id,
            compact_target_to_difficulty(record.bits_reached),
        )


# ==================== Batch Writer ====================


class WriterState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class ParquetBatchWriter:
    """
    Append records, flush them to ``output_path`` as row groups.

    Buffers are sized to ``config.rows_per_row_group`` once and reused for
    every row group. ``last_index`` counts every record appended over the
    writer's lifetime and is not reset by ``flush``; the first record gets
    index 1.

    Use as a context manager, or call ``close`` explicitly. Pending rows are
    flushed on close, including when the writer is garbage collected.
    """

    def __init__(
        self,
        output_path: Path,
        layout: Optional[ShareLayout] = None,
        config: Optional[WriterConfig] = None,
    ) -> None:
        self.output_path = Path(output_path)
        self.layout = layout if layout is not None else BeamShareLayout()
        self.config = config if config is not None else WriterConfig()
        self.capacity = self.config.rows_per_row_group

        self.schema = layout_schema(self.layout)
        self._columns = list(self.layout.columns())
        self._buffers: List[np.ndarray] = [
            col.allocate(self.capacity) for col in self._columns
        ]

        self.cursor = 0
        self.last_index = 0
        self.rows_written = 0
        self.row_groups_written = 0
        self.state = WriterState.CLOSED

        try:
            self._file_writer = pq.ParquetWriter(
                str(self.output_path),
                self.schema,
                compression=self.config.compression,
            )
        except (OSError, pa.ArrowException) as e:
            raise OutputWriteError(f"cannot open {self.output_path}: {e}") from e
        self.state = WriterState.OPEN

        logger.debug(
            "opened %s table=%s rows_per_row_group=%d",
            self.output_path,
            self.layout.name,
            self.capacity,
        )

    # ---------- lifecycle ----------

    def __enter__(self) -> "ParquetBatchWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "state", None) is WriterState.OPEN:
            self.close()

    @property
    def closed(self) -> bool:
        return self.state is WriterState.CLOSED

    @property
    def pending_rows(self) -> int:
        return self.cursor

    # ---------- writing ----------

    def append(self, record) -> int:
        """
        Buffer one record and return the index assigned to it.

        Flushes synchronously when the buffers reach capacity.
        """
        if self.closed:
            raise WriterClosedError(f"writer for {self.output_path} is closed")

        index = self.last_index + 1
        row = self.layout.extract(record, index)

        slot = self.cursor
        for buf, value in zip(self._buffers, row):
            buf[slot] = value

        self.last_index = index
        self.cursor += 1

        if self.cursor >= self.capacity:
            self.flush()
        return index

    def flush(self) -> None:
        """Write the buffered rows as one row group. No-op when empty."""
        if self.cursor == 0:
            return
        if self.closed:
            raise WriterClosedError(f"writer for {self.output_path} is closed")

        n_rows = self.cursor
        logger.debug("flush %d shares to %s", n_rows, self.output_path)

        arrays = [
            pa.array(buf[:n_rows], type=col.arrow_type)
            for col, buf in zip(self._columns, self._buffers)
        ]
        # from_arrays rejects columns of unequal length
        batch = pa.RecordBatch.from_arrays(arrays, schema=self.schema)

        try:
            self._file_writer.write_table(
                pa.Table.from_batches([batch]),
                row_group_size=n_rows,
            )
        except (OSError, pa.ArrowException) as e:
            self._abort()
            raise OutputWriteError(
                f"failed writing row group to {self.output_path}: {e}"
            ) from e

        self.rows_written += n_rows
        self.row_groups_written += 1
        self.cursor = 0

    def close(self) -> None:
        """Flush pending rows and finalize the file. Safe to call twice."""
        if self.closed:
            return

        self.flush()
        self.state = WriterState.CLOSED
        try:
            self._file_writer.close()
        except (OSError, pa.ArrowException) as e:
            raise OutputWriteError(f"failed closing {self.output_path}: {e}") from e
        finally:
            self._file_writer = None

        logger.info(
            "closed %s: %d rows in %d row groups",
            self.output_path,
            self.rows_written,
            self.row_groups_written,
        )

    def _abort(self) -> None:
        # Row groups already written stay in the file.
        self.state = WriterState.CLOSED
        self.cursor = 0
        try:
            self._file_writer.close()
        except (OSError, pa.ArrowException):
            logger.exception("could not finalize %s after write failure", self.output_path)
        finally:
            self._file_writer = None
