"""
Sharelog Parquet - BEAM sharelog to Parquet converter

Decodes archived BEAM mining shares and writes them to a columnar Parquet
table with derived difficulty columns for analytics.
"""

from .difficulty import (
    beam_bits_to_difficulty,
    compact_target_to_difficulty,
    set_compact,
)
from .errors import (
    EmptyInputError,
    MalformedPayloadError,
    OutputWriteError,
    SerializationError,
    ShareDecodeError,
    UnsupportedVersionError,
    WriterClosedError,
)
from .models import (
    CURRENT_VERSION,
    ConversionSummary,
    ShareBeam,
    ShareFraming,
    WriterConfig,
)
from .writer import (
    BeamShareLayout,
    ColumnSpec,
    ParquetBatchWriter,
    ShareLayout,
)
from .converter import (
    append_summary_csv,
    convert_sharelog,
    read_sharelog,
    summarize_parquet,
    validate_sharelog,
)

__version__ = "0.1.0"
__all__ = [
    "beam_bits_to_difficulty",
    "compact_target_to_difficulty",
    "set_compact",
    "EmptyInputError",
    "MalformedPayloadError",
    "OutputWriteError",
    "SerializationError",
    "ShareDecodeError",
    "UnsupportedVersionError",
    "WriterClosedError",
    "CURRENT_VERSION",
    "ConversionSummary",
    "ShareBeam",
    "ShareFraming",
    "WriterConfig",
    "BeamShareLayout",
    "ColumnSpec",
    "ParquetBatchWriter",
    "ShareLayout",
    "append_summary_csv",
    "convert_sharelog",
    "read_sharelog",
    "summarize_parquet",
    "validate_sharelog",
]
