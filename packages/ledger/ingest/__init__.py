"""CSV ingestion: streaming batch parser and upload limits."""

from .csv_batch import COLUMNS, MAX_MEMO_LENGTH, parse_batch, parse_batch_bytes, partition
from .utils import DEFAULT_MAX_UPLOAD_BYTES, limit_stream

__all__ = [
    "COLUMNS",
    "DEFAULT_MAX_UPLOAD_BYTES",
    "MAX_MEMO_LENGTH",
    "limit_stream",
    "parse_batch",
    "parse_batch_bytes",
    "partition",
]
