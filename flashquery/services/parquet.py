"""
Parquet decoding for query result files.
"""
import base64
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List

import pyarrow as pa
import pyarrow.parquet as pq

from flashquery.core.exceptions import DownstreamServiceError

# Integers beyond this lose precision as JSON numbers in browsers
MAX_SAFE_INTEGER = 2 ** 53 - 1


def to_json_value(value: Any) -> Any:
    """Convert a decoded cell into a JSON-safe value."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return str(value) if abs(value) > MAX_SAFE_INTEGER else value
    if isinstance(value, float):
        return value if value == value and value not in (float("inf"), float("-inf")) else None
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(value).decode("ascii")
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    return str(value)


def decode_parquet(data: bytes) -> Dict[str, Any]:
    """
    Decode a parquet file into column schema and rows keyed by column name.

    Args:
        data: Raw parquet bytes

    Returns:
        Dict: ``columns`` as ``[{name, type}]`` and ``rows`` as a list of dicts

    Raises:
        DownstreamServiceError: If the bytes are not a readable parquet file
    """
    try:
        table = pq.read_table(pa.BufferReader(data))
    except (pa.ArrowException, OSError, ValueError) as e:
        raise DownstreamServiceError(f"Failed to decode parquet file: {e}", service="parquet") from e

    columns = [{"name": f.name, "type": str(f.type)} for f in table.schema]
    rows: List[Dict[str, Any]] = [
        {name: to_json_value(cell) for name, cell in row.items()}
        for row in table.to_pylist()
    ]

    return {"columns": columns, "rows": rows}
