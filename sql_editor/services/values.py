"""Driver value normalisation: every stored cell must survive JSON and CSV output."""
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

# Types pydantic and the csv module already render faithfully
_PASSTHROUGH = (str, int, float, Decimal, datetime, date, time, timedelta, UUID)


def normalize_value(value: Any) -> Any:
    """Map a raw asyncpg value onto something JSON-encodable.

    bytea comes back as PostgreSQL's hex text (``\\x...``). Ranges, records,
    network addresses and other driver types fall back to their ``str()`` text.
    """
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, _PASSTHROUGH):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    if isinstance(value, dict):
        return {str(k): normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value]
    return str(value)
