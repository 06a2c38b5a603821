"""
odata_writer.odata.uri - URI and literal helpers
=================================================
"""

from __future__ import annotations

import base64
import enum
import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Mapping
from urllib.parse import quote


def escape_odata_literal(value: str) -> str:
    """
    Escape a string value for use in an OData literal.

    Examples
    --------
    >>> escape_odata_literal("O'Brien")
    "O''Brien"
    """
    return value.replace("'", "''")


def format_duration(value: timedelta) -> str:
    """
    Format a timedelta as an ISO 8601 day-time duration.

    Examples
    --------
    >>> format_duration(timedelta(days=1, hours=2, minutes=30))
    'P1DT2H30M'
    """
    total = value.total_seconds()
    sign = "-" if total < 0 else ""
    days, rem = divmod(abs(total), 86400)
    hours, rem = divmod(rem, 3600)
    minutes, seconds = divmod(rem, 60)
    out = f"{sign}P"
    if days:
        out += f"{int(days)}D"
    time_part = ""
    if hours:
        time_part += f"{int(hours)}H"
    if minutes:
        time_part += f"{int(minutes)}M"
    if seconds:
        time_part += f"{seconds:.6f}".rstrip("0").rstrip(".") + "S"
    if time_part:
        out += "T" + time_part
    elif not days:
        out += "T0S"
    return out


def format_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        return value.isoformat() + "Z"
    if value.utcoffset() == timedelta(0):
        return value.astimezone(timezone.utc).replace(tzinfo=None).isoformat() + "Z"
    return value.isoformat()


def format_primitive_text(value: Any) -> str:
    """Text form of a primitive value as used in XML payloads."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value != value:
            return "NaN"
        if value in (float("inf"), float("-inf")):
            return "INF" if value > 0 else "-INF"
        return repr(value)
    if isinstance(value, datetime):
        return format_datetime(value)
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return format_duration(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, enum.Enum):
        return str(value.name)
    return str(value)


def format_uri_literal(value: Any) -> str:
    """
    Format a key value as an OData v4 URI literal.

    Strings are quoted with doubled single quotes and percent-encoded;
    numbers, booleans, GUIDs and temporal values are written bare.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, float):
        return format_primitive_text(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date, time, timedelta)):
        if isinstance(value, timedelta):
            return f"duration'{format_duration(value)}'"
        return quote(format_primitive_text(value), safe=":-.")
    if isinstance(value, (bytes, bytearray)):
        return f"binary'{base64.urlsafe_b64encode(bytes(value)).decode('ascii')}'"
    if isinstance(value, enum.Enum):
        value = value.name
    return "'" + quote(escape_odata_literal(str(value)), safe="'") + "'"


def format_key_literal(key_values: Mapping[str, Any], skip_single_key_name: bool = True) -> str:
    """
    Format key property values as a parenthesized key segment.

    Examples
    --------
    >>> format_key_literal({"Id": 5})
    '(5)'
    >>> format_key_literal({"OrderId": 1, "Line": "A"})
    "(OrderId=1,Line='A')"
    """
    if len(key_values) == 1 and skip_single_key_name:
        return f"({format_uri_literal(next(iter(key_values.values())))})"
    return "(" + ",".join(f"{k}={format_uri_literal(v)}" for k, v in key_values.items()) + ")"


def create_absolute_uri(base_uri: str, relative: str) -> str:
    """Join a service base URI and a relative path."""
    if not base_uri:
        return relative
    if "://" in relative.split("?", 1)[0]:
        return relative
    return base_uri.rstrip("/") + "/" + relative.lstrip("/")
