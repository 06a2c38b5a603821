"""
odata_writer.odata.coercion - Host value to schema type coercion
=================================================================

Converts loosely-typed host values into values that match a declared
schema type:

- primitives through a fixed host-type table
- complex values property by property
- collections element by element
- enums through their string form
- anything else through the custom converter registry
"""

from __future__ import annotations

import dataclasses
import enum
import io
import logging
import math
import re
import uuid
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel

from odata_writer.core.errors import UnsupportedConversion, UnsupportedSchemaKind
from odata_writer.odata.names import NameResolver
from odata_writer.odata.schema import PrimitiveKind, SchemaType, TypeKind
from odata_writer.odata.values import (
    ODataCollectionValue,
    ODataComplexValue,
    ODataEnumValue,
    ODataProperty,
)

logger = logging.getLogger("odata_writer.coercion")

P = PrimitiveKind

# Host types accepted for each primitive kind, in the order conversions are
# attempted. A kind with no entry (geography, geometry) passes values through.
PRIMITIVE_TYPE_MAP: Tuple[Tuple[type, PrimitiveKind], ...] = (
    (str, P.STRING),
    (bool, P.BOOLEAN),
    (int, P.BYTE),
    (int, P.SBYTE),
    (int, P.INT16),
    (int, P.INT32),
    (int, P.INT64),
    (Decimal, P.DECIMAL),
    (float, P.DOUBLE),
    (float, P.SINGLE),
    (uuid.UUID, P.GUID),
    (bytes, P.BINARY),
    (io.IOBase, P.STREAM),
    (datetime, P.DATE_TIME_OFFSET),
    (date, P.DATE),
    (time, P.TIME_OF_DAY),
    (timedelta, P.DURATION),
)


def _index_by_kind() -> "MappingProxyType[PrimitiveKind, Tuple[type, ...]]":
    by_kind: Dict[PrimitiveKind, List[type]] = {}
    for host_type, kind in PRIMITIVE_TYPE_MAP:
        by_kind.setdefault(kind, []).append(host_type)
    return MappingProxyType({k: tuple(v) for k, v in by_kind.items()})


_CANDIDATES = _index_by_kind()

_INT_RANGES = {
    P.BYTE: (0, 255),
    P.SBYTE: (-128, 127),
    P.INT16: (-(2 ** 15), 2 ** 15 - 1),
    P.INT32: (-(2 ** 31), 2 ** 31 - 1),
    P.INT64: (-(2 ** 63), 2 ** 63 - 1),
}
_SINGLE_MAX = 3.4028234663852886e38

_SCALARS = (str, int, float, Decimal, uuid.UUID, date, time, timedelta, enum.Enum)

_DURATION_RE = re.compile(
    r"^(?P<sign>-)?P(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


def candidate_types(kind: PrimitiveKind) -> Tuple[type, ...]:
    """Host types mapped to a primitive kind, in table order."""
    return _CANDIDATES.get(kind, ())


def parse_duration(text: str) -> timedelta:
    """Parse an ISO 8601 day-time duration such as ``P1DT2H30M``."""
    m = _DURATION_RE.match(text.strip())
    if not m or text.strip() in ("P", "-P", "PT", "-PT"):
        raise ValueError(f"invalid duration: {text!r}")
    delta = timedelta(
        days=float(m.group("days") or 0),
        hours=float(m.group("hours") or 0),
        minutes=float(m.group("minutes") or 0),
        seconds=float(m.group("seconds") or 0),
    )
    return -delta if m.group("sign") else delta


def _parse_datetime(text: str) -> datetime:
    text = text.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _is_acceptable(value: Any, host_type: type, kind: PrimitiveKind) -> bool:
    if not isinstance(value, host_type):
        return False
    if host_type is int and isinstance(value, bool):
        return False
    if host_type is date and isinstance(value, datetime):
        return False
    if kind in _INT_RANGES:
        low, high = _INT_RANGES[kind]
        return low <= value <= high
    if kind == P.SINGLE:
        return abs(value) <= _SINGLE_MAX or math.isinf(value) or math.isnan(value)
    return True


def _to_str(value: Any) -> str:
    if isinstance(value, enum.Enum):
        return str(value.name)
    if isinstance(value, _SCALARS):
        return str(value)
    raise TypeError(type(value).__name__)


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        raise ValueError(value)
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    raise TypeError(type(value).__name__)


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        if value != value or value in (float("inf"), float("-inf")) or value != int(value):
            raise ValueError(value)
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError(type(value).__name__)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise TypeError("bool")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        return Decimal(value.strip())
    raise TypeError(type(value).__name__)


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("bool")
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise TypeError(type(value).__name__)


def _to_uuid(value: Any) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, str):
        return uuid.UUID(value.strip())
    if isinstance(value, (bytes, bytearray)) and len(value) == 16:
        return uuid.UUID(bytes=bytes(value))
    raise TypeError(type(value).__name__)


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError(type(value).__name__)


def _to_stream(value: Any) -> io.IOBase:
    if isinstance(value, (bytes, bytearray)):
        return io.BytesIO(bytes(value))
    raise TypeError(type(value).__name__)


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        return _parse_datetime(value)
    raise TypeError(type(value).__name__)


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip())
    raise TypeError(type(value).__name__)


def _to_time(value: Any) -> time:
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        return time.fromisoformat(value.strip())
    raise TypeError(type(value).__name__)


def _to_timedelta(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise TypeError("bool")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if isinstance(value, str):
        return parse_duration(value)
    raise TypeError(type(value).__name__)


_CONVERTERS: "MappingProxyType[type, Callable[[Any], Any]]" = MappingProxyType({
    str: _to_str,
    bool: _to_bool,
    int: _to_int,
    Decimal: _to_decimal,
    float: _to_float,
    uuid.UUID: _to_uuid,
    bytes: _to_bytes,
    io.IOBase: _to_stream,
    datetime: _to_datetime,
    date: _to_date,
    time: _to_time,
    timedelta: _to_timedelta,
})


def convert_primitive(value: Any, declared_type: SchemaType) -> Any:
    """
    Convert a host value to the primitive kind of ``declared_type``.

    Raises
    ------
    UnsupportedConversion
        If no candidate host type accepts the value
    """
    kind = declared_type.primitive_kind
    candidates = candidate_types(kind) if kind is not None else ()
    if not candidates:
        return value

    for host_type in candidates:
        if _is_acceptable(value, host_type, kind):
            return value

    for host_type in candidates:
        try:
            converted = _CONVERTERS[host_type](value)
        except (TypeError, ValueError, ArithmeticError, InvalidOperation):
            continue
        if _is_acceptable(converted, host_type, kind):
            return converted

    raise UnsupportedConversion(type(value), declared_type)


def to_property_bag(value: Any, declared_type: Any = "property bag") -> Dict[str, Any]:
    """
    Read a host object as a name -> value mapping.

    Accepts mappings, pydantic models, dataclass instances and plain
    objects with public attributes.
    """
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, BaseModel):
        return {name: getattr(value, name) for name in type(value).model_fields}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    if hasattr(value, "__dict__") and not isinstance(value, type):
        return {k: v for k, v in vars(value).items() if not k.startswith("_")}
    raise UnsupportedConversion(type(value), declared_type)


def is_sequence(value: Any) -> bool:
    return isinstance(value, Iterable) and not isinstance(value, (str, bytes, bytearray, Mapping))


class CustomConverterRegistry:
    """
    Converters for host types that fall outside the primitive table.

    Keyed by runtime type; lookups walk the value's MRO so a converter
    registered for a base class also serves subclasses. Register at
    startup.

    Examples
    --------
    >>> registry = CustomConverterRegistry()
    >>> registry.register(Point, lambda p: {"type": "Point", "coordinates": [p.x, p.y]})
    >>> registry.convert(Point(1, 2))
    {'type': 'Point', 'coordinates': [1, 2]}
    """

    def __init__(self) -> None:
        self._converters: Dict[type, Callable[[Any], Any]] = {}

    def register(self, host_type: type, converter: Callable[[Any], Any]) -> None:
        self._converters[host_type] = converter

    def unregister(self, host_type: type) -> None:
        self._converters.pop(host_type, None)

    def find(self, host_type: type) -> Optional[Callable[[Any], Any]]:
        for klass in getattr(host_type, "__mro__", (host_type,)):
            converter = self._converters.get(klass)
            if converter is not None:
                return converter
        return None

    def has_converter(self, host_type: type) -> bool:
        return self.find(host_type) is not None

    def convert(self, value: Any, declared_type: Any = "None") -> Any:
        converter = self.find(type(value))
        if converter is None:
            raise UnsupportedConversion(type(value), declared_type)
        return converter(value)


# Process-wide default registry
CUSTOM_CONVERTERS = CustomConverterRegistry()


class TypeCoercer:
    """
    Recursive host value to schema value converter.

    Parameters
    ----------
    resolver : NameResolver, optional
        Used to match host keys to declared complex properties
    converters : CustomConverterRegistry, optional
        Registry for values of untyped (None kind) schema elements;
        defaults to the process-wide CUSTOM_CONVERTERS
    """

    def __init__(
        self,
        resolver: Optional[NameResolver] = None,
        converters: Optional[CustomConverterRegistry] = None,
    ) -> None:
        self.resolver = resolver or NameResolver()
        self.converters = converters if converters is not None else CUSTOM_CONVERTERS

    def coerce(self, declared_type: SchemaType, value: Any) -> Any:
        """
        Convert ``value`` to match ``declared_type``.

        Raises
        ------
        UnsupportedConversion
            If the value has no mapping to the declared type
        UnsupportedSchemaKind
            If the declared type reports an unknown kind
        """
        return self._coerce(declared_type, value, nested=False)

    def _coerce(self, declared_type: SchemaType, value: Any, nested: bool) -> Any:
        if value is None:
            return None

        kind = declared_type.kind
        if kind == TypeKind.COMPLEX:
            return self._structured(declared_type, value)
        if kind == TypeKind.COLLECTION:
            if not is_sequence(value) or declared_type.element_type is None:
                raise UnsupportedConversion(type(value), declared_type)
            element = declared_type.element_type
            return ODataCollectionValue(
                declared_type.full_name,
                [self._coerce(element, item, nested=True) for item in value],
            )
        if kind == TypeKind.PRIMITIVE:
            return convert_primitive(value, declared_type)
        if kind == TypeKind.ENUM:
            return self.enum_value(declared_type, value)
        if kind == TypeKind.NONE:
            return self.converters.convert(value, declared_type)
        if kind == TypeKind.ENTITY:
            if not nested:
                raise UnsupportedConversion(type(value), declared_type)
            return self._structured(declared_type, value)
        raise UnsupportedSchemaKind(kind, declared_type.full_name)

    def enum_value(self, declared_type: Optional[SchemaType], value: Any) -> ODataEnumValue:
        text = value.name if isinstance(value, enum.Enum) else str(value)
        return ODataEnumValue(text, declared_type.full_name if declared_type is not None else None)

    def _structured(self, declared_type: SchemaType, value: Any) -> ODataComplexValue:
        bag = to_property_bag(value, declared_type)
        keys = list(bag.keys())
        props: List[ODataProperty] = []
        for prop in declared_type.structural_properties():
            host_key = self.resolver.best_match(keys, prop.name, key=lambda k: k)
            if host_key is None:
                continue
            props.append(ODataProperty(prop.name, self._coerce(prop.type, bag[host_key], nested=True)))
        dropped = len(keys) - len(props)
        if dropped > 0:
            logger.debug("dropped %d undeclared key(s) writing %s", dropped, declared_type.full_name)
        return ODataComplexValue(declared_type.full_name, props)
