"""
odata_writer.odata.formats - Wire format backends
==================================================

Renders the payload tree recorded by the writers:

- JsonFormat: OData JSON (default)
- AtomFormat: legacy Atom/XML, selected with ``payload_format="atom"``

Both implement ``render(kind, payload, settings) -> (bytes, content_type)``
where kind is one of "entry", "feed", "parameters" or "reference".
"""

from __future__ import annotations

import base64
import enum
import io
import json
import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Tuple
import xml.etree.ElementTree as ET

from odata_writer.core.errors import WriterStateError
from odata_writer.odata.uri import (
    create_absolute_uri,
    format_datetime,
    format_duration,
    format_primitive_text,
)
from odata_writer.odata.values import (
    ODATA_NAMESPACE,
    RELATED_NAMESPACE,
    ODataCollectionValue,
    ODataComplexValue,
    ODataEnumValue,
)
from odata_writer.odata.writers import (
    EntryNode,
    FeedNode,
    NavigationLinkNode,
    ParametersNode,
    WriterSettings,
)


class PayloadFormat:
    """Interface for wire format backends."""

    name = ""

    def render(self, kind: str, payload: Any, settings: WriterSettings) -> Tuple[bytes, str]:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def _json_number(value: Decimal) -> Any:
    as_float = float(value)
    if Decimal(repr(as_float)) == value:
        return as_float
    return str(value)


def json_value(value: Any) -> Any:
    """Convert a coerced value to its OData JSON representation."""
    if value is None or isinstance(value, (bool, str, int)):
        return value
    if isinstance(value, float):
        if value != value:
            return "NaN"
        if value in (float("inf"), float("-inf")):
            return "INF" if value > 0 else "-INF"
        return value
    if isinstance(value, Decimal):
        return _json_number(value)
    if isinstance(value, ODataComplexValue):
        return {p.name: json_value(p.value) for p in value.properties}
    if isinstance(value, ODataCollectionValue):
        return [json_value(v) for v in value.items]
    if isinstance(value, ODataEnumValue):
        return value.value
    if isinstance(value, datetime):
        return format_datetime(value)
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return format_duration(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, io.IOBase):
        return base64.b64encode(value.read()).decode("ascii")
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, dict):
        return {str(k): json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_value(v) for v in value]
    return str(value)


class JsonFormat(PayloadFormat):
    name = "json"
    content_type = "application/json;odata.metadata=minimal"

    def entry(self, node: EntryNode) -> Dict[str, Any]:
        out: Dict[str, Any] = {"@odata.type": "#" + node.entry.type_name}
        for prop in node.entry.properties:
            out[prop.name] = json_value(prop.value)
        for nav in node.links:
            self._navigation(out, nav)
        return out

    def _navigation(self, out: Dict[str, Any], nav: NavigationLinkNode) -> None:
        name = nav.link.name
        if nav.references:
            out[f"{name}@odata.bind"] = list(nav.references) if nav.link.is_collection else nav.references[0]
        inline: List[Any] = []
        for item in nav.content:
            if isinstance(item, FeedNode):
                inline.extend(self.entry(e) for e in item.entries)
            else:
                inline.append(self.entry(item))
        if inline:
            out[name] = inline if nav.link.is_collection else inline[0]

    def parameters(self, node: ParametersNode) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for name, kind, payload in node.parameters:
            if kind == "entry":
                out[name] = self.entry(payload)
            elif kind == "feed":
                out[name] = [self.entry(e) for e in payload.entries]
            elif kind == "collection":
                out[name] = [json_value(v) for v in payload]
            else:
                out[name] = json_value(payload)
        return out

    def render(self, kind: str, payload: Any, settings: WriterSettings) -> Tuple[bytes, str]:
        if kind == "entry":
            doc: Any = self.entry(payload)
        elif kind == "feed":
            doc = {"value": [self.entry(e) for e in payload.entries]}
        elif kind == "parameters":
            doc = self.parameters(payload)
        elif kind == "reference":
            doc = {
                "@odata.context": create_absolute_uri(settings.base_uri, "$metadata#$ref"),
                "@odata.id": payload,
            }
        else:
            raise WriterStateError(f"Unknown payload kind {kind!r}")
        if settings.indent:
            text = json.dumps(doc, indent=2)
        else:
            text = json.dumps(doc, separators=(",", ":"))
        return text.encode("utf-8"), self.content_type


# ---------------------------------------------------------------------------
# Atom / XML
# ---------------------------------------------------------------------------

ATOM_NS = "http://www.w3.org/2005/Atom"
DATA_NS = ODATA_NAMESPACE + "data"
METADATA_NS = ODATA_NAMESPACE + "metadata"
SCHEME_NS = ODATA_NAMESPACE + "scheme"

ET.register_namespace("", ATOM_NS)
ET.register_namespace("d", DATA_NS)
ET.register_namespace("m", METADATA_NS)


def _a(tag: str) -> str:
    return f"{{{ATOM_NS}}}{tag}"


def _d(tag: str) -> str:
    return f"{{{DATA_NS}}}{tag}"


def _m(tag: str) -> str:
    return f"{{{METADATA_NS}}}{tag}"


def _edm_type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "Boolean"
    if isinstance(value, int):
        return "Int32" if -(2 ** 31) <= value < 2 ** 31 else "Int64"
    if isinstance(value, Decimal):
        return "Decimal"
    if isinstance(value, float):
        return "Double"
    if isinstance(value, uuid.UUID):
        return "Guid"
    if isinstance(value, datetime):
        return "DateTimeOffset"
    if isinstance(value, date):
        return "Date"
    if isinstance(value, time):
        return "TimeOfDay"
    if isinstance(value, timedelta):
        return "Duration"
    if isinstance(value, (bytes, bytearray, io.IOBase)):
        return "Binary"
    return ""


class AtomFormat(PayloadFormat):
    name = "atom"

    def value(self, elem: ET.Element, value: Any) -> ET.Element:
        if value is None:
            elem.set(_m("null"), "true")
        elif isinstance(value, ODataComplexValue):
            elem.set(_m("type"), "#" + value.type_name)
            for prop in value.properties:
                self.value(ET.SubElement(elem, _d(prop.name)), prop.value)
        elif isinstance(value, ODataCollectionValue):
            elem.set(_m("type"), "#" + value.type_name)
            for item in value.items:
                self.value(ET.SubElement(elem, _m("element")), item)
        elif isinstance(value, ODataEnumValue):
            if value.type_name:
                elem.set(_m("type"), "#" + value.type_name)
            elem.text = value.value
        elif isinstance(value, (list, tuple)):
            for item in value:
                self.value(ET.SubElement(elem, _m("element")), item)
        elif isinstance(value, io.IOBase):
            elem.set(_m("type"), "Binary")
            elem.text = base64.b64encode(value.read()).decode("ascii")
        else:
            type_name = _edm_type_name(value)
            if type_name:
                elem.set(_m("type"), type_name)
            elem.text = format_primitive_text(value)
        return elem

    def entry(self, node: EntryNode, parent: Any = None) -> ET.Element:
        elem = ET.Element(_a("entry")) if parent is None else ET.SubElement(parent, _a("entry"))
        ET.SubElement(elem, _a("category"), {"term": "#" + node.entry.type_name, "scheme": SCHEME_NS})
        ET.SubElement(elem, _a("id"))
        ET.SubElement(elem, _a("title"))
        updated = ET.SubElement(elem, _a("updated"))
        updated.text = format_datetime(datetime.now(timezone.utc).replace(microsecond=0))
        author = ET.SubElement(elem, _a("author"))
        ET.SubElement(author, _a("name"))

        for nav in node.links:
            link_type = "application/atom+xml;type=" + ("feed" if nav.link.is_collection else "entry")
            rel = RELATED_NAMESPACE + nav.link.name
            for href in nav.references:
                ET.SubElement(elem, _a("link"), {"rel": rel, "type": link_type, "title": nav.link.name, "href": href})
            if nav.content:
                link = ET.SubElement(elem, _a("link"), {"rel": rel, "type": link_type, "title": nav.link.name})
                inline = ET.SubElement(link, _m("inline"))
                for item in nav.content:
                    if isinstance(item, FeedNode):
                        self.feed(item, inline)
                    else:
                        self.entry(item, inline)

        content = ET.SubElement(elem, _a("content"), {"type": "application/xml"})
        props = ET.SubElement(content, _m("properties"))
        for prop in node.entry.properties:
            self.value(ET.SubElement(props, _d(prop.name)), prop.value)
        return elem

    def feed(self, node: FeedNode, parent: Any = None) -> ET.Element:
        elem = ET.Element(_a("feed")) if parent is None else ET.SubElement(parent, _a("feed"))
        for entry in node.entries:
            self.entry(entry, elem)
        return elem

    def parameters(self, node: ParametersNode) -> ET.Element:
        root = ET.Element(_m("parameters"))
        for name, kind, payload in node.parameters:
            elem = ET.SubElement(root, _m(name))
            if kind == "entry":
                self.entry(payload, elem)
            elif kind == "feed":
                self.feed(payload, elem)
            elif kind == "collection":
                for item in payload:
                    self.value(ET.SubElement(elem, _m("element")), item)
            else:
                self.value(elem, payload)
        return root

    def render(self, kind: str, payload: Any, settings: WriterSettings) -> Tuple[bytes, str]:
        if kind == "entry":
            root = self.entry(payload)
            content_type = "application/atom+xml;type=entry"
        elif kind == "feed":
            root = self.feed(payload)
            content_type = "application/atom+xml;type=feed"
        elif kind == "parameters":
            root = self.parameters(payload)
            content_type = "application/xml"
        elif kind == "reference":
            root = ET.Element(_m("ref"), {"id": payload})
            content_type = "application/xml"
        else:
            raise WriterStateError(f"Unknown payload kind {kind!r}")
        if settings.indent:
            ET.indent(root)
        return ET.tostring(root, encoding="utf-8", xml_declaration=True), content_type


_FORMATS = {
    "json": JsonFormat,
    "atom": AtomFormat,
}


def get_format(name: str) -> PayloadFormat:
    """
    Look up a payload format by name.

    Raises
    ------
    ValueError
        If the name is not "json" or "atom"
    """
    try:
        return _FORMATS[(name or "json").lower()]()
    except KeyError:
        raise ValueError(f"payload_format must be one of {sorted(_FORMATS)}, got {name!r}") from None
