"""
odata_writer.odata.metadata - OData $metadata parsing
======================================================

Lightweight CSDL parser that turns an OData v4 ``$metadata`` document into
a ``SchemaCatalog``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple, cast
import xml.etree.ElementTree as ET

from odata_writer.odata.names import NameResolver
from odata_writer.odata.schema import (
    EntitySet,
    NavigationProperty,
    Operation,
    Parameter,
    Property,
    SchemaCatalog,
    SchemaType,
    TypeKind,
)

if TYPE_CHECKING:
    from odata_writer.core.session import ODataSession

logger = logging.getLogger("odata_writer.metadata")

_TYPE_TAGS = {
    "EntityType": TypeKind.ENTITY,
    "ComplexType": TypeKind.COMPLEX,
    "EnumType": TypeKind.ENUM,
}


def _strip_ns(tag: str) -> str:
    """Strip XML namespace from a tag name."""
    return tag.split("}", 1)[-1] if "}" in tag else tag


def _children(node: ET.Element, tag: str) -> List[ET.Element]:
    return [c for c in node if _strip_ns(c.tag) == tag]


def _is_true(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


class _Aliases:
    def __init__(self) -> None:
        self._map: Dict[str, str] = {}

    def add(self, alias: Optional[str], namespace: str) -> None:
        if alias:
            self._map[alias] = namespace

    def expand(self, name: str) -> str:
        if name.startswith("Collection(") and name.endswith(")"):
            return f"Collection({self.expand(name[len('Collection('):-1])})"
        if "." in name:
            head, tail = name.rsplit(".", 1)
            if head in self._map:
                return f"{self._map[head]}.{tail}"
        return name


def parse_metadata(xml_text: str, resolver: Optional[NameResolver] = None) -> SchemaCatalog:
    """
    Parse a CSDL document into a catalog.

    Parameters
    ----------
    xml_text : str
        The ``$metadata`` XML
    resolver : NameResolver, optional
        Name matcher for the resulting catalog

    Returns
    -------
    SchemaCatalog
    """
    root = ET.fromstring(xml_text)
    catalog = SchemaCatalog(resolver)
    aliases = _Aliases()

    schemas = [n for n in root.iter() if _strip_ns(n.tag) == "Schema"]
    for schema in schemas:
        aliases.add(schema.attrib.get("Alias"), schema.attrib.get("Namespace", ""))

    # First pass: declare every named type so references can be resolved
    # regardless of declaration order.
    pending: List[Tuple[SchemaType, ET.Element]] = []
    for schema in schemas:
        namespace = schema.attrib.get("Namespace", "")
        for node in schema:
            kind = _TYPE_TAGS.get(_strip_ns(node.tag))
            name = node.attrib.get("Name")
            if kind is None or not name:
                continue
            t = SchemaType(kind, name, namespace, abstract=_is_true(node.attrib.get("Abstract")))
            if kind == TypeKind.ENUM:
                t.members = [m.attrib["Name"] for m in _children(node, "Member") if m.attrib.get("Name")]
            catalog.add_type(t)
            pending.append((t, node))

    def lookup(type_name: str) -> SchemaType:
        return catalog.get_type(aliases.expand(type_name), fuzzy=False)

    # Second pass: structure
    for t, node in pending:
        base = node.attrib.get("BaseType")
        if base:
            t.base_type = lookup(base)
        for key in _children(node, "Key"):
            t.key = [ref.attrib["Name"] for ref in _children(key, "PropertyRef") if ref.attrib.get("Name")]
        for prop in _children(node, "Property"):
            pname, ptype = prop.attrib.get("Name"), prop.attrib.get("Type")
            if not pname or not ptype:
                continue
            t.properties.append(Property(pname, lookup(ptype), nullable=prop.attrib.get("Nullable") != "false"))
        for nav in _children(node, "NavigationProperty"):
            nname, ntype = nav.attrib.get("Name"), nav.attrib.get("Type")
            if not nname or not ntype:
                continue
            t.navigation_properties.append(NavigationProperty(
                nname,
                lookup(ntype),
                partner=nav.attrib.get("Partner"),
                contains_target=_is_true(nav.attrib.get("ContainsTarget")),
            ))

    for schema in schemas:
        namespace = schema.attrib.get("Namespace", "")
        for node in schema:
            tag = _strip_ns(node.tag)
            if tag not in ("Action", "Function") or not node.attrib.get("Name"):
                continue
            op = Operation(
                node.attrib["Name"],
                namespace,
                is_action=tag == "Action",
                is_bound=_is_true(node.attrib.get("IsBound")),
            )
            for p in _children(node, "Parameter"):
                if p.attrib.get("Name") and p.attrib.get("Type"):
                    op.parameters.append(Parameter(
                        p.attrib["Name"],
                        lookup(p.attrib["Type"]),
                        nullable=p.attrib.get("Nullable") != "false",
                    ))
            for r in _children(node, "ReturnType"):
                if r.attrib.get("Type"):
                    op.return_type = lookup(r.attrib["Type"])
            catalog.add_operation(op)

        for container in _children(schema, "EntityContainer"):
            catalog.container_name = container.attrib.get("Name", "")
            for node in container:
                tag = _strip_ns(node.tag)
                name = node.attrib.get("Name")
                if tag == "EntitySet" and name and node.attrib.get("EntityType"):
                    catalog.add_entity_set(EntitySet(name, lookup(node.attrib["EntityType"])))
                elif tag == "Singleton" and name and node.attrib.get("Type"):
                    catalog.add_entity_set(EntitySet(name, lookup(node.attrib["Type"]), is_singleton=True))

    logger.debug(
        "parsed $metadata: %d types, %d operations, %d container members",
        len(catalog.types), len(catalog.operations), len(catalog.entity_sets),
    )
    return catalog


class ODataMetadata:
    """
    Lazily loaded ``$metadata`` for one service.

    Parameters
    ----------
    sess : ODataSession
        Active OData session
    path : str
        Metadata path relative to the service root
    resolver : NameResolver, optional
        Name matcher for the catalog

    Examples
    --------
    >>> meta = ODataMetadata(sess)
    >>> meta.entity_sets()
    ['Orders', 'Products', ...]
    >>> meta.catalog.get_entity_type("Product")
    SchemaType(Entity, 'Shop.Product')
    """

    def __init__(
        self,
        sess: "ODataSession",
        *,
        path: str = "$metadata",
        resolver: Optional[NameResolver] = None,
    ):
        self.sess = sess
        self.path = path
        self.resolver = resolver
        self._catalog: Optional[SchemaCatalog] = None

    def refresh(self) -> None:
        """
        Fetch and parse $metadata from the service.

        Called automatically on first access to ``catalog``.
        """
        xml_text = self.sess.get_text(self.path)
        self._catalog = parse_metadata(xml_text, self.resolver)

    @property
    def catalog(self) -> SchemaCatalog:
        if self._catalog is None:
            self.refresh()
        return cast(SchemaCatalog, self._catalog)

    def entity_sets(self) -> List[str]:
        """Sorted entity set and singleton names."""
        return sorted(es.name for es in self.catalog.entity_sets)

    def properties(self, entity_set: str) -> List[str]:
        """Structural property names of the type held by an entity set."""
        es = self.catalog.find_entity_set(entity_set)
        return [p.name for p in es.entity_type.structural_properties()] if es else []
