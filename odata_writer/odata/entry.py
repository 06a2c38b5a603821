"""
odata_writer.odata.entry - Entry building
==========================================

Splits a host property bag into coerced structural properties and
navigation link groups, and writes the result as one entry.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from odata_writer.core.errors import UnresolvableName
from odata_writer.odata.coercion import TypeCoercer, is_sequence, to_property_bag
from odata_writer.odata.links import LinkWriter
from odata_writer.odata.schema import NavigationProperty, SchemaCatalog, SchemaType
from odata_writer.odata.values import ODataEntry, ODataProperty, ReferenceLink
from odata_writer.odata.writers import ODataWriter

logger = logging.getLogger("odata_writer.entry")


@dataclass
class EntryDetails:
    """
    Resolved content of one entry.

    Attributes
    ----------
    properties : list of ODataProperty
        Structural properties with schema names and coerced values
    links : dict
        Navigation property name -> reference links, in payload order
    content_id : str, optional
        Batch content-id assigned to the entry itself
    """
    properties: List[ODataProperty] = field(default_factory=list)
    links: Dict[str, List[ReferenceLink]] = field(default_factory=dict)
    content_id: Optional[str] = None


def _reference_links(value: Any) -> List[ReferenceLink]:
    if value is None:
        return [ReferenceLink()]
    if isinstance(value, ReferenceLink):
        return [value]
    if isinstance(value, Mapping) or not is_sequence(value):
        return [ReferenceLink(value)]
    return [item if isinstance(item, ReferenceLink) else ReferenceLink(item) for item in value]


class EntryBuilder:
    """
    Builds and writes entries for one entity type at a time.

    Parameters
    ----------
    catalog : SchemaCatalog
        Schema to resolve names against
    link_writer : LinkWriter
        Writes navigation link groups
    coercer : TypeCoercer, optional
        Converts host values to declared property types
    """

    def __init__(
        self,
        catalog: SchemaCatalog,
        link_writer: Optional[LinkWriter] = None,
        coercer: Optional[TypeCoercer] = None,
    ) -> None:
        self.catalog = catalog
        self.coercer = coercer or TypeCoercer(catalog.resolver)
        self.link_writer = link_writer or LinkWriter(catalog, coercer=self.coercer)

    def parse_entry_details(
        self,
        entity_type: SchemaType,
        entry_data: Any,
        content_id: Optional[str] = None,
    ) -> EntryDetails:
        """
        Resolve and coerce every key of a property bag.

        Raises
        ------
        UnresolvableName
            If a key matches neither a structural nor a navigation property
        """
        bag = to_property_bag(entry_data, entity_type)
        members = entity_type.structural_properties() + entity_type.all_navigation_properties()
        resolver = self.catalog.resolver

        details = EntryDetails(content_id=content_id)
        for key, value in bag.items():
            member = resolver.best_match(members, key)
            if member is None:
                raise UnresolvableName(key, entity_type.full_name)
            if isinstance(member, NavigationProperty):
                details.links.setdefault(member.name, []).extend(_reference_links(value))
            else:
                details.properties.append(ODataProperty(member.name, self.coercer.coerce(member.type, value)))
        return details

    def create_entry(self, entity_type: SchemaType, entry_data: Any) -> ODataEntry:
        """Entry carrying only the structural properties of a property bag."""
        details = self.parse_entry_details(entity_type, entry_data)
        return ODataEntry(entity_type.full_name, details.properties)

    def write_entry(
        self,
        writer: ODataWriter,
        entity_type: SchemaType,
        entry_data: Any = None,
        details: Optional[EntryDetails] = None,
    ) -> ODataEntry:
        """
        Write start entry, properties, navigation links and end entry.

        Only link groups with at least one link carrying data are written.
        """
        if details is None:
            details = self.parse_entry_details(entity_type, entry_data if entry_data is not None else {})
        entry = ODataEntry(entity_type.full_name, details.properties)

        writer.write_start(entry)
        for name, links in details.links.items():
            if any(link.link_data is not None for link in links):
                self.link_writer.write_link(writer, entity_type, name, links)
        writer.write_end()

        logger.debug("wrote entry %s with %d properties", entry.type_name, len(entry.properties))
        return entry
