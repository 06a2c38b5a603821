"""
odata_writer.odata.links - Navigation reference links
======================================================

Writes the reference links that bind an entry to related instances,
either by key-based URI or, inside a batch, by ``$<content-id>``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

from odata_writer.core.errors import UnresolvableName
from odata_writer.odata.coercion import TypeCoercer, to_property_bag
from odata_writer.odata.schema import SchemaCatalog, SchemaType
from odata_writer.odata.uri import create_absolute_uri, format_key_literal
from odata_writer.odata.values import (
    RELATED_NAMESPACE,
    ODataEntityReferenceLink,
    ODataNavigationLink,
    ReferenceLink,
)
from odata_writer.odata.writers import ODataWriter

if TYPE_CHECKING:
    from odata_writer.odata.batch import BatchWriter

logger = logging.getLogger("odata_writer.links")


class LinkWriter:
    """
    Emits navigation link sequences for an entry.

    Parameters
    ----------
    catalog : SchemaCatalog
        Schema used to resolve navigation properties, keys and collections
    base_uri : str
        Service root for absolute link URIs
    batch : BatchWriter, optional
        Batch coordinator consulted for content-ids of linked instances
    coercer : TypeCoercer, optional
        Used to coerce key values to their declared types
    """

    def __init__(
        self,
        catalog: SchemaCatalog,
        base_uri: str = "",
        batch: Optional["BatchWriter"] = None,
        coercer: Optional[TypeCoercer] = None,
    ) -> None:
        self.catalog = catalog
        self.base_uri = base_uri
        self.batch = batch
        self.coercer = coercer or TypeCoercer(catalog.resolver)

    def write_link(
        self,
        writer: ODataWriter,
        entity_type: SchemaType,
        link_name: str,
        links: Iterable[ReferenceLink],
    ) -> None:
        """
        Write one navigation link and its reference links.

        Links without link data are skipped.

        Raises
        ------
        UnresolvableName
            If the navigation property, a key property or the target
            collection cannot be resolved
        """
        nav = self.catalog.resolver.resolve(
            entity_type.all_navigation_properties(), link_name, entity_type.full_name
        )
        link_type = nav.entity_type
        key_type = link_type.key_type()

        writer.write_start(ODataNavigationLink(
            name=nav.name,
            is_collection=nav.is_collection,
            url=RELATED_NAMESPACE + link_type.full_name,
        ))
        for link in links:
            if link.link_data is None:
                continue
            writer.write_entity_reference_link(ODataEntityReferenceLink(self.link_uri(link, link_type, key_type)))
        writer.write_end()

    def content_id_for(self, link: ReferenceLink) -> Optional[str]:
        if link.content_id is not None:
            return str(link.content_id)
        if self.batch is not None and link.link_data is not None:
            return self.batch.get_content_id(link.link_data)
        return None

    def key_values(self, link_data: Any, key_type: SchemaType) -> Dict[str, Any]:
        """Declared key values of a linked instance, coerced to their key types."""
        if not key_type.key:
            raise UnresolvableName(key_type.full_name, self.catalog.container_name or "schema",
                                   f"Type [{key_type.full_name}] has no declared key")
        bag = to_property_bag(link_data, key_type)
        props = {p.name: p for p in key_type.structural_properties()}
        values: Dict[str, Any] = {}
        for key_name in key_type.key:
            host_key = self.catalog.resolver.best_match(bag.keys(), key_name, key=lambda k: k)
            if host_key is None:
                raise UnresolvableName(key_name, key_type.full_name)
            value = bag[host_key]
            prop = props.get(key_name)
            values[key_name] = self.coercer.coerce(prop.type, value) if prop is not None else value
        return values

    def link_uri(self, link: ReferenceLink, link_type: SchemaType, key_type: Optional[SchemaType] = None) -> str:
        """
        URI identifying the linked instance.

        ``$<content-id>`` when the instance was created earlier in the
        same batch, otherwise ``<collection><key>`` (no key segment for a
        singleton) made absolute against the base URI.
        """
        content_id = self.content_id_for(link)
        if content_id is not None:
            return "$" + content_id

        key_type = key_type or link_type.key_type()
        collection, is_singleton = self.catalog.get_linked_collection_name(link_type)
        if is_singleton:
            return create_absolute_uri(self.base_uri, collection)
        key = format_key_literal(self.key_values(link.link_data, key_type))
        return create_absolute_uri(self.base_uri, collection + key)
