"""
odata_writer.odata.parameters - Action parameter payloads
==========================================================
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from odata_writer.core.errors import UnresolvableName, UnsupportedConversion, UnsupportedSchemaKind
from odata_writer.odata.coercion import TypeCoercer, is_sequence
from odata_writer.odata.entry import EntryBuilder
from odata_writer.odata.schema import Operation, Parameter, SchemaCatalog, TypeKind
from odata_writer.odata.values import ODataCollectionStart, ODataFeed
from odata_writer.odata.writers import ODataParameterWriter

logger = logging.getLogger("odata_writer.parameters")


class ActionParameterWriter:
    """
    Writes the parameter payload of an action invocation.

    Parameters
    ----------
    catalog : SchemaCatalog
        Schema declaring the action
    entry_builder : EntryBuilder
        Builds entity-typed parameter values
    coercer : TypeCoercer, optional
        Converts primitive, complex and collection item values
    """

    def __init__(
        self,
        catalog: SchemaCatalog,
        entry_builder: EntryBuilder,
        coercer: Optional[TypeCoercer] = None,
    ) -> None:
        self.catalog = catalog
        self.entry_builder = entry_builder
        self.coercer = coercer or entry_builder.coercer

    def write_parameters(
        self,
        writer: ODataParameterWriter,
        action: Operation,
        parameters: Mapping[str, Any],
    ) -> None:
        """
        Write start, one item per supplied parameter, end.

        Raises
        ------
        UnresolvableName
            If a supplied name matches no declared parameter
        UnsupportedSchemaKind
            If a parameter has an unrecognized type kind
        """
        writer.write_start()
        for name, value in parameters.items():
            declared = self.catalog.resolver.best_match(action.parameters, name)
            if declared is None:
                raise UnresolvableName(
                    name, action.name,
                    f"Parameter [{name}] not found for action [{action.name}]",
                )
            self.write_parameter(writer, declared, value)
        writer.write_end()

    def write_parameter(self, writer: ODataParameterWriter, parameter: Parameter, value: Any) -> None:
        declared = parameter.type
        kind = declared.kind
        name = parameter.name

        if kind in (TypeKind.PRIMITIVE, TypeKind.COMPLEX, TypeKind.NONE):
            writer.write_value(name, self.coercer.coerce(declared, value))

        elif kind == TypeKind.ENUM:
            writer.write_value(name, None if value is None else self.coercer.enum_value(declared, value))

        elif kind == TypeKind.ENTITY:
            if value is None:
                writer.write_value(name, None)
                return
            with writer.create_entry_writer(name) as entry_writer:
                self.entry_builder.write_entry(entry_writer, declared, value)

        elif kind == TypeKind.COLLECTION:
            element = declared.element_type
            if value is None:
                writer.write_value(name, None)
                return
            if element is None or not is_sequence(value):
                raise UnsupportedConversion(type(value), declared)
            if element.kind == TypeKind.ENTITY:
                with writer.create_feed_writer(name) as feed_writer:
                    feed_writer.write_start(ODataFeed())
                    for item in value:
                        self.entry_builder.write_entry(feed_writer, element, item)
                    feed_writer.write_end()
            else:
                with writer.create_collection_writer(name) as collection_writer:
                    collection_writer.write_start(ODataCollectionStart(name))
                    for item in value:
                        collection_writer.write_item(self.coercer.coerce(element, item))
                    collection_writer.write_end()

        else:
            raise UnsupportedSchemaKind(kind, f"{name}")
