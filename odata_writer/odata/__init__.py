"""
odata_writer.odata - Request payload serialization
==================================================

- SchemaCatalog / parse_metadata: service model built from $metadata
- NameResolver: fuzzy matching of host names to schema names
- TypeCoercer: host value to declared type conversion
- RequestWriter: entry, link, function and action request bodies
- BatchWriter: content-ids and multipart/mixed batch rendering

"""

from odata_writer.odata.batch import BatchOperationMessage, BatchWriter
from odata_writer.odata.coercion import CUSTOM_CONVERTERS, CustomConverterRegistry, TypeCoercer
from odata_writer.odata.entry import EntryBuilder, EntryDetails
from odata_writer.odata.links import LinkWriter
from odata_writer.odata.metadata import ODataMetadata, parse_metadata
from odata_writer.odata.names import NameResolver, SimplePluralizer
from odata_writer.odata.parameters import ActionParameterWriter
from odata_writer.odata.request_writer import ODataRequest, RequestWriter, RestVerbs, WriterContext
from odata_writer.odata.schema import SchemaCatalog, SchemaType, TypeKind
from odata_writer.odata.uri import escape_odata_literal
from odata_writer.odata.values import ReferenceLink
from odata_writer.odata.writers import ODataMessageWriter, ODataRequestMessage, WriterSettings

__all__ = [
    "ActionParameterWriter",
    "BatchOperationMessage",
    "BatchWriter",
    "CUSTOM_CONVERTERS",
    "CustomConverterRegistry",
    "EntryBuilder",
    "EntryDetails",
    "LinkWriter",
    "NameResolver",
    "ODataMessageWriter",
    "ODataMetadata",
    "ODataRequest",
    "ODataRequestMessage",
    "ReferenceLink",
    "RequestWriter",
    "RestVerbs",
    "SchemaCatalog",
    "SchemaType",
    "SimplePluralizer",
    "TypeCoercer",
    "TypeKind",
    "WriterContext",
    "WriterSettings",
    "escape_odata_literal",
    "parse_metadata",
]
