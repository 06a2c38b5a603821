"""
OData Request Writer (odata_writer)
===================================

Serializes loosely-typed host data into OData v4 request payloads:
entries, navigation reference links, action parameters and ``$ref``
bodies, standalone or inside a ``$batch``.

Usage
-----
>>> from odata_writer import ConnectionContext
>>>
>>> with ConnectionContext() as conn:
...     writer = conn.request_writer()
...     request = writer.create_insert_request("Products", {"Name": "Widget", "Price": 9.99})
...     conn.session.send(request)

Subpackages
-----------
- odata_writer.core: Session, configuration, connection and errors
- odata_writer.odata: Schema catalog, coercion and payload writers
- odata_writer.api: Optional FastAPI payload preview gateway

"""

__version__ = "0.1.0"

# Core exports - available at package root
from odata_writer.core.errors import (
    ODataWriterError,
    UnresolvableName,
    UnsupportedConversion,
    UnsupportedSchemaKind,
    WriterStateError,
    ODataUpstreamError,
)
from odata_writer.core.session import ODataAuth, ODataConfig, ODataSession
from odata_writer.core.connection import ConnectionContext

# Convenience re-exports
from odata_writer.odata import (
    BatchWriter,
    ODataMetadata,
    ODataRequest,
    ReferenceLink,
    RequestWriter,
    SchemaCatalog,
    WriterSettings,
    parse_metadata,
)

__all__ = [
    # Version
    "__version__",
    # Errors
    "ODataWriterError",
    "UnresolvableName",
    "UnsupportedConversion",
    "UnsupportedSchemaKind",
    "WriterStateError",
    "ODataUpstreamError",
    # Core
    "ODataAuth",
    "ODataConfig",
    "ODataSession",
    "ConnectionContext",
    # OData
    "BatchWriter",
    "ODataMetadata",
    "ODataRequest",
    "ReferenceLink",
    "RequestWriter",
    "SchemaCatalog",
    "WriterSettings",
    "parse_metadata",
]
