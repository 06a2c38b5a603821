"""
odata_writer.core - Connectivity, configuration and errors
==========================================================

- ODataAuth: Authentication configuration (basic or bearer token)
- ODataConfig: Connection and serialization configuration
- ODataSession: HTTP session with retry and CSRF handling that sends written requests
- ConnectionContext: High-level connection manager
- Error taxonomy shared by every writer component

"""

from odata_writer.core.errors import (
    ODataWriterError,
    UnresolvableName,
    UnsupportedConversion,
    UnsupportedSchemaKind,
    WriterStateError,
    ODataUpstreamError,
)

from odata_writer.core.session import (
    ODataAuth,
    ODataConfig,
    ODataSession,
)

from odata_writer.core.connection import ConnectionContext

__all__ = [
    "ODataWriterError",
    "UnresolvableName",
    "UnsupportedConversion",
    "UnsupportedSchemaKind",
    "WriterStateError",
    "ODataUpstreamError",
    "ODataAuth",
    "ODataConfig",
    "ODataSession",
    "ConnectionContext",
]
