"""
odata_writer.core.errors - Exception taxonomy
==============================================

Errors raised while turning host data into OData request payloads.

All of them are local to one write: they surface synchronously to the
caller and are never retried by the writer itself.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ODataWriterError(RuntimeError):
    """Base class for every error raised by odata_writer."""


class UnresolvableName(ODataWriterError):
    """
    A property, parameter, navigation or schema element name has no match,
    or several equally good matches, in the schema.

    Attributes
    ----------
    name : str
        The host-supplied identifier that could not be resolved
    container : str
        Name of the type, action or catalog that was searched
    """

    def __init__(self, name: str, container: Optional[str] = None, message: Optional[str] = None):
        self.name = name
        self.container = container or ""
        if message is None:
            if container:
                message = f"Name [{name}] not found in [{container}]"
            else:
                message = f"Name [{name}] not found"
        super().__init__(message)


class UnsupportedConversion(ODataWriterError):
    """
    A host value cannot be converted to its declared schema type.

    Attributes
    ----------
    host_type : type
        Runtime type of the offending value
    declared_type : str
        Name of the schema type it was written against
    """

    def __init__(self, host_type: type, declared_type: Any):
        self.host_type = host_type
        self.declared_type = str(declared_type)
        type_name = getattr(host_type, "__name__", str(host_type))
        super().__init__(
            f"Conversion is not supported from type {type_name} to OData type {self.declared_type}"
        )


class UnsupportedSchemaKind(ODataWriterError):
    """A schema element reports a kind the writer does not recognize."""

    def __init__(self, kind: Any, subject: Optional[str] = None):
        self.kind = kind
        self.subject = subject or ""
        where = f" for [{subject}]" if subject else ""
        super().__init__(f"Unsupported schema type kind {kind!r}{where}")


class WriterStateError(ODataWriterError):
    """The start/end writer protocol was used out of order."""


class ODataUpstreamError(ODataWriterError):
    """
    Exception raised when the OData service returns an error.

    Attributes
    ----------
    status : int
        HTTP status code
    body : str
        Response body (truncated for display)
    url : str
        The URL that was called
    headers : dict
        Response headers
    """

    def __init__(
        self,
        status: int,
        body: str,
        url: str,
        headers: Optional[Dict[str, str]] = None
    ):
        snippet = (body or "")[:1200]
        super().__init__(f"OData upstream error {status} for {url}: {snippet}")
        self.status = status
        self.body = body or ""
        self.url = url
        self.headers = headers or {}
