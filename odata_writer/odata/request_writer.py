"""
odata_writer.odata.request_writer - Request body orchestration
===============================================================

Entry point for writing request bodies. Dispatches by operation kind
(entry, link, function, action), chooses between a standalone message
and a batch sub-message, and assembles ``ODataRequest`` objects with the
headers each verb needs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Dict, Mapping, Optional, Union

from odata_writer.odata.batch import BatchOperationMessage, BatchWriter
from odata_writer.odata.coercion import CustomConverterRegistry, TypeCoercer, to_property_bag
from odata_writer.odata.entry import EntryBuilder
from odata_writer.odata.links import LinkWriter
from odata_writer.odata.parameters import ActionParameterWriter
from odata_writer.odata.schema import SchemaCatalog, narrow_entity_type
from odata_writer.odata.uri import create_absolute_uri
from odata_writer.odata.values import ODataEntityReferenceLink
from odata_writer.odata.writers import ODataMessageWriter, ODataRequestMessage, WriterSettings

logger = logging.getLogger("odata_writer.request")

Message = Union[ODataRequestMessage, BatchOperationMessage]


class RestVerbs:
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


PREFER = "Prefer"
RETURN_REPRESENTATION = "return=representation"
RETURN_MINIMAL = "return=minimal"

_BODYLESS = frozenset({RestVerbs.GET, RestVerbs.DELETE})
_MUTATING = frozenset({RestVerbs.POST, RestVerbs.PUT, RestVerbs.PATCH})


@dataclass(frozen=True)
class WriterContext:
    """Immutable parameters of one write."""
    verb: str
    is_batch: bool = False
    result_required: bool = False
    base_uri: str = ""


@dataclass
class ODataRequest:
    """
    A fully assembled request, ready for a transport.

    In batch mode ``body`` is None and ``batch_message`` points at the
    sub-message holding the operation.
    """
    method: str
    uri: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    result_required: bool = False
    batch_message: Optional[BatchOperationMessage] = None


def prefer_header(method: str, result_required: bool) -> Optional[str]:
    """Prefer header value for a verb, or None when the verb takes none."""
    if method.upper() not in _MUTATING:
        return None
    return RETURN_REPRESENTATION if result_required else RETURN_MINIMAL


class RequestWriter:
    """
    Writes request bodies against a schema catalog.

    Parameters
    ----------
    catalog : SchemaCatalog
        Schema of the target service
    base_uri : str
        Service root URI
    settings : WriterSettings, optional
        Payload format and indentation; base_uri is filled in
    batch : BatchWriter, optional
        When given, every write goes into a sub-message of this batch and
        no standalone stream is returned
    converters : CustomConverterRegistry, optional
        Converters for untyped schema elements

    Examples
    --------
    >>> writer = RequestWriter(
    ...     catalog,
    ...     base_uri="https://host/service/",
    ...     settings=WriterSettings(indent=False),
    ... )
    >>> stream = writer.write_entry_content(
    ...     "POST", "Products", "Products", {"Name": "Widget", "Price": 9.99}
    ... )
    >>> stream.read()
    b'{"@odata.type":"#Shop.Product","Name":"Widget","Price":9.99}'
    """

    def __init__(
        self,
        catalog: SchemaCatalog,
        *,
        base_uri: str = "",
        settings: Optional[WriterSettings] = None,
        batch: Optional[BatchWriter] = None,
        converters: Optional[CustomConverterRegistry] = None,
    ) -> None:
        self.catalog = catalog
        self.base_uri = base_uri
        self.settings = settings or WriterSettings()
        if not self.settings.base_uri:
            self.settings.base_uri = base_uri
        self.batch = batch
        self.coercer = TypeCoercer(catalog.resolver, converters)
        self.link_writer = LinkWriter(catalog, base_uri, batch, self.coercer)
        self.entry_builder = EntryBuilder(catalog, self.link_writer, self.coercer)
        self.parameter_writer = ActionParameterWriter(catalog, self.entry_builder, self.coercer)

    @property
    def is_batch(self) -> bool:
        return self.batch is not None

    # ---------------- message targets ----------------

    def _context(self, method: str, result_required: bool) -> WriterContext:
        return WriterContext(method.upper(), self.is_batch, result_required, self.base_uri)

    def _create_message(
        self,
        ctx: WriterContext,
        command_text: str,
        collection: Optional[str] = None,
        entry_data: Any = None,
    ) -> Message:
        if self.batch is not None:
            message: Message = self.batch.create_operation_message(
                command_text, ctx.verb, collection, entry_data, ctx.result_required
            )
        else:
            message = ODataRequestMessage(ctx.verb, create_absolute_uri(ctx.base_uri, command_text))
        prefer = prefer_header(ctx.verb, ctx.result_required)
        if prefer:
            message.set_header(PREFER, prefer)
        return message

    def _result(self, ctx: WriterContext, message: Message) -> Optional[BytesIO]:
        if ctx.is_batch:
            return None
        return message.get_stream()  # type: ignore[union-attr]

    # ---------------- body writers ----------------

    def _write_entry(
        self,
        method: str,
        collection: str,
        command_text: str,
        entry_data: Any,
        result_required: bool,
    ) -> Message:
        ctx = self._context(method, result_required)
        message = self._create_message(ctx, command_text, collection, entry_data)
        logger.debug("write entry %s %s batch=%s", ctx.verb, command_text, ctx.is_batch)

        if ctx.verb in _BODYLESS:
            return message

        with ODataMessageWriter(message, self.settings) as message_writer:
            _, entity_type = self.catalog.navigate_to_collection(collection)
            bag = to_property_bag(entry_data if entry_data is not None else {}, entity_type)
            if ctx.verb == RestVerbs.PATCH:
                entity_type = narrow_entity_type(entity_type, bag.keys(), self.catalog.resolver)

            content_id = self.batch.get_content_id(entry_data) if self.batch is not None else None
            details = self.entry_builder.parse_entry_details(entity_type, bag, content_id)
            with message_writer.create_entry_writer() as entry_writer:
                self.entry_builder.write_entry(entry_writer, entity_type, details=details)
        return message

    def write_entry_content(
        self,
        method: str,
        collection: str,
        command_text: str,
        entry_data: Any,
        result_required: bool = False,
    ) -> Optional[BytesIO]:
        """
        Write an entry body for a create or update.

        Parameters
        ----------
        method : str
            HTTP verb; GET and DELETE produce no body
        collection : str
            Entity set (or path) whose type declares the entry
        command_text : str
            Pre-built request path
        entry_data : mapping or object
            Property bag of the entity
        result_required : bool
            Whether the caller needs the resulting entity back

        Returns
        -------
        BytesIO or None
            The body stream, or None for bodyless verbs and batch mode
        """
        message = self._write_entry(method, collection, command_text, entry_data, result_required)
        if method.upper() in _BODYLESS:
            return None
        return self._result(self._context(method, result_required), message)

    def _write_link(self, method: str, command_text: str, link_ident: str) -> Message:
        ctx = self._context(method, False)
        message = self._create_message(ctx, command_text)
        with ODataMessageWriter(message, self.settings) as message_writer:
            message_writer.write_entity_reference_link(
                ODataEntityReferenceLink(create_absolute_uri(ctx.base_uri, link_ident))
            )
        return message

    def write_link_content(self, method: str, command_text: str, link_ident: str) -> Optional[BytesIO]:
        """Write a ``$ref`` body pointing at ``link_ident``."""
        message = self._write_link(method, command_text, link_ident)
        return self._result(self._context(method, False), message)

    def write_function_content(self, method: str, command_text: str) -> Optional[BytesIO]:
        """Functions carry no body; in batch mode the call is registered as a sub-message."""
        ctx = self._context(method, True)
        if ctx.is_batch:
            self._create_message(ctx, command_text)
        return None

    def _write_action(
        self,
        method: str,
        command_text: str,
        action_name: str,
        parameters: Mapping[str, Any],
        result_required: bool = True,
    ) -> Message:
        ctx = self._context(method, result_required)
        message = self._create_message(ctx, command_text)
        with ODataMessageWriter(message, self.settings) as message_writer:
            action = self.catalog.get_action(action_name)
            with message_writer.create_parameter_writer() as parameter_writer:
                self.parameter_writer.write_parameters(parameter_writer, action, parameters or {})
        return message

    def write_action_content(
        self,
        method: str,
        command_text: str,
        action_name: str,
        parameters: Mapping[str, Any],
    ) -> Optional[BytesIO]:
        """Write the parameter body of an action invocation."""
        message = self._write_action(method, command_text, action_name, parameters)
        return self._result(self._context(method, True), message)

    # ---------------- request assembly ----------------

    def format_link_path(self, entry_ident: str, navigation_property_name: str, link_ident: Optional[str] = None) -> str:
        if link_ident is None:
            return f"{entry_ident}/{navigation_property_name}/$ref"
        return f"{entry_ident}/{navigation_property_name}/$ref?$id={link_ident}"

    def assign_headers(self, request: ODataRequest) -> None:
        prefer = prefer_header(request.method, request.result_required)
        if prefer:
            request.headers[PREFER] = prefer

    def _request(
        self,
        method: str,
        command_text: str,
        message: Optional[Message],
        result_required: bool = False,
    ) -> ODataRequest:
        request = ODataRequest(
            method=method.upper(),
            uri=create_absolute_uri(self.base_uri, command_text),
            result_required=result_required,
        )
        if isinstance(message, BatchOperationMessage):
            request.batch_message = message
        elif message is not None:
            request.body = message.get_stream().getvalue() or None
            if request.body is not None and "Content-Type" in message.headers:
                request.headers["Content-Type"] = message.headers["Content-Type"]
        self.assign_headers(request)
        return request

    def create_insert_request(
        self,
        collection: str,
        entry_data: Any,
        *,
        command_text: Optional[str] = None,
        result_required: bool = True,
    ) -> ODataRequest:
        command_text = command_text or collection
        message = self._write_entry(RestVerbs.POST, collection, command_text, entry_data, result_required)
        return self._request(RestVerbs.POST, command_text, message, result_required)

    def create_update_request(
        self,
        collection: str,
        entry_ident: str,
        entry_data: Any,
        *,
        merge: bool = True,
        result_required: bool = False,
    ) -> ODataRequest:
        method = RestVerbs.PATCH if merge else RestVerbs.PUT
        message = self._write_entry(method, collection, entry_ident, entry_data, result_required)
        return self._request(method, entry_ident, message, result_required)

    def create_delete_request(self, collection: str, entry_ident: str) -> ODataRequest:
        message = self._write_entry(RestVerbs.DELETE, collection, entry_ident, None, False)
        return self._request(RestVerbs.DELETE, entry_ident, message)

    def _navigation(self, collection: str, link_name: str):
        _, entity_type = self.catalog.navigate_to_collection(collection)
        return self.catalog.resolver.resolve(
            entity_type.all_navigation_properties(), link_name, entity_type.full_name
        )

    def create_link_request(
        self,
        collection: str,
        link_name: str,
        entry_ident: str,
        link_ident: str,
    ) -> ODataRequest:
        """Add a relationship: POST for collection-valued links, PUT for single-valued ones."""
        nav = self._navigation(collection, link_name)
        method = RestVerbs.POST if nav.is_collection else RestVerbs.PUT
        command_text = self.format_link_path(entry_ident, nav.name)
        message = self._write_link(method, command_text, link_ident)
        return self._request(method, command_text, message)

    def create_unlink_request(
        self,
        collection: str,
        link_name: str,
        entry_ident: str,
        link_ident: Optional[str] = None,
    ) -> ODataRequest:
        """Remove a relationship; collection-valued links name the target with ``$id``."""
        nav = self._navigation(collection, link_name)
        target = None
        if nav.is_collection and link_ident is not None:
            target = create_absolute_uri(self.base_uri, link_ident)
        command_text = self.format_link_path(entry_ident, nav.name, target)
        message: Optional[Message] = None
        if self.batch is not None:
            message = self._create_message(self._context(RestVerbs.DELETE, False), command_text)
        return self._request(RestVerbs.DELETE, command_text, message)

    def create_function_request(self, command_text: str) -> ODataRequest:
        message: Optional[Message] = None
        if self.batch is not None:
            message = self._create_message(self._context(RestVerbs.GET, True), command_text)
        return self._request(RestVerbs.GET, command_text, message, True)

    def create_action_request(
        self,
        command_text: str,
        action_name: str,
        parameters: Optional[Mapping[str, Any]] = None,
        *,
        result_required: bool = True,
    ) -> ODataRequest:
        message = self._write_action(RestVerbs.POST, command_text, action_name, parameters or {}, result_required)
        return self._request(RestVerbs.POST, command_text, message, result_required)
