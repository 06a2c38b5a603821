"""
odata_writer.odata.writers - Scoped start/end payload writers
==============================================================

Backend-independent writers that drive the nested start/content/end
protocol for entries, feeds, navigation links, parameters and
collections.

Writers record a tree of payload items; nothing reaches the target
message until the outermost ``ODataMessageWriter`` scope exits cleanly,
at which point the configured format renders the tree in one piece. A
failure in any scope discards it, so no partially written body is ever
flushed.

Usage
-----
>>> with ODataMessageWriter(message, settings) as mw:
...     with mw.create_entry_writer() as w:
...         w.write_start(ODataEntry("Shop.Product", [ODataProperty("Id", 1)]))
...         w.write_end()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple, Union

from odata_writer.core.errors import WriterStateError
from odata_writer.odata.values import (
    ODataCollectionStart,
    ODataEntityReferenceLink,
    ODataEntry,
    ODataFeed,
    ODataNavigationLink,
)

if TYPE_CHECKING:
    from odata_writer.odata.formats import PayloadFormat

logger = logging.getLogger("odata_writer.writers")


# ---------------- payload tree ----------------

@dataclass
class EntryNode:
    entry: ODataEntry
    links: List["NavigationLinkNode"] = field(default_factory=list)


@dataclass
class FeedNode:
    entries: List[EntryNode] = field(default_factory=list)


@dataclass
class NavigationLinkNode:
    link: ODataNavigationLink
    references: List[str] = field(default_factory=list)
    content: List[Union[EntryNode, FeedNode]] = field(default_factory=list)


@dataclass
class ParametersNode:
    # (name, kind, payload) with kind in {"value", "entry", "feed", "collection"}
    parameters: List[Tuple[str, str, Any]] = field(default_factory=list)


@dataclass
class WriterSettings:
    """
    Per-message writer options.

    Attributes
    ----------
    base_uri : str
        Service root used to build absolute link URIs
    payload_format : str
        "json" (default) or "atom"
    indent : bool
        Pretty-print the rendered payload
    """
    base_uri: str = ""
    payload_format: str = "json"
    indent: bool = True


class ODataRequestMessage:
    """
    Standalone request message owning its body stream.

    Parameters
    ----------
    method : str, optional
        HTTP method, informational
    url : str, optional
        Target URL, informational
    """

    def __init__(self, method: Optional[str] = None, url: Optional[str] = None) -> None:
        self.method = method
        self.url = url
        self.headers: Dict[str, str] = {}
        self._stream = BytesIO()

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def write_body(self, data: bytes, content_type: str) -> None:
        self.set_header("Content-Type", content_type)
        self._stream.write(data)

    def discard(self) -> None:
        self._stream = BytesIO()
        self.headers.pop("Content-Type", None)

    def get_stream(self) -> BytesIO:
        """The written body, rewound for reading."""
        self._stream.seek(0)
        return self._stream


class _Scope:
    """Common open/completed/discarded bookkeeping for scoped writers."""

    def __init__(self, on_complete: Callable[[Any], None]) -> None:
        self._on_complete = on_complete
        self.completed = False
        self.discarded = False

    def _check_open(self) -> None:
        if self.discarded:
            raise WriterStateError(f"{type(self).__name__} was discarded after a failure")
        if self.completed:
            raise WriterStateError(f"{type(self).__name__} has already completed")

    def _complete(self, payload: Any) -> None:
        self.completed = True
        self._on_complete(payload)

    def _is_pending(self) -> bool:
        return False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.discarded = True
            return
        if not self.completed and self._is_pending():
            self.discarded = True
            raise WriterStateError(f"{type(self).__name__} closed with unbalanced write_start/write_end")


class ODataWriter(_Scope):
    """
    Writer for entries, feeds and the navigation links nested in them.

    Parameters
    ----------
    on_complete : callable
        Receives the root EntryNode or FeedNode once the outermost
        item is ended
    expect_feed : bool
        Whether the root item must be a feed rather than an entry
    """

    def __init__(self, on_complete: Callable[[Any], None], *, expect_feed: bool = False) -> None:
        super().__init__(on_complete)
        self.expect_feed = expect_feed
        self._stack: List[Union[EntryNode, FeedNode, NavigationLinkNode]] = []

    def _is_pending(self) -> bool:
        return bool(self._stack)

    def write_start(self, item: Union[ODataEntry, ODataFeed, ODataNavigationLink]) -> None:
        self._check_open()
        parent = self._stack[-1] if self._stack else None

        if isinstance(item, ODataEntry):
            node: Union[EntryNode, FeedNode, NavigationLinkNode] = EntryNode(item)
            if parent is None:
                if self.expect_feed:
                    raise WriterStateError("Expected a feed as the top-level item")
            elif isinstance(parent, FeedNode):
                parent.entries.append(node)  # type: ignore[arg-type]
            elif isinstance(parent, NavigationLinkNode):
                parent.content.append(node)  # type: ignore[arg-type]
            else:
                raise WriterStateError("An entry can only start inside a feed or navigation link")
        elif isinstance(item, ODataFeed):
            node = FeedNode()
            if parent is None:
                if not self.expect_feed:
                    raise WriterStateError("Expected an entry as the top-level item")
            elif isinstance(parent, NavigationLinkNode) and parent.link.is_collection:
                parent.content.append(node)
            else:
                raise WriterStateError("A feed can only start at top level or inside a collection navigation link")
        elif isinstance(item, ODataNavigationLink):
            if not isinstance(parent, EntryNode):
                raise WriterStateError("A navigation link can only start inside an entry")
            node = NavigationLinkNode(item)
            parent.links.append(node)
        else:
            raise WriterStateError(f"Cannot write item of type {type(item).__name__}")

        self._stack.append(node)

    def write_entity_reference_link(self, link: ODataEntityReferenceLink) -> None:
        self._check_open()
        if not self._stack or not isinstance(self._stack[-1], NavigationLinkNode):
            raise WriterStateError("Entity reference links must be written inside a navigation link")
        nav = self._stack[-1]
        if not nav.link.is_collection and nav.references:
            raise WriterStateError(f"Navigation link [{nav.link.name}] is single-valued")
        nav.references.append(link.url)

    def write_end(self) -> None:
        self._check_open()
        if not self._stack:
            raise WriterStateError("write_end called without a matching write_start")
        node = self._stack.pop()
        if not self._stack:
            self._complete(node)


class ODataCollectionWriter(_Scope):
    """Writer for a plain (non-entity) collection of values."""

    def __init__(self, on_complete: Callable[[Any], None]) -> None:
        super().__init__(on_complete)
        self._items: Optional[List[Any]] = None

    def _is_pending(self) -> bool:
        return self._items is not None

    def write_start(self, start: Optional[ODataCollectionStart] = None) -> None:
        self._check_open()
        if self._items is not None:
            raise WriterStateError("Collection already started")
        self._items = []

    def write_item(self, item: Any) -> None:
        self._check_open()
        if self._items is None:
            raise WriterStateError("write_item called before write_start")
        self._items.append(item)

    def write_end(self) -> None:
        self._check_open()
        if self._items is None:
            raise WriterStateError("write_end called without a matching write_start")
        items, self._items = self._items, None
        self._complete(items)


class ODataParameterWriter(_Scope):
    """
    Writer for action parameter payloads.

    Only one nested entry, feed or collection writer may be active at a
    time; the nested value is recorded when that writer completes.
    """

    def __init__(self, on_complete: Callable[[Any], None]) -> None:
        super().__init__(on_complete)
        self._node: Optional[ParametersNode] = None
        self._active: Optional[_Scope] = None

    def _is_pending(self) -> bool:
        return self._node is not None

    def _check_ready(self) -> ParametersNode:
        self._check_open()
        if self._node is None:
            raise WriterStateError("Parameter writer has not been started")
        if self._active is not None and not (self._active.completed or self._active.discarded):
            raise WriterStateError("A nested parameter writer is still active")
        if self._active is not None and self._active.discarded:
            raise WriterStateError("A nested parameter writer failed")
        self._active = None
        return self._node

    def write_start(self) -> None:
        self._check_open()
        if self._node is not None:
            raise WriterStateError("Parameter writer already started")
        self._node = ParametersNode()

    def write_value(self, name: str, value: Any) -> None:
        self._check_ready().parameters.append((name, "value", value))

    def _nested(self, name: str, kind: str, factory: Callable[[Callable[[Any], None]], _Scope]) -> Any:
        node = self._check_ready()
        writer = factory(lambda payload: node.parameters.append((name, kind, payload)))
        self._active = writer
        return writer

    def create_entry_writer(self, name: str) -> ODataWriter:
        return self._nested(name, "entry", lambda cb: ODataWriter(cb))

    def create_feed_writer(self, name: str) -> ODataWriter:
        return self._nested(name, "feed", lambda cb: ODataWriter(cb, expect_feed=True))

    def create_collection_writer(self, name: str) -> ODataCollectionWriter:
        return self._nested(name, "collection", ODataCollectionWriter)

    def write_end(self) -> None:
        node = self._check_ready()
        self._node = None
        self._complete(node)


class ODataMessageWriter:
    """
    Top-level writer bound to one target message.

    Parameters
    ----------
    message : ODataRequestMessage or BatchOperationMessage
        Target receiving the rendered body
    settings : WriterSettings
        Base URI, payload format and indentation

    The rendered payload is flushed into the message when the ``with``
    block exits cleanly; on an exception the message is discarded.
    """

    def __init__(self, message: Any, settings: Optional[WriterSettings] = None) -> None:
        from odata_writer.odata.formats import get_format

        self.message = message
        self.settings = settings or WriterSettings()
        self.format: "PayloadFormat" = get_format(self.settings.payload_format)
        self._payload: Optional[Tuple[str, Any]] = None
        self._writers: List[_Scope] = []
        self.closed = False

    def _set_payload(self, kind: str, payload: Any) -> None:
        if self._payload is not None:
            raise WriterStateError("A message can only carry one payload")
        self._payload = (kind, payload)

    def _check_open(self) -> None:
        if self.closed:
            raise WriterStateError("Message writer is closed")
        if self._payload is not None or self._writers:
            raise WriterStateError("A message can only carry one payload")

    def create_entry_writer(self) -> ODataWriter:
        self._check_open()
        writer = ODataWriter(lambda node: self._set_payload("entry", node))
        self._writers.append(writer)
        return writer

    def create_feed_writer(self) -> ODataWriter:
        self._check_open()
        writer = ODataWriter(lambda node: self._set_payload("feed", node), expect_feed=True)
        self._writers.append(writer)
        return writer

    def create_parameter_writer(self) -> ODataParameterWriter:
        self._check_open()
        writer = ODataParameterWriter(lambda node: self._set_payload("parameters", node))
        self._writers.append(writer)
        return writer

    def write_entity_reference_link(self, link: ODataEntityReferenceLink) -> None:
        self._check_open()
        self._set_payload("reference", link.url)

    def render(self) -> Optional[Tuple[bytes, str]]:
        """Render the recorded payload as (body, content type), or None if empty."""
        if self._payload is None:
            return None
        kind, payload = self._payload
        return self.format.render(kind, payload, self.settings)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for writer in self._writers:
            if writer.discarded or not writer.completed:
                self.message.discard()
                raise WriterStateError("Message writer closed before its payload was completed")
        rendered = self.render()
        if rendered is not None:
            body, content_type = rendered
            self.message.write_body(body, content_type)
            logger.debug("wrote %s payload (%d bytes)", self._payload[0] if self._payload else "", len(body))

    def __enter__(self) -> "ODataMessageWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.closed = True
            self.message.discard()
            return
        self.close()
