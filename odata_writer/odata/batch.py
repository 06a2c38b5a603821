"""
odata_writer.odata.batch - Batch coordination
==============================================

Collects the operations of one ``$batch`` request. Each operation gets its
own sub-message; change operations are assigned monotonically increasing
content-ids so later operations in the same batch can reference instances
that do not have a key yet.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Dict, List, Optional, Tuple

from odata_writer.core.errors import WriterStateError
from odata_writer.odata.uri import create_absolute_uri

logger = logging.getLogger("odata_writer.batch")

CRLF = "\r\n"


class BatchOperationMessage:
    """
    One sub-message of a batch.

    Created only by ``BatchWriter.create_operation_message``; the batch
    owns its lifecycle and renders it in ``write_batch``.
    """

    def __init__(
        self,
        batch: "BatchWriter",
        method: str,
        url: str,
        content_id: Optional[str] = None,
        collection: Optional[str] = None,
        result_required: bool = False,
    ) -> None:
        self.batch = batch
        self.method = method.upper()
        self.url = url
        self.content_id = content_id
        self.collection = collection
        self.result_required = result_required
        self.headers: Dict[str, str] = {}
        self.body: Optional[bytes] = None

    @property
    def in_changeset(self) -> bool:
        return self.method != "GET"

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def write_body(self, data: bytes, content_type: str) -> None:
        if self.body is not None:
            raise WriterStateError("Batch operation body was already written")
        self.set_header("Content-Type", content_type)
        self.body = data

    def discard(self) -> None:
        self.batch.discard(self)

    def render(self) -> str:
        lines = [f"{self.method} {self.url} HTTP/1.1"]
        lines.extend(f"{k}: {v}" for k, v in self.headers.items())
        lines.append("")
        text = CRLF.join(lines) + CRLF
        if self.body is not None:
            text += self.body.decode("utf-8")
        return text


class BatchWriter:
    """
    Batch coordinator: sub-message registry and content-id issuer.

    Safe to share between threads assembling operations of the same batch;
    content-id assignment and operation ordering are serialized.

    Parameters
    ----------
    base_uri : str
        Service root; operation URLs are made absolute against it
    boundary : str, optional
        Batch boundary, generated when omitted

    Examples
    --------
    >>> batch = BatchWriter("https://host/service/")
    >>> writer = RequestWriter(catalog, base_uri="https://host/service/", batch=batch)
    >>> writer.write_entry_content("POST", "Products", "Products", {"Name": "Widget"})
    >>> body, content_type = batch.write_batch()
    """

    def __init__(self, base_uri: str = "", boundary: Optional[str] = None) -> None:
        self.base_uri = base_uri
        self.boundary = boundary or f"batch_{uuid.uuid4()}"
        self._lock = threading.Lock()
        self._operations: List[BatchOperationMessage] = []
        self._last_content_id = 0
        # id(entry_data) -> (entry_data, content_id); the object is kept so
        # its id cannot be reused while the batch is alive
        self._content_ids: Dict[int, Tuple[Any, str]] = {}
        self.closed = False

    @property
    def operations(self) -> List[BatchOperationMessage]:
        with self._lock:
            return list(self._operations)

    @property
    def content_type(self) -> str:
        return f"multipart/mixed;boundary={self.boundary}"

    def create_operation_message(
        self,
        uri: str,
        method: str,
        collection: Optional[str] = None,
        entry_data: Any = None,
        result_required: bool = False,
    ) -> BatchOperationMessage:
        """
        Append a sub-message for one operation.

        Change operations (anything but GET) are assigned the next
        content-id; when ``entry_data`` is given it is registered under
        that id for later same-batch references.
        """
        url = create_absolute_uri(self.base_uri, uri)
        with self._lock:
            if self.closed:
                raise WriterStateError("Batch has already been written")
            content_id = None
            if method.upper() != "GET":
                self._last_content_id += 1
                content_id = str(self._last_content_id)
                if entry_data is not None:
                    self._content_ids[id(entry_data)] = (entry_data, content_id)
            message = BatchOperationMessage(self, method, url, content_id, collection, result_required)
            self._operations.append(message)
        logger.debug("batch operation %s %s content-id=%s", message.method, url, content_id)
        return message

    def get_content_id(self, entry_data: Any, link_data: Any = None) -> Optional[str]:
        """Content-id registered for an instance in this batch, if any."""
        with self._lock:
            for candidate in (entry_data, link_data):
                if candidate is None:
                    continue
                found = self._content_ids.get(id(candidate))
                if found is not None and found[0] is candidate:
                    return found[1]
        return None

    def discard(self, message: BatchOperationMessage) -> None:
        """Drop a sub-message whose body failed to build."""
        with self._lock:
            if message in self._operations:
                self._operations.remove(message)
            for key, (_, cid) in list(self._content_ids.items()):
                if cid == message.content_id:
                    del self._content_ids[key]
        logger.debug("discarded batch operation %s %s", message.method, message.url)

    def write_batch(self) -> Tuple[bytes, str]:
        """
        Render the batch as a multipart/mixed body.

        Consecutive change operations share one change set; GET operations
        are written as top-level parts.

        Returns
        -------
        tuple of (bytes, str)
            Body and its Content-Type header value
        """
        with self._lock:
            self.closed = True
            operations = list(self._operations)

        parts: List[str] = []
        changeset: List[BatchOperationMessage] = []

        def flush_changeset() -> None:
            if not changeset:
                return
            cs_boundary = f"changeset_{uuid.uuid4()}"
            inner = []
            for op in changeset:
                inner.append(
                    f"--{cs_boundary}{CRLF}"
                    f"Content-Type: application/http{CRLF}"
                    f"Content-Transfer-Encoding: binary{CRLF}"
                    f"Content-ID: {op.content_id}{CRLF}{CRLF}"
                    f"{op.render()}{CRLF}"
                )
            parts.append(
                f"--{self.boundary}{CRLF}"
                f"Content-Type: multipart/mixed;boundary={cs_boundary}{CRLF}{CRLF}"
                + "".join(inner)
                + f"--{cs_boundary}--{CRLF}"
            )
            changeset.clear()

        for op in operations:
            if op.in_changeset:
                changeset.append(op)
                continue
            flush_changeset()
            parts.append(
                f"--{self.boundary}{CRLF}"
                f"Content-Type: application/http{CRLF}"
                f"Content-Transfer-Encoding: binary{CRLF}{CRLF}"
                f"{op.render()}{CRLF}"
            )
        flush_changeset()

        body = "".join(parts) + f"--{self.boundary}--{CRLF}"
        return body.encode("utf-8"), self.content_type
