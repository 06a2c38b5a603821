"""
odata_writer.core.connection - High-level connection management
================================================================

Ties configuration, session, schema catalog and request writer together.
"""

from __future__ import annotations

import os
from typing import Optional

from odata_writer.core.session import ODataAuth, ODataConfig, ODataSession
from odata_writer.odata.batch import BatchWriter
from odata_writer.odata.metadata import ODataMetadata
from odata_writer.odata.request_writer import RequestWriter
from odata_writer.odata.schema import SchemaCatalog
from odata_writer.odata.writers import WriterSettings


class ConnectionContext:
    """
    High-level connection manager for one OData service.

    Supports environment variable configuration and context manager usage.

    Parameters
    ----------
    base_url : str, optional
        Service root. Falls back to ODATA_BASE_URL env var.
    user : str, optional
        Username for basic auth. Falls back to ODATA_USER env var.
    password : str, optional
        Password for basic auth. Falls back to ODATA_PASS env var.
    bearer_token : str, optional
        Bearer token for OAuth. Falls back to ODATA_BEARER_TOKEN env var.
    payload_format : str, optional
        "json" or "atom". Falls back to ODATA_PAYLOAD_FORMAT env var.
    verify : bool, optional
        SSL verification. Falls back to ODATA_VERIFY_TLS env var.
    timeout : float
        Request timeout in seconds.

    Examples
    --------
    >>> with ConnectionContext() as conn:  # reads ODATA_* env vars
    ...     writer = conn.request_writer()
    ...     conn.session.send(writer.create_insert_request("Products", {"Name": "Widget"}))
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        bearer_token: Optional[str] = None,
        payload_format: Optional[str] = None,
        verify: Optional[bool] = None,
        timeout: float = 60.0,
    ) -> None:
        # Resolve from environment if not provided
        self._base_url = (base_url or os.environ.get("ODATA_BASE_URL", "")).rstrip("/") + "/"
        self._user = user or os.environ.get("ODATA_USER", "")
        self._password = password or os.environ.get("ODATA_PASS", "")
        self._bearer_token = bearer_token or os.environ.get("ODATA_BEARER_TOKEN", "")
        self._payload_format = (payload_format or os.environ.get("ODATA_PAYLOAD_FORMAT", "json")).lower()

        if verify is not None:
            self._verify = verify
        else:
            self._verify = os.environ.get("ODATA_VERIFY_TLS", "true").lower() != "false"

        self._timeout = timeout

        if not self._base_url or self._base_url == "/":
            raise ValueError(
                "Missing base_url. Set ODATA_BASE_URL environment variable "
                "or pass base_url parameter."
            )

        if not self._bearer_token and not (self._user and self._password):
            raise ValueError(
                "Missing credentials. Set ODATA_USER/ODATA_PASS or ODATA_BEARER_TOKEN "
                "environment variables, or pass user/password or bearer_token parameters."
            )

        if self._payload_format not in ("json", "atom"):
            raise ValueError(f"Unsupported payload format: {self._payload_format}")

        self._session: Optional[ODataSession] = None
        self._metadata: Optional[ODataMetadata] = None

    @property
    def session(self) -> ODataSession:
        """Get or create the underlying OData session."""
        if self._session is None:
            self._session = self._build_session()
        return self._session

    def _build_session(self) -> ODataSession:
        if self._bearer_token:
            auth = ODataAuth("bearer", self._bearer_token)
        else:
            auth = ODataAuth("basic", (self._user, self._password))

        cfg = ODataConfig(
            base_url=self._base_url,
            auth=auth,
            payload_format=self._payload_format,
            verify=self._verify,
            timeout=self._timeout,
        )
        return ODataSession(cfg)

    @property
    def catalog(self) -> SchemaCatalog:
        """Schema catalog loaded from the service $metadata on first use."""
        if self._metadata is None:
            self._metadata = ODataMetadata(self.session)
        return self._metadata.catalog

    def request_writer(self, batch: Optional[BatchWriter] = None) -> RequestWriter:
        """Create a request writer bound to this service, optionally in batch mode."""
        settings = WriterSettings(
            base_uri=self._base_url,
            payload_format=self._payload_format,
            indent=self.session.cfg.indent,
        )
        return RequestWriter(self.catalog, base_uri=self._base_url, settings=settings, batch=batch)

    def batch(self) -> BatchWriter:
        """Start a new batch for this service."""
        return BatchWriter(self._base_url)

    def close(self) -> None:
        """Close the connection."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> "ConnectionContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def base_url(self) -> str:
        """The configured base URL."""
        return self._base_url

    @property
    def payload_format(self) -> str:
        """The configured payload format."""
        return self._payload_format
