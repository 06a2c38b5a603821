"""
odata_writer.api.gateway - FastAPI payload preview gateway
==========================================================

Optional REST API that shows the request a ``RequestWriter`` would send
for a given entry or action invocation, without sending it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Path as PathParam, Header, Depends
from fastapi.middleware.cors import CORSMiddleware

from odata_writer import __version__
from odata_writer.core.connection import ConnectionContext
from odata_writer.core.errors import (
    ODataUpstreamError,
    UnresolvableName,
    UnsupportedConversion,
    UnsupportedSchemaKind,
)
from odata_writer.odata.metadata import parse_metadata
from odata_writer.odata.request_writer import ODataRequest, RequestWriter
from odata_writer.odata.schema import SchemaCatalog
from odata_writer.odata.writers import WriterSettings
from odata_writer.api.models import (
    ActionPreviewRequest,
    EntitySetInfo,
    EntryPreviewRequest,
    PreviewResponse,
    EXAMPLE_ACTION,
    EXAMPLE_COLLECTION,
)

logger = logging.getLogger("odata_writer.api")

_WRITE_ERRORS = (UnresolvableName, UnsupportedConversion, UnsupportedSchemaKind)


class PreviewGateway:
    """
    Configuration and catalog holder for the API gateway.

    Reads configuration from environment variables by default. The
    schema comes from, in order: the ``catalog`` argument, a local
    ``$metadata`` file (ODATA_METADATA_FILE), or the live service.
    """

    def __init__(
        self,
        catalog: Optional[SchemaCatalog] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        payload_format: Optional[str] = None,
        metadata_file: Optional[str] = None,
    ):
        # Load from env if not provided
        self.base_url = base_url if base_url is not None else os.environ.get("ODATA_BASE_URL", "")
        self.api_key = api_key if api_key is not None else os.environ.get("ODATA_API_KEY", "")
        self.payload_format = (payload_format or os.environ.get("ODATA_PAYLOAD_FORMAT", "json")).lower()
        self.metadata_file = metadata_file or os.environ.get("ODATA_METADATA_FILE", "")
        self._catalog = catalog

    def validate(self) -> None:
        """Validate configuration. Raises RuntimeError if invalid."""
        if self._catalog is None and not self.metadata_file and not self.base_url:
            raise RuntimeError("Missing ODATA_METADATA_FILE or ODATA_BASE_URL environment variable")
        if not self.api_key:
            raise RuntimeError("Missing ODATA_API_KEY - required for security")

    @property
    def catalog(self) -> SchemaCatalog:
        if self._catalog is None:
            if self.metadata_file:
                self._catalog = parse_metadata(Path(self.metadata_file).read_text(encoding="utf-8"))
            else:
                with ConnectionContext(self.base_url) as conn:
                    self._catalog = conn.catalog
            logger.info("loaded schema with %d entity sets", len(self._catalog.entity_sets))
        return self._catalog

    def request_writer(self, payload_format: Optional[str] = None) -> RequestWriter:
        settings = WriterSettings(
            base_uri=self.base_url,
            payload_format=(payload_format or self.payload_format).lower(),
            indent=True,
        )
        return RequestWriter(self.catalog, base_uri=self.base_url, settings=settings)


def _preview(request: ODataRequest) -> PreviewResponse:
    return PreviewResponse(
        method=request.method,
        uri=request.uri,
        headers=dict(request.headers),
        body=request.body.decode("utf-8") if request.body is not None else None,
    )


def create_app(
    gateway: Optional[PreviewGateway] = None,
    validate_on_startup: bool = True,
) -> FastAPI:
    """
    Create the FastAPI application.

    Parameters
    ----------
    gateway : PreviewGateway, optional
        Custom gateway configuration. If None, reads from environment.
    validate_on_startup : bool
        If True, validate configuration on startup.

    Returns
    -------
    FastAPI
        Configured FastAPI application
    """
    gw = gateway or PreviewGateway()

    if validate_on_startup:
        try:
            gw.validate()
        except RuntimeError as e:
            # Allow app creation without validation for testing
            logger.warning("gateway configuration incomplete: %s", e)

    app = FastAPI(
        title="OData Request Writer Gateway",
        description="""
## OData request payload preview

Shows the exact request (method, URI, headers, body) the writer would
send for an entry or an action invocation.

### Authentication
Include your API key in the `x-api-key` header.
        """,
        version=__version__,
        openapi_tags=[
            {
                "name": "Preview",
                "description": "Serialize entries and action parameters without sending them",
            },
            {
                "name": "Discovery",
                "description": "Entity sets and fields of the loaded schema",
            },
        ],
    )
    app.state.gateway = gw

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Dependencies
    # -------------------------------------------------------------------------

    def require_api_key(x_api_key: str = Header(...)) -> None:
        if gw.api_key and x_api_key != gw.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")

    def get_catalog() -> SchemaCatalog:
        try:
            return gw.catalog
        except ODataUpstreamError as e:
            raise HTTPException(
                status_code=502,
                detail={"upstream_status": e.status, "upstream_url": e.url, "upstream_body": e.body[:2000]},
            )

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    @app.get("/health")
    def health() -> Dict[str, Any]:
        """Health check endpoint."""
        return {"ok": True, "version": __version__}

    @app.get("/schema/entity-sets", tags=["Discovery"], response_model=List[EntitySetInfo])
    def list_entity_sets(
        catalog: SchemaCatalog = Depends(get_catalog),
        _: None = Depends(require_api_key),
    ) -> List[EntitySetInfo]:
        """List entity sets and singletons with their structural fields."""
        return [
            EntitySetInfo(
                name=es.name,
                entity_type=es.entity_type.full_name,
                singleton=es.is_singleton,
                fields=[p.name for p in es.entity_type.structural_properties()],
            )
            for es in sorted(catalog.entity_sets, key=lambda es: es.name)
        ]

    @app.post("/preview/entries/{collection}", tags=["Preview"], response_model=PreviewResponse)
    def preview_entry(
        req: EntryPreviewRequest,
        collection: str = PathParam(..., examples=[EXAMPLE_COLLECTION]),
        catalog: SchemaCatalog = Depends(get_catalog),
        _: None = Depends(require_api_key),
    ) -> PreviewResponse:
        """
        Serialize an entry for an insert (POST) or update (PUT/PATCH).
        """
        method = req.method.upper()
        try:
            writer = gw.request_writer(req.payload_format)
            if method == "POST":
                request = writer.create_insert_request(
                    collection, req.entry, result_required=req.result_required,
                )
            else:
                request = writer.create_update_request(
                    collection,
                    req.entry_ident or collection,
                    req.entry,
                    merge=method == "PATCH",
                    result_required=req.result_required,
                )
        except _WRITE_ERRORS as e:
            raise HTTPException(status_code=422, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _preview(request)

    @app.post("/preview/actions/{action}", tags=["Preview"], response_model=PreviewResponse)
    def preview_action(
        req: ActionPreviewRequest,
        action: str = PathParam(..., examples=[EXAMPLE_ACTION]),
        catalog: SchemaCatalog = Depends(get_catalog),
        _: None = Depends(require_api_key),
    ) -> PreviewResponse:
        """
        Serialize the parameter body of an action invocation.
        """
        try:
            writer = gw.request_writer(req.payload_format)
            request = writer.create_action_request(req.command_text or action, action, req.parameters)
        except _WRITE_ERRORS as e:
            raise HTTPException(status_code=422, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _preview(request)

    return app
