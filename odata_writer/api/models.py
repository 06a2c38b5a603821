"""
odata_writer.api.models - Pydantic models for API requests/responses
=====================================================================
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Example defaults
# ---------------------------------------------------------------------------

EXAMPLE_COLLECTION = "Products"
EXAMPLE_ENTRY = {"Name": "Widget", "Price": 9.99}
EXAMPLE_ACTION = "Restock"
EXAMPLE_PARAMETERS = {"Amount": 10}


class EntryPreviewRequest(BaseModel):
    """Request model for previewing an entry body."""

    entry: Dict[str, Any] = Field(
        default_factory=lambda: dict(EXAMPLE_ENTRY),
        description="Property bag of the entity; navigation properties take related key bags",
        json_schema_extra={"example": EXAMPLE_ENTRY}
    )
    method: str = Field(
        default="POST",
        description="POST (insert), PUT (replace) or PATCH (merge)",
        pattern="^(POST|PUT|PATCH|post|put|patch)$",
        json_schema_extra={"example": "POST"}
    )
    entry_ident: Optional[str] = Field(
        default=None,
        description="Entity path for PUT/PATCH, e.g. Products(1)",
        json_schema_extra={"example": "Products(1)"}
    )
    result_required: bool = Field(
        default=True,
        description="Ask the service to return the resulting entity"
    )
    payload_format: Optional[str] = Field(
        default=None,
        description="json or atom; defaults to the gateway setting",
        json_schema_extra={"example": "json"}
    )


class ActionPreviewRequest(BaseModel):
    """Request model for previewing an action parameter body."""

    parameters: Dict[str, Any] = Field(
        default_factory=lambda: dict(EXAMPLE_PARAMETERS),
        description="Parameter name -> value",
        json_schema_extra={"example": EXAMPLE_PARAMETERS}
    )
    command_text: Optional[str] = Field(
        default=None,
        description="Request path; defaults to the action name",
        json_schema_extra={"example": "Products(1)/Shop.Restock"}
    )
    payload_format: Optional[str] = Field(
        default=None,
        description="json or atom; defaults to the gateway setting",
        json_schema_extra={"example": "json"}
    )


class PreviewResponse(BaseModel):
    """A written request, as it would be sent."""

    method: str
    uri: str
    headers: Dict[str, str]
    body: Optional[str] = None


class EntitySetInfo(BaseModel):
    """Information about an entity set."""

    name: str
    entity_type: str
    singleton: bool = False
    fields: Optional[List[str]] = None
