"""
odata_writer.odata.values - Wire-level payload items
=====================================================

Plain data objects passed to the writers. They carry already-coerced
values and names resolved against the schema.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ODATA_NAMESPACE = "http://docs.oasis-open.org/odata/ns/"
RELATED_NAMESPACE = ODATA_NAMESPACE + "related/"


@dataclass
class ODataProperty:
    name: str
    value: Any


@dataclass
class ODataComplexValue:
    type_name: str
    properties: List[ODataProperty] = field(default_factory=list)


@dataclass
class ODataCollectionValue:
    type_name: str
    items: List[Any] = field(default_factory=list)


@dataclass
class ODataEnumValue:
    value: str
    type_name: Optional[str] = None


@dataclass
class ODataEntry:
    type_name: str
    properties: List[ODataProperty] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {p.name: p.value for p in self.properties}


@dataclass
class ODataFeed:
    pass


@dataclass
class ODataNavigationLink:
    name: str
    is_collection: bool
    url: Optional[str] = None


@dataclass
class ODataEntityReferenceLink:
    url: str


@dataclass
class ODataCollectionStart:
    name: Optional[str] = None


@dataclass
class ReferenceLink:
    """
    A relationship to materialize on a navigation property.

    Attributes
    ----------
    link_data : mapping, optional
        Property bag (or host object) of the related instance
    content_id : str, optional
        Batch content-id of the related instance when it was created
        earlier in the same batch
    """
    link_data: Optional[Any] = None
    content_id: Optional[str] = None
