"""
odata_writer.odata.schema - Schema model and catalog
=====================================================

In-memory view of an OData v4 service model: types, properties, keys,
navigation properties, operations and entity container members.

Catalogs are normally built by ``ODataMetadata`` from a ``$metadata``
document, but can be assembled by hand for tests or offline use.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

from odata_writer.core.errors import UnresolvableName
from odata_writer.odata.names import NameResolver

EDM_NAMESPACE = "Edm"

# Upper bound on base-type chains; a well-formed model is a tree far
# shallower than this.
MAX_INHERITANCE_DEPTH = 64


class TypeKind(str, Enum):
    PRIMITIVE = "Primitive"
    COMPLEX = "Complex"
    ENTITY = "Entity"
    ENUM = "Enum"
    COLLECTION = "Collection"
    NONE = "None"


class PrimitiveKind(str, Enum):
    BINARY = "Binary"
    BOOLEAN = "Boolean"
    BYTE = "Byte"
    DATE = "Date"
    DATE_TIME_OFFSET = "DateTimeOffset"
    DECIMAL = "Decimal"
    DOUBLE = "Double"
    DURATION = "Duration"
    GUID = "Guid"
    INT16 = "Int16"
    INT32 = "Int32"
    INT64 = "Int64"
    SBYTE = "SByte"
    SINGLE = "Single"
    STREAM = "Stream"
    STRING = "String"
    TIME_OF_DAY = "TimeOfDay"
    GEOGRAPHY = "Geography"
    GEOGRAPHY_POINT = "GeographyPoint"
    GEOGRAPHY_LINE_STRING = "GeographyLineString"
    GEOGRAPHY_POLYGON = "GeographyPolygon"
    GEOGRAPHY_COLLECTION = "GeographyCollection"
    GEOGRAPHY_MULTI_POINT = "GeographyMultiPoint"
    GEOGRAPHY_MULTI_LINE_STRING = "GeographyMultiLineString"
    GEOGRAPHY_MULTI_POLYGON = "GeographyMultiPolygon"
    GEOMETRY = "Geometry"
    GEOMETRY_POINT = "GeometryPoint"
    GEOMETRY_LINE_STRING = "GeometryLineString"
    GEOMETRY_POLYGON = "GeometryPolygon"
    GEOMETRY_COLLECTION = "GeometryCollection"
    GEOMETRY_MULTI_POINT = "GeometryMultiPoint"
    GEOMETRY_MULTI_LINE_STRING = "GeometryMultiLineString"
    GEOMETRY_MULTI_POLYGON = "GeometryMultiPolygon"


@dataclass(eq=False)
class SchemaType:
    """
    A declared schema type.

    Attributes
    ----------
    kind : TypeKind
        Which family of type this is
    name : str
        Simple name, e.g. "Product" or "Int32"
    namespace : str
        Schema namespace, e.g. "Shop" or "Edm"
    key : list of str, optional
        Declared key property names (entity types only). None when the
        type inherits its key.
    base_type : SchemaType, optional
        Parent entity or complex type
    properties : list of Property
        Structural properties declared on this type (not inherited ones)
    navigation_properties : list of NavigationProperty
        Navigation properties declared on this type
    element_type : SchemaType, optional
        Element type of a collection type
    primitive_kind : PrimitiveKind, optional
        Primitive kind of an Edm primitive type
    members : list of str
        Member names of an enum type
    abstract : bool
        Whether the type is abstract
    """
    kind: TypeKind
    name: str
    namespace: str = ""
    key: Optional[List[str]] = None
    base_type: Optional["SchemaType"] = None
    properties: List["Property"] = field(default_factory=list)
    navigation_properties: List["NavigationProperty"] = field(default_factory=list)
    element_type: Optional["SchemaType"] = None
    primitive_kind: Optional[PrimitiveKind] = None
    members: List[str] = field(default_factory=list)
    abstract: bool = False

    @property
    def full_name(self) -> str:
        if self.kind == TypeKind.COLLECTION and self.element_type is not None:
            return f"Collection({self.element_type.full_name})"
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    def __str__(self) -> str:
        return self.full_name

    def __repr__(self) -> str:
        return f"SchemaType({self.kind.value if isinstance(self.kind, TypeKind) else self.kind}, {self.full_name!r})"

    def base_types(self) -> List["SchemaType"]:
        """Ancestors from the direct parent upward, guarded against cycles."""
        chain: List[SchemaType] = []
        seen = {id(self)}
        current = self.base_type
        while current is not None and id(current) not in seen and len(chain) < MAX_INHERITANCE_DEPTH:
            chain.append(current)
            seen.add(id(current))
            current = current.base_type
        return chain

    def structural_properties(self) -> List["Property"]:
        """Declared plus inherited structural properties, base types first."""
        out: List[Property] = []
        for t in reversed(self.base_types()):
            out.extend(t.properties)
        out.extend(self.properties)
        return out

    def all_navigation_properties(self) -> List["NavigationProperty"]:
        out: List[NavigationProperty] = []
        for t in reversed(self.base_types()):
            out.extend(t.navigation_properties)
        out.extend(self.navigation_properties)
        return out

    def key_type(self) -> "SchemaType":
        """
        The nearest type in the inheritance chain that declares a key.

        Abstract or derived entity types often inherit their key; when no
        ancestor declares one the type itself is returned.
        """
        if self.key:
            return self
        for t in self.base_types():
            if t.key:
                return t
        return self

    def is_derived_from(self, other: "SchemaType") -> bool:
        return any(t is other for t in self.base_types())


@dataclass(eq=False)
class Property:
    name: str
    type: SchemaType
    nullable: bool = True


@dataclass(eq=False)
class NavigationProperty:
    name: str
    type: SchemaType
    partner: Optional[str] = None
    contains_target: bool = False

    @property
    def is_collection(self) -> bool:
        return self.type.kind == TypeKind.COLLECTION

    @property
    def entity_type(self) -> SchemaType:
        """Target entity type; the element type for collection-valued links."""
        if self.is_collection and self.type.element_type is not None:
            return self.type.element_type
        return self.type


@dataclass(eq=False)
class Parameter:
    name: str
    type: SchemaType
    nullable: bool = True


@dataclass(eq=False)
class Operation:
    """An action or function declared in the schema."""
    name: str
    namespace: str = ""
    is_action: bool = True
    is_bound: bool = False
    parameters: List[Parameter] = field(default_factory=list)
    return_type: Optional[SchemaType] = None

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name


@dataclass(eq=False)
class EntitySet:
    name: str
    entity_type: SchemaType
    is_singleton: bool = False


def narrow_entity_type(
    entity_type: SchemaType,
    names: Iterable[str],
    resolver: NameResolver,
) -> SchemaType:
    """
    Build a view of ``entity_type`` declaring only the given property names.

    Used for partial updates (PATCH): the view contains exactly one
    structural or navigation property per supplied name, flattened from
    the inheritance chain, so nothing outside the payload is declared.

    Raises
    ------
    UnresolvableName
        If a name matches no structural or navigation property
    """
    members: List[Union[Property, NavigationProperty]] = [
        *entity_type.structural_properties(),
        *entity_type.all_navigation_properties(),
    ]
    props: List[Property] = []
    navs: List[NavigationProperty] = []
    for name in names:
        member = resolver.best_match(members, name)
        if member is None:
            raise UnresolvableName(name, entity_type.full_name)
        if isinstance(member, NavigationProperty):
            if member not in navs:
                navs.append(member)
        elif member not in props:
            props.append(member)
    key_owner = entity_type.key_type()
    return replace(
        entity_type,
        key=list(key_owner.key) if key_owner.key else None,
        base_type=None,
        properties=props,
        navigation_properties=navs,
    )


class SchemaCatalog:
    """
    Lookup structure over the types and container of one service.

    Parameters
    ----------
    resolver : NameResolver, optional
        Name matcher used for all fuzzy lookups

    Examples
    --------
    >>> catalog = SchemaCatalog()
    >>> product = catalog.add_type(SchemaType(TypeKind.ENTITY, "Product", "Shop", key=["Id"]))
    >>> product.properties.append(Property("Id", catalog.primitive("Int32")))
    >>> catalog.add_entity_set(EntitySet("Products", product))
    >>> catalog.get_type("Shop.Product") is product
    True
    """

    def __init__(self, resolver: Optional[NameResolver] = None) -> None:
        self.resolver = resolver or NameResolver()
        self._types: Dict[str, SchemaType] = {}
        self._primitives: Dict[str, SchemaType] = {}
        self.operations: List[Operation] = []
        self.entity_sets: List[EntitySet] = []
        self.container_name: str = ""

    # ---------------- registration ----------------

    def add_type(self, schema_type: SchemaType) -> SchemaType:
        self._types[schema_type.full_name] = schema_type
        return schema_type

    def add_operation(self, operation: Operation) -> Operation:
        self.operations.append(operation)
        return operation

    def add_entity_set(self, entity_set: EntitySet) -> EntitySet:
        self.entity_sets.append(entity_set)
        return entity_set

    # ---------------- types ----------------

    @property
    def types(self) -> List[SchemaType]:
        return list(self._types.values())

    def primitive(self, name: str) -> SchemaType:
        """Return the Edm primitive type for ``name`` (with or without "Edm.")."""
        simple = name.split(".", 1)[1] if name.startswith(EDM_NAMESPACE + ".") else name
        cached = self._primitives.get(simple)
        if cached is not None:
            return cached
        try:
            kind = PrimitiveKind(simple)
        except ValueError:
            if simple in ("PrimitiveType", "Untyped"):
                t = SchemaType(TypeKind.NONE, simple, EDM_NAMESPACE)
                self._primitives[simple] = t
                return t
            raise UnresolvableName(name, EDM_NAMESPACE) from None
        t = SchemaType(TypeKind.PRIMITIVE, simple, EDM_NAMESPACE, primitive_kind=kind)
        self._primitives[simple] = t
        return t

    def collection_of(self, element_type: SchemaType) -> SchemaType:
        return SchemaType(TypeKind.COLLECTION, "Collection", element_type=element_type)

    def find_type(self, name: str, fuzzy: bool = True) -> Optional[SchemaType]:
        """
        Look up a type by qualified name, simple name or Collection(...) form.

        With ``fuzzy=False`` only the exact qualified name is accepted, as
        required for type references inside a CSDL document. Returns None
        when nothing matches.
        """
        name = name.strip()
        if name.startswith("Collection(") and name.endswith(")"):
            element = self.find_type(name[len("Collection("):-1], fuzzy)
            return self.collection_of(element) if element is not None else None
        if name.startswith(EDM_NAMESPACE + "."):
            try:
                return self.primitive(name)
            except UnresolvableName:
                return None
        found = self._types.get(name)
        if found is not None or not fuzzy:
            return found
        simple = name.rsplit(".", 1)[-1]
        return self.resolver.best_match(self._types.values(), simple)

    def get_type(self, name: str, fuzzy: bool = True) -> SchemaType:
        found = self.find_type(name, fuzzy)
        if found is None:
            raise UnresolvableName(name, self.container_name or "schema")
        return found

    def get_entity_type(self, name: str) -> SchemaType:
        found = self.get_type(name)
        if found.kind != TypeKind.ENTITY:
            raise UnresolvableName(name, self.container_name or "schema",
                                   f"Type [{name}] is not an entity type")
        return found

    # ---------------- operations ----------------

    def actions(self) -> List[Operation]:
        return [o for o in self.operations if o.is_action]

    def functions(self) -> List[Operation]:
        return [o for o in self.operations if not o.is_action]

    def get_action(self, name: str) -> Operation:
        simple = name.rsplit(".", 1)[-1]
        return self.resolver.resolve(self.actions(), simple, self.container_name or "schema")

    def get_function(self, name: str) -> Operation:
        simple = name.rsplit(".", 1)[-1]
        return self.resolver.resolve(self.functions(), simple, self.container_name or "schema")

    # ---------------- container ----------------

    def find_entity_set(self, name: str) -> Optional[EntitySet]:
        return self.resolver.best_match(self.entity_sets, name)

    def navigate_to_collection(self, path: str) -> Tuple[EntitySet, SchemaType]:
        """
        Resolve a resource path to its entity set and the entity type addressed.

        Parameters
        ----------
        path : str
            Collection name or path such as "Customers(1)/Orders"

        Returns
        -------
        tuple of (EntitySet, SchemaType)
            The root entity set and the entity type at the end of the path

        Raises
        ------
        UnresolvableName
            If any path segment cannot be resolved
        """
        segments = [s for s in path.split("?", 1)[0].strip("/").split("/") if s]
        if not segments:
            raise UnresolvableName(path, self.container_name or "container")

        root = segments[0].split("(", 1)[0]
        entity_set = self.find_entity_set(root)
        if entity_set is None:
            # Derived type casts and type-named collections
            found = self.find_type(root)
            if found is None or found.kind != TypeKind.ENTITY:
                raise UnresolvableName(root, self.container_name or "container")
            entity_set = EntitySet(self._collection_for(found)[0], found)

        current = entity_set.entity_type
        for segment in segments[1:]:
            segment_name = segment.split("(", 1)[0]
            cast = self._types.get(segment_name)
            if cast is not None and cast.kind == TypeKind.ENTITY:
                current = cast
                continue
            nav = self.resolver.resolve(current.all_navigation_properties(), segment_name, current.full_name)
            current = nav.entity_type
        return entity_set, current

    def _collection_for(self, entity_type: SchemaType) -> Tuple[str, bool]:
        candidates = [entity_type] + entity_type.base_types()
        for t in candidates:
            for es in self.entity_sets:
                if es.entity_type is t:
                    return es.name, es.is_singleton
        raise UnresolvableName(entity_type.full_name, self.container_name or "container",
                               f"No entity set or singleton holds type [{entity_type.full_name}]")

    def get_linked_collection_name(self, entity_type: Union[SchemaType, str]) -> Tuple[str, bool]:
        """
        Find the entity set or singleton that holds instances of a type.

        Entity sets declared for a base type also hold derived instances.

        Returns
        -------
        tuple of (str, bool)
            Collection name and whether it is a singleton
        """
        if isinstance(entity_type, str):
            entity_type = self.get_entity_type(entity_type)
        return self._collection_for(entity_type)
