"""
Tests for odata_writer.odata.schema and odata_writer.odata.metadata modules.
"""

import pytest

from odata_writer.core.errors import UnresolvableName
from odata_writer.odata.metadata import ODataMetadata, _strip_ns, parse_metadata
from odata_writer.odata.names import NameResolver
from odata_writer.odata.schema import (
    EntitySet,
    Property,
    PrimitiveKind,
    SchemaCatalog,
    SchemaType,
    TypeKind,
    narrow_entity_type,
)


class TestHelperFunctions:
    """Tests for metadata helper functions."""

    def test_strip_ns(self):
        assert _strip_ns("{http://example.com}Element") == "Element"
        assert _strip_ns("Element") == "Element"


class TestParseMetadata:
    """Tests for CSDL parsing."""

    def test_entity_types(self, catalog):
        product = catalog.get_type("Shop.Product")
        assert product.kind == TypeKind.ENTITY
        assert product.key == ["Id"]
        assert [p.name for p in product.properties] == [
            "Id", "Name", "Price", "Color", "Origin", "Tags", "Released",
        ]

    def test_alias_and_enum(self, catalog):
        color = catalog.get_entity_type("Product").properties[3].type
        assert color.kind == TypeKind.ENUM
        assert color.full_name == "Shop.Color"
        assert color.members == ["Red", "Green", "Blue"]

    def test_primitive_and_collection_types(self, catalog):
        props = {p.name: p.type for p in catalog.get_type("Shop.Product").properties}
        assert props["Price"].primitive_kind == PrimitiveKind.DECIMAL
        assert props["Tags"].kind == TypeKind.COLLECTION
        assert props["Tags"].full_name == "Collection(Edm.String)"
        assert props["Origin"].kind == TypeKind.COMPLEX

    def test_nullable(self, catalog):
        props = {p.name: p for p in catalog.get_type("Shop.Product").properties}
        assert props["Id"].nullable is False
        assert props["Name"].nullable is True

    def test_navigation_properties(self, catalog):
        customer = catalog.get_type("Shop.Customer")
        orders = customer.navigation_properties[0]
        assert orders.name == "Orders"
        assert orders.is_collection
        assert orders.entity_type is catalog.get_type("Shop.Order")
        assert orders.partner == "Customer"
        assert not customer.navigation_properties[1].is_collection

    def test_inheritance(self, catalog):
        employee = catalog.get_type("Shop.Employee")
        person = catalog.get_type("Shop.Person")
        assert employee.base_type is person
        assert employee.key is None
        assert employee.key_type() is person
        assert person.abstract
        assert [p.name for p in employee.structural_properties()] == ["Id", "Name", "Salary"]
        assert employee.is_derived_from(person)

    def test_operations(self, catalog):
        restock = catalog.get_action("Restock")
        assert restock.is_bound
        assert [p.name for p in restock.parameters] == ["bindingParameter", "Amount"]
        top = catalog.get_function("Shop.TopProducts")
        assert top.return_type.full_name == "Collection(Shop.Product)"
        assert {a.name for a in catalog.actions()} == {
            "Restock", "ApplyDiscount", "ImportProducts", "SetTags", "Paint", "Ship",
        }

    def test_container(self, catalog):
        assert catalog.container_name == "Container"
        company = catalog.find_entity_set("Company")
        assert company.is_singleton
        assert len(catalog.entity_sets) == 7


class TestSchemaCatalog:
    """Tests for catalog lookups."""

    def test_primitive_cached(self, catalog):
        assert catalog.primitive("Edm.Int32") is catalog.primitive("Int32")
        assert catalog.primitive("Untyped").kind == TypeKind.NONE

    def test_unknown_primitive_raises(self, catalog):
        with pytest.raises(UnresolvableName):
            catalog.primitive("Edm.Bogus")

    def test_find_type_fuzzy(self, catalog):
        assert catalog.find_type("product") is catalog.get_type("Shop.Product")
        assert catalog.find_type("Missing") is None
        assert catalog.find_type("Collection(Shop.Order)").element_type is catalog.get_type("Shop.Order")

    def test_get_entity_type_rejects_complex(self, catalog):
        with pytest.raises(UnresolvableName, match="not an entity type"):
            catalog.get_entity_type("Shop.Address")

    def test_navigate_to_collection(self, catalog):
        es, t = catalog.navigate_to_collection("Products")
        assert es.name == "Products"
        assert t is catalog.get_type("Shop.Product")

    def test_navigate_through_navigation(self, catalog):
        es, t = catalog.navigate_to_collection("Customers(1)/Orders")
        assert es.name == "Customers"
        assert t is catalog.get_type("Shop.Order")

    def test_navigate_type_cast(self, catalog):
        es, t = catalog.navigate_to_collection("People/Shop.Employee")
        assert es.name == "People"
        assert t is catalog.get_type("Shop.Employee")

    def test_navigate_unknown_raises(self, catalog):
        with pytest.raises(UnresolvableName) as exc:
            catalog.navigate_to_collection("Nope")
        assert exc.value.name == "Nope"

    def test_linked_collection_name(self, catalog):
        assert catalog.get_linked_collection_name("Shop.Order") == ("Orders", False)
        assert catalog.get_linked_collection_name("Shop.Employee") == ("People", False)
        assert catalog.get_linked_collection_name("Shop.Company") == ("Company", True)

    def test_hand_built_catalog(self):
        catalog = SchemaCatalog()
        product = catalog.add_type(SchemaType(TypeKind.ENTITY, "Product", "Shop", key=["Id"]))
        product.properties.append(Property("Id", catalog.primitive("Int32")))
        catalog.add_entity_set(EntitySet("Products", product))
        assert catalog.get_type("Shop.Product") is product
        assert catalog.navigate_to_collection("Products(1)")[1] is product


class TestBaseTypes:
    """Tests for inheritance walks."""

    def test_cycle_guard(self):
        a = SchemaType(TypeKind.ENTITY, "A", "T")
        b = SchemaType(TypeKind.ENTITY, "B", "T", base_type=a)
        a.base_type = b
        assert a.base_types() == [b]
        assert b.base_types() == [a]
        assert a.key_type() is a

    def test_deep_chain(self):
        root = SchemaType(TypeKind.ENTITY, "Root", "T", key=["Id"])
        current = root
        for i in range(10):
            current = SchemaType(TypeKind.ENTITY, f"D{i}", "T", base_type=current)
        assert current.key_type() is root
        assert len(current.base_types()) == 10


class TestNarrowEntityType:
    """Tests for PATCH narrowing."""

    def test_declares_exactly_payload_keys(self, catalog):
        product = catalog.get_type("Shop.Product")
        narrowed = narrow_entity_type(product, ["price", "Category"], NameResolver())
        assert [p.name for p in narrowed.properties] == ["Price"]
        assert [n.name for n in narrowed.navigation_properties] == ["Category"]
        assert narrowed.base_type is None
        assert narrowed.key == ["Id"]
        assert narrowed.full_name == "Shop.Product"
        # Original is untouched
        assert len(product.properties) == 7

    @pytest.mark.parametrize("payload", [
        {"Name": "x"},
        {"Name": "x", "Price": 1, "Tags": []},
        {"Id": 1, "Name": "x", "Price": 1, "Color": "Red", "Origin": {}, "Tags": [], "Released": None},
        {},
    ])
    def test_property_set_equals_payload(self, catalog, payload):
        narrowed = narrow_entity_type(catalog.get_type("Shop.Product"), payload.keys(), NameResolver())
        declared = {p.name for p in narrowed.structural_properties()}
        assert declared == set(payload)

    def test_inherited_key_and_properties(self, catalog):
        narrowed = narrow_entity_type(catalog.get_type("Shop.Employee"), ["Salary", "name"], NameResolver())
        assert [p.name for p in narrowed.structural_properties()] == ["Salary", "Name"]
        assert narrowed.key == ["Id"]

    def test_exact_navigation_name_beats_plural_property(self, tagged_catalog):
        post = tagged_catalog.get_type("Blog.Post")
        narrowed = narrow_entity_type(post, ["Tags"], NameResolver())
        assert narrowed.properties == []
        assert [n.name for n in narrowed.navigation_properties] == ["Tags"]

    def test_unknown_name_raises(self, catalog):
        with pytest.raises(UnresolvableName) as exc:
            narrow_entity_type(catalog.get_type("Shop.Product"), ["Weight"], NameResolver())
        assert exc.value.name == "Weight"


class TestODataMetadata:
    """Tests for ODataMetadata."""

    def test_loads_once(self, mock_session, sample_metadata_xml):
        mock_session.get_text.return_value = sample_metadata_xml
        meta = ODataMetadata(mock_session)

        assert meta.entity_sets() == [
            "Categories", "Company", "Customers", "OrderLines", "Orders", "People", "Products",
        ]
        assert meta.properties("Customers") == ["Id", "Name"]
        assert meta.properties("Nope") == []
        mock_session.get_text.assert_called_once_with("$metadata")

    def test_refresh(self, mock_session, sample_metadata_xml):
        mock_session.get_text.return_value = sample_metadata_xml
        meta = ODataMetadata(mock_session)
        first = meta.catalog
        meta.refresh()
        assert meta.catalog is not first
        assert mock_session.get_text.call_count == 2

    def test_parse_without_container(self):
        xml = """<edmx:Edmx Version="4.0" xmlns:edmx="http://docs.oasis-open.org/odata/ns/edmx">
          <edmx:DataServices>
            <Schema Namespace="T" xmlns="http://docs.oasis-open.org/odata/ns/edm">
              <ComplexType Name="Point"><Property Name="X" Type="Edm.Double"/></ComplexType>
            </Schema>
          </edmx:DataServices>
        </edmx:Edmx>"""
        catalog = parse_metadata(xml)
        assert catalog.entity_sets == []
        assert catalog.get_type("T.Point").kind == TypeKind.COMPLEX

    def test_type_references_are_exact(self):
        xml = """<edmx:Edmx Version="4.0" xmlns:edmx="http://docs.oasis-open.org/odata/ns/edmx">
          <edmx:DataServices>
            <Schema Namespace="T" xmlns="http://docs.oasis-open.org/odata/ns/edm">
              <ComplexType Name="Address"><Property Name="City" Type="Edm.String"/></ComplexType>
              <EntityType Name="Site">
                <Key><PropertyRef Name="Id"/></Key>
                <Property Name="Id" Type="Edm.Int32"/>
                <Property Name="Location" Type="T.Addresses"/>
              </EntityType>
            </Schema>
          </edmx:DataServices>
        </edmx:Edmx>"""
        with pytest.raises(UnresolvableName) as exc:
            parse_metadata(xml)
        assert exc.value.name == "T.Addresses"

    def test_host_lookup_stays_fuzzy(self, catalog):
        assert catalog.get_type("Shop.Addresses").full_name == "Shop.Address"
        assert catalog.find_type("Shop.Addresses", fuzzy=False) is None
