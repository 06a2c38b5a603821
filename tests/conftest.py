"""
Pytest configuration and shared fixtures.
"""

import pytest
from unittest.mock import Mock

from odata_writer.odata.metadata import parse_metadata
from odata_writer.odata.request_writer import RequestWriter
from odata_writer.odata.writers import WriterSettings


BASE_URL = "https://test.example.com/odata/Shop/"


@pytest.fixture
def mock_session():
    """Create a mock ODataSession."""
    session = Mock()
    session.cfg = Mock()
    session.cfg.indent = False
    session.base = BASE_URL
    session.timeout = 60.0
    session.verify = True
    session.session = Mock()
    return session


@pytest.fixture
def sample_metadata_xml():
    """Sample OData v4 $metadata XML."""
    return """<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="4.0" xmlns:edmx="http://docs.oasis-open.org/odata/ns/edmx">
  <edmx:DataServices>
    <Schema Namespace="Shop" Alias="S" xmlns="http://docs.oasis-open.org/odata/ns/edm">
      <EnumType Name="Color">
        <Member Name="Red" Value="0"/>
        <Member Name="Green" Value="1"/>
        <Member Name="Blue" Value="2"/>
      </EnumType>
      <ComplexType Name="Address">
        <Property Name="Street" Type="Edm.String"/>
        <Property Name="City" Type="Edm.String"/>
        <Property Name="Zip" Type="Edm.String"/>
      </ComplexType>
      <EntityType Name="Product">
        <Key>
          <PropertyRef Name="Id"/>
        </Key>
        <Property Name="Id" Type="Edm.Int32" Nullable="false"/>
        <Property Name="Name" Type="Edm.String"/>
        <Property Name="Price" Type="Edm.Decimal"/>
        <Property Name="Color" Type="S.Color"/>
        <Property Name="Origin" Type="Shop.Address"/>
        <Property Name="Tags" Type="Collection(Edm.String)"/>
        <Property Name="Released" Type="Edm.Date"/>
        <NavigationProperty Name="Category" Type="Shop.Category" Partner="Products"/>
      </EntityType>
      <EntityType Name="Category">
        <Key>
          <PropertyRef Name="Id"/>
        </Key>
        <Property Name="Id" Type="Edm.Int32" Nullable="false"/>
        <Property Name="Name" Type="Edm.String"/>
        <NavigationProperty Name="Products" Type="Collection(Shop.Product)" Partner="Category"/>
      </EntityType>
      <EntityType Name="Customer">
        <Key>
          <PropertyRef Name="Id"/>
        </Key>
        <Property Name="Id" Type="Edm.Int32" Nullable="false"/>
        <Property Name="Name" Type="Edm.String"/>
        <NavigationProperty Name="Orders" Type="Collection(Shop.Order)" Partner="Customer"/>
        <NavigationProperty Name="Company" Type="Shop.Company"/>
      </EntityType>
      <EntityType Name="Order">
        <Key>
          <PropertyRef Name="Id"/>
        </Key>
        <Property Name="Id" Type="Edm.Int32" Nullable="false"/>
        <Property Name="Note" Type="Edm.String"/>
        <Property Name="Placed" Type="Edm.DateTimeOffset"/>
        <NavigationProperty Name="Customer" Type="Shop.Customer" Partner="Orders"/>
        <NavigationProperty Name="Lines" Type="Collection(Shop.OrderLine)"/>
      </EntityType>
      <EntityType Name="OrderLine">
        <Key>
          <PropertyRef Name="OrderId"/>
          <PropertyRef Name="Line"/>
        </Key>
        <Property Name="OrderId" Type="Edm.Int32" Nullable="false"/>
        <Property Name="Line" Type="Edm.String" Nullable="false"/>
        <Property Name="Quantity" Type="Edm.Int16"/>
        <NavigationProperty Name="Product" Type="Shop.Product"/>
      </EntityType>
      <EntityType Name="Person" Abstract="true">
        <Key>
          <PropertyRef Name="Id"/>
        </Key>
        <Property Name="Id" Type="Edm.Guid" Nullable="false"/>
        <Property Name="Name" Type="Edm.String"/>
      </EntityType>
      <EntityType Name="Employee" BaseType="S.Person">
        <Property Name="Salary" Type="Edm.Decimal"/>
        <NavigationProperty Name="Manager" Type="Shop.Employee"/>
      </EntityType>
      <EntityType Name="Company">
        <Key>
          <PropertyRef Name="Id"/>
        </Key>
        <Property Name="Id" Type="Edm.Int32" Nullable="false"/>
        <Property Name="Name" Type="Edm.String"/>
        <NavigationProperty Name="Chief" Type="Shop.Employee"/>
      </EntityType>
      <Action Name="Restock" IsBound="true">
        <Parameter Name="bindingParameter" Type="Shop.Product"/>
        <Parameter Name="Amount" Type="Edm.Int32" Nullable="false"/>
      </Action>
      <Action Name="ApplyDiscount">
        <Parameter Name="Product" Type="Shop.Product"/>
        <Parameter Name="Percent" Type="Edm.Double"/>
      </Action>
      <Action Name="ImportProducts">
        <Parameter Name="Products" Type="Collection(Shop.Product)"/>
      </Action>
      <Action Name="SetTags">
        <Parameter Name="Tags" Type="Collection(Edm.String)"/>
      </Action>
      <Action Name="Paint">
        <Parameter Name="Color" Type="Shop.Color"/>
      </Action>
      <Action Name="Ship">
        <Parameter Name="Destination" Type="Shop.Address"/>
      </Action>
      <Function Name="TopProducts">
        <Parameter Name="Count" Type="Edm.Int32"/>
        <ReturnType Type="Collection(Shop.Product)"/>
      </Function>
      <EntityContainer Name="Container">
        <EntitySet Name="Products" EntityType="Shop.Product"/>
        <EntitySet Name="Categories" EntityType="Shop.Category"/>
        <EntitySet Name="Customers" EntityType="Shop.Customer"/>
        <EntitySet Name="Orders" EntityType="Shop.Order"/>
        <EntitySet Name="OrderLines" EntityType="Shop.OrderLine"/>
        <EntitySet Name="People" EntityType="Shop.Person"/>
        <Singleton Name="Company" Type="Shop.Company"/>
      </EntityContainer>
    </Schema>
  </edmx:DataServices>
</edmx:Edmx>"""


@pytest.fixture
def catalog(sample_metadata_xml):
    """Schema catalog parsed from the sample $metadata."""
    return parse_metadata(sample_metadata_xml)


@pytest.fixture
def writer(catalog):
    """Standalone request writer producing compact JSON."""
    return RequestWriter(catalog, base_uri=BASE_URL, settings=WriterSettings(indent=False))


@pytest.fixture
def tagged_catalog():
    """Catalog where a structural property is the singular of a navigation property."""
    return parse_metadata("""<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="4.0" xmlns:edmx="http://docs.oasis-open.org/odata/ns/edmx">
  <edmx:DataServices>
    <Schema Namespace="Blog" xmlns="http://docs.oasis-open.org/odata/ns/edm">
      <EntityType Name="Tag">
        <Key>
          <PropertyRef Name="Id"/>
        </Key>
        <Property Name="Id" Type="Edm.Int32" Nullable="false"/>
      </EntityType>
      <EntityType Name="Post">
        <Key>
          <PropertyRef Name="Id"/>
        </Key>
        <Property Name="Id" Type="Edm.Int32" Nullable="false"/>
        <Property Name="Tag" Type="Edm.String"/>
        <NavigationProperty Name="Tags" Type="Collection(Blog.Tag)"/>
      </EntityType>
      <EntityContainer Name="Container">
        <EntitySet Name="Posts" EntityType="Blog.Post"/>
        <EntitySet Name="Tags" EntityType="Blog.Tag"/>
      </EntityContainer>
    </Schema>
  </edmx:DataServices>
</edmx:Edmx>""")
