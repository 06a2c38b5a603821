"""
Tests for odata_writer.odata.names module.
"""

import pytest

from odata_writer.core.errors import UnresolvableName
from odata_writer.odata.names import NameResolver, SimplePluralizer, best_match


class Named:
    def __init__(self, name):
        self.name = name


class TestSimplePluralizer:
    """Tests for the default English pluralizer."""

    @pytest.mark.parametrize("singular,plural", [
        ("Order", "Orders"),
        ("Category", "Categories"),
        ("Box", "Boxes"),
        ("Address", "Addresses"),
        ("Key", "Keys"),
        ("Person", "People"),
        ("OrderDetail", "OrderDetails"),
        ("order_item", "order_items"),
        ("ORDER", "ORDERS"),
    ])
    def test_pluralize_and_back(self, singular, plural):
        p = SimplePluralizer()
        assert p.pluralize(singular) == plural
        assert p.singularize(plural) == singular

    def test_uncountable_unchanged(self):
        p = SimplePluralizer()
        assert p.pluralize("Equipment") == "Equipment"
        assert p.singularize("Data") == "Data"


class TestBestMatch:
    """Tests for tiered name matching."""

    def test_exact_match_wins(self):
        assert best_match(["name", "Name"], "Name") == "Name"

    def test_case_insensitive(self):
        assert best_match(["Name", "Price"], "NAME") == "Name"

    def test_ambiguous_tier_yields_none(self):
        assert best_match(["Name", "NAME"], "name") is None

    def test_plural_tier_requires_pluralizer(self):
        assert best_match(["Orders"], "Order") is None
        assert best_match(["Orders"], "Order", pluralizer=SimplePluralizer()) == "Orders"

    def test_singular_from_plural(self):
        assert best_match(["Category"], "categories", pluralizer=SimplePluralizer()) == "Category"

    def test_empty_name(self):
        assert best_match(["Name"], "") is None

    def test_custom_key(self):
        items = [Named("Id"), Named("Name")]
        assert best_match(items, "id", key=lambda x: x.name) is items[0]


class TestNameResolver:
    """Tests for NameResolver."""

    def test_resolve_returns_element(self):
        resolver = NameResolver()
        items = [Named("Amount"), Named("Orders")]
        assert resolver.resolve(items, "order") is items[1]

    def test_resolve_raises_with_container(self):
        resolver = NameResolver()
        with pytest.raises(UnresolvableName) as exc:
            resolver.resolve([Named("Amount")], "Qty", "Restock")
        assert exc.value.name == "Qty"
        assert exc.value.container == "Restock"

    def test_plurals_disabled(self):
        resolver = NameResolver(use_plurals=False)
        assert resolver.pluralizer is None
        assert resolver.best_match([Named("Orders")], "Order") is None

    def test_resolution_is_idempotent(self):
        resolver = NameResolver()
        items = [Named("Name"), Named("Price"), Named("Categories")]
        first = [resolver.best_match(items, n) for n in ("name", "PRICE", "Category", "Missing")]
        for _ in range(3):
            again = [resolver.best_match(items, n) for n in ("name", "PRICE", "Category", "Missing")]
            assert again == first
