"""Tests for Product pricing, variants and stock counters."""

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError
from storefront.product.product import Product


def _make_product(**overrides):
    defaults = {"name": "Shirt", "slug": "shirt", "price": 20.0, "stock": 5, "discount_percent": 10.0}
    defaults.update(overrides)
    return Product.create(**defaults)


class TestProductPricing:
    def test_discount_per_unit(self):
        assert _make_product().discount_per_unit() == pytest.approx(2.0)

    def test_variant_price_overrides_product_price(self):
        product = _make_product()
        variant = product.add_variant("Large", stock=3, price=30.0)
        assert product.base_price(str(variant.id)) == 30.0
        assert product.discount_per_unit(str(variant.id)) == pytest.approx(3.0)

    def test_variant_without_price_uses_product_price(self):
        product = _make_product()
        variant = product.add_variant("Small", stock=3)
        assert product.base_price(str(variant.id)) == 20.0


class TestProductVariants:
    def test_duplicate_variant_name_rejected(self):
        product = _make_product()
        product.add_variant("Large")
        with pytest.raises(ValidationError):
            product.add_variant("Large")

    def test_unknown_variant(self):
        with pytest.raises(ObjectNotFoundError):
            _make_product().variant("missing")


class TestProductStock:
    def test_set_stock_returns_previous(self):
        product = _make_product()
        assert product.set_stock(2) == 5
        assert product.available_stock() == 2

    def test_variant_stock_is_separate(self):
        product = _make_product()
        variant = product.add_variant("Large", stock=3)
        product.set_stock(1, str(variant.id))
        assert product.available_stock(str(variant.id)) == 1
        assert product.available_stock() == 5

    def test_negative_stock_rejected(self):
        with pytest.raises(ValidationError):
            _make_product().set_stock(-1)
