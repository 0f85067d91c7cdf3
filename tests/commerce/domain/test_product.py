"""Tests for the Product aggregate — variant stock and the stock-total invariant."""

import pytest
from commerce.catalogue.product import Product, ProductVariant
from protean.exceptions import ValidationError


def _sneaker():
    return Product.create(
        name="Zapatilla Roja",
        price=25000,
        variants=[
            {"color_code": "#FF0000", "color_name": "Rojo", "size": "38", "stock": 5},
            {"color_code": "#000000", "color_name": "Negro", "size": "40", "stock": 2},
        ],
    )


class TestProductCreation:
    def test_flat_product_totals_follow_stock(self):
        product = Product.create(name="Medias", price=3000, stock=10)
        assert product.stock == 10
        assert product.stock_total == 10
        assert not product.has_variants

    def test_variant_product_totals_are_summed(self):
        product = _sneaker()
        assert product.has_variants
        assert product.stock_total == 7
        assert product.stock == 7

    def test_mismatched_total_violates_invariant(self):
        with pytest.raises(ValidationError) as exc:
            Product(
                name="Roto",
                price=100,
                stock_total=99,
                variants=[ProductVariant(color_code="#FFFFFF", size="40", stock=1)],
            )
        assert "stock_total" in exc.value.messages

    def test_negative_variant_stock_is_rejected(self):
        with pytest.raises(ValidationError):
            ProductVariant(color_code="#FFFFFF", size="40", stock=-1)


class TestFindVariant:
    def test_match_is_case_insensitive_on_color(self):
        variant = _sneaker().find_variant(color_code="#ff0000", size="38")
        assert variant is not None
        assert variant.color_name == "Rojo"

    def test_size_must_match(self):
        assert _sneaker().find_variant(color_code="#FF0000", size="40") is None

    def test_lookup_by_id(self):
        product = _sneaker()
        black = product.find_variant(color_code="#000000", size="40")
        assert product.find_variant(variant_id=str(black.id)) is black


class TestStockAdjustment:
    def test_variant_adjustment_resyncs_totals(self):
        product = _sneaker()
        red = product.find_variant(color_code="#FF0000", size="38")

        assert product.adjust_variant_stock(red, -2) == 3
        assert product.stock_total == 5
        assert product.stock == 5

    def test_variant_stock_never_goes_negative(self):
        product = _sneaker()
        black = product.find_variant(color_code="#000000", size="40")

        assert product.adjust_variant_stock(black, -10) == 0
        assert product.stock_total == 5

    def test_flat_stock_is_clamped_at_zero(self):
        product = Product.create(name="Medias", price=3000, stock=2)
        assert product.adjust_stock(-5) == 0
        assert product.stock_total == 0

    def test_flat_stock_restore(self):
        product = Product.create(name="Medias", price=3000, stock=2)
        product.adjust_stock(3)
        assert product.stock == 5
        assert product.stock_total == 5
