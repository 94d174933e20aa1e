"""Catalogue Reader: read-only product/variant access for the pricing pipeline.

Unit price precedence (first positive value wins):

    1. negotiated price carried by the cart line
    2. variant price
    3. product final (sale) price
    4. product list price
    5. price stored on the cart line when it was added

A product that has disappeared from the catalogue still prices from the
cart-stored value so an in-flight cart remains checkable.
"""

import json

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product


def _positive(value):
    return value is not None and value > 0


class CatalogueReader:
    def __init__(self):
        self._cache: dict[str, Product | None] = {}

    def product(self, product_id) -> Product | None:
        key = str(product_id)
        if key not in self._cache:
            try:
                self._cache[key] = current_domain.repository_for(Product).get(key)
            except ObjectNotFoundError:
                self._cache[key] = None
        return self._cache[key]

    def variant(self, product_id, variant_id):
        product = self.product(product_id)
        return product.variant(variant_id) if product else None

    def list_price(self, product_id, variant_id=None) -> float | None:
        """Catalogue price of a product/variant, ignoring anything stored on a cart."""
        product = self.product(product_id)
        if product is None:
            return None
        variant = product.variant(variant_id)
        if variant is not None and _positive(variant.price):
            return variant.price
        if _positive(product.final_price):
            return product.final_price
        return product.price

    def unit_price(self, line) -> float:
        """Resolve the unit price of a cart line, see module docstring for precedence."""
        if _positive(line.negotiated_price):
            return line.negotiated_price
        catalogue_price = self.list_price(line.product_id, line.variant_id)
        if _positive(catalogue_price):
            return catalogue_price
        if _positive(line.final_price):
            return line.final_price
        return line.price or 0.0

    def display(self, product_id, variant_id=None) -> dict:
        """Name/brand/image snapshot used by summaries and order views."""
        product = self.product(product_id)
        if product is None:
            return {"name": None, "brand": None, "brand_logo": None, "image": None, "sku": None, "stock": 0}

        variant = product.variant(variant_id)
        images = product.image_list
        snapshot = {
            "name": product.title,
            "brand": product.brand_name,
            "brand_logo": product.brand_logo,
            "image": images[0] if images else None,
            "sku": product.sku,
            "stock": product.stock,
            "categories": product.category_list,
        }
        if variant is not None:
            variant_images = json.loads(variant.images) if variant.images else []
            snapshot.update(
                sku=variant.sku or product.sku,
                stock=variant.stock,
                variant_attributes=variant.attribute_labels(),
            )
            if variant_images:
                snapshot["image"] = variant_images[0]
        return snapshot
