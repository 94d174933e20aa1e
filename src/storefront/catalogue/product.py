"""Product aggregate with Variant entities: the catalogue the checkout reads from.

Catalogue maintenance lives outside this service; checkout only reads prices,
stock, brand and display data. ``reprice`` exists so catalogue feeds (and
tests) can move prices after orders have been frozen.
"""

import json
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Float, HasMany, Integer, String, Text

from storefront.domain import storefront


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@storefront.entity(part_of="Product")
class ProductVariant:
    sku = String(max_length=50)
    price = Float(min_value=0.0)
    stock = Integer(default=0)
    attributes = Text()  # JSON object: {"Color": "Red", "Size": "M"}
    images = Text()  # JSON array of image URLs

    def attribute_labels(self) -> list[str]:
        attributes = json.loads(self.attributes) if self.attributes else {}
        return [f"{name}: {value}" for name, value in attributes.items()]


@storefront.aggregate
class Product:
    title = String(required=True, max_length=255)
    sku = String(max_length=50)
    brand_name = String(max_length=100)
    brand_logo = String(max_length=500)
    price = Float(required=True, min_value=0.0)
    final_price = Float(min_value=0.0)
    stock = Integer(default=0)
    images = Text()  # JSON array of image URLs
    category_ids = Text()  # JSON array of category identifiers
    shipping_cost = Float(default=0.0)
    status = String(choices=ProductStatus, default=ProductStatus.ACTIVE.value)
    variants = HasMany(ProductVariant)

    @invariant.post
    def final_price_cannot_exceed_price(self):
        if self.final_price and self.price and self.final_price > self.price:
            raise ValidationError({"final_price": ["Final price cannot exceed the list price"]})

    @classmethod
    def create(cls, title, price, final_price=None, variants=None, images=None, category_ids=None, **kwargs):
        product = cls(
            title=title,
            price=price,
            final_price=final_price,
            images=json.dumps(images or []),
            category_ids=json.dumps(category_ids or []),
            **kwargs,
        )
        for variant in variants or []:
            fields = {
                "sku": variant.get("sku"),
                "price": variant.get("price"),
                "stock": variant.get("stock", 0),
                "attributes": json.dumps(variant.get("attributes") or {}),
                "images": json.dumps(variant.get("images") or []),
            }
            if variant.get("id"):
                fields["id"] = variant["id"]
            product.add_variants(ProductVariant(**fields))
        return product

    def variant(self, variant_id):
        if not variant_id:
            return None
        return next((v for v in self.variants if str(v.id) == str(variant_id)), None)

    def reprice(self, price, final_price=None, variant_id=None):
        if variant_id:
            variant = self.variant(variant_id)
            if variant is None:
                raise ValidationError({"variant_id": ["Variant not found"]})
            variant.price = price
            return
        self.price = price
        self.final_price = final_price

    @property
    def category_list(self) -> list[str]:
        return json.loads(self.category_ids) if self.category_ids else []

    @property
    def image_list(self) -> list[str]:
        return json.loads(self.images) if self.images else []
