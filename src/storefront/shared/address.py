"""Postal address captured at checkout."""

from protean.fields import String

from storefront.domain import storefront

ADDRESS_FIELDS = ("name", "phone", "address_line1", "address_line2", "city", "state", "country", "pincode")


@storefront.value_object
class Address:
    """A delivery or billing address frozen onto an order.

    Later edits to the customer's saved addresses never reach placed orders.
    """

    name = String(max_length=100)
    phone = String(max_length=20)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    country = String(required=True, max_length=100)
    pincode = String(required=True, max_length=20)

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in ADDRESS_FIELDS}


def address_from_dict(data: dict | None) -> Address | None:
    if not data:
        return None
    return Address(**{name: data.get(name) for name in ADDRESS_FIELDS})
