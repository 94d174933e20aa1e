"""Shipping rules and marketplace zones (configured by admins, read by checkout)."""

import json

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, String, Text

from storefront.domain import storefront


def _lower_list(raw) -> list[str]:
    values = json.loads(raw) if raw else []
    return [str(v).strip().lower() for v in values]


@storefront.aggregate
class ShippingRule:
    """Value-band shipping price for a destination.

    Empty ``country``/``state``/``postal_codes`` act as wildcards.
    ``max_order_value`` of 0 leaves the band open-ended.
    """

    title = String(required=True, max_length=100)
    min_order_value = Float(default=0.0, min_value=0.0)
    max_order_value = Float(default=0.0, min_value=0.0)
    shipping_cost = Float(required=True, min_value=0.0)
    country = String(max_length=100)
    state = String(max_length=100)
    postal_codes = Text()  # JSON array of pincodes
    active = Boolean(default=True)

    @invariant.post
    def band_must_be_ordered(self):
        if self.max_order_value and self.max_order_value < (self.min_order_value or 0):
            raise ValidationError({"max_order_value": ["max_order_value must not be below min_order_value"]})

    def covers_value(self, order_value: float) -> bool:
        if order_value < (self.min_order_value or 0):
            return False
        return not self.max_order_value or order_value <= self.max_order_value

    def specificity(self, address) -> int | None:
        """How precisely the rule targets ``address``; None when it does not match.

        Pincode outranks state, which outranks country.
        """
        score = 0
        if self.country:
            if (address.country or "").strip().lower() != self.country.strip().lower():
                return None
            score += 1
        if self.state:
            if (address.state or "").strip().lower() != self.state.strip().lower():
                return None
            score += 2
        pincodes = _lower_list(self.postal_codes)
        if pincodes:
            if (address.pincode or "").strip().lower() not in pincodes:
                return None
            score += 4
        return score


@storefront.aggregate
class ShippingZone:
    zone_name = String(required=True, max_length=100)
    countries = Text()  # JSON array
    states = Text()  # JSON array
    pincodes = Text()  # JSON array
    market_fees = Float(default=0.0, min_value=0.0)

    def has_pincode(self, pincode) -> bool:
        return bool(pincode) and pincode.strip().lower() in _lower_list(self.pincodes)

    def has_state(self, state) -> bool:
        return bool(state) and state.strip().lower() in _lower_list(self.states)

    def has_country(self, country) -> bool:
        return bool(country) and country.strip().lower() in _lower_list(self.countries)
