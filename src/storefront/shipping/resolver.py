"""Shipping Resolver: shipping cost and marketplace fee for a destination."""

import structlog
from protean.utils.globals import current_domain

from storefront.shared.money import round_money
from storefront.shipping.rules import ShippingRule, ShippingZone

logger = structlog.get_logger(__name__)


class ShippingResolver:
    def active_rules(self) -> list[ShippingRule]:
        return current_domain.repository_for(ShippingRule)._dao.query.filter(active=True).all().items

    def match_rule(self, address, order_value: float) -> ShippingRule | None:
        """Pick the rule that prices shipping for ``address`` at ``order_value``.

        The most specific rule whose value band covers the order wins, cheaper
        first on ties. Without a match the cheapest active rule applies.
        """
        rules = self.active_rules()
        if not rules:
            return None

        candidates = []
        for rule in rules:
            if not rule.covers_value(order_value):
                continue
            score = rule.specificity(address)
            if score is not None:
                candidates.append((-score, rule.shipping_cost, rule.title, rule))

        if candidates:
            return min(candidates, key=lambda c: c[:3])[3]

        fallback = min(rules, key=lambda r: (r.shipping_cost, r.title))
        logger.debug("shipping_rule_fallback", rule=fallback.title, pincode=address.pincode)
        return fallback

    def shipping_cost(self, address, order_value: float) -> float:
        if address is None:
            return 0.0
        rule = self.match_rule(address, order_value)
        return round_money(rule.shipping_cost) if rule else 0.0

    def match_zone(self, address) -> ShippingZone | None:
        """Zone lookup by pincode, then state, then country (case-insensitive)."""
        zones = current_domain.repository_for(ShippingZone)._dao.query.all().items
        for matches in (
            lambda z: z.has_pincode(address.pincode),
            lambda z: z.has_state(address.state),
            lambda z: z.has_country(address.country),
        ):
            zone = next((z for z in zones if matches(z)), None)
            if zone is not None:
                return zone
        return None

    def marketplace_fees(self, address) -> float:
        if address is None:
            return 0.0
        zone = self.match_zone(address)
        return round_money(zone.market_fees) if zone else 0.0
