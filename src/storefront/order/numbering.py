"""Human-readable order numbers: ``ORD-YYYYMMDD-HHMMSS-XXXX``."""

import secrets
import string
from datetime import UTC, datetime

from protean.utils.globals import current_domain

from storefront.errors import ConflictError
from storefront.order.order import Order

_ALPHABET = string.ascii_uppercase + string.digits
MAX_ATTEMPTS = 3


def candidate_number(now=None) -> str:
    now = now or datetime.now(UTC)
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(4))
    return f"ORD-{now:%Y%m%d-%H%M%S}-{suffix}"


def next_order_number() -> str:
    repo = current_domain.repository_for(Order)
    for _ in range(MAX_ATTEMPTS):
        number = candidate_number()
        if repo.by_number(number) is None:
            return number
    raise ConflictError({"order_number": ["Could not allocate a unique order number, retry"]})
