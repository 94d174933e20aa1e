"""Customer accounts and their saved addresses (read-only for checkout)."""

from enum import Enum

from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import AddressNotFound
from storefront.shared.address import ADDRESS_FIELDS, Address, address_from_dict


class AccountType(Enum):
    REGULAR = "regular"
    BUSINESS = "business"


@storefront.aggregate
class Account:
    name = String(required=True, max_length=100)
    email = String(max_length=255)
    phone = String(max_length=20)
    account_type = String(choices=AccountType, default=AccountType.REGULAR.value)

    @property
    def is_business(self) -> bool:
        return self.account_type == AccountType.BUSINESS.value


@storefront.aggregate
class SavedAddress:
    user_id = Identifier(required=True)
    name = String(max_length=100)
    phone = String(max_length=20)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    country = String(required=True, max_length=100)
    pincode = String(required=True, max_length=20)
    label = String(max_length=20, default="home")
    is_default = Boolean(default=False)

    def as_address(self) -> Address:
        return Address(**{name: getattr(self, name) for name in ADDRESS_FIELDS})


@storefront.repository(part_of=SavedAddress)
class SavedAddressRepository:
    def owned_by(self, address_id, user_id) -> SavedAddress:
        """Fetch an address only if it belongs to ``user_id``."""
        results = self._dao.query.filter(id=str(address_id)).all().items
        address = results[0] if results else None
        if address is None or not user_id or str(address.user_id) != str(user_id):
            raise AddressNotFound({"address_id": [f"Address {address_id} not found"]})
        return address


def resolve_address(user_id, address: dict | None = None, address_id=None) -> Address | None:
    """Return the explicit address, else the caller's saved ``address_id``, else None."""
    if address:
        return address_from_dict(address)
    if address_id:
        return current_domain.repository_for(SavedAddress).owned_by(address_id, user_id).as_address()
    return None
