# shopcore/domain/address.py
import re

from shopcore.domain.errors import InvalidAddress
from shopcore.utils.settings import DOMESTIC_COUNTRIES

REQUIRED_FIELDS = ("full_name", "address1", "city", "state", "postal_code", "country")

#JP postal code: 150-0001 or 1500001
DOMESTIC_POSTAL_CODE = re.compile(r"^\d{3}-?\d{4}$")


def is_domestic(country: str) -> bool:
    return country.strip().lower() in DOMESTIC_COUNTRIES


def validate_address(address: dict, label: str = "shipping") -> dict:
    missing = [f for f in REQUIRED_FIELDS if not str(address.get(f) or "").strip()]
    if missing:
        raise InvalidAddress(
            f"Missing required {label} address fields: {', '.join(missing)}",
            fields=missing,
        )

    if is_domestic(address["country"]) and not DOMESTIC_POSTAL_CODE.match(address["postal_code"].strip()):
        raise InvalidAddress(
            f"Invalid {label} postal code '{address['postal_code']}'",
            fields=["postal_code"],
        )

    return address
