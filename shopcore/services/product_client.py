# shopcore/services/product_client.py
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

import requests

from shopcore.domain.money import to_money
from shopcore.utils.retry import http_retry
from shopcore.utils.settings import PRODUCT_SERVICE_TIMEOUT, PRODUCT_SERVICE_URL
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)

PRODUCT_ACTIVE = "active"


@dataclass(frozen=True)
class ProductSnapshot:
    """Read-only view of a catalog product at lookup time."""

    id: int
    name: str
    price: Decimal
    status: str = PRODUCT_ACTIVE
    sku: str | None = None
    brand: str | None = None
    model: str | None = None
    primary_image_url: str | None = None
    specifications: dict[str, Any] | None = None
    removed: bool = False

    @property
    def is_purchasable(self) -> bool:
        return self.status == PRODUCT_ACTIVE and not self.removed

    @classmethod
    def from_json(cls, data: dict) -> "ProductSnapshot":
        #resellers buy at wholesale price, fall back to plain price for simple catalogs
        price = data.get("wholesale_price", data.get("price"))
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            price=to_money(price if price is not None else 0),
            status=data.get("status", PRODUCT_ACTIVE),
            sku=data.get("sku"),
            brand=data.get("brand"),
            model=data.get("model"),
            primary_image_url=data.get("primary_image_url"),
            specifications=data.get("specifications"),
            removed=bool(data.get("removed", False)),
        )


class ProductCatalog(Protocol):
    def get_by_id(self, product_id: int, include_removed: bool = False) -> ProductSnapshot | None:
        ...


@dataclass
class InMemoryProductCatalog:
    """Catalog backed by a dict, for local runs and tests."""

    products: dict[int, ProductSnapshot] = field(default_factory=dict)

    def add(self, product: ProductSnapshot) -> ProductSnapshot:
        self.products[product.id] = product
        return product

    def get_by_id(self, product_id: int, include_removed: bool = False) -> ProductSnapshot | None:
        product = self.products.get(product_id)
        if product is None or (product.removed and not include_removed):
            return None
        return product


class ProductClient:
    def __init__(self, base_url: str | None = None, timeout: float = PRODUCT_SERVICE_TIMEOUT):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def fetch_product(self, product_id: int, include_removed: bool = False) -> dict | None:
        url = f"{self.base_url}/products/{product_id}"
        params = {"include_removed": "true"} if include_removed else None
        logger.info(f"ProductClient GET {url}")

        resp = requests.get(url, params=params, timeout=self.timeout)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    def get_by_id(self, product_id: int, include_removed: bool = False) -> ProductSnapshot | None:
        data = self.fetch_product(product_id, include_removed=include_removed)
        if data is None:
            return None
        return ProductSnapshot.from_json(data)
