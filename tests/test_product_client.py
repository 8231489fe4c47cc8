from decimal import Decimal

import pytest
import requests

from shopcore.services import product_client as module
from shopcore.services.product_client import InMemoryProductCatalog, ProductClient, ProductSnapshot


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


@pytest.fixture
def calls(monkeypatch):
    recorded = []
    responses = []

    def fake_get(url, params=None, timeout=None):
        recorded.append({"url": url, "params": params, "timeout": timeout})
        outcome = responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(module.requests, "get", fake_get)
    return recorded, responses


class TestProductSnapshot:
    def test_prefers_wholesale_price(self):
        product = ProductSnapshot.from_json({"id": "5", "name": "Cable", "price": 500, "wholesale_price": 420})
        assert product.id == 5
        assert product.price == Decimal("420.00")

    def test_falls_back_to_price(self):
        assert ProductSnapshot.from_json({"id": 5, "name": "Cable", "price": 19.99}).price == Decimal("19.99")

    @pytest.mark.parametrize(
        "status,removed,expected",
        [("active", False, True), ("inactive", False, False), ("active", True, False)],
    )
    def test_purchasable(self, status, removed, expected):
        product = ProductSnapshot(id=1, name="x", price=Decimal("1.00"), status=status, removed=removed)
        assert product.is_purchasable is expected


class TestProductClient:
    def test_fetches_product(self, calls):
        recorded, responses = calls
        responses.append(FakeResponse(payload={"id": 1, "name": "Keyboard", "price": 1000, "sku": "KB"}))

        product = ProductClient(base_url="http://catalog/", timeout=1.5).get_by_id(1)

        assert product.name == "Keyboard"
        assert product.sku == "KB"
        assert recorded == [{"url": "http://catalog/products/1", "params": None, "timeout": 1.5}]

    def test_include_removed_is_forwarded(self, calls):
        recorded, responses = calls
        responses.append(FakeResponse(payload={"id": 1, "name": "Keyboard", "price": 1000, "removed": True}))

        product = ProductClient(base_url="http://catalog").get_by_id(1, include_removed=True)

        assert product.removed is True
        assert recorded[0]["params"] == {"include_removed": "true"}

    def test_missing_product(self, calls):
        _, responses = calls
        responses.append(FakeResponse(status_code=404))
        assert ProductClient(base_url="http://catalog").get_by_id(1) is None

    def test_retries_transient_errors(self, calls):
        recorded, responses = calls
        responses.extend([
            requests.ConnectionError("reset"),
            FakeResponse(payload={"id": 1, "name": "Keyboard", "price": 1000}),
        ])

        assert ProductClient(base_url="http://catalog").get_by_id(1).name == "Keyboard"
        assert len(recorded) == 2

    def test_gives_up_after_three_attempts(self, calls):
        recorded, responses = calls
        responses.extend([requests.Timeout("slow")] * 3)

        with pytest.raises(requests.Timeout):
            ProductClient(base_url="http://catalog").get_by_id(1)
        assert len(recorded) == 3


class TestInMemoryCatalog:
    def test_hides_removed_products_by_default(self):
        catalog = InMemoryProductCatalog()
        catalog.add(ProductSnapshot(id=1, name="Old", price=Decimal("1.00"), removed=True))

        assert catalog.get_by_id(1) is None
        assert catalog.get_by_id(1, include_removed=True).name == "Old"
