# shopcore/product_service/main.py
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Product Service (dev mock)")


PRODUCTS = {
    1: {"id": 1, "name": "Keyboard", "sku": "KB-001", "brand": "Keychron", "model": "K2",
        "price": 12000, "wholesale_price": 9800, "status": "active", "removed": False},
    2: {"id": 2, "name": "Mouse", "sku": "MS-002", "brand": "Logicool", "model": "MX3",
        "price": 1500, "status": "active", "removed": False},
    3: {"id": 3, "name": "Monitor", "sku": "MN-003", "brand": "EIZO", "model": "EV2795",
        "price": 89000, "status": "inactive", "removed": False},
    4: {"id": 4, "name": "Webcam", "sku": "WC-004", "brand": "Logicool", "model": "C920",
        "price": 8000, "status": "active", "removed": True},
}


@app.get("/products/{product_id}")
def get_product(product_id: int, include_removed: bool = False):
    product = PRODUCTS.get(product_id)
    if not product or (product["removed"] and not include_removed):
        raise HTTPException(status_code=404, detail="Product not found")
    return product
