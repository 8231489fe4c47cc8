# shopcore/api/deps.py
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from shopcore.data.database import get_db
from shopcore.domain.errors import InvalidAddress, ShopError
from shopcore.domain.schemas import Principal
from shopcore.services.cart_service import CartService
from shopcore.services.order_service import OrderService
from shopcore.services.product_client import ProductCatalog, ProductClient


def get_principal(
    x_user_id: int = Header(..., alias="X-User-Id"),
    x_user_role: str = Header("customer", alias="X-User-Role"),
) -> Principal:
    """Identity is authenticated upstream and forwarded in headers."""
    return Principal(user_id=x_user_id, role=x_user_role)


def get_product_client() -> ProductCatalog:
    return ProductClient()


def get_cart_service(
    db: Session = Depends(get_db),
    product_client: ProductCatalog = Depends(get_product_client),
) -> CartService:
    return CartService(db=db, product_client=product_client)


def get_order_service(
    db: Session = Depends(get_db),
    product_client: ProductCatalog = Depends(get_product_client),
) -> OrderService:
    return OrderService(db=db, product_client=product_client)


def http_error(e: ShopError) -> HTTPException:
    if isinstance(e, InvalidAddress):
        return HTTPException(status_code=e.status_code, detail={"message": str(e), "fields": e.fields})
    return HTTPException(status_code=e.status_code, detail=str(e))
