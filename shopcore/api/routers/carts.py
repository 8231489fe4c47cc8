# shopcore/api/routers/carts.py
from fastapi import APIRouter, Depends

from shopcore.api.deps import get_cart_service, get_principal, http_error
from shopcore.domain.errors import ShopError
from shopcore.domain.schemas import CartOut, ItemIn, ItemQuantityIn, Principal
from shopcore.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartOut)
def get_cart(
    principal: Principal = Depends(get_principal),
    svc: CartService = Depends(get_cart_service),
):
    """Active cart of the caller, created on first access."""
    try:
        return svc.get_cart(principal.user_id)
    except ShopError as e:
        raise http_error(e)


@router.post("/items", response_model=CartOut, status_code=201)
def add_item(
    payload: ItemIn,
    principal: Principal = Depends(get_principal),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.add_item(
            user_id=principal.user_id,
            product_id=payload.product_id,
            quantity=payload.quantity,
            metadata=payload.metadata,
        )
    except ShopError as e:
        raise http_error(e)


@router.put("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int,
    payload: ItemQuantityIn,
    principal: Principal = Depends(get_principal),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.update_item_quantity(principal.user_id, item_id, payload.quantity)
    except ShopError as e:
        raise http_error(e)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    principal: Principal = Depends(get_principal),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.remove_item(principal.user_id, item_id)
    except ShopError as e:
        raise http_error(e)


@router.delete("", response_model=CartOut)
def clear_cart(
    principal: Principal = Depends(get_principal),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.clear_cart(principal.user_id)
    except ShopError as e:
        raise http_error(e)
