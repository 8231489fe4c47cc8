# shopcore/api/routers/orders.py
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from shopcore.api.deps import get_order_service, get_principal, http_error
from shopcore.domain.errors import ShopError
from shopcore.domain.schemas import OrderCreate, OrderOut, OrderPageOut, OrderQuery, OrderUpdate, Principal
from shopcore.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    principal: Principal = Depends(get_principal),
    svc: OrderService = Depends(get_order_service),
):
    """
    Checkout: turns the caller's active cart into an order.
    The notification is sent asynchronously after commit.
    """
    try:
        return svc.create_order(
            user_id=principal.user_id,
            shipping_address=payload.shipping_address.model_dump(),
            billing_address=payload.billing_address.model_dump() if payload.billing_address else None,
            payment_method=payload.payment_method,
            notes=payload.notes,
            metadata=payload.metadata,
        )
    except ShopError as e:
        raise http_error(e)


@router.get("", response_model=OrderPageOut)
def list_orders(
    query: Annotated[OrderQuery, Query()],
    principal: Principal = Depends(get_principal),
    svc: OrderService = Depends(get_order_service),
):
    return svc.list_orders(principal, query)


@router.get("/number/{order_number}", response_model=OrderOut)
def get_order_by_number(
    order_number: str,
    principal: Principal = Depends(get_principal),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.get_order_by_number(principal, order_number)
    except ShopError as e:
        raise http_error(e)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    principal: Principal = Depends(get_principal),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.get_order(principal, order_id)
    except ShopError as e:
        raise http_error(e)


@router.put("/{order_id}", response_model=OrderOut)
def update_order(
    order_id: int,
    payload: OrderUpdate,
    principal: Principal = Depends(get_principal),
    svc: OrderService = Depends(get_order_service),
):
    """Admin only."""
    try:
        return svc.update_order(principal, order_id, payload.model_dump(exclude_unset=True))
    except ShopError as e:
        raise http_error(e)


@router.patch("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    principal: Principal = Depends(get_principal),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.cancel(principal, order_id)
    except ShopError as e:
        raise http_error(e)
