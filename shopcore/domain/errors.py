# shopcore/domain/errors.py


class ShopError(Exception):
    """Base for every error the cart/order core reports to a caller."""

    status_code = 400


#user input
class InvalidQuantity(ShopError, ValueError):
    pass


class ProductUnavailable(ShopError, ValueError):
    pass


class InvalidAddress(ShopError, ValueError):
    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message)
        self.fields = fields or []


class EmptyCart(ShopError, ValueError):
    pass


class InvalidOrderAmount(ShopError, ValueError):
    pass


class InvalidStatusTransition(ShopError, ValueError):
    status_code = 409


class InconsistentPaymentStatus(ShopError, ValueError):
    status_code = 409


class CartNotActive(ShopError, ValueError):
    status_code = 409


#access
class AccessDenied(ShopError, PermissionError):
    status_code = 403


#lookups
class CartItemNotFound(ShopError, LookupError):
    status_code = 404


class OrderNotFound(ShopError, LookupError):
    status_code = 404


#transient / integrity
class OrderNumberGenerationFailed(ShopError):
    status_code = 409


class OrderItemProductMissing(ShopError):
    status_code = 409


class UnexpectedPersistenceError(ShopError):
    status_code = 500
