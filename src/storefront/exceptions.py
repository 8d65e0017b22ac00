"""Checkout failure raised by the storefront core.

Validation and lifecycle errors are protean's ``ValidationError`` and
``InvalidOperationError``; store transport errors live in
``storefront.store.errors``.
"""

from protean.exceptions import ProteanException


class CheckoutError(ProteanException):
    """A checkout step failed. The cart is left as it was so the buyer can retry.

    ``order_id`` is only set when the order was already persisted and a later
    step (cart finalization) failed.
    """

    def __init__(self, step, message: str, order_id: str | None = None):
        self.step = step
        self.message = message
        self.order_id = order_id
        super().__init__(message)
