"""Storefront bounded context: shopping cart, checkout and order confirmation.

The cart is a standard (not event sourced) aggregate; orders live in the
remote entity store and are snapshots taken at checkout.
"""

import structlog
from protean.domain import Domain

shop = Domain(name="storefront")

logger = structlog.get_logger(__name__)
