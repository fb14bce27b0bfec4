"""
Urban Art Storefront

This package contains the storefront components:
- cart: client-side cart store, storage backends and presenter
- checkout: checkout client (cart -> payment session -> redirect)
- services: checkout service, payment gateway, webhook processor, money helpers
- middleware: rate limiting
- routers: FastAPI routes (config, checkout session, webhook, pages)

Note: Imports are lazy to keep module loading cheap.
"""

__all__ = [
    "CartStore",
    "CartPresenter",
    "CheckoutClient",
]


def __getattr__(name):
    """Lazy attribute access for the most common entry points."""
    if name == "CartStore":
        from storefront.cart import CartStore
        return CartStore
    elif name == "CartPresenter":
        from storefront.cart import CartPresenter
        return CartPresenter
    elif name == "CheckoutClient":
        from storefront.checkout import CheckoutClient
        return CheckoutClient
    raise AttributeError(f"module 'storefront' has no attribute '{name}'")
