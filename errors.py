"""Custom exceptions for the storefront."""

from typing import Optional


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    pass


class NotFoundError(StorefrontError):
    """Raised when a product, order, ticket or user doesn't exist."""

    def __init__(self, kind: str, key: Optional[str] = None):
        self.kind = kind
        self.key = key
        msg = f"{kind} not found."
        if key:
            msg = f"{kind} not found: {key}"
        super().__init__(msg)


class UnauthorizedError(StorefrontError):
    """Raised when a route needs a logged-in session and there is none."""

    def __init__(self):
        super().__init__("Unauthorized")


class ForbiddenError(StorefrontError):
    """Raised when the session user lacks the required role."""

    def __init__(self, message: str = "Access Denied."):
        super().__init__(message)


class ValidationError(StorefrontError):
    """Raised when user input is rejected.

    Surfaced to the browser as a redirect carrying ``?error=<message>``.
    """

    def __init__(self, message: str, redirect_to: Optional[str] = None):
        self.message = message
        self.redirect_to = redirect_to
        super().__init__(message)


class EmptyCartError(ValidationError):
    """Raised when checkout is attempted with no items in the cart."""

    def __init__(self):
        super().__init__("Your cart is empty.", redirect_to="/cart")


class UpstreamError(StorefrontError):
    """Raised by an outbound API client when the provider fails."""

    def __init__(self, service: str, reason: str):
        self.service = service
        self.reason = reason
        super().__init__(f"{service} request failed: {reason}")


class PersistenceError(StorefrontError):
    """Raised when the database is unavailable."""

    pass
