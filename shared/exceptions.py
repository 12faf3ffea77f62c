"""
shared/exceptions.py
Typed business-rule failures raised by the service layer.
main.py maps every MarketplaceError to an HTTP response: {"detail", "code"}.
"""


class MarketplaceError(Exception):
    """Base class for all business-rule failures."""

    status_code: int = 400
    default_detail: str = "Request could not be processed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    @property
    def code(self) -> str:
        return type(self).__name__


# ── Taxonomy ──────────────────────────────────────────────────

class ValidationError(MarketplaceError):
    """Malformed or missing input, rejected before any state change."""
    status_code = 400


class AuthorizationError(MarketplaceError):
    """Actor lacks rights over the target entity."""
    status_code = 403


class NotFoundError(MarketplaceError):
    status_code = 404
    default_detail = "Not found"


class StateConflictError(MarketplaceError):
    """Entity is not in a state that permits the requested transition."""
    status_code = 409


class ResourceError(MarketplaceError):
    status_code = 409


# ── Validation ────────────────────────────────────────────────

class InvalidAmount(ValidationError):
    default_detail = "Amount must be greater than zero"


class InvalidRating(ValidationError):
    default_detail = "Rating must be an integer between 1 and 5"


# ── Authorization ─────────────────────────────────────────────

class Unauthorized(AuthorizationError):
    default_detail = "Not authorized to perform this action"


class SelfBid(AuthorizationError):
    default_detail = "You cannot bid on your own gig"


class SelfBooking(AuthorizationError):
    default_detail = "You cannot book your own service"


# ── Not found ─────────────────────────────────────────────────

class UserNotFound(NotFoundError):
    default_detail = "User not found"


class ServiceNotFound(NotFoundError):
    default_detail = "Service not found"


class GigNotFound(NotFoundError):
    default_detail = "Gig not found"


class BidNotFound(NotFoundError):
    default_detail = "Bid not found"


class OrderNotFound(NotFoundError):
    default_detail = "Order not found"


class NotificationNotFound(NotFoundError):
    default_detail = "Notification not found"


class ChatNotFound(NotFoundError):
    default_detail = "Chat not found"


class AdvertisementNotFound(NotFoundError):
    default_detail = "Advertisement not found"


# ── State conflicts ───────────────────────────────────────────

class GigNotOpen(StateConflictError):
    default_detail = "Gig is not open for bidding"


class GigNotEditable(StateConflictError):
    default_detail = "Gig can no longer be edited"


class InvalidGigTransition(StateConflictError):
    default_detail = "Gig status transition not allowed"


class BidNotPending(StateConflictError):
    default_detail = "Bid is no longer pending"


class ServiceInactive(StateConflictError):
    default_detail = "Service is not accepting bookings"


class OrderNotCompleted(StateConflictError):
    default_detail = "Order must be completed before it can be reviewed"


class OrderClosed(StateConflictError):
    default_detail = "Order is already completed or cancelled"


class OrderAlreadyPaid(StateConflictError):
    default_detail = "Order has already been paid"


class DuplicateReview(StateConflictError):
    default_detail = "You have already reviewed this order"


class DuplicateAccount(StateConflictError):
    default_detail = "An account with this email already exists"


class IdempotencyKeyReused(StateConflictError):
    default_detail = "Idempotency key was already used for a different request"


# ── Resources ─────────────────────────────────────────────────

class InsufficientBalance(ResourceError):
    default_detail = "Insufficient wallet balance"
