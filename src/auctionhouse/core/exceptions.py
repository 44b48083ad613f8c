"""Error kinds raised by the bidding and fulfillment services.

Every failure surfaced to a caller carries a code from one of the closed
enums below plus the ids involved, so the API layer can map it to a status
code without inspecting messages.
"""

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    AUTHORIZATION = "authorization"


class BidErrorCode(str, Enum):
    INVALID_BID_INPUT = "INVALID_BID_INPUT"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    AUCTION_NOT_ACTIVE = "AUCTION_NOT_ACTIVE"
    AUCTION_ENDED = "AUCTION_ENDED"
    CANNOT_BID_OWN_PRODUCT = "CANNOT_BID_OWN_PRODUCT"
    BID_TOO_LOW = "BID_TOO_LOW"
    BID_STEP_MISMATCH = "BID_STEP_MISMATCH"
    MAX_PRICE_TOO_LOW = "MAX_PRICE_TOO_LOW"
    BUY_NOW_NOT_CONFIGURED = "BUY_NOW_NOT_CONFIGURED"
    BUY_NOW_NOT_AVAILABLE = "BUY_NOW_NOT_AVAILABLE"
    ALREADY_SOLD = "ALREADY_SOLD"


class GateErrorCode(str, Enum):
    MISSING_BID_REQUEST_INFO = "MISSING_BID_REQUEST_INFO"
    BID_REQUEST_NOT_FOUND = "BID_REQUEST_NOT_FOUND"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    NOT_PRODUCT_OWNER = "NOT_PRODUCT_OWNER"
    BIDDER_REJECTED = "BIDDER_REJECTED"
    APPROVAL_REQUIRED = "APPROVAL_REQUIRED"
    RATING_TOO_LOW = "RATING_TOO_LOW"
    UNRATED_NOT_ALLOWED = "UNRATED_NOT_ALLOWED"


class OrderErrorCode(str, Enum):
    ORDER_INVALID_INPUT = "ORDER_INVALID_INPUT"
    ORDER_PAYMENT_DETAILS_REQUIRED = "ORDER_PAYMENT_DETAILS_REQUIRED"
    ORDER_CHAT_EMPTY = "ORDER_CHAT_EMPTY"
    RATING_INVALID_SCORE = "RATING_INVALID_SCORE"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ORDER_FORBIDDEN = "ORDER_FORBIDDEN"
    ORDER_INVALID_STATE = "ORDER_INVALID_STATE"


_CATEGORIES: dict[Enum, ErrorCategory] = {
    BidErrorCode.INVALID_BID_INPUT: ErrorCategory.VALIDATION,
    BidErrorCode.PRODUCT_NOT_FOUND: ErrorCategory.NOT_FOUND,
    BidErrorCode.AUCTION_NOT_ACTIVE: ErrorCategory.CONFLICT,
    BidErrorCode.AUCTION_ENDED: ErrorCategory.CONFLICT,
    BidErrorCode.CANNOT_BID_OWN_PRODUCT: ErrorCategory.AUTHORIZATION,
    BidErrorCode.BID_TOO_LOW: ErrorCategory.VALIDATION,
    BidErrorCode.BID_STEP_MISMATCH: ErrorCategory.VALIDATION,
    BidErrorCode.MAX_PRICE_TOO_LOW: ErrorCategory.VALIDATION,
    BidErrorCode.BUY_NOW_NOT_CONFIGURED: ErrorCategory.CONFLICT,
    BidErrorCode.BUY_NOW_NOT_AVAILABLE: ErrorCategory.CONFLICT,
    BidErrorCode.ALREADY_SOLD: ErrorCategory.CONFLICT,
    GateErrorCode.MISSING_BID_REQUEST_INFO: ErrorCategory.VALIDATION,
    GateErrorCode.BID_REQUEST_NOT_FOUND: ErrorCategory.NOT_FOUND,
    GateErrorCode.PRODUCT_NOT_FOUND: ErrorCategory.NOT_FOUND,
    GateErrorCode.NOT_PRODUCT_OWNER: ErrorCategory.AUTHORIZATION,
    GateErrorCode.BIDDER_REJECTED: ErrorCategory.AUTHORIZATION,
    GateErrorCode.APPROVAL_REQUIRED: ErrorCategory.AUTHORIZATION,
    GateErrorCode.RATING_TOO_LOW: ErrorCategory.AUTHORIZATION,
    GateErrorCode.UNRATED_NOT_ALLOWED: ErrorCategory.AUTHORIZATION,
    OrderErrorCode.ORDER_INVALID_INPUT: ErrorCategory.VALIDATION,
    OrderErrorCode.ORDER_PAYMENT_DETAILS_REQUIRED: ErrorCategory.VALIDATION,
    OrderErrorCode.ORDER_CHAT_EMPTY: ErrorCategory.VALIDATION,
    OrderErrorCode.RATING_INVALID_SCORE: ErrorCategory.VALIDATION,
    OrderErrorCode.ORDER_NOT_FOUND: ErrorCategory.NOT_FOUND,
    OrderErrorCode.ORDER_FORBIDDEN: ErrorCategory.AUTHORIZATION,
    OrderErrorCode.ORDER_INVALID_STATE: ErrorCategory.CONFLICT,
}


class AuctionHouseError(Exception):
    """Base class for all domain errors.

    Args:
        code: Error kind from one of the component enums
        message: Optional human-readable message (defaults to the code)
        **context: Ids and values involved in the failure
    """

    def __init__(self, code: Enum, message: str | None = None, **context: Any):
        self.code = code
        self.message = message or code.value
        self.context = context
        super().__init__(self.message)

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self.code]

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
        }


class BidError(AuctionHouseError):
    """Raised by the bid engine and proxy-bid resolver."""

    code: BidErrorCode


class GateError(AuctionHouseError):
    """Raised by the bid gate (requests, rejections, eligibility)."""

    code: GateErrorCode


class OrderError(AuctionHouseError):
    """Raised by the order fulfillment state machine."""

    code: OrderErrorCode
