"""
Error taxonomy for the loyalty ledger and the DRF handler that renders it.

Services raise these exceptions; views never translate them by hand.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class LoyaltyError(Exception):
    """
    Base class for every error the ledger reports to its callers.
    """

    code = "LOYALTY_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def extra(self) -> dict:
        """
        Additional fields included in the API error body.
        """
        return {}


class NotFound(LoyaltyError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")
        self.resource = resource


class InvalidArgument(LoyaltyError):
    code = "INVALID_ARGUMENT"
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientBalance(LoyaltyError):
    code = "INSUFFICIENT_POINTS"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, required: int, available: int):
        super().__init__(f"Insufficient points. Required: {required}, Available: {available}")
        self.required = required
        self.available = available

    def extra(self) -> dict:
        return {"required": self.required, "available": self.available}


class RewardUnavailable(LoyaltyError):
    code = "REWARD_UNAVAILABLE"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, reason: str):
        super().__init__(f"Reward unavailable: {reason}")
        self.reason = reason


class RateLimited(LoyaltyError):
    code = "RATE_LIMIT_EXCEEDED"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, scope: str = ""):
        super().__init__("Rate limit exceeded")
        self.scope = scope


class Conflict(LoyaltyError):
    """
    Raised when a write collides with a uniqueness guarantee, e.g. a duplicate external event.
    """

    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class Internal(LoyaltyError):
    """
    Unexpected store failure. Retryable when caused by a lock or statement timeout.
    """

    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Internal server error", retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable
        if retryable:
            self.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def extra(self) -> dict:
        return {"retryable": self.retryable}


def loyalty_exception_handler(exc, context):
    """
    Renders LoyaltyError subclasses as {"detail", "code", ...} and defers everything else to DRF.
    """
    if isinstance(exc, LoyaltyError):
        if isinstance(exc, Internal):
            logger.error("Internal error in %s: %s", context.get("view").__class__.__name__, exc.message)
        body = {"detail": exc.message, "code": exc.code}
        body.update(exc.extra())
        return Response(body, status=exc.status_code)

    return exception_handler(exc, context)
