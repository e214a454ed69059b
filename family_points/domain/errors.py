"""Exception hierarchy for the points ledger and its workflows."""

from __future__ import annotations


class FamilyPointsError(Exception):
    """Base class for all family-points specific errors."""

    code = "ERROR"
    http_status = 400
    retryable = False

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__doc__ or self.code)
        self.message = message or (self.__doc__ or self.code).strip()


class NotFoundError(FamilyPointsError):
    """The requested entity does not exist."""

    code = "NOT_FOUND"
    http_status = 404


class ChildNotFoundError(NotFoundError):
    """Child not found."""


class RuleNotFoundError(NotFoundError):
    """Rule not found."""

    code = "RULE_NOT_FOUND"


class RewardNotFoundError(NotFoundError):
    """Reward not found."""


class EventNotFoundError(NotFoundError):
    """Event not found."""


class FamilyNotFoundError(NotFoundError):
    """Family not found."""


class UnauthorizedError(FamilyPointsError):
    """Caller lacks family membership or the role required for this action."""

    code = "UNAUTHORIZED"
    http_status = 403


class ChildNotInFamilyError(UnauthorizedError):
    """The child does not belong to the rule's family."""

    code = "CHILD_NOT_IN_FAMILY"


class InvalidStateError(FamilyPointsError):
    """The entity is not in a state that allows this operation."""

    code = "INVALID_STATE"
    http_status = 409


class RuleInactiveError(InvalidStateError):
    """This rule is inactive and cannot be used to record behaviors."""

    code = "RULE_INACTIVE"


class RewardInactiveError(InvalidStateError):
    """This reward is inactive and cannot be redeemed."""

    code = "REWARD_INACTIVE"


class InsufficientBalanceError(FamilyPointsError):
    """Applying this change would take the balance below zero."""

    code = "INSUFFICIENT_BALANCE"
    http_status = 422


class InsufficientPointsError(InsufficientBalanceError):
    """Not enough points to redeem this reward."""

    code = "INSUFFICIENT_POINTS"


class DuplicateApplicationError(FamilyPointsError):
    """This event has already been applied to the ledger."""

    code = "DUPLICATE_APPLICATION"
    http_status = 409


class StorageFailureError(FamilyPointsError):
    """Storage is temporarily unavailable. Please try again later."""

    code = "STORAGE_FAILURE"
    http_status = 503
    retryable = True


class AuthenticationError(FamilyPointsError):
    """Missing, invalid or expired credentials."""

    code = "UNAUTHENTICATED"
    http_status = 401


class InvalidInputError(FamilyPointsError):
    """The request contains invalid values."""

    code = "VALIDATION_ERROR"
    http_status = 400
