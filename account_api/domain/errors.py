"""Exceptions raised by the account service, each bound to a response code."""

from __future__ import annotations

from typing import Dict, List, Union

ErrorDetail = Union[str, Dict[str, List[str]]]


class AccountError(Exception):
    """Base class for every failure reported to API callers."""

    status_code = 500
    default_message = "We are facing an unexpected problem. Please try again later"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def detail(self) -> ErrorDetail:
        return self.message


class ValidationError(AccountError):
    """Per-field constraint violations on create or update."""

    status_code = 422
    default_message = "The given data was invalid."

    def __init__(self, errors: Dict[str, List[str]]) -> None:
        self.errors = errors
        super().__init__(self.default_message)

    @property
    def detail(self) -> ErrorDetail:
        return self.errors

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})


class BadRequestError(AccountError):
    status_code = 400
    default_message = "The request is malformed."


class AuthenticationError(AccountError):
    status_code = 401
    default_message = "Unauthenticated."


class AuthorizationError(AccountError):
    status_code = 403
    default_message = "This action is unauthorized."


class NotFoundError(AccountError):
    status_code = 404
    default_message = "Does not exist any account with the specified identificator."


class ConflictError(AccountError):
    status_code = 409


class NoOpUpdateError(AccountError):
    status_code = 422
    default_message = "You need to specify a different value to update"


class DispatchError(AccountError):
    """Raised once every notification attempt has failed."""

    status_code = 500
    default_message = "The verification email could not be delivered. Please try again later"


class EmailAlreadyTakenError(Exception):
    """Raised by the store when a write would break live-email uniqueness."""
