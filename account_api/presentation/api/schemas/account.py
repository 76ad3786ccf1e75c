"""Pydantic schemas for account API responses."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ....domain.models import Account


class AccountFieldsRequest(BaseModel):
    """Create/update body under its outward attribute names.

    Values are left untyped; field rules and their messages live in
    :mod:`account_api.domain.validation`.
    """

    model_config = ConfigDict(extra="ignore")

    name: Any = None
    email: Any = None
    password: Any = None
    password_confirmation: Any = Field(default=None, alias="passwordConfirmation")
    is_admin: Any = Field(default=None, alias="isAdmin")

    def present_fields(self) -> Dict[str, object]:
        """Fields the caller actually sent, keyed by internal name."""
        return self.model_dump(exclude_unset=True)


class ResourceLink(BaseModel):
    rel: str
    href: str


class AccountResource(BaseModel):
    """Outward projection of an account; secrets are never part of it."""

    model_config = ConfigDict(populate_by_name=True)

    identifier: int
    name: str
    email: str
    is_verified: bool = Field(alias="isVerified")
    is_admin: bool = Field(alias="isAdmin")
    registered_at: datetime = Field(alias="registeredAt")
    last_change: datetime = Field(alias="lastChange")
    deleted_date: Optional[datetime] = Field(default=None, alias="deletedDate")
    links: List[ResourceLink] = Field(default_factory=list)

    @classmethod
    def from_account(cls, account: Account) -> "AccountResource":
        return cls(
            identifier=account.id,
            name=account.name,
            email=account.email,
            is_verified=account.is_verified,
            is_admin=account.is_admin,
            registered_at=account.created_at,
            last_change=account.updated_at,
            deleted_date=account.deleted_at,
            links=[ResourceLink(rel="self", href=f"/accounts/{account.id}")],
        )


class AccountResponse(BaseModel):
    data: AccountResource


class Pagination(BaseModel):
    total: int
    count: int
    per_page: int
    current_page: int
    total_pages: int


class CollectionMeta(BaseModel):
    pagination: Pagination


class AccountCollectionResponse(BaseModel):
    data: List[AccountResource]
    meta: CollectionMeta


class MessageResponse(BaseModel):
    message: str
    code: int = 200


# Outward attribute -> AccountResource field, used for sorting listings.
SORTABLE_ATTRIBUTES = {
    "identifier": "identifier",
    "name": "name",
    "email": "email",
    "isVerified": "is_verified",
    "isAdmin": "is_admin",
    "registeredAt": "registered_at",
    "lastChange": "last_change",
    "deletedDate": "deleted_date",
}
