"""API router for the account resource."""

from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ....application.services.account_service import AccountService
from ....application.services.authorization import (
    Operation,
    check_ability,
    ensure_admin_capability,
    raise_for,
)
from ....core.dependencies import get_account_service
from ....domain.errors import BadRequestError, NotFoundError
from ....domain.models import CallerContext
from ....domain.validation import check_boolean
from ...api.dependencies import guarded, read_account_fields
from ...api.pagination import DEFAULT_PER_PAGE, MAX_PER_PAGE, paginate
from ...api.schemas.account import (
    SORTABLE_ATTRIBUTES,
    AccountCollectionResponse,
    AccountResource,
    AccountResponse,
    CollectionMeta,
    MessageResponse,
)

router = APIRouter(prefix="/accounts", tags=["Accounts"])

VERIFIED_MESSAGE = "The account has been successfully verified"
RESENT_MESSAGE = "The verification token has been resent"
MAX_ACCOUNT_ID = 2**63 - 1


@router.get("", response_model=AccountCollectionResponse)
def list_accounts(
    context: CallerContext = Depends(guarded(Operation.LIST)),
    is_verified: Optional[str] = Query(None, alias="isVerified"),
    is_admin: Optional[str] = Query(None, alias="isAdmin"),
    with_deleted: Optional[str] = Query(None, alias="withDeleted"),
    sort_by: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
    service: AccountService = Depends(get_account_service),
) -> AccountCollectionResponse:
    include_deleted = bool(_query_flag("withDeleted", with_deleted))
    if include_deleted:
        ensure_admin_capability(context)

    accounts = service.list_accounts(
        include_deleted=include_deleted,
        is_verified=_query_flag("isVerified", is_verified),
        is_admin=_query_flag("isAdmin", is_admin),
    )
    resources = [AccountResource.from_account(account) for account in accounts]

    if sort_by:
        attribute = SORTABLE_ATTRIBUTES.get(sort_by)
        if attribute is None:
            raise BadRequestError(f"Cannot sort by {sort_by}.")
        resources.sort(key=lambda item: _sort_key(getattr(item, attribute)))

    items, pagination = paginate(resources, page, per_page)
    return AccountCollectionResponse(data=items, meta=CollectionMeta(pagination=pagination))


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    _: CallerContext = Depends(guarded(Operation.CREATE)),
    fields: Dict[str, object] = Depends(read_account_fields),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    account = service.create(
        name=fields.get("name"),
        email=fields.get("email"),
        password=fields.get("password"),
        password_confirmation=fields.get("password_confirmation"),
    )
    return AccountResponse(data=AccountResource.from_account(account))


@router.get("/me", response_model=AccountResponse)
def get_me(context: CallerContext = Depends(guarded(Operation.ME))) -> AccountResponse:
    account = context.account  # type: ignore[union-attr]
    return AccountResponse(data=AccountResource.from_account(account))


@router.get("/verify/{token}", response_model=MessageResponse)
def verify_account(
    token: str,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    service.verify(token)
    return MessageResponse(message=VERIFIED_MESSAGE)


@router.get("/{account_id}", response_model=AccountResponse)
def show_account(
    account_id: str,
    context: CallerContext = Depends(guarded(Operation.SHOW)),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    target = service.get(_parse_id(account_id))
    raise_for(check_ability(context, Operation.SHOW, target))
    return AccountResponse(data=AccountResource.from_account(target))


@router.api_route("/{account_id}", methods=["PUT", "PATCH"], response_model=AccountResponse)
def update_account(
    account_id: str,
    context: CallerContext = Depends(guarded(Operation.UPDATE)),
    fields: Dict[str, object] = Depends(read_account_fields),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    target = service.get(_parse_id(account_id))
    raise_for(check_ability(context, Operation.UPDATE, target))
    account = service.update(context, target.id, fields)
    return AccountResponse(data=AccountResource.from_account(account))


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    account_id: str,
    context: CallerContext = Depends(guarded(Operation.DESTROY)),
    service: AccountService = Depends(get_account_service),
) -> Response:
    target = service.get(_parse_id(account_id))
    raise_for(check_ability(context, Operation.DESTROY, target))
    service.destroy(target.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{account_id}/resend", response_model=MessageResponse)
def resend_verification(
    account_id: str,
    _: CallerContext = Depends(guarded(Operation.RESEND)),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    service.resend(_parse_id(account_id))
    return MessageResponse(message=RESENT_MESSAGE)


def _parse_id(raw: str) -> int:
    # SQLite INTEGER keys are signed 64-bit.
    if not (raw.isascii() and raw.isdigit()):
        raise NotFoundError()
    value = int(raw)
    if value > MAX_ACCOUNT_ID:
        raise NotFoundError()
    return value


def _query_flag(name: str, raw: Optional[str]) -> Optional[bool]:
    if raw is None or raw == "":
        return None
    value, messages = check_boolean(name, raw)
    if messages:
        raise BadRequestError(messages[0])
    return value


def _sort_key(value: object):
    # Missing values (e.g. no deletion date) sort first.
    return (value is not None, value)
