from typing import Callable, Dict

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...application.services.authorization import Operation, check_access, raise_for
from ...application.services.token_service import AccessTokenService
from ...core.dependencies import get_token_service
from ...domain.errors import BadRequestError
from ...domain.models import CallerContext
from .schemas.account import AccountFieldsRequest

_bearer_scheme = HTTPBearer(auto_error=False)

_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def get_caller_context(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    token_service: AccessTokenService = Depends(get_token_service),
) -> CallerContext:
    """Resolve the bearer token, if any. A present but invalid token is a 401."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    return token_service.resolve(credentials.credentials)


def guarded(operation: Operation) -> Callable[..., CallerContext]:
    """Dependency running the identity and scope guards of ``operation``."""

    def dependency(context: CallerContext = Depends(get_caller_context)) -> CallerContext:
        raise_for(check_access(context, operation))
        return context

    dependency.__name__ = f"guard_{operation.value}"
    return dependency


async def read_account_fields(request: Request) -> Dict[str, object]:
    """Read a JSON or form body and map outward attribute names to field names."""
    content_type = request.headers.get("content-type", "").lower()
    body: Dict[str, object]
    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError as exc:
            raise BadRequestError("The request body is not valid JSON.") from exc
        if not isinstance(payload, dict):
            raise BadRequestError("The request body must be a JSON object.")
        body = payload
    elif content_type.startswith(_FORM_TYPES):
        form = await request.form()
        body = {key: value for key, value in form.items() if isinstance(value, str)}
    else:
        body = {}
    return AccountFieldsRequest.model_validate(body).present_fields()
