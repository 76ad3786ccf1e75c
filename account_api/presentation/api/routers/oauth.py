from typing import Optional

from fastapi import APIRouter, Depends, Form

from ....application.services.token_service import AccessTokenService
from ....core.dependencies import get_token_service
from ....domain.errors import BadRequestError
from ...api.schemas.oauth import TokenResponse

router = APIRouter(prefix="/oauth", tags=["OAuth"])


@router.post("/token", response_model=TokenResponse)
def issue_token(
    grant_type: str = Form(...),
    client_id: str = Form(...),
    client_secret: str = Form(...),
    username: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    scope: Optional[str] = Form(None),
    token_service: AccessTokenService = Depends(get_token_service),
) -> TokenResponse:
    if grant_type == "client_credentials":
        issued = token_service.issue_client_token(client_id, client_secret)
    elif grant_type == "password":
        if not username or not password:
            raise BadRequestError("The username and password are required for the password grant.")
        issued = token_service.issue_password_token(client_id, client_secret, username, password, scope)
    else:
        raise BadRequestError(f"Unsupported grant type: {grant_type}.")
    return TokenResponse(
        token_type=issued.token_type,
        expires_in=issued.expires_in,
        access_token=issued.access_token,
    )
