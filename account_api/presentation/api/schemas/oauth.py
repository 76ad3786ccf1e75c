from pydantic import BaseModel


class TokenResponse(BaseModel):
    token_type: str = "Bearer"
    expires_in: int
    access_token: str
