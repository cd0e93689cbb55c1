"""Request/response schemas for the users endpoints. JSON keys are camelCase."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model emitting camelCase keys and accepting either spelling on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RegistrationForm(CamelModel):
    """Text fields of the multipart registration request (blank allowed; checked by the service)."""

    full_name: str = ""
    email: str = ""
    username: str = ""
    password: str = ""


class LoginRequest(CamelModel):
    """Credentials for login; either username or email identifies the account."""

    username: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)


class RefreshTokenRequest(CamelModel):
    """Body for non-browser clients that cannot send the http-only cookie."""

    refresh_token: str | None = None


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str


class UserOut(CamelModel):
    """Sanitized user: no password hash, no refresh token."""

    id: str
    username: str
    email: str
    full_name: str
    avatar_url: str
    cover_image_url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LoginData(CamelModel):
    """Login payload; tokens are duplicated in the body for clients without cookie access."""

    user: UserOut
    access_token: str
    refresh_token: str
