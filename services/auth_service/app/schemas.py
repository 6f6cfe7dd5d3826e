from __future__ import annotations

from pydantic import BaseModel, Field

from .security import PASSWORD_MIN_LENGTH, PASSWORD_REQUIREMENTS_MESSAGE


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=1024)


class SignupRequest(BaseModel):
    # email and password are checked by the identity provider so that its
    # failure categories map to stable messages
    email: str = Field(..., max_length=320)
    password: str = Field(
        ...,
        max_length=1024,
        description=PASSWORD_REQUIREMENTS_MESSAGE,
        json_schema_extra={"min_length": PASSWORD_MIN_LENGTH},
    )
    full_name: str | None = Field(None, max_length=200)
    phone: str | None = Field(None, max_length=32)


class SessionIssued(BaseModel):
    ok: bool = True
    access_token: str
    token_type: str = "bearer"


class Acknowledgement(BaseModel):
    ok: bool = True


class Me(BaseModel):
    id: str
    email: str
    role: str
