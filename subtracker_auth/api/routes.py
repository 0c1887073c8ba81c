"""HTTP route definitions for sign-up and sign-in."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domain.account import Account
from ..domain.contracts import SignInInput, SignUpInput
from ..domain.service import AccountService
from ..security.passwords import MAX_PASSWORD_BYTES


router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class AccountResponse(BaseModel):
    """Public representation of an `Account`; the password hash is never included."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str | None = None
    email: str
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        """Build a response model from the domain aggregate."""
        return cls(
            id=account.account_id,
            name=account.name,
            email=account.email,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class AuthData(BaseModel):
    user: AccountResponse
    token: str


class AuthResponse(BaseModel):
    """Success envelope shared by sign-up and sign-in."""

    success: bool = True
    message: str
    data: AuthData


class CredentialsRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalise_email(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class SignUpRequest(CredentialsRequest):
    """Payload accepted when registering an account."""

    name: str | None = None
    password: str = Field(..., min_length=8)

    @field_validator("name")
    @classmethod
    def trim_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("password")
    @classmethod
    def fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
        return value


class SignInRequest(CredentialsRequest):
    """Credentials presented at sign-in; no length policy beyond non-empty."""


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def _envelope(message: str, account: Account, token: str) -> AuthResponse:
    return AuthResponse(
        message=message,
        data=AuthData(user=AccountResponse.from_domain(account), token=token),
    )


@router.post("/sign-up", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def sign_up(
    payload: SignUpRequest,
    service: AccountService = Depends(get_service),
) -> AuthResponse:
    """Register an account and return it with a bearer token."""
    result = service.register(
        SignUpInput(email=payload.email, password=payload.password, name=payload.name)
    )
    return _envelope("User created successfully", result.account, result.token)


@router.post("/sign-in", response_model=AuthResponse)
def sign_in(
    payload: SignInRequest,
    service: AccountService = Depends(get_service),
) -> AuthResponse:
    """Verify credentials and return the account with a fresh bearer token."""
    result = service.sign_in(SignInInput(email=payload.email, password=payload.password))
    return _envelope("Login successful", result.account, result.token)
