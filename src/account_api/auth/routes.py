"""Authentication API routes.

Provides signup and login under ``/auth`` and the ``/me`` profile endpoint.
Account failures propagate as ``AccountError`` and are rendered by the
app-level exception handler.
"""

from fastapi import APIRouter, status
from pydantic import BaseModel, ConfigDict, Field

from account_api.auth.deps import AccountServiceDep, CurrentUserId
from account_api.auth.service import AuthResult, PublicUser

router = APIRouter(prefix="/auth", tags=["Authentication"])
profile_router = APIRouter(tags=["Profile"])


# =============================================================================
# Request/Response Models
# =============================================================================


class SignupRequest(BaseModel):
    """Request body for user signup.

    Every field is optional here so that missing values are reported by the
    account service rather than as a schema error.
    """

    model_config = ConfigDict(populate_by_name=True)

    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    email: str | None = None
    password: str | None = None
    phone: str | None = None


class LoginRequest(BaseModel):
    """Request body for user login."""

    email: str | None = None
    password: str | None = None


class ProfileResponse(BaseModel):
    user: PublicUser


# =============================================================================
# Routes
# =============================================================================


@router.post("/signup", response_model=AuthResult, status_code=status.HTTP_201_CREATED)
async def signup(service: AccountServiceDep, request: SignupRequest | None = None):
    """Create a new user account and return it with a bearer token."""
    request = request or SignupRequest()
    return await service.signup(
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        password=request.password,
        phone=request.phone,
    )


@router.post("/login", response_model=AuthResult)
async def login(service: AccountServiceDep, request: LoginRequest | None = None):
    """Authenticate with email and password and return a bearer token."""
    request = request or LoginRequest()
    return await service.login(email=request.email, password=request.password)


@profile_router.get("/me", response_model=ProfileResponse)
async def get_me(user_id: CurrentUserId, service: AccountServiceDep):
    """Get current authenticated user's profile."""
    return ProfileResponse(user=await service.get_profile(user_id))
