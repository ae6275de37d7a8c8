"""
Authentication API routes.
"""

import logging
from datetime import UTC, datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.email.resend_adapter import email_service
from api.middleware.rate_limit import limiter
from api.schemas.auth import (
    ClaimAccountRequest,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
    UserUpdateRequest,
)
from core.security.password import password_hasher
from core.security.tokens import TokenService
from core.validators import clean_numeric, validate_cpf_or_cnpj, validate_phone
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models.user import User, UserStatus

logger = logging.getLogger(__name__)

# Verified against when the email is unknown so both paths cost one bcrypt round
_DUMMY_HASH = "$2b$12$WmDNGEj9s7YLV5sV/N7aBOpWL0.T5.R5ZQOeKHNlLB.d7WN4HFXIC"

CLAIM_LINK_SENT = "This email already has a subscription. A link to set your password was sent to it."


def _get_cookie_kwargs() -> dict:
    """Cross-site cookies once the frontend is served from a real domain."""
    is_deployed = not any(
        h in settings.frontend_url for h in ("localhost", "127.0.0.1", "0.0.0.0")
    )
    use_cross_site = settings.is_production or is_deployed
    return dict(
        httponly=True,
        secure=use_cross_site,
        samesite="none" if use_cross_site else "lax",
        path="/",
    )


def _set_auth_cookies(response: JSONResponse, access_token: str, refresh_token: str) -> None:
    kwargs = _get_cookie_kwargs()
    response.set_cookie(
        "access_token",
        access_token,
        max_age=settings.jwt_access_token_expire_minutes * 60,
        **kwargs,
    )
    response.set_cookie(
        "refresh_token",
        refresh_token,
        max_age=settings.jwt_refresh_token_expire_days * 86400,
        **kwargs,
    )


def _clear_auth_cookies(response: JSONResponse) -> None:
    kwargs = _get_cookie_kwargs()
    response.delete_cookie("access_token", **kwargs)
    response.delete_cookie("refresh_token", **kwargs)


def _token_response(user: User) -> JSONResponse:
    access_token, refresh_token = token_service.create_token_pair(
        user_id=user.id,
        email=user.email,
        role=user.role,
    )
    response = JSONResponse(
        content={
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": settings.jwt_access_token_expire_minutes * 60,
        }
    )
    _set_auth_cookies(response, access_token, refresh_token)
    return response


router = APIRouter(prefix="/auth", tags=["Authentication"])

token_service = TokenService(
    secret_key=settings.jwt_secret_key,
    algorithm=settings.jwt_algorithm,
    access_token_expire_minutes=settings.jwt_access_token_expire_minutes,
    refresh_token_expire_days=settings.jwt_refresh_token_expire_days,
)


async def send_account_claim_link(user: User) -> bool:
    """Email the owner of a passwordless account a link to set its password."""
    claim_token = token_service.create_account_claim_token(user.id, user.email)
    sent = await email_service.send_account_claim_email(
        to_email=user.email,
        user_name=user.name,
        claim_token=claim_token,
    )
    if not sent:
        logger.error("Failed to send account claim email for user %s", user.id)
    return sent


async def get_current_user(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency to get the current authenticated user.

    Checks the Authorization header first (Bearer token), then falls back to
    the HttpOnly access_token cookie set at login.
    """
    token = None
    if authorization and authorization.startswith("Bearer "):
        parts = authorization.split(" ", 1)
        token = parts[1] if len(parts) > 1 and parts[1] else None

    if not token:
        token = request.cookies.get("access_token")

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = token_service.verify_access_token(token)

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == payload.sub))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is not active",
        )

    return user


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={202: {"model": MessageResponse}},
)
@limiter.limit("3/minute")
async def register(
    request: Request,
    register_data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> User | JSONResponse:
    """
    Register a new customer account.

    Accounts opened at checkout are never changed here. Registering with
    their email re-sends the claim link to that address and returns 202;
    the password is set through /auth/claim-account.
    """
    if register_data.phone and not validate_phone(register_data.phone):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid phone number",
        )

    email = register_data.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    existing_user = result.scalar_one_or_none()

    if existing_user:
        if existing_user.password_hash is None and existing_user.status == UserStatus.PENDING.value:
            await send_account_claim_link(existing_user)
            return JSONResponse(
                status_code=status.HTTP_202_ACCEPTED,
                content={"message": CLAIM_LINK_SENT},
            )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists",
        )

    user = User(
        email=email,
        name=register_data.name,
        password_hash=password_hasher.hash(register_data.password),
        status=UserStatus.ACTIVE.value,
        phone=clean_numeric(register_data.phone) if register_data.phone else None,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@router.post("/claim-account", response_model=UserResponse)
@limiter.limit("5/minute")
async def claim_account(
    request: Request,
    body: ClaimAccountRequest,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Set the first password on an account opened at checkout.

    The token comes from the emailed claim link, so only the owner of the
    address can take the account over.
    """
    payload = token_service.verify_account_claim_token(body.token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired claim token",
        )

    result = await db.execute(
        select(User).where(User.id == payload.sub, User.email == payload.email)
    )
    user = result.scalar_one_or_none()
    if not user or user.password_hash:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired claim token",
        )

    if user.status != UserStatus.PENDING.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account cannot be claimed",
        )

    user.password_hash = password_hasher.hash(body.password)
    user.status = UserStatus.ACTIVE.value
    user.email_verified = True
    await db.commit()
    await db.refresh(user)

    logger.info("Checkout account %s claimed", user.id)
    return user


@router.post("/login", response_model=TokenResponse)
@limiter.limit("5/minute")
async def login(
    request: Request,
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """
    Authenticate a user and return access tokens.

    Tokens are returned in the body and also set as HttpOnly cookies.
    """
    result = await db.execute(select(User).where(User.email == login_data.email.lower()))
    user = result.scalar_one_or_none()

    password_ok = password_hasher.verify(
        login_data.password,
        user.password_hash if user else _DUMMY_HASH,
    )
    if not user or not password_ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if user.status == UserStatus.SUSPENDED.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been suspended",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )

    user.last_login = datetime.now(UTC)
    user.login_count = (user.login_count or 0) + 1
    await db.commit()

    return _token_response(user)


@router.post("/refresh", response_model=TokenResponse)
@limiter.limit("5/minute")
async def refresh_token(
    request: Request,
    body: Optional[RefreshTokenRequest] = Body(None),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """
    Issue a new token pair from a refresh token.

    The HttpOnly cookie is checked first, then the request body.
    """
    refresh_tok = request.cookies.get("refresh_token")
    if not refresh_tok:
        refresh_tok = body.refresh_token if body and body.refresh_token else None

    if not refresh_tok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token required",
        )

    payload = token_service.verify_refresh_token(refresh_tok)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    user = await db.get(User, payload.sub)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get the current user's profile."""
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_me(
    update_data: UserUpdateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Update the current user's profile.

    CPF/CNPJ and phone numbers are stored as digits only.
    """
    if update_data.cpf_cnpj is not None and not validate_cpf_or_cnpj(update_data.cpf_cnpj):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid CPF or CNPJ",
        )

    for field in ("phone", "whatsapp"):
        value = getattr(update_data, field)
        if value is not None and not validate_phone(value):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid {field} number",
            )

    if update_data.name is not None:
        current_user.name = update_data.name
    if update_data.phone is not None:
        current_user.phone = clean_numeric(update_data.phone)
    if update_data.whatsapp is not None:
        current_user.whatsapp = clean_numeric(update_data.whatsapp)
    if update_data.cpf_cnpj is not None:
        current_user.cpf_cnpj = clean_numeric(update_data.cpf_cnpj)

    await db.commit()
    await db.refresh(current_user)
    return current_user


@router.post("/logout", status_code=status.HTTP_200_OK)
@limiter.limit("20/minute")
async def logout(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
) -> JSONResponse:
    """
    Log out the current user.

    Tokens are stateless; this clears the auth cookies and the client must
    discard any token it kept.
    """
    response = JSONResponse(content={"message": "Successfully logged out"})
    _clear_auth_cookies(response)
    return response
