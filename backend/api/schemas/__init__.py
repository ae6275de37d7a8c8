"""
API request and response schemas.
"""

from .auth import (
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
    UserUpdateRequest,
)
from .checkout import CheckoutRequest, CheckoutResponse

__all__ = [
    "LoginRequest",
    "RegisterRequest",
    "TokenResponse",
    "UserResponse",
    "UserUpdateRequest",
    "RefreshTokenRequest",
    "CheckoutRequest",
    "CheckoutResponse",
]
