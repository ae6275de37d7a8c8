"""
JWT token service for customer and staff authentication.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"
ACCOUNT_CLAIM_TOKEN = "account_claim"

ACCOUNT_CLAIM_TOKEN_HOURS = 24


@dataclass
class TokenPayload:
    """Decoded JWT claims."""

    sub: str  # User ID
    exp: datetime
    iat: datetime
    type: str  # "access", "refresh" or "account_claim"
    email: str | None = None
    role: str | None = None

    @property
    def is_expired(self) -> bool:
        return self.exp <= datetime.now(UTC)


class TokenService:
    """Creates and validates signed JWT access/refresh tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 60,
        refresh_token_expire_days: int = 7,
    ):
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._access_token_expire_minutes = access_token_expire_minutes
        self._refresh_token_expire_days = refresh_token_expire_days

    def _encode(self, claims: dict, lifetime: timedelta) -> str:
        now = datetime.now(UTC)
        payload = {**claims, "iat": now, "exp": now + lifetime}
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def create_access_token(
        self,
        user_id: str,
        email: str | None = None,
        role: str | None = None,
    ) -> str:
        """
        Create a short-lived access token.

        Args:
            user_id: User ID stored in the ``sub`` claim
            email: Optional email claim
            role: Optional role claim, used for admin checks in logs only

        Returns:
            Encoded JWT
        """
        claims = {"sub": user_id, "type": ACCESS_TOKEN}
        if email:
            claims["email"] = email
        if role:
            claims["role"] = role
        return self._encode(claims, timedelta(minutes=self._access_token_expire_minutes))

    def create_refresh_token(self, user_id: str) -> str:
        """Create a long-lived refresh token."""
        return self._encode(
            {"sub": user_id, "type": REFRESH_TOKEN},
            timedelta(days=self._refresh_token_expire_days),
        )

    def create_token_pair(
        self,
        user_id: str,
        email: str | None = None,
        role: str | None = None,
    ) -> tuple[str, str]:
        """Return ``(access_token, refresh_token)`` for a user."""
        return (
            self.create_access_token(user_id, email, role),
            self.create_refresh_token(user_id),
        )

    def decode_token(self, token: str) -> TokenPayload | None:
        """
        Decode and validate a JWT.

        Returns:
            TokenPayload if the signature, expiry and required claims are valid,
            None otherwise
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError:
            return None

        if any(field not in payload for field in ("sub", "exp", "type")):
            return None

        return TokenPayload(
            sub=payload["sub"],
            exp=datetime.fromtimestamp(payload["exp"], tz=UTC),
            iat=datetime.fromtimestamp(payload.get("iat", 0), tz=UTC),
            type=payload["type"],
            email=payload.get("email"),
            role=payload.get("role"),
        )

    def verify_access_token(self, token: str) -> TokenPayload | None:
        payload = self.decode_token(token)
        if payload and payload.type == ACCESS_TOKEN:
            return payload
        return None

    def verify_refresh_token(self, token: str) -> TokenPayload | None:
        payload = self.decode_token(token)
        if payload and payload.type == REFRESH_TOKEN:
            return payload
        return None

    def create_account_claim_token(self, user_id: str, email: str) -> str:
        """
        Create a token that lets the owner of ``email`` set the first
        password on an account opened at checkout. Valid for 24 hours.
        """
        return self._encode(
            {"sub": user_id, "email": email, "type": ACCOUNT_CLAIM_TOKEN},
            timedelta(hours=ACCOUNT_CLAIM_TOKEN_HOURS),
        )

    def verify_account_claim_token(self, token: str) -> TokenPayload | None:
        payload = self.decode_token(token)
        if payload and payload.type == ACCOUNT_CLAIM_TOKEN and payload.email:
            return payload
        return None
