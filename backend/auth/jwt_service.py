"""JWT access/refresh token issuance and verification using python-jose."""

import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol

from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError

logger = logging.getLogger(__name__)

# Only symmetric HMAC algorithms are ever accepted
HMAC_ALGORITHMS = frozenset({"HS256", "HS384", "HS512"})

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


class SigningError(Exception):
    """Raised when a token pair cannot be fully signed."""


class AuthStatus(str, enum.Enum):
    VERIFIED = "verified"
    EXPIRED = "expired"
    INVALID_SIGNATURE = "invalid_signature"
    MALFORMED = "malformed"
    MISSING_CREDENTIAL = "missing_credential"


@dataclass(frozen=True)
class AuthOutcome:
    """Result of a single token verification."""

    status: AuthStatus
    identity: Optional[str] = None
    reason: str = ""

    @property
    def verified(self) -> bool:
        return self.status is AuthStatus.VERIFIED


@dataclass(frozen=True)
class TokenPair:
    id: str
    access_token: str
    refresh_token: str


class TokenGenerator(Protocol):
    """Anything that can mint a token pair for an identity."""

    def generate_tokens(self, identity: str) -> TokenPair: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """
    Mint HMAC-signed access/refresh token pairs.

    The signing secret is injected once at construction; the issuer holds
    no other state and is safe to share between concurrent requests.
    """

    def __init__(
        self,
        secret: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        algorithm: str = "HS256",
    ):
        if algorithm not in HMAC_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {algorithm}")
        if access_ttl <= timedelta(0):
            raise ValueError("Access token TTL must be positive")
        if access_ttl >= refresh_ttl:
            raise ValueError("Access token TTL must be shorter than refresh token TTL")

        self._secret = secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def generate_tokens(self, identity: str, now: Optional[datetime] = None) -> TokenPair:
        """
        Create a signed access/refresh token pair for ``identity``.

        Args:
            identity: Provider-asserted subject id.
            now: Issuance instant (defaults to the current UTC time).

        Returns:
            A new :class:`TokenPair`.

        Raises:
            SigningError: If the key or identity is empty, or signing fails.
        """
        if not self._secret:
            raise SigningError("signing key is empty")
        if not identity:
            raise SigningError("identity is empty")

        issued_at = now or _utcnow()

        access_token = self._sign(identity, ACCESS_TOKEN, issued_at, self.access_ttl)
        refresh_token = self._sign(identity, REFRESH_TOKEN, issued_at, self.refresh_ttl)

        return TokenPair(
            id=identity,
            access_token=access_token,
            refresh_token=refresh_token,
        )

    def _sign(
        self,
        identity: str,
        token_type: str,
        issued_at: datetime,
        ttl: timedelta,
    ) -> str:
        payload = {
            "id": identity,
            "type": token_type,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + ttl).timestamp()),
            # Unique per token so every issuance yields distinct strings
            "jti": uuid.uuid4().hex,
        }
        try:
            return jwt.encode(payload, self._secret, algorithm=self.algorithm)
        except JWTError as exc:
            raise SigningError(f"failed to sign {token_type} token: {exc}") from exc


class TokenVerifier:
    """
    Verify tokens minted by :class:`TokenIssuer`.

    ``verify_token`` never raises; every call maps to exactly one
    :class:`AuthOutcome`. An expired outcome is only reported for tokens
    whose signature checks out, so clients can tell "refresh" apart from
    "log in again".
    """

    def __init__(self, secret: str, algorithm: str = "HS256"):
        if algorithm not in HMAC_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {algorithm}")
        self._secret = secret
        self.algorithm = algorithm

    def verify_token(
        self,
        token: Optional[str],
        token_type: str = ACCESS_TOKEN,
        now: Optional[datetime] = None,
    ) -> AuthOutcome:
        if not token or not token.strip():
            return AuthOutcome(AuthStatus.MISSING_CREDENTIAL, reason="no token supplied")

        try:
            header = jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            return AuthOutcome(AuthStatus.MALFORMED, reason=str(exc))

        if not isinstance(header, dict):
            return AuthOutcome(AuthStatus.MALFORMED, reason="token header is not an object")

        # Never let the token choose its own algorithm.
        declared = header.get("alg")
        if (
            not isinstance(declared, str)
            or declared not in HMAC_ALGORITHMS
            or declared != self.algorithm
        ):
            return AuthOutcome(
                AuthStatus.INVALID_SIGNATURE,
                reason=f"unexpected signing method: {declared}",
            )

        if not self._secret:
            return AuthOutcome(AuthStatus.INVALID_SIGNATURE, reason="verification key is empty")

        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTClaimsError as exc:
            return AuthOutcome(AuthStatus.MALFORMED, reason=str(exc))
        except JWTError as exc:
            return AuthOutcome(AuthStatus.INVALID_SIGNATURE, reason=str(exc))

        return self._check_claims(claims, token_type, now or _utcnow())

    @staticmethod
    def _check_claims(claims: Dict[str, Any], token_type: str, now: datetime) -> AuthOutcome:
        identity = claims.get("id")
        if not isinstance(identity, str) or not identity:
            return AuthOutcome(AuthStatus.MALFORMED, reason="token carries no identity")

        expires_at = claims.get("exp")
        if isinstance(expires_at, bool) or not isinstance(expires_at, int):
            return AuthOutcome(AuthStatus.MALFORMED, reason="token carries no expiry")

        if claims.get("type") != token_type:
            return AuthOutcome(AuthStatus.MALFORMED, reason=f"expected {token_type} token")

        if expires_at <= now.timestamp():
            return AuthOutcome(AuthStatus.EXPIRED, identity=identity, reason="token has expired")

        return AuthOutcome(AuthStatus.VERIFIED, identity=identity)
