"""Supabase access-token verification.

HS256 tokens are checked against the project JWT secret; RS256/ES256 tokens
against the project's JWKS. Issuer must be ``{SUPABASE_URL}/auth/v1`` and
audience ``authenticated``.
"""

from typing import Any, Dict, Optional

import jwt
from pydantic import BaseModel, ConfigDict

from app.core.config import settings
from app.core.jwks import JWKSService, jwks_service
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

ASYMMETRIC_ALGORITHMS = ("RS256", "ES256")
REQUIRED_CLAIMS = ["sub", "exp", "iat", "iss"]


class JWTClaims(BaseModel):
    """Decoded JWT claims from Supabase."""

    model_config = ConfigDict(extra="allow")

    sub: str  # User ID
    email: Optional[str] = None
    role: str = "authenticated"
    exp: int
    iat: int
    iss: str
    aud: Optional[Any] = None

    app_metadata: Optional[Dict[str, Any]] = None
    user_metadata: Optional[Dict[str, Any]] = None
    session_id: Optional[str] = None


class JWTVerifier:
    """JWT verifier for Supabase access tokens."""

    def __init__(self, supabase_url: str, jwt_secret: str = "", keys: Optional[JWKSService] = None):
        """Initialize JWT verifier.

        Args:
            supabase_url: Supabase project URL for issuer validation
            jwt_secret: Supabase JWT secret for HS256 verification
            keys: JWKS cache used for asymmetric tokens
        """
        self.supabase_url = supabase_url.rstrip("/")
        self.expected_issuer = f"{self.supabase_url}/auth/v1"
        self.jwt_secret = jwt_secret
        self.keys = keys

    async def verify_token(self, token: str) -> JWTClaims:
        """Verify and decode a Supabase JWT token.

        Args:
            token: JWT access token from Authorization header

        Returns:
            Decoded and validated JWT claims

        Raises:
            jwt.InvalidTokenError: If the token is malformed, expired or not
                signed by this project
        """
        try:
            header = jwt.get_unverified_header(token)
            alg = header.get("alg")

            if alg == "HS256":
                if not self.jwt_secret:
                    raise jwt.InvalidTokenError("HS256 token received but SUPABASE_JWT_SECRET is not configured")
                key: Any = self.jwt_secret
            elif alg in ASYMMETRIC_ALGORITHMS:
                key = await self._resolve_signing_key(header.get("kid"))
            else:
                raise jwt.InvalidTokenError(f"Unsupported algorithm: {alg}")

            payload = jwt.decode(
                token,
                key,
                algorithms=[alg],
                audience="authenticated",
                issuer=self.expected_issuer,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            LOGGER.warning(f"Token expired: {e}")
            raise jwt.InvalidTokenError("Token has expired") from e
        except jwt.InvalidIssuerError as e:
            LOGGER.warning(f"Invalid issuer: {e}")
            raise jwt.InvalidTokenError("Invalid token issuer") from e
        except jwt.InvalidTokenError as e:
            LOGGER.warning(f"Invalid token: {e}")
            raise
        except RuntimeError as e:
            LOGGER.error(f"Signing keys unavailable: {e}")
            raise jwt.InvalidTokenError("Token verification failed") from e

        claims = JWTClaims(**payload)
        LOGGER.debug(f"Verified token for user: {claims.sub}")
        return claims

    async def _resolve_signing_key(self, kid: Optional[str]) -> Any:
        """Find the JWKS key for ``kid`` and load it through PyJWT."""
        if not kid:
            raise jwt.InvalidTokenError("JWT header missing 'kid' (key ID)")
        if self.keys is None:
            raise jwt.InvalidTokenError("Asymmetric token received but no JWKS source is configured")

        jwk_key = await self.keys.get_key(kid)
        if jwk_key is None:
            raise jwt.InvalidTokenError(f"No matching key found for kid: {kid}")

        try:
            return jwt.PyJWK(jwk_key.model_dump(exclude_none=True)).key
        except (jwt.PyJWKError, jwt.InvalidKeyError) as e:
            raise jwt.InvalidTokenError(f"Unusable signing key {kid}: {e}") from e


jwt_verifier = JWTVerifier(
    supabase_url=settings.supabase_url,
    jwt_secret=settings.supabase_jwt_secret,
    keys=jwks_service,
)
