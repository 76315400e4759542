# SPDX-License-Identifier: Apache-2.0

"""
JWT issuing and password hashing for the EcoBite API.

Tokens are signed with HS256 using ``JWT_SECRET`` unless an RSA key pair is
configured (``JWT_PRIVATE_KEY``/``JWT_PUBLIC_KEY``), in which case RS256 is
used. Passwords and password-reset tokens never leave this module in clear.
"""

import os
import jwt
import bcrypt
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from opentelemetry import trace
import logging

from models.entities import User

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DEFAULT_TOKEN_EXPIRE_DAYS = 7
RESET_TOKEN_EXPIRE_HOURS = 1
BCRYPT_ROUNDS = 12
DEV_SECRET = "ecobite-dev-secret"


class AuthenticationError(Exception):
    """Raised when a token cannot be issued."""
    pass


class TokenValidationError(Exception):
    """Raised when a presented token is malformed, expired or of the wrong type."""
    pass


class AuthService:
    """
    Issues one bearer token per login carrying the user id, email and role.

    The auth middleware turns validated claims into a ``UserContext``.
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        private_key: Optional[str] = None,
        public_key: Optional[str] = None,
        issuer: Optional[str] = None,
        expire_days: Optional[int] = None
    ):
        private_key = private_key or os.getenv("JWT_PRIVATE_KEY")
        public_key = public_key or os.getenv("JWT_PUBLIC_KEY")

        if private_key and public_key:
            self.algorithm = "RS256"
            self.signing_key, self.verification_key = private_key, public_key
        else:
            secret = secret or os.getenv("JWT_SECRET")
            if not secret:
                logger.warning("No JWT_SECRET found, using development secret")
                secret = DEV_SECRET
            self.algorithm = "HS256"
            self.signing_key = self.verification_key = secret

        self.issuer = issuer or os.getenv("JWT_ISSUER", "ecobite-api")
        self.token_expire_days = expire_days or int(os.getenv("JWT_EXPIRE_DAYS", DEFAULT_TOKEN_EXPIRE_DAYS))

    # Passwords

    def hash_password(self, password: str) -> str:
        with tracer.start_as_current_span("auth.hash_password"):
            return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode('utf-8')

    def verify_password(self, password: str, hashed_password: Optional[str]) -> bool:
        """
        Check ``password`` against a stored bcrypt hash.

        Accounts created through Microsoft sign-in have no password and never
        match.
        """
        with tracer.start_as_current_span("auth.verify_password") as span:
            if not hashed_password:
                span.set_attribute("auth.verification_result", "no_password")
                return False
            try:
                matched = bcrypt.checkpw(password.encode('utf-8'), hashed_password.encode('utf-8'))
            except ValueError as e:
                logger.error(f"Stored password hash is unreadable: {str(e)}")
                matched = False
            span.set_attribute("auth.verification_result", "success" if matched else "failed")
            return matched

    # Access tokens

    def _claims(self, user: User, issued_at: datetime, expires_at: datetime) -> Dict[str, Any]:
        return {
            "sub": user.id,
            "id": user.id,
            "email": user.email,
            "role": user.type,
            "iss": self.issuer,
            "iat": issued_at,
            "exp": expires_at,
            "jti": secrets.token_hex(8),
            "type": "access"
        }

    def generate_token(self, user: User) -> Dict[str, Any]:
        """
        Sign an access token for ``user``.

        Returns:
            ``token``, ``token_type``, ``expires_in`` (seconds) and ISO ``expires_at``

        Raises:
            AuthenticationError: If signing fails (e.g. a malformed RSA key)
        """
        with tracer.start_as_current_span("auth.generate_token") as span:
            span.set_attributes({"user.id": user.id, "user.type": user.type})

            now = datetime.now(timezone.utc)
            lifetime = timedelta(days=self.token_expire_days)
            try:
                token = jwt.encode(self._claims(user, now, now + lifetime), self.signing_key,
                                   algorithm=self.algorithm)
            except (jwt.PyJWTError, ValueError, TypeError) as e:
                span.record_exception(e)
                logger.error(f"Token signing failed: {str(e)}")
                raise AuthenticationError(f"Failed to generate token: {str(e)}")

            logger.info("JWT issued", extra={"user_id": user.id, "algorithm": self.algorithm})
            return {
                "token": token,
                "token_type": "Bearer",
                "expires_in": int(lifetime.total_seconds()),
                "expires_at": (now + lifetime).isoformat()
            }

    def _decode(self, token: str, verify: bool = True) -> Dict[str, Any]:
        if not verify:
            return jwt.decode(token, options={"verify_signature": False})
        return jwt.decode(token, self.verification_key, algorithms=[self.algorithm], issuer=self.issuer)

    def validate_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Verify signature, issuer, expiry and ``type`` and return the claims.

        Raises:
            TokenValidationError: If any check fails
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            try:
                claims = self._decode(token)
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            if claims.get("type") != token_type:
                span.set_attribute("auth.validation_result", "wrong_type")
                raise TokenValidationError(f"Invalid token type. Expected {token_type}")

            span.set_attributes({"auth.validation_result": "success", "user.id": claims.get("sub")})
            return claims

    def extract_token_id(self, token: str) -> str:
        """Blocklist key for ``token``; the signature is not checked here."""
        try:
            claims = self._decode(token, verify=False)
        except jwt.InvalidTokenError as e:
            raise TokenValidationError(f"Invalid token format: {str(e)}")
        return f"{claims.get('sub')}:{claims.get('iat')}:{claims.get('jti')}"

    def remaining_lifetime(self, payload: Dict[str, Any]) -> int:
        """Seconds until the token in ``payload`` expires (0 if already expired)."""
        exp = payload.get("exp")
        if not exp:
            return 0
        return max(0, int(exp - datetime.now(timezone.utc).timestamp()))

    # Password reset tokens

    @staticmethod
    def hash_reset_token(token: str) -> str:
        """sha256 hex digest stored instead of the raw reset token."""
        return hashlib.sha256(token.encode('utf-8')).hexdigest()

    def generate_reset_token(self) -> Dict[str, Any]:
        """
        Returns:
            The raw ``token`` (mailed to the user), its ``token_hash`` (stored)
            and ``expires_at``
        """
        token = secrets.token_hex(32)
        return {
            "token": token,
            "token_hash": self.hash_reset_token(token),
            "expires_at": datetime.utcnow() + timedelta(hours=RESET_TOKEN_EXPIRE_HOURS)
        }
