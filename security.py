"""
Credential service

Password hashing (bcrypt through passlib) and bearer token issuance and
verification (HS256 JWTs through python-jose).
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JOSEError
from passlib.context import CryptContext

import settings
from errors import AuthError, TokenError
from schemas import TokenClaims

logger = logging.getLogger(__name__)


class CredentialService:
    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expire_minutes: int = 120,
        bcrypt_rounds: int = 12,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=bcrypt_rounds)

    def hash_password(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify_password(self, plain_password: str, hashed_password: Optional[str]) -> bool:
        if not hashed_password:
            return False
        try:
            return self.pwd_context.verify(plain_password, hashed_password)
        except ValueError:
            # stored value is not a recognised hash
            return False

    def issue_token(self, user_id: str, email: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=self.expire_minutes))
        to_encode = {"email": email, "userId": user_id, "type": role, "exp": expire}
        try:
            return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)
        except JOSEError as e:
            logger.error("Token signing failed: %s", e)
            raise TokenError("Failed to generate token")

    def verify_token(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            logger.warning("Rejected expired token")
            raise AuthError("token has expired")
        except JWTError as e:
            logger.warning("Rejected invalid token: %s", e)
            raise AuthError("invalid token")
        try:
            return TokenClaims(user_id=payload["userId"], email=payload["email"], role=payload["type"])
        except (KeyError, TypeError, ValueError):
            raise AuthError("could not parse claims")


def default_credentials() -> CredentialService:
    return CredentialService(
        secret_key=settings.JWT_SECRET,
        algorithm=settings.ALGORITHM,
        expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
        bcrypt_rounds=settings.BCRYPT_ROUNDS,
    )
