# util/security.py
# Password hashing, identity tokens and the bearer-token gate
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
import logging

import bcrypt
from fastapi import Header, Request
from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from config import ConfigError
from errors import Forbidden, InvalidToken, MissingToken
from schemas import Identity

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -------------------- CREDENTIAL STORE --------------------
class CredentialStore:
    """bcrypt digests; the async methods keep hashing off the event loop"""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify_password(self, plain: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # Malformed digest or over-long password
            return False

    async def hash(self, password: str) -> str:
        return await run_in_threadpool(self.hash_password, password)

    async def verify(self, plain: str, hashed: str) -> bool:
        return await run_in_threadpool(self.verify_password, plain, hashed)


# -------------------- TOKEN SERVICE --------------------
class TokenService:
    def __init__(
        self,
        secret: str,
        expire_hours: int = 24,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not secret:
            raise ConfigError("Token signing secret is not configured")
        self._secret = secret
        self.expire_delta = timedelta(hours=expire_hours)
        self._clock = clock or _utcnow

    def sign(self, identity: Identity) -> str:
        now = self._clock()
        payload = {
            "sub": str(identity.id),
            "id": identity.id,
            "email": identity.email,
            "role": identity.role,
            "iat": now,
            "exp": now + self.expire_delta,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Identity:
        try:
            # Expiry is checked against our own clock below
            claims = jwt.decode(
                token, self._secret, algorithms=[ALGORITHM], options={"verify_exp": False}
            )
        except JWTError as e:
            raise InvalidToken() from e

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            raise InvalidToken()
        if exp <= self._clock().timestamp():
            raise InvalidToken("Token expired")

        try:
            return Identity(id=claims.get("id"), email=claims.get("email"), role=claims.get("role"))
        except PydanticValidationError as e:
            raise InvalidToken() from e


# -------------------- ACCESS GATE --------------------
def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


class AccessGate:
    def __init__(self, tokens: TokenService):
        self.tokens = tokens

    def authenticate(self, authorization: Optional[str]) -> Identity:
        token = extract_bearer_token(authorization)
        if not token:
            raise MissingToken()
        try:
            return self.tokens.verify(token)
        except InvalidToken as e:
            logger.info(f"Rejected bearer token: {e.message}")
            raise Forbidden() from e


def get_current_user(request: Request, authorization: Optional[str] = Header(None)) -> Identity:
    """Dependency resolving the caller's identity from the Authorization header"""
    return request.app.state.access_gate.authenticate(authorization)
