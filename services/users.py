# services/users.py
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from errors import DuplicateEmail, InternalError, InvalidCredentials, ValidationError
from model import Role, User
from schemas import Identity, UserOut
from util.security import CredentialStore, TokenService

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def coerce_role(role: Union[Role, str, None]) -> Role:
    if role is None:
        return Role.CITIZEN
    try:
        return Role(role)
    except ValueError:
        raise ValidationError(f"Unknown role: {role}")


class UserRegistry:
    """
    Registration, login and the bootstrap admin account.

    Every storage step runs in the threadpool with its own session, so
    concurrent requests never share a Session.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        credentials: CredentialStore,
        tokens: TokenService,
        admin_email: str = "admin@cityfix.com",
        admin_password: str = "admin123",
        admin_name: str = "Admin",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory
        self.credentials = credentials
        self.tokens = tokens
        self.admin_email = admin_email
        self.admin_password = admin_password
        self.admin_name = admin_name
        self._clock = clock or _utcnow
        self._dummy_digest = None

    def _issue(self, user: User) -> Tuple[str, UserOut]:
        token = self.tokens.sign(Identity(id=user.id, email=user.email, role=user.role))
        return token, UserOut.model_validate(user)

    # -------------------- REGISTER --------------------
    async def register(
        self, name: str, email: str, password: str, role: Union[Role, str, None] = Role.CITIZEN
    ) -> Tuple[str, UserOut]:
        if not name or not name.strip():
            raise ValidationError("Name is required")
        if not email or not email.strip():
            raise ValidationError("Email is required")
        if not password:
            raise ValidationError("Password is required")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        role = coerce_role(role)

        hashed_password = await self.credentials.hash(password)
        user = await run_in_threadpool(self._insert_user, name, email, hashed_password, role)

        logger.info(f"Registered user {user.id} with role {user.role}")
        return self._issue(user)

    def _insert_user(self, name: str, email: str, hashed_password: str, role: Role) -> User:
        with self.session_factory() as db:
            user = User(
                name=name,
                email=email,
                password=hashed_password,
                role=role.value,
                created_at=self._clock(),
            )
            db.add(user)
            try:
                db.commit()
            except IntegrityError as e:
                # The unique index on email decides races between registrations
                db.rollback()
                raise DuplicateEmail() from e
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Registration insert failed: {e}")
                raise InternalError("Registration failed") from e
            return user

    # -------------------- LOGIN --------------------
    async def login(self, email: str, password: str) -> Tuple[str, UserOut]:
        user = await run_in_threadpool(self._find_by_email, email)

        if user is None:
            # Spend the same bcrypt effort as a real check
            await self.credentials.verify(password or "", await self._get_dummy_digest())
            logger.info("Failed login attempt")
            raise InvalidCredentials()

        if not await self.credentials.verify(password or "", user.password):
            logger.info("Failed login attempt")
            raise InvalidCredentials()

        logger.info(f"User {user.id} logged in")
        return self._issue(user)

    async def _get_dummy_digest(self) -> str:
        if self._dummy_digest is None:
            self._dummy_digest = await self.credentials.hash("cityfix-unknown-account")
        return self._dummy_digest

    def _find_by_email(self, email: str) -> Optional[User]:
        if not email:
            return None
        with self.session_factory() as db:
            try:
                return db.execute(select(User).where(User.email == email)).scalar_one_or_none()
            except SQLAlchemyError as e:
                logger.error(f"User lookup failed: {e}")
                raise InternalError() from e

    async def get_user(self, user_id: int) -> Optional[UserOut]:
        user = await run_in_threadpool(self._get_by_id, user_id)
        return UserOut.model_validate(user) if user else None

    def _get_by_id(self, user_id: int) -> Optional[User]:
        with self.session_factory() as db:
            try:
                return db.get(User, user_id)
            except SQLAlchemyError as e:
                logger.error(f"User lookup failed: {e}")
                raise InternalError() from e

    # -------------------- BOOTSTRAP ADMIN --------------------
    async def ensure_bootstrap_admin(self) -> UserOut:
        """Create the admin account, or reset its password and role, keyed by email"""
        hashed_password = await self.credentials.hash(self.admin_password)
        admin = await run_in_threadpool(self._upsert_admin, hashed_password)
        logger.info("Admin user ensured in DB")
        return UserOut.model_validate(admin)

    def _upsert_admin(self, hashed_password: str) -> User:
        with self.session_factory() as db:
            try:
                self._execute_upsert(db, hashed_password)
                db.commit()
                return db.execute(select(User).where(User.email == self.admin_email)).scalar_one()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Error creating admin: {e}")
                raise InternalError() from e

    def _execute_upsert(self, db: Session, hashed_password: str) -> None:
        values = {
            "name": self.admin_name,
            "email": self.admin_email,
            "password": hashed_password,
            "role": Role.ADMIN.value,
            "created_at": self._clock(),
        }
        dialect = db.get_bind().dialect.name

        if dialect in ("sqlite", "postgresql"):
            insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
            stmt = insert(User).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[User.email],
                set_={"password": stmt.excluded.password, "role": stmt.excluded.role},
            )
            db.execute(stmt)
            return

        admin = db.execute(select(User).where(User.email == self.admin_email)).scalar_one_or_none()
        if admin is None:
            db.add(User(**values))
        else:
            admin.password = hashed_password
            admin.role = Role.ADMIN.value
