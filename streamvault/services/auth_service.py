"""Authentication service — register, verify, login, token management."""

import logging
import string
import uuid

from streamvault.entities import ROLE_ADMIN, ROLE_USER, User
from streamvault.errors import AuthenticationError, ValidationError
from streamvault.stores.base import DataStore
from streamvault.utils.security import (
    TokenManager,
    generate_verification_token,
    hash_password,
    verify_password,
)
from streamvault.workers.background import BackgroundTaskRunner

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def is_strong_password(password: str) -> bool:
    """At least 8 characters using at least three of: upper, lower, digit, symbol."""
    if len(password) < MIN_PASSWORD_LENGTH:
        return False
    classes = [
        any(c in string.ascii_uppercase for c in password),
        any(c in string.ascii_lowercase for c in password),
        any(c in string.digits for c in password),
        any(c in string.punctuation for c in password),
    ]
    return sum(classes) >= 3


async def send_verification_email(email: str, link: str) -> None:
    """Simulated delivery: the link is written to the log."""
    logger.info("Verification email for %s: %s", email, link)


class AuthService:
    def __init__(
        self,
        store: DataStore,
        tokens: TokenManager,
        runner: BackgroundTaskRunner | None = None,
        require_verification: bool = False,
        public_base_url: str = "http://localhost:8000",
    ):
        self.store = store
        self.tokens = tokens
        self.runner = runner
        self.require_verification = require_verification
        self.public_base_url = public_base_url.rstrip("/")

    async def register(self, email: str, password: str, username: str = "") -> User:
        """Create a new user with the default role and queue a verification email."""
        if not is_strong_password(password):
            raise ValidationError(
                "Password must be at least 8 characters and mix upper case, lower case, "
                "digits and/or symbols"
            )
        email = email.strip().lower()
        user = await self.store.create_user(
            User(
                email=email,
                username=username.strip() or email.split("@")[0],
                password_hash=hash_password(password),
                role=ROLE_USER,
                verification_token=generate_verification_token(),
            )
        )
        logger.info("Registered user %s", user.id)

        if self.runner is not None:
            link = f"{self.public_base_url}/api/v1/auth/verify?token={user.verification_token}"
            self.runner.submit(f"verify-email:{user.id}", send_verification_email(user.email, link))
        return user

    async def login(self, email: str, password: str) -> tuple[User, str]:
        """Authenticate and return (user, access_token)."""
        user = await self.store.get_user_by_email(email.strip().lower())
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password")
        if self.require_verification and not user.is_verified:
            raise AuthenticationError("Account not verified")
        return user, self.tokens.create_access_token(user.id, user.email, user.role)

    async def verify_email(self, token: str) -> User:
        user = await self.store.verify_user(token)
        if user is None:
            raise ValidationError("Invalid or expired verification token")
        logger.info("User %s verified their email", user.id)
        return user

    async def get_user_by_id(self, user_id: uuid.UUID) -> User | None:
        return await self.store.get_user_by_id(user_id)

    async def ensure_admin(self, email: str, password: str) -> User:
        """Create or promote the bootstrap admin account."""
        email = email.strip().lower()
        user = await self.store.get_user_by_email(email)
        if user is None:
            user = await self.store.create_user(
                User(
                    email=email,
                    username=email.split("@")[0],
                    password_hash=hash_password(password),
                    role=ROLE_ADMIN,
                    is_verified=True,
                )
            )
            logger.info("Created bootstrap admin %s", email)
        elif user.role != ROLE_ADMIN:
            await self.store.update_user_role(user.id, ROLE_ADMIN)
            user.role = ROLE_ADMIN
            logger.info("Promoted %s to admin", email)
        return user
