"""Account service: e-mail/password and Google sign-in, registration.

Failures are raised as `AuthError` with Firebase-style codes so the login page
can show the matching message.
"""

from typing import Optional
import bcrypt
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from wingx.core import get_logger
from wingx.core_settings import Settings
from wingx.domain.errors import AuthError
from wingx.domain.models import Role, User
from wingx.infrastructure.google import GoogleTokenVerifier
from wingx.infrastructure.repositories import UserRepository

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6

class AuthService:
    def __init__(self, users: UserRepository, google: GoogleTokenVerifier, settings: Settings):
        self.users = users
        self.google = google
        self.settings = settings

    def role_for(self, email: str) -> Role:
        email = email.lower()
        if email in self.settings.admin_emails:
            return Role.ADMIN
        if email in self.settings.store_emails:
            return Role.STORE
        return Role.USER

    def _register(self, email: str, password: str, display_name: str) -> User:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError("auth/weak-password")
        email = email.strip().lower()
        password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
        try:
            return self.users.create(
                email=email,
                display_name=display_name.strip(),
                password_hash=password_hash,
                provider="password",
                role=self.role_for(email).value,
            )
        except IntegrityError:
            raise AuthError("auth/email-already-in-use")

    async def register(self, email: str, password: str, display_name: str) -> User:
        user = await run_in_threadpool(self._register, email, password, display_name)
        logger.info(f"Registered account {user.id} with role {user.role}")
        return user

    def _sign_in(self, email: str, password: str) -> User:
        user = self.users.get_by_email(email.strip())
        if user is None:
            raise AuthError("auth/user-not-found")
        if not user.password_hash:
            # Google account without a password
            raise AuthError("auth/invalid-credential")
        if not bcrypt.checkpw(password.encode("utf-8"), user.password_hash.encode("utf-8")):
            raise AuthError("auth/wrong-password")
        return user

    async def sign_in(self, email: str, password: str) -> User:
        return await run_in_threadpool(self._sign_in, email, password)

    async def sign_in_with_google(self, id_token: Optional[str] = None, popup_error: Optional[str] = None) -> User:
        if popup_error:
            raise AuthError(popup_error)
        if not id_token:
            raise AuthError("auth/invalid-credential")
        claims = await self.google.verify(id_token)
        if claims is None:
            raise AuthError("auth/invalid-credential")
        email = claims["email"].lower()
        user = await run_in_threadpool(self.users.get_by_email, email)
        if user is not None:
            return user
        try:
            user = await run_in_threadpool(
                self.users.create,
                email=email,
                display_name=claims.get("name") or email.split("@")[0],
                password_hash=None,
                provider="google",
                role=self.role_for(email).value,
            )
        except IntegrityError:
            # Created concurrently by another sign-in
            user = await run_in_threadpool(self.users.get_by_email, email)
        logger.info(f"Google account {user.id} signed in")
        return user
