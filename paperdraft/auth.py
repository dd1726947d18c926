"""Signed-in identity: JWT session tokens and auth state listeners."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import jwt


logger = logging.getLogger("paperdraft.auth")

JWT_ALGORITHM = "HS256"

AuthListener = Callable[[Optional["User"]], None]


class NotAuthenticated(PermissionError):
    """Raised when an operation needs a signed-in user and there is none."""


@dataclass(frozen=True)
class User:
    id: str
    email: str
    display_name: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "display_name": self.display_name}


class AuthProvider:
    """Holds the current identity and notifies listeners when it changes."""

    def __init__(self, secret: str, expiry_seconds: int = 60 * 60 * 24 * 7):
        self.secret = secret
        self.expiry_seconds = expiry_seconds
        self._user: Optional[User] = None
        self._listeners: list[AuthListener] = []

    @property
    def current_user(self) -> Optional[User]:
        return self._user

    def require_user(self) -> User:
        if self._user is None:
            raise NotAuthenticated("User must be authenticated")
        return self._user

    def create_token(self, user: User) -> str:
        now = int(time.time())
        payload = {
            "sub": user.id,
            "email": user.email,
            "name": user.display_name,
            "iat": now,
            "exp": now + self.expiry_seconds,
        }
        return jwt.encode(payload, self.secret, algorithm=JWT_ALGORITHM)

    def verify_token(self, token: str) -> Optional[User]:
        """Decode a session token. Returns None if it is expired or invalid."""
        try:
            payload = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.warning("Session token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session token: {e}")
            return None

        return User(
            id=payload["sub"],
            email=payload.get("email", ""),
            display_name=payload.get("name", ""),
        )

    def sign_in(self, user_id: str, email: str, display_name: str = "") -> str:
        user = User(id=user_id, email=email, display_name=display_name)
        token = self.create_token(user)
        self._set_user(user)
        logger.info(f"Signed in {email}")
        return token

    def restore_session(self, token: str) -> Optional[User]:
        user = self.verify_token(token)
        if user is not None:
            self._set_user(user)
        return user

    def sign_out(self) -> None:
        if self._user is not None:
            logger.info(f"Signed out {self._user.email}")
        self._set_user(None)

    def on_auth_state_changed(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener; it is called immediately with the current user.

        Returns a function that removes the listener.
        """
        self._listeners.append(listener)
        listener(self._user)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_user(self, user: Optional[User]) -> None:
        self._user = user
        for listener in list(self._listeners):
            listener(user)
