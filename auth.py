"""
Password authentication for Cronosheet over either store's credential hooks
(get_login_credentials / create_auth_user). Passwords are hashed with bcrypt.
Subscribers are notified on every sign-in and sign-out.
"""
import logging
from dataclasses import dataclass
from typing import Callable

import bcrypt

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class Session:
    user_id: str
    email: str


AuthListener = Callable[[str, "Session | None"], None]


class AuthService:
    def __init__(self, store) -> None:
        self._store = store
        self._session: Session | None = None
        self._listeners: list[AuthListener] = []

    def get_session(self) -> Session | None:
        return self._session

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        """Register callback(event, session); returns a function that unsubscribes it."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            listener(event, self._session)

    def sign_up(self, email: str, password: str) -> Session:
        """Register and sign in. Raises ValueError on invalid input or a taken email."""
        email = (email or "").strip()
        password = password or ""
        if not email or "@" not in email:
            raise ValueError("Enter a valid email address.")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        pw_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
        user_id = self._store.create_auth_user(email, pw_hash)
        logger.info("Registered %s", email)
        self._session = Session(user_id=user_id, email=email)
        self._notify(SIGNED_IN)
        return self._session

    def sign_in(self, email: str, password: str) -> Session:
        """Raises ValueError when the credentials do not match."""
        email = (email or "").strip()
        creds = self._store.get_login_credentials(email) if email else None
        if not creds or not bcrypt.checkpw((password or "").encode("utf-8"), creds[1].encode("utf-8")):
            logger.info("Failed sign-in for %s", email)
            raise ValueError("Invalid email or password.")
        self._session = Session(user_id=creds[0], email=email)
        self._notify(SIGNED_IN)
        return self._session

    def sign_out(self) -> None:
        self._session = None
        self._notify(SIGNED_OUT)
