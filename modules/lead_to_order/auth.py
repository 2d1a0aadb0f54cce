"""
Authentication gate.

Credentials are checked by the login sheet; the resulting user is kept in
the local echo store until logout. Every dashboard command asks the gate
for the current user first.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import config
from .exceptions import NotAuthenticated, SheetError
from .models import User
from .sheet_client import SheetClient
from .store import LocalEchoStore

logger = logging.getLogger(__name__)

LOGIN_ERRORS = {
    'invalid-username': 'Invalid username',
    'invalid-password': 'Invalid password',
}


@dataclass
class LoginResult:
    success: bool
    user: Optional[User] = None
    error: str = ''


class AuthGate:
    """Login, logout and the logged-in check."""

    def __init__(self, client: SheetClient, store: LocalEchoStore, settings=config):
        self.client = client
        self.store = store
        self.settings = settings

    def login(self, username: str, password: str) -> LoginResult:
        username = (username or '').strip()
        if not username or not password:
            return LoginResult(False, error='Please enter both username and password')

        try:
            result = self.client.login_user(username, password, sheet_name=self.settings.LOGIN_SHEET)
        except SheetError as e:
            logger.error(f"Login error: {e}")
            return LoginResult(False, error='Network error')

        if not result.get('success'):
            error = LOGIN_ERRORS.get(result.get('error'), 'Login failed')
            logger.info(f"Login refused for {username}: {result.get('error')}")
            return LoginResult(False, error=error)

        name = result.get('username') or username
        user = User(id='1', username=name, email=f"{name}@{self.settings.USER_EMAIL_DOMAIN}")
        self.store.user.set(user)
        logger.info(f"Logged in as {name}")
        return LoginResult(True, user=user)

    def logout(self):
        user = self.store.user.get()
        self.store.user.clear()
        if user:
            logger.info(f"Logged out {user.username}")

    def current_user(self) -> Optional[User]:
        return self.store.user.get()

    def require_user(self) -> User:
        """The logged-in user; raises NotAuthenticated when there is none."""
        user = self.current_user()
        if user is None:
            raise NotAuthenticated("Login required")
        return user

    def update_profile(self, username: Optional[str] = None, email: Optional[str] = None) -> User:
        user = self.require_user()
        updated = User(
            id=user.id,
            username=(username or user.username).strip(),
            email=(email or user.email).strip(),
        )
        self.store.user.set(updated)
        return updated
