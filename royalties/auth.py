from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, MutableMapping, Optional

log = logging.getLogger(__name__)

USER_ID_KEY = "userId"
TOKEN_KEY = "token"
NEW_USER_KEY = "isNewUser"

DEMO_NEW_USER_ID = "demo-user-new"
DEMO_EXISTING_USER_ID = "demo-user-existing"
DEMO_TOKEN = "demo-token"
NEW_USER_PARAM = "newUser"
TRUTHY_PARAMS = ("1", "true", "yes")

ONBOARDING_STEPS = (
    ("Welcome to Your Music Journey!", "What type of artist are you?", ("Solo Artist", "Band/Group", "Producer", "Songwriter")),
    ("Let's Customize Your Experience", "Which platforms do you primarily use?", ("Spotify", "Apple Music", "YouTube Music", "All Platforms")),
    ("Almost Done!", "What's your primary goal?", ("Track Earnings", "Analyze Performance", "Manage Royalties", "All of the Above")),
)


@dataclass(frozen=True)
class AuthUser:
    user_id: str
    token: str
    new_user: bool = False


class AuthSession:
    """Login state kept in a mutable mapping (Streamlit `session_state` or a dict)."""

    def __init__(self, storage: MutableMapping[str, Any]) -> None:
        self._storage = storage

    @property
    def user(self) -> Optional[AuthUser]:
        user_id = self._storage.get(USER_ID_KEY)
        token = self._storage.get(TOKEN_KEY)
        if not user_id or not token:
            return None
        return AuthUser(user_id=str(user_id), token=str(token), new_user=bool(self._storage.get(NEW_USER_KEY, False)))

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def login(self, user_id: str, token: str, new_user: bool = False) -> AuthUser:
        if not user_id or not token:
            raise ValueError("Both user id and token are required to log in")
        self._storage[USER_ID_KEY] = user_id
        self._storage[TOKEN_KEY] = token
        self._storage[NEW_USER_KEY] = bool(new_user)
        log.info("User %s logged in (new_user=%s)", user_id, new_user)
        return AuthUser(user_id=user_id, token=token, new_user=bool(new_user))

    def login_from_params(self, params: Mapping[str, Any]) -> Optional[AuthUser]:
        """Finish a login handed back by the external widget as `userId`/`token`/`newUser` query params.

        Returns None when the params do not carry both a user id and a token.
        """
        user_id = params.get(USER_ID_KEY)
        token = params.get(TOKEN_KEY)
        if not user_id or not token:
            return None
        raw_new_user = params.get(NEW_USER_PARAM, params.get(NEW_USER_KEY))
        new_user = str(raw_new_user or "").strip().lower() in TRUTHY_PARAMS
        return self.login(str(user_id), str(token), new_user=new_user)

    def demo_login(self, new_user: bool) -> AuthUser:
        """Login used when no external login widget is configured."""
        user_id = DEMO_NEW_USER_ID if new_user else DEMO_EXISTING_USER_ID
        return self.login(user_id, DEMO_TOKEN, new_user=new_user)

    def complete_onboarding(self) -> None:
        if self.is_authenticated:
            self._storage[NEW_USER_KEY] = False

    def logout(self) -> None:
        for key in (USER_ID_KEY, TOKEN_KEY, NEW_USER_KEY):
            self._storage.pop(key, None)
