from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

SessionListener = Callable[["AuthSession"], None]


class AuthSession:
    """The authenticated-session value shared by every outgoing request.

    Set on login/signup success, cleared on logout. Requests read ``token``
    once when they are built, so a change never affects one already in flight.
    """

    def __init__(self) -> None:
        self._token: str | None = None
        self._user_id: str | None = None
        self._generation = 0
        self._listeners: list[SessionListener] = []

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def generation(self) -> int:
        """Bumped on every set/clear; a response issued under another generation is stale."""
        return self._generation

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def set(self, token: str, user_id: str) -> None:
        if not token:
            raise ValueError("token must be non-empty")
        self._token = token
        self._user_id = user_id
        self._generation += 1
        logger.info("session: signed in as %s", user_id)
        self._notify()

    def clear(self) -> None:
        if self._token is None:
            return
        logger.info("session: signed out %s", self._user_id)
        self._token = None
        self._user_id = None
        self._generation += 1
        self._notify()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register ``listener`` for set/clear events; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


current_session = AuthSession()
