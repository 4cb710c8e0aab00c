"""
collaborators.py - Boundaries to components outside the pipeline.

Authentication, user notification and connectivity detection belong to
the host application. The pipeline only depends on these protocols;
the classes below are the defaults used when nothing else is wired in.
"""

import logging
from typing import Any, Mapping, Protocol

logger = logging.getLogger(__name__)


class AuthProvider(Protocol):
    def get_current_user(self) -> Mapping[str, Any] | None: ...

    def has_permission(self, name: str) -> bool: ...


class Notifier(Protocol):
    def show_success(self, title: str, message: str) -> None: ...

    def show_error(self, title: str, message: str) -> None: ...


class Connectivity(Protocol):
    def is_online(self) -> bool: ...


class AnonymousAuth:
    """No signed-in user; every permission granted."""

    def get_current_user(self) -> Mapping[str, Any] | None:
        return None

    def has_permission(self, name: str) -> bool:
        return True


class StaticAuth:
    """Fixed user with an explicit permission set."""

    def __init__(self, user: Mapping[str, Any], permissions: set[str] | None = None):
        self._user = dict(user)
        self._permissions = set(permissions or ())

    def get_current_user(self) -> Mapping[str, Any] | None:
        return self._user

    def has_permission(self, name: str) -> bool:
        return name in self._permissions


class LoggingNotifier:
    """Routes user-facing messages to the log."""

    def show_success(self, title: str, message: str) -> None:
        logger.info(f"{title}: {message}")

    def show_error(self, title: str, message: str) -> None:
        logger.error(f"{title}: {message}")


class NetworkState:
    """
    Connectivity flag toggled by the host's online/offline events.

    Starts online. The scheduler subscribes to the offline-to-online
    transition to trigger a sync pass.
    """

    def __init__(self, online: bool = True):
        self._online = online

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> bool:
        """Update the flag; returns True on an offline-to-online transition."""
        restored = online and not self._online
        self._online = online
        if restored:
            logger.info("Connection restored")
        elif not online:
            logger.info("Connection lost. New submissions will stay pending.")
        return restored
