"""Out-of-band delivery for password reset tokens.

Only a logging notifier exists today. A mail/SMS notifier implements the
same `send_password_reset` method and is installed on `app.state.notifier`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


def _debug(msg: str) -> None:
    print(f"[notify] {msg}")


class Notifier(ABC):
    @abstractmethod
    def send_password_reset(self, email: str, token: str) -> None:
        """Deliver `token` to the owner of `email`."""


class LogNotifier(Notifier):
    """Logs that a reset was requested. The token itself is redacted."""

    def send_password_reset(self, email: str, token: str) -> None:
        _debug(f"Password reset requested email={email} token={token[:4]}...")
