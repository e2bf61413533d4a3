"""Identity provider boundary.

Credential checks happen elsewhere; this module only carries the signed-in
identity to whoever subscribed for sign-in and sign-out notifications.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    uid: str
    email: str
    display_name: str = ""
    photo_url: Optional[str] = None


class LocalIdentityProvider:
    """In-process provider: the caller asserts who signed in."""

    def __init__(self):
        self._subscribers: list[Callable] = []
        self.current: Identity | None = None

    def subscribe(self, callback: Callable[[Identity | None], None]) -> Callable[[], None]:
        """Register callback for auth changes; it is called at once with the current state."""
        self._subscribers.append(callback)
        callback(self.current)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def sign_in(self, identity: Identity) -> None:
        self.current = identity
        log.info("Signed in %s", identity.email)
        self._notify()

    def sign_out(self) -> None:
        self.current = None
        self._notify()

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(self.current)
