"""
In-memory OAuth access token cache with single-flight refresh.

One cache belongs to one adapter configuration. Concurrent callers that find
the token absent or expired share a single fetch instead of each issuing one.
"""

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_SAFETY_MARGIN = 60


@dataclass(frozen=True)
class OAuthToken:
    access_token: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return bool(self.access_token) and self.expires_at > now


class OAuthTokenCache:
    """
    Time-boxed access token cache.

    Args:
        fetch_token: Callable returning ``(access_token, expires_in_seconds)``;
            it performs the network call and may raise
        clock: Returns the current time in epoch seconds
        safety_margin: Seconds subtracted from the reported expiry
    """

    def __init__(
        self,
        fetch_token: Callable[[], Tuple[str, int]],
        clock: Callable[[], float] = time.time,
        safety_margin: int = DEFAULT_SAFETY_MARGIN
    ):
        self._fetch_token = fetch_token
        self._clock = clock
        self.safety_margin = safety_margin
        self._lock = threading.Lock()
        self._token: Optional[OAuthToken] = None
        self._pending: Optional[Future] = None

    @property
    def token(self) -> Optional[OAuthToken]:
        return self._token

    def get_token(self) -> str:
        with self._lock:
            token = self._token
            if token is not None and token.is_valid(self._clock()):
                logger.debug("Using cached access token")
                return token.access_token

            pending = self._pending
            leader = pending is None
            if leader:
                pending = self._pending = Future()

        if not leader:
            return pending.result()

        # The lock is released here; waiters block on the future instead.
        try:
            access_token, expires_in = self._fetch_token()
            token = OAuthToken(
                access_token=access_token,
                expires_at=self._clock() + int(expires_in) - self.safety_margin
            )
        except BaseException as e:
            with self._lock:
                self._pending = None
            pending.set_exception(e)
            raise

        with self._lock:
            self._token = token
            self._pending = None
        pending.set_result(token.access_token)

        logger.info("Access token refreshed", extra={'expires_in': expires_in})
        return token.access_token

    def clear(self) -> None:
        with self._lock:
            self._token = None
        logger.info("Access token cache cleared")
