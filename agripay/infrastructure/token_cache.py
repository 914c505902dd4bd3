"""
Infrastructure layer: Access token cache.

Owned by a long-lived client instance rather than kept at module level, so
each client (and each test) has its own token state.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CachedToken:
    """An access token and the moment it stops being accepted."""
    access_token: str
    expires_at: datetime


class AccessTokenCache:
    """
    Holds one bearer token and decides when it must be refreshed.

    A token counts as valid while it expires later than now plus the safety
    buffer, so it is never handed out moments before the server rejects it.
    """

    def __init__(
        self,
        safety_buffer: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize an empty cache.

        Args:
            safety_buffer: Refresh this long before the real expiry
            clock: Returns the current aware datetime
        """
        self.safety_buffer = safety_buffer
        self._clock = clock
        self._token: Optional[CachedToken] = None

    def get(self) -> Optional[str]:
        """
        Return the cached token if it is still comfortably valid.

        Returns:
            Access token, or None when empty or about to expire
        """
        if self._token is None:
            return None
        if self._token.expires_at > self._clock() + self.safety_buffer:
            return self._token.access_token
        return None

    def store(self, access_token: str, expires_in: float) -> CachedToken:
        """
        Cache a freshly issued token.

        Args:
            access_token: Bearer token
            expires_in: Lifetime in seconds as reported by the token endpoint

        Returns:
            The cached token entry
        """
        self._token = CachedToken(
            access_token=access_token,
            expires_at=self._clock() + timedelta(seconds=expires_in),
        )
        return self._token

    def clear(self) -> None:
        self._token = None
