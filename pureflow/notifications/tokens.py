"""
Device registration token holder.

The registration token is a single mutable value that rotates
asynchronously. Readers always see the latest swapped-in value, and a
refresh in progress never blocks them: they keep using the previous token
until the new one is stored.

Example:
    >>> registry = TokenRegistry(fetcher=fetch_token_from_store)
    >>> await registry.refresh()
    >>> registry.current
    'ExponentPushToken[abc123]'
"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

TokenFetcher = Callable[[], Awaitable[Optional[str]]]


class TokenRegistry:
    """
    Holds the latest device registration token.

    Attributes:
        _token: Current token, None when the device is not registered.
        _fetcher: Async callable returning a fresh token.
        _refresh_lock: Serializes concurrent refreshes; readers never take it.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        fetcher: Optional[TokenFetcher] = None,
    ) -> None:
        self._token = token or None
        self._fetcher = fetcher
        self._refresh_lock = asyncio.Lock()

    @property
    def current(self) -> Optional[str]:
        """Latest token, or None if none is registered."""
        return self._token

    def set(self, token: Optional[str]) -> None:
        """
        Store a rotated token.

        Called from token-rotation events. An empty value clears the token.
        """
        previous = self._token
        self._token = token or None
        if previous != self._token:
            logger.info(
                "registration_token_updated",
                has_token=self._token is not None,
                rotated=previous is not None,
            )

    def clear(self) -> None:
        """Forget the token."""
        self.set(None)

    async def refresh(self) -> Optional[str]:
        """
        Fetch a fresh token and swap it in.

        A fetch that raises keeps the previous token. A fetch that returns
        no token clears it.

        Returns:
            Optional[str]: The token after the refresh.
        """
        if self._fetcher is None:
            return self._token

        async with self._refresh_lock:
            try:
                token = await self._fetcher()
            except Exception as e:
                logger.warning("registration_token_refresh_failed", error=str(e))
                return self._token

            self.set(token)
            return self._token
