"""
Wallet balance helpers.

Balance polling runs as its own asyncio task on a fixed interval and
shares no state with the upload pipeline; it can be cancelled at any time.
"""
import asyncio
import logging
from decimal import Decimal
from typing import Awaitable, Callable, Optional, Union

import aiohttp

from ..exceptions import GatewayError

logger = logging.getLogger('arlinks.wallet.balance')

WINSTON_PER_AR = 10 ** 12


def winston_to_ar(winston: Union[int, str]) -> Decimal:
    """Convert winston (smallest unit) to AR."""
    return Decimal(int(winston)) / Decimal(WINSTON_PER_AR)


def ar_to_winston(ar: Union[Decimal, str, int]) -> int:
    """Convert AR to winston, truncating sub-winston fractions."""
    return int(Decimal(str(ar)) * WINSTON_PER_AR)


class BalancePoller:
    """
    Periodically fetches a wallet balance.

    Example:
        >>> poller = BalancePoller(gateway.get_balance, wallet.address, print)
        >>> async with poller:
        ...     await asyncio.sleep(30)
    """

    DEFAULT_INTERVAL = 5.0

    def __init__(
        self,
        fetch_balance: Callable[[str], Awaitable[int]],
        address: str,
        callback: Optional[Callable[[int], None]] = None,
        interval: float = DEFAULT_INTERVAL
    ):
        """
        Initialize poller.

        Args:
            fetch_balance: Coroutine function returning the balance in winston
            address: Wallet address to poll
            callback: Called with every fetched balance
            interval: Seconds between polls
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._fetch = fetch_balance
        self._address = address
        self._callback = callback
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self._last_balance: Optional[int] = None

    @property
    def last_balance(self) -> Optional[int]:
        """Most recent balance in winston, None before the first poll."""
        return self._last_balance

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> Optional[int]:
        """Fetch the balance once; failures are logged and return None."""
        try:
            balance = await self._fetch(self._address)
        except (GatewayError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Balance refresh for {self._address} failed: {e}")
            return None

        self._last_balance = balance
        if self._callback:
            self._callback(balance)
        return balance

    async def _run(self):
        while True:
            await self.poll_once()
            await asyncio.sleep(self._interval)

    def start(self) -> asyncio.Task:
        """Start polling in the background."""
        if not self.running:
            self._task = asyncio.create_task(self._run())
            logger.debug(f"Polling balance of {self._address} every {self._interval}s")
        return self._task

    async def stop(self):
        """Cancel polling and wait for the task to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def __aenter__(self) -> 'BalancePoller':
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
