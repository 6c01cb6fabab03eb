"""Asyncio front-end for :class:`~devctl_lan.exchanger.LanExchanger`.

The probe, connect, write and read of a transaction all block. This wrapper
runs each transaction in a worker thread so that a polling task and other
coroutines on the same event loop keep running while an instrument answers.
Serialization is still provided by the wrapped exchanger's lock, so sync and
async callers may share one exchanger.

Example:
    async with AsyncLanExchanger(LanExchanger("192.0.2.10", 5025)) as psu:
        volts = await psu.send_with_request_double("MEAS:VOLT?;")
"""

from __future__ import annotations

import asyncio
import functools
from types import TracebackType
from typing import Any, Callable, TypeVar

from devctl_lan.exchanger import LanExchanger

_T = TypeVar("_T")


class AsyncLanExchanger:
    """Awaitable wrapper around a :class:`LanExchanger`.

    Args:
        exchanger: The blocking exchanger to drive from worker threads.
    """

    def __init__(self, exchanger: LanExchanger) -> None:
        self._exchanger = exchanger

    @property
    def exchanger(self) -> LanExchanger:
        """The wrapped blocking exchanger."""
        return self._exchanger

    async def _run(self, func: Callable[..., _T], *args: Any, **kwargs: Any) -> _T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def send_without_request(self, command: str, *, timeout: float | None = None) -> None:
        """Send a command without reading a reply."""
        await self._run(self._exchanger.send_without_request, command, timeout=timeout)

    async def send_with_request_string(
        self, command: str, *, timeout: float | None = None
    ) -> str:
        """Send a command and return the raw reply."""
        return await self._run(self._exchanger.send_with_request_string, command, timeout=timeout)

    async def send_with_request_int(self, command: str, *, timeout: float | None = None) -> int:
        """Send a command and parse the reply as an integer."""
        return await self._run(self._exchanger.send_with_request_int, command, timeout=timeout)

    async def send_with_request_double(
        self, command: str, *, timeout: float | None = None
    ) -> float:
        """Send a command and parse the reply as a float."""
        return await self._run(self._exchanger.send_with_request_double, command, timeout=timeout)

    async def query(self, command: str, *, timeout: float | None = None) -> str | None:
        """Run one transaction, reading a reply only for ``?`` commands."""
        return await self._run(self._exchanger.query, command, timeout=timeout)

    async def aclose(self) -> None:
        """Close the wrapped exchanger."""
        await self._run(self._exchanger.close)

    async def __aenter__(self) -> AsyncLanExchanger:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
