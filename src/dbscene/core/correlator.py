"""Request/reply correlation over fire-and-forget OSC endpoints.

Neither the DS100 nor QLab tag their replies with a request id; a reply only
echoes the address it answers. Each outstanding request is therefore kept in
a registry keyed by its address and settled by the first reply whose address
ends with that key. Waits for the same address are served oldest first, so a
burst of identical requests is answered one reply per wait.
"""

import asyncio
import itertools
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from ..common.exceptions import BatchError, ReplyTimeoutError, TransportError
from .config import SystemDefaults
from .router import EventType, MessageRouter, ReplyEvent

logger = logging.getLogger(__name__)


class Endpoint(Protocol):
    """Anything that can send an OSC message without waiting"""

    def send(self, address: str, args: Sequence[Any] = ()) -> None:
        ...


@dataclass
class PendingWait:
    """One outstanding request waiting for its reply"""

    address: str
    future: "asyncio.Future[ReplyEvent]"
    endpoint: Endpoint
    payload: Tuple[Any, ...] = ()
    retry_interval: Optional[float] = None
    deadline: float = 0.0
    sequence: int = 0
    retries: int = 0
    settled: bool = False
    retry_handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False)


class RequestCorrelator:
    """Turns send-and-hope into awaitable requests with timeout and retry"""

    def __init__(
        self,
        router: Optional[MessageRouter] = None,
        request_timeout: float = SystemDefaults.REQUEST_TIMEOUT,
        poll_interval: float = SystemDefaults.POLL_INTERVAL,
        poll_timeout: float = SystemDefaults.POLL_TIMEOUT,
    ):
        self.request_timeout = request_timeout
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self._pending: Dict[str, Deque[PendingWait]] = {}
        self._sequence = itertools.count()
        if router is not None:
            router.subscribe(EventType.REPLY, self.dispatch)

    @property
    def pending_count(self) -> int:
        """Number of waits currently registered"""
        return sum(len(queue) for queue in self._pending.values())

    def pending_addresses(self) -> List[str]:
        return [address for address, queue in self._pending.items() if queue]

    async def request(
        self, endpoint: Endpoint, address: str, args: Sequence[Any] = ()
    ) -> ReplyEvent:
        """Send once and wait for the reply"""
        return await self._wait(endpoint, address, args, self.request_timeout, None)

    async def poll(
        self, endpoint: Endpoint, address: str, args: Sequence[Any] = ()
    ) -> ReplyEvent:
        """Send and keep resending until a reply arrives or the wait times out"""
        return await self._wait(
            endpoint, address, args, self.poll_timeout, self.poll_interval
        )

    async def poll_all(
        self, endpoint: Endpoint, addresses: Iterable[str]
    ) -> List[ReplyEvent]:
        """Poll several addresses concurrently; fail if any of them fails"""
        addresses = list(addresses)
        results = await asyncio.gather(
            *(self.poll(endpoint, address) for address in addresses),
            return_exceptions=True,
        )
        failures = [
            (address, result)
            for address, result in zip(addresses, results)
            if isinstance(result, BaseException)
        ]
        if failures:
            raise BatchError(failures, len(addresses))
        return list(results)

    def dispatch(self, reply: ReplyEvent) -> bool:
        """Settle the oldest wait whose address the reply ends with"""
        candidates = [
            wait
            for address, queue in self._pending.items()
            if reply.address.endswith(address)
            for wait in queue
            if not wait.future.done()
        ]
        if not candidates:
            return False
        wait = min(candidates, key=lambda w: w.sequence)
        self._settle(wait)
        wait.future.set_result(reply)
        return True

    async def _wait(
        self,
        endpoint: Endpoint,
        address: str,
        args: Sequence[Any],
        timeout: float,
        retry_interval: Optional[float],
    ) -> ReplyEvent:
        loop = asyncio.get_running_loop()
        wait = PendingWait(
            address=address,
            future=loop.create_future(),
            endpoint=endpoint,
            payload=tuple(args),
            retry_interval=retry_interval,
            deadline=loop.time() + timeout,
            sequence=next(self._sequence),
        )
        self._register(wait)
        try:
            endpoint.send(address, wait.payload)
            if retry_interval and not wait.future.done():
                self._schedule_retry(wait)
            try:
                return await asyncio.wait_for(wait.future, timeout)
            except asyncio.TimeoutError:
                logger.debug(f"Timed out after {wait.retries} retries: {address}")
                raise ReplyTimeoutError(address, timeout) from None
        finally:
            self._settle(wait)

    def _register(self, wait: PendingWait) -> None:
        self._pending.setdefault(wait.address, deque()).append(wait)

    def _settle(self, wait: PendingWait) -> None:
        """Stop the retry timer and drop the registry entry, exactly once"""
        if wait.settled:
            return
        wait.settled = True
        if wait.retry_handle is not None:
            wait.retry_handle.cancel()
            wait.retry_handle = None
        queue = self._pending.get(wait.address)
        if queue is not None:
            try:
                queue.remove(wait)
            except ValueError:
                pass
            if not queue:
                del self._pending[wait.address]

    def _schedule_retry(self, wait: PendingWait) -> None:
        loop = asyncio.get_running_loop()
        if loop.time() + wait.retry_interval >= wait.deadline:
            return
        wait.retry_handle = loop.call_later(wait.retry_interval, self._resend, wait)

    def _resend(self, wait: PendingWait) -> None:
        wait.retry_handle = None
        if wait.settled or wait.future.done():
            return
        try:
            wait.endpoint.send(wait.address, wait.payload)
        except TransportError as e:
            logger.error(f"Resend of {wait.address} failed: {e}")
            if not wait.future.done():
                wait.future.set_exception(e)
            return
        wait.retries += 1
        self._schedule_retry(wait)
