# eventhub/update_source.py

"""
Live update sources.

Two interchangeable ways of keeping the local view fresh, selected by
configuration:

- PollingUpdateSource: re-fetches the full snapshot every `interval` seconds.
- StreamUpdateSource: holds the Server-Sent Events subscription open and
  hands every message to the client, reconnecting after transport errors.

Both run as a single background task on the client's event loop.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Awaitable, Callable, Dict, FrozenSet, Optional

from .api_client import EventServiceClient, StreamMessage
from .errors import NetworkError, ServiceError

log = logging.getLogger("eventhub")


class ConnectionState(str, Enum):
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    ERROR = "ERROR"
    RECONNECTING = "RECONNECTING"
    CLOSED = "CLOSED"


TRANSITIONS: Dict[ConnectionState, FrozenSet[ConnectionState]] = {
    ConnectionState.CONNECTING: frozenset(
        {ConnectionState.OPEN, ConnectionState.ERROR, ConnectionState.CLOSED}
    ),
    ConnectionState.OPEN: frozenset({ConnectionState.ERROR, ConnectionState.CLOSED}),
    ConnectionState.ERROR: frozenset(
        {ConnectionState.RECONNECTING, ConnectionState.CLOSED}
    ),
    ConnectionState.RECONNECTING: frozenset(
        {ConnectionState.OPEN, ConnectionState.ERROR, ConnectionState.CLOSED}
    ),
    ConnectionState.CLOSED: frozenset(),
}


class ConnectionStateMachine:
    def __init__(self, on_transition: Optional[Callable[[ConnectionState], None]] = None):
        self.state = ConnectionState.CONNECTING
        self._on_transition = on_transition

    def transition(self, new_state: ConnectionState):
        if new_state not in TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal connection transition {self.state.value} -> {new_state.value}"
            )
        log.debug(f"Connection {self.state.value} -> {new_state.value}")
        self.state = new_state
        if self._on_transition is not None:
            self._on_transition(new_state)

    @property
    def closed(self) -> bool:
        return self.state is ConnectionState.CLOSED


class UpdateSource(ABC):
    def __init__(self):
        self.task: Optional[asyncio.Task] = None

    async def start(self):
        if self.task is not None:
            return
        self.task = asyncio.create_task(self._run())

    async def stop(self):
        if self.task is None:
            return
        self.task.cancel()
        try:
            await self.task
        except asyncio.CancelledError:
            pass
        self.task = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    @abstractmethod
    async def _run(self):
        ...


class PollingUpdateSource(UpdateSource):
    def __init__(self, refresh: Callable[[], Awaitable[None]], interval: float = 3.0):
        super().__init__()
        self._refresh = refresh
        self.interval = interval

    async def _run(self):
        log.info(f"Polling every {self.interval}s.")
        while True:
            try:
                await asyncio.sleep(self.interval)
                await self._refresh()
            except asyncio.CancelledError:
                log.info("Polling stopped.")
                raise
            except Exception as e:
                log.error(f"Error in polling loop: {e}", exc_info=True)


class StreamUpdateSource(UpdateSource):
    def __init__(
        self,
        service: EventServiceClient,
        on_message: Callable[[StreamMessage], Awaitable[None]],
        on_state: Optional[Callable[[ConnectionState], None]] = None,
        reconnect_delay: float = 3.0,
    ):
        super().__init__()
        self.service = service
        self._on_message = on_message
        self.retry_delay = reconnect_delay
        self.connection = ConnectionStateMachine(on_state)

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    def _opened(self):
        self.connection.transition(ConnectionState.OPEN)
        log.info("Subscription stream open.")

    def _failed(self):
        self.connection.transition(ConnectionState.ERROR)
        self.connection.transition(ConnectionState.RECONNECTING)

    async def stop(self):
        if not self.connection.closed:
            self.connection.transition(ConnectionState.CLOSED)
        await super().stop()

    async def _run(self):
        while not self.connection.closed:
            try:
                async for message in self.service.stream(on_open=self._opened):
                    if message.retry is not None:
                        self.retry_delay = message.retry
                    if self.connection.closed:
                        return
                    await self._on_message(message)
                log.warning("Subscription stream closed by the service.")
            except asyncio.CancelledError:
                log.info("Subscription stopped.")
                raise
            except (NetworkError, ServiceError) as e:
                log.warning(f"Subscription error: {e}")
            except Exception as e:
                log.error(f"Error in subscription loop: {e}", exc_info=True)

            if self.connection.closed:
                return
            self._failed()
            await asyncio.sleep(self.retry_delay)
