# eventhub/api_client.py

"""
HTTP client for the Event Service.

Wraps a single httpx.AsyncClient and maps the service contract:
snapshot reads, create, delete-all and the Server-Sent Events stream.
Transport failures become NetworkError, non-2xx answers ServiceError.
"""

import json
import logging
from typing import Any, AsyncIterator, Callable, List, Optional

import httpx
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .config import DEFAULT_ORIGIN, ClientSettings
from .errors import NetworkError, ServiceError
from .models import CreateEventRequest, ErrorBody, Event, EventStatus, Stats

log = logging.getLogger("eventhub")

EVENTS_PATH = "/api/events"
STATS_PATH = "/api/events/stats"
SUBSCRIBE_PATH = "/api/events/subscribe"

_event_list = TypeAdapter(List[Event])


class StreamMessage(BaseModel):
    """One dispatched SSE message."""
    name: str = "message"
    data: str = ""
    id: Optional[str] = None
    retry: Optional[float] = None  # seconds

    def payload(self) -> Any:
        if not self.data or self.data == "null":
            return None
        return json.loads(self.data)


class SSEDecoder:
    """Line-oriented text/event-stream decoder."""

    def __init__(self):
        self._reset()

    def _reset(self):
        self._name = None
        self._data = []
        self._id = None
        self._retry = None

    def feed(self, line: str) -> Optional[StreamMessage]:
        line = line.rstrip("\r\n")

        if not line:
            # Blank line dispatches whatever has been collected
            if self._name is None and not self._data and self._retry is None:
                return None
            message = StreamMessage(
                name=self._name or "message",
                data="\n".join(self._data),
                id=self._id,
                retry=self._retry,
            )
            self._reset()
            return message

        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._name = value
        elif field == "data":
            self._data.append(value)
        elif field == "id":
            self._id = value
        elif field == "retry":
            if value.isdigit():
                self._retry = int(value) / 1000.0
        return None


class EventServiceClient:
    def __init__(
        self,
        settings: ClientSettings,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings
        self._owns_client = http_client is None
        if http_client is None:
            http_client = httpx.AsyncClient(
                base_url=settings.base_url or DEFAULT_ORIGIN,
                timeout=settings.request_timeout,
            )
            self._prefix = ""
        else:
            # Injected client: empty api_url means its own base_url (same origin)
            self._prefix = settings.base_url
        self.http = http_client

    def _url(self, path: str) -> str:
        return f"{self._prefix}{path}"

    async def aclose(self):
        if self._owns_client:
            await self.http.aclose()

    # --- Request plumbing ---
    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.http.request(method, self._url(path), **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {path} failed: {e!r}") from e

        if response.is_error:
            raise _service_error(response)
        log.debug(f"{method} {path} -> {response.status_code}")
        return response

    @staticmethod
    def _decode(response: httpx.Response, parse: Callable[[Any], Any]):
        try:
            return parse(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise ServiceError(
                f"Malformed response body: {e}", response.status_code
            ) from e

    # --- Contract ---
    async def list_events(self) -> List[Event]:
        response = await self._request("GET", EVENTS_PATH)
        return self._decode(response, _event_list.validate_python)

    async def get_stats(self) -> Stats:
        response = await self._request("GET", STATS_PATH)
        return self._decode(response, Stats.model_validate)

    async def create_event(self, request: CreateEventRequest) -> Event:
        response = await self._request("POST", EVENTS_PATH, json=request.to_wire())
        return self._decode(response, Event.model_validate)

    async def delete_all(self) -> None:
        await self._request("DELETE", EVENTS_PATH)

    async def get_event(self, event_id: int) -> Event:
        response = await self._request("GET", f"{EVENTS_PATH}/{event_id}")
        return self._decode(response, Event.model_validate)

    async def list_by_status(self, status: EventStatus) -> List[Event]:
        response = await self._request("GET", f"{EVENTS_PATH}/status/{status.value}")
        return self._decode(response, _event_list.validate_python)

    async def stream(
        self, on_open: Optional[Callable[[], None]] = None
    ) -> AsyncIterator[StreamMessage]:
        """
        Opens the subscription stream and yields messages until the server
        closes it. `on_open` fires once the response headers are accepted.
        """
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        # No read timeout: the stream idles between messages
        timeout = httpx.Timeout(self.settings.request_timeout, read=None)
        try:
            async with self.http.stream(
                "GET", self._url(SUBSCRIBE_PATH), headers=headers, timeout=timeout
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise _service_error(response)
                if on_open is not None:
                    on_open()

                decoder = SSEDecoder()
                async for line in response.aiter_lines():
                    message = decoder.feed(line)
                    if message is not None:
                        yield message
        except httpx.TransportError as e:
            raise NetworkError(f"Subscription stream failed: {e!r}") from e


def _service_error(response: httpx.Response) -> ServiceError:
    try:
        body = ErrorBody.model_validate(response.json())
    except (ValueError, PydanticValidationError):
        body = ErrorBody()
    log.warning(
        f"{response.request.method} {response.request.url.path} -> "
        f"{response.status_code}: {body.message}"
    )
    return ServiceError(
        body.message or f"HTTP {response.status_code}",
        response.status_code,
        errors=body.errors,
        detail=body.message,
    )
