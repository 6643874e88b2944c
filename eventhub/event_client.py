# eventhub/event_client.py

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Set, Union

import httpx

from .api_client import EventServiceClient, StreamMessage
from .config import ClientSettings, UpdateMode
from .errors import NetworkError, ServiceError, ValidationError
from .models import (
    DESCRIPTION_MAX_LENGTH,
    SOURCE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    CreateEventRequest,
    Event,
    EventForm,
    EventType,
    Stats,
)
from .notifications import Notification, Notifier, Severity
from .reconciler import EVENT_CREATED, EVENTS_CLEARED, EventView
from .update_source import (
    ConnectionState,
    PollingUpdateSource,
    StreamUpdateSource,
    UpdateSource,
)

log = logging.getLogger("eventhub")

CLEAR_PROMPT = "Are you sure you want to delete ALL events?"
RECONNECTING_MESSAGE = "Connection lost. Reconnecting..."

Confirm = Callable[[str], Union[bool, Awaitable[bool]]]


def build_request(form: EventForm, default_source: str = "web-app") -> CreateEventRequest:
    """Validates the form locally. Raises ValidationError, never touches the network."""
    title = form.title.strip()
    if not title:
        raise ValidationError("Title is required", field="title")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(
            f"Title cannot exceed {TITLE_MAX_LENGTH} characters", field="title"
        )
    if len(form.description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters",
            field="description",
        )
    source = form.source.strip() or default_source
    if len(source) > SOURCE_MAX_LENGTH:
        raise ValidationError(
            f"Source cannot exceed {SOURCE_MAX_LENGTH} characters", field="source"
        )
    try:
        event_type = EventType(form.type)
    except ValueError:
        raise ValidationError(f"Unknown event type '{form.type}'", field="type")

    return CreateEventRequest(
        title=title,
        description=form.description,
        source=source,
        type=event_type,
    )


class EventStreamClient:
    """
    Keeps a local view of the Event Service in sync and submits mutations.

    All state lives on one event loop: the snapshot loader, the update
    source task and user operations never run on other threads. After
    stop() no callback touches the state anymore.
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        service: Optional[EventServiceClient] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.settings = settings or ClientSettings()
        self.service = service or EventServiceClient(self.settings, http_client)
        self.view = EventView()
        self.notifier = Notifier(self.settings.notification_ttl, on_change=self._changed)
        self.form = EventForm(source=self.settings.default_source)

        self.loading = False
        self.submitting = False
        self.connection_state: Optional[ConnectionState] = None

        self._listeners: List[Callable[[], None]] = []
        if on_change is not None:
            self._listeners.append(on_change)
        self._tasks: Set[asyncio.Task] = set()
        self._started = False
        self._closed = False

        self.update_source = self._build_update_source()

    def _build_update_source(self) -> UpdateSource:
        if self.settings.update_mode is UpdateMode.POLL:
            return PollingUpdateSource(self.refresh, self.settings.poll_interval)
        return StreamUpdateSource(
            self.service,
            on_message=self.handle_message,
            on_state=self._on_connection_state,
            reconnect_delay=self.settings.reconnect_delay,
        )

    # --- Lifecycle ---
    async def start(self):
        """Loads the initial snapshot, then starts live updates."""
        if self._started:
            return
        self._started = True
        log.info(f"Event client starting ({self.settings.update_mode.value} mode)...")
        await self.load_snapshot()
        if not self._closed:
            await self.update_source.start()

    async def stop(self):
        if self._closed:
            return
        self._closed = True
        await self.update_source.stop()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self.notifier.close()
        await self.service.aclose()
        log.info("Event client stopped.")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *exc):
        await self.stop()

    @property
    def closed(self) -> bool:
        return self._closed

    # --- Read-only state ---
    @property
    def events(self) -> List[Event]:
        return self.view.events

    @property
    def stats(self) -> Optional[Stats]:
        return self.view.stats

    @property
    def notification(self) -> Optional[Notification]:
        return self.notifier.current

    @property
    def mode_label(self) -> str:
        if self.stats is not None and self.stats.kafka_enabled:
            return "Kafka Mode"
        return "Demo Mode (In-Memory)"

    @property
    def can_clear(self) -> bool:
        return not self.loading and len(self.view) > 0

    def add_listener(self, listener: Callable[[], None]):
        self._listeners.append(listener)

    def _changed(self):
        if self._closed:
            return
        for listener in self._listeners:
            try:
                listener()
            except Exception as e:
                log.error(f"Error in change listener: {e}", exc_info=True)

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # --- Snapshot loading ---
    async def fetch_events(self) -> bool:
        try:
            events = await self.service.list_events()
        except (NetworkError, ServiceError) as e:
            log.error(f"Error fetching events: {e}")
            return False
        if self._closed:
            return False
        self.view.replace_events(events)
        self._changed()
        return True

    async def fetch_stats(self) -> bool:
        try:
            stats = await self.service.get_stats()
        except (NetworkError, ServiceError) as e:
            log.error(f"Error fetching stats: {e}")
            return False
        if self._closed:
            return False
        self.view.replace_stats(stats)
        self._changed()
        return True

    async def refresh(self):
        """Replaces events and stats wholesale; failures keep the prior state."""
        await asyncio.gather(self.fetch_events(), self.fetch_stats())

    async def load_snapshot(self):
        self.loading = True
        self._changed()
        try:
            await self.refresh()
        finally:
            self.loading = False
            self._changed()
        log.info(f"Snapshot loaded: {len(self.view)} events.")

    # --- Push updates ---
    async def handle_message(self, message: StreamMessage):
        if self._closed:
            return
        try:
            payload = message.payload()
        except ValueError as e:
            log.warning(f"Undecodable '{message.name}' payload skipped: {e}")
            return

        log.debug(f"Stream message '{message.name}'")
        if not self.view.apply(message.name, payload):
            return
        self._changed()

        if message.name == EVENT_CREATED:
            self.notifier.show(f"New event received: #{payload['id']}", Severity.SUCCESS)
        elif message.name == EVENTS_CLEARED:
            self.notifier.show("All events were cleared", Severity.INFO)
        await self.fetch_stats()

    def _on_connection_state(self, state: ConnectionState):
        self.connection_state = state
        if self._closed:
            return

        if state is ConnectionState.ERROR:
            current = self.notifier.current
            if current is None or current.message != RECONNECTING_MESSAGE:
                self.notifier.show(RECONNECTING_MESSAGE, Severity.ERROR, persistent=True)
        elif state is ConnectionState.OPEN:
            current = self.notifier.current
            if current is not None and current.message == RECONNECTING_MESSAGE:
                self.notifier.dismiss(current)
            # Anything pushed before the stream opened is lost; resync
            self._spawn(self.refresh())
        self._changed()

    # --- Mutations ---
    async def create_event(self, form: Optional[EventForm] = None) -> Optional[Event]:
        form = form or self.form
        if self._closed:
            return None
        if self.submitting:
            log.warning("Create ignored: a submission is already in flight.")
            return None

        try:
            request = build_request(form, self.settings.default_source)
        except ValidationError as e:
            self.notifier.show(e.message, Severity.ERROR)
            return None

        self.submitting = True
        self._changed()
        try:
            event = await self.service.create_event(request)
        except ServiceError as e:
            self.notifier.show(e.user_message("Failed to create event"), Severity.ERROR)
            return None
        except NetworkError as e:
            log.error(f"Error creating event: {e}")
            self.notifier.show("Connection error. Is the API running?", Severity.ERROR)
            return None
        finally:
            self.submitting = False
            self._changed()

        if self._closed:
            return event

        log.info(f"Event #{event.id} created.")
        self.notifier.show(f"Event #{event.id} created successfully!", Severity.SUCCESS)
        form.reset_content()
        self.view.apply_created(event)
        self._changed()
        await self.refresh()
        return event

    async def clear_all(self, confirm: Confirm) -> bool:
        """Deletes every event after `confirm(prompt)` agrees."""
        if self._closed or not self.can_clear:
            return False

        answer = confirm(CLEAR_PROMPT)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            return False

        self.loading = True
        self._changed()
        try:
            await self.service.delete_all()
        except ServiceError:
            self.notifier.show("Failed to clear events", Severity.ERROR)
            return False
        except NetworkError as e:
            log.error(f"Error clearing events: {e}")
            self.notifier.show("Connection error", Severity.ERROR)
            return False
        finally:
            self.loading = False
            self._changed()

        if self._closed:
            return True

        log.info("All events cleared.")
        self.view.apply_cleared()
        self.notifier.show("All events cleared successfully!", Severity.SUCCESS)
        self._changed()
        await self.refresh()
        return True
