# mock_service.py

"""
In-memory Event Service for local development and integration tests.

Implements the HTTP + SSE contract the client consumes. No persistence and
no processing pipeline: statuses only change through `store.set_status`.
Run with `python mock_service.py` (port 8080).
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, Field, field_validator

from eventhub.models import Event, EventStatus, Stats
from eventhub.reconciler import EVENT_CREATED, EVENT_UPDATED, EVENTS_CLEARED

log = logging.getLogger("uvicorn")

KEEPALIVE_SECONDS = 15.0


class NewEvent(BaseModel):
    """Server-side rules, stricter than the client's own checks."""
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    source: str = Field(..., min_length=1, max_length=100)
    type: str = Field(..., min_length=1, max_length=50)

    @field_validator("title", "source", "type")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class EventNotFoundError(Exception):
    def __init__(self, event_id: int):
        self.event_id = event_id
        super().__init__(f"Event not found with id: {event_id}")


class EventStore:
    def __init__(self, kafka_enabled: bool = False):
        self.kafka_enabled = kafka_enabled
        self.events: Dict[int, Event] = {}
        self.next_id = 1
        # One queue per open /subscribe stream
        self.subscribers: List[asyncio.Queue] = []

    # --- Broadcast ---
    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=1000)
        self.subscribers.append(queue)
        log.info(f"New SSE subscription ({len(self.subscribers)} open)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        if queue in self.subscribers:
            self.subscribers.remove(queue)

    def publish(self, name: str, event: Optional[Event]):
        data = event.to_wire() if event is not None else None
        for queue in list(self.subscribers):
            try:
                queue.put_nowait((name, data))
            except asyncio.QueueFull:
                log.warning("Dropping slow SSE subscriber")
                self.unsubscribe(queue)

    # --- Operations ---
    def create(self, new: NewEvent) -> Event:
        event = Event(
            id=self.next_id,
            title=new.title,
            description=new.description,
            source=new.source,
            type=new.type,
            status=EventStatus.PENDING,
            created_at=datetime.now(timezone.utc),
        )
        self.next_id += 1
        self.events[event.id] = event
        log.info(f"Event saved: id={event.id}, title='{event.title}'")
        self.publish(EVENT_CREATED, event)
        return event

    def list_events(self, status: Optional[EventStatus] = None) -> List[Event]:
        events = [e for e in self.events.values() if status is None or e.status == status]
        # Newest first; ids break ties within the same timestamp
        return sorted(events, key=lambda e: (e.created_at, e.id), reverse=True)

    def get(self, event_id: int) -> Event:
        if event_id not in self.events:
            raise EventNotFoundError(event_id)
        return self.events[event_id]

    def set_status(self, event_id: int, status: EventStatus) -> Event:
        event = self.get(event_id)
        changes: Dict[str, Any] = {"status": status}
        if status == EventStatus.PROCESSED:
            changes["processed_at"] = datetime.now(timezone.utc)
        if status == EventStatus.FAILED:
            changes["retry_count"] = event.retry_count + 1
        updated = event.model_copy(update=changes)
        self.events[event_id] = updated
        log.info(f"Event status updated: id={event_id}, status={status.value}")
        self.publish(EVENT_UPDATED, updated)
        return updated

    def clear(self):
        self.events.clear()
        log.info("All events deleted")
        self.publish(EVENTS_CLEARED, None)

    def stats(self) -> Stats:
        counts = {status: 0 for status in EventStatus}
        for event in self.events.values():
            counts[event.status] += 1
        return Stats(
            total=len(self.events),
            pending=counts[EventStatus.PENDING],
            processing=counts[EventStatus.PROCESSING],
            processed=counts[EventStatus.PROCESSED],
            failed=counts[EventStatus.FAILED],
            kafka_enabled=self.kafka_enabled,
        )

    def reset_for_testing(self):
        self.events.clear()
        self.next_id = 1
        self.subscribers.clear()


def format_sse(name: str, data: Any) -> str:
    lines = [f"event: {name}"]
    if data is None:
        lines.append("data:")
    else:
        for chunk in json.dumps(data).splitlines():
            lines.append(f"data: {chunk}")
    return "\n".join(lines) + "\n\n"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


store = EventStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Mock Event Service starting up...")
    yield
    log.info("Mock Event Service shutting down.")
    store.subscribers.clear()


app = FastAPI(title="EventHub Mock Event Service", lifespan=lifespan)


@app.exception_handler(EventNotFoundError)
async def handle_not_found(request: Request, exc: EventNotFoundError):
    log.warning(f"Event not found: {exc}")
    return JSONResponse(
        status_code=404,
        content={"status": 404, "message": str(exc), "timestamp": _timestamp()},
    )


@app.exception_handler(RequestValidationError)
async def handle_validation(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        field = str(error["loc"][-1]) if error.get("loc") else "body"
        errors[field] = error["msg"]
    log.warning(f"Validation error: {errors}")
    return JSONResponse(
        status_code=400,
        content={
            "status": 400,
            "message": "Validation failed",
            "errors": errors,
            "timestamp": _timestamp(),
        },
    )


@app.post("/api/events", status_code=201)
async def create_event(new: NewEvent):
    return store.create(new).to_wire()


@app.get("/api/events")
async def list_events():
    return [e.to_wire() for e in store.list_events()]


@app.get("/api/events/stats")
async def get_stats():
    return store.stats().to_wire()


@app.get("/api/events/subscribe")
async def subscribe():
    queue = store.subscribe()

    async def stream():
        try:
            yield ": connected\n\n"
            while True:
                try:
                    name, data = await asyncio.wait_for(queue.get(), KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield format_sse(name, data)
        finally:
            store.unsubscribe(queue)

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@app.get("/api/events/status/{status}")
async def list_by_status(status: EventStatus):
    return [e.to_wire() for e in store.list_events(status)]


@app.get("/api/events/{event_id}")
async def get_event(event_id: int):
    return store.get(event_id).to_wire()


@app.delete("/api/events", status_code=204)
async def delete_events():
    store.clear()
    return Response(status_code=204)


# --- Main execution (development) ---
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mock_service:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level="info"
    )
