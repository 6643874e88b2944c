# eventhub/reconciler.py

import logging
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from .models import Event, Stats

log = logging.getLogger("eventhub")

EVENT_CREATED = "event-created"
EVENT_UPDATED = "event-updated"
EVENTS_CLEARED = "events-cleared"


class EventView:
    """
    Local, newest-first projection of the service's events plus the last
    stats snapshot. Never authoritative: the stats are fetched separately
    and may disagree with the list for a while.

    Only the owning event loop task mutates it.
    """

    def __init__(self):
        self.events: List[Event] = []
        self.stats: Optional[Stats] = None

    def __len__(self):
        return len(self.events)

    def ids(self) -> List[int]:
        return [event.id for event in self.events]

    def _index_of(self, event_id: int) -> Optional[int]:
        for i, event in enumerate(self.events):
            if event.id == event_id:
                return i
        return None

    # --- Incremental (push) ---
    def apply_created(self, event: Event):
        index = self._index_of(event.id)
        if index is not None:
            # Already seen through a snapshot refresh; keep its position
            self.events[index] = event
            return
        self.events.insert(0, event)

    def apply_updated(self, event: Event) -> bool:
        """Replaces the matching event in place. Unknown ids are dropped."""
        index = self._index_of(event.id)
        if index is None:
            log.warning(f"Dropping update for unknown event #{event.id}")
            return False
        self.events[index] = event
        return True

    def apply_cleared(self):
        self.events = []

    def apply(self, name: str, payload) -> bool:
        """
        Applies one named stream message. Returns False when the message
        is unknown or its payload cannot be decoded; an update for an
        unknown id still counts as applied (it is a no-op).
        """
        if name == EVENTS_CLEARED:
            self.apply_cleared()
            return True

        if name not in (EVENT_CREATED, EVENT_UPDATED):
            log.debug(f"Ignoring stream message '{name}'")
            return False

        try:
            event = Event.model_validate(payload)
        except PydanticValidationError as e:
            log.warning(f"Malformed '{name}' payload skipped: {e}")
            return False

        if name == EVENT_CREATED:
            self.apply_created(event)
        else:
            self.apply_updated(event)
        return True

    # --- Snapshot ---
    def replace_events(self, events: List[Event]):
        self.events = list(events)

    def replace_stats(self, stats: Stats):
        self.stats = stats
