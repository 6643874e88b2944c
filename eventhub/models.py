# eventhub/models.py

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
SOURCE_MAX_LENGTH = 100
DEFAULT_SOURCE = "web-app"


class EventType(str, Enum):
    USER_ACTION = "USER_ACTION"
    SYSTEM_EVENT = "SYSTEM_EVENT"
    NOTIFICATION = "NOTIFICATION"
    DATA_UPDATE = "DATA_UPDATE"
    INTEGRATION = "INTEGRATION"


class EventStatus(str, Enum):
    """Lifecycle owned by the service: PENDING -> PROCESSING -> PROCESSED | FAILED."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python, unknown fields ignored."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Event(WireModel):
    id: int
    title: str
    description: Optional[str] = None
    source: Optional[str] = None
    # The service stores any string up to 50 chars, so reads stay lenient.
    type: str
    status: EventStatus = EventStatus.PENDING
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    retry_count: int = 0


class Stats(WireModel):
    total: int = 0
    pending: int = 0
    processing: int = 0
    processed: int = 0
    failed: int = 0
    kafka_enabled: bool = False


class CreateEventRequest(WireModel):
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH)
    source: str = Field(DEFAULT_SOURCE, max_length=SOURCE_MAX_LENGTH)
    type: EventType = EventType.USER_ACTION


class ErrorBody(WireModel):
    """Error payload returned by the service on non-2xx responses."""
    status: Optional[int] = None
    message: Optional[str] = None
    errors: Dict[str, str] = Field(default_factory=dict)
    timestamp: Optional[str] = None


class EventForm(BaseModel):
    """Mutable form state kept between submissions."""

    title: str = ""
    description: str = ""
    source: str = DEFAULT_SOURCE
    type: EventType = EventType.USER_ACTION

    def reset_content(self):
        # source/type are kept for rapid repeated entry
        self.title = ""
        self.description = ""
