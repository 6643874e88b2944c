# eventhub/render.py

from datetime import datetime
from typing import Optional

from .config import UpdateMode
from .event_client import EventStreamClient

STATUS_ICONS = {"success": "OK", "error": "ERR", "info": "INFO"}


def format_timestamp(value: Optional[datetime]) -> str:
    """'Jan 5, 14:03:09' style; '-' when the timestamp is missing."""
    if value is None:
        return "-"
    return f"{value:%b} {value.day}, {value:%H:%M:%S}"


def _count(value) -> str:
    return "-" if value is None else str(value)


def render_dashboard(client: EventStreamClient) -> str:
    stats = client.stats
    lines = [
        f"EventHub  [{client.mode_label}]  connection={_connection(client)}",
        "Total {}  Pending {}  Processed {}  Failed {}".format(
            _count(stats.total if stats else None),
            _count(stats.pending if stats else None),
            _count(stats.processed if stats else None),
            _count(stats.failed if stats else None),
        ),
    ]

    if not client.events:
        lines.append("No events yet. Create your first event!")
    else:
        lines.append(f"{'ID':>6}  {'TITLE':<30}  {'TYPE':<13}  {'STATUS':<10}  {'CREATED':<16}  PROCESSED")
        for event in client.events:
            lines.append(
                f"{'#' + str(event.id):>6}  {event.title[:30]:<30}  {event.type:<13}  "
                f"{event.status.value:<10}  {format_timestamp(event.created_at):<16}  "
                f"{format_timestamp(event.processed_at)}"
            )

    notification = client.notification
    if notification is not None:
        lines.append(f"[{STATUS_ICONS[notification.severity.value]}] {notification.message}")
    return "\n".join(lines)


def _connection(client: EventStreamClient) -> str:
    if client.settings.update_mode is UpdateMode.POLL:
        return f"polling every {client.settings.poll_interval:g}s"
    if client.connection_state is None:
        return "connecting"
    return client.connection_state.value.lower()
