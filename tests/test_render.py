# tests/test_render.py

import asyncio
import logging
import time
from datetime import datetime

from eventhub.config import UpdateMode
from eventhub.models import Stats
from eventhub.render import format_timestamp, render_dashboard
from main import ask, build_settings, dashboard_logger, parse_args


def test_format_timestamp():
    assert format_timestamp(None) == "-"
    assert format_timestamp(datetime(2026, 1, 5, 14, 3, 9)) == "Jan 5, 14:03:09"


async def test_dashboard_empty_state(fake_client):
    text = render_dashboard(fake_client)
    assert "Demo Mode (In-Memory)" in text
    assert "Total -  Pending -" in text
    assert "No events yet. Create your first event!" in text
    assert "polling every 60s" in text


async def test_dashboard_lists_events_and_notification(fake_client, fake_service, make_event):
    fake_service.events = [make_event(7, title="Order #42", created_at=datetime(2026, 1, 5, 9, 0, 0))]
    fake_service.stats = Stats(total=1, pending=1, kafka_enabled=True)
    await fake_client.refresh()
    fake_client.notifier.show("Event #7 created successfully!")

    text = render_dashboard(fake_client)
    assert "Kafka Mode" in text
    assert "Total 1  Pending 1  Processed 0  Failed 0" in text
    assert "#7" in text
    assert "Order #42" in text
    assert "Jan 5, 09:00:00" in text
    assert "[OK] Event #7 created successfully!" in text


def test_cli_flags_override_environment(monkeypatch):
    monkeypatch.setenv("EVENTHUB_API_URL", "http://env:9000")
    monkeypatch.setenv("EVENTHUB_UPDATE_MODE", "poll")

    settings = build_settings(parse_args([]))
    assert settings.api_url == "http://env:9000"
    assert settings.update_mode is UpdateMode.POLL

    settings = build_settings(parse_args(["--mode", "stream", "--api-url", "http://cli:1"]))
    assert settings.api_url == "http://cli:1"
    assert settings.update_mode is UpdateMode.STREAM


async def test_clear_prompt_keeps_event_loop_running(fake_client, fake_service, make_event, monkeypatch):
    fake_service.events = [make_event(1)]
    await fake_client.refresh()

    def slow_input(prompt):
        time.sleep(0.3)
        return "y"

    monkeypatch.setattr("builtins.input", slow_input)

    ticks = []

    async def heartbeat():
        while True:
            await asyncio.sleep(0.01)
            ticks.append(1)

    beat = asyncio.create_task(heartbeat())
    assert await fake_client.clear_all(ask) is True
    beat.cancel()

    assert len(ticks) > 5
    assert fake_client.events == []


async def test_dashboard_logged_on_every_change(fake_client, fake_service, make_event, caplog):
    fake_client.add_listener(dashboard_logger(fake_client))
    fake_service.events = [make_event(7, title="Order #42")]

    with caplog.at_level(logging.INFO, logger="eventhub"):
        await fake_client.refresh()

    dashboards = [r for r in caplog.records if "Order #42" in r.getMessage()]
    assert dashboards
    assert all(r.levelno == logging.INFO for r in dashboards)
