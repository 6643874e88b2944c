# main.py

"""
Console front end for the event client.

    python main.py --mode stream
    python main.py --mode poll --api-url http://localhost:8080
    python main.py --create "Order #42" --type USER_ACTION
    python main.py --clear --yes
"""

import argparse
import asyncio
import logging

from eventhub.config import ClientSettings, UpdateMode
from eventhub.event_client import EventStreamClient
from eventhub.models import EventType
from eventhub.render import render_dashboard

# Setup logging
logging.basicConfig(level=logging.INFO)
log = logging.getLogger("eventhub")


def build_settings(args: argparse.Namespace) -> ClientSettings:
    """Environment first, CLI flags on top."""
    overrides = {}
    if args.mode:
        overrides["update_mode"] = UpdateMode(args.mode)
    if args.api_url is not None:
        overrides["api_url"] = args.api_url
    if args.interval is not None:
        overrides["poll_interval"] = args.interval
    return ClientSettings(**overrides)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="EventHub event stream client")
    parser.add_argument("--mode", choices=[m.value for m in UpdateMode], help="Live update strategy")
    parser.add_argument("--api-url", help="Event Service base URL")
    parser.add_argument("--interval", type=float, help="Polling interval in seconds")
    parser.add_argument("--create", metavar="TITLE", help="Publish one event after start-up")
    parser.add_argument("--description", default="", help="Description for --create")
    parser.add_argument("--source", help="Source for --create")
    parser.add_argument(
        "--type",
        default=EventType.USER_ACTION.value,
        choices=[t.value for t in EventType],
        help="Event type for --create",
    )
    parser.add_argument("--clear", action="store_true", help="Delete all events after start-up")
    parser.add_argument("--yes", action="store_true", help="Confirm --clear without asking")
    parser.add_argument("--once", action="store_true", help="Exit after the first snapshot")
    return parser.parse_args(argv)


async def ask(prompt: str) -> bool:
    # input() blocks; keep it off the event loop
    answer = await asyncio.to_thread(input, f"{prompt} [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def dashboard_logger(client: EventStreamClient):
    def on_change():
        log.info("\n" + render_dashboard(client))
    return on_change


async def run(args: argparse.Namespace):
    settings = build_settings(args)
    client = EventStreamClient(settings)

    await client.start()
    try:
        if args.create:
            client.form.title = args.create
            client.form.description = args.description
            client.form.type = EventType(args.type)
            if args.source:
                client.form.source = args.source
            await client.create_event()

        if args.clear:
            await client.clear_all(lambda prompt: True if args.yes else ask(prompt))

        print(render_dashboard(client))
        if args.once:
            return

        client.add_listener(dashboard_logger(client))
        # Runs until Ctrl+C
        await asyncio.Event().wait()
    finally:
        await client.stop()


if __name__ == "__main__":
    try:
        asyncio.run(run(parse_args()))
    except KeyboardInterrupt:
        log.info("Interrupted.")
