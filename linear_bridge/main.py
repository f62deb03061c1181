"""Command-line runner for the Linear channel.

Usage:
  python -m linear_bridge            # poll until interrupted
  python -m linear_bridge --once     # run a single reconciliation pass

Delivered messages are written to stdout as JSON lines.
"""

from __future__ import annotations

import argparse
import json
import sys
import threading
from collections.abc import Callable
from typing import TextIO

from .bridge_logging import get_logger, setup_logging
from .channel import LinearChannel, NewMessage, SqliteStateStore
from .config import ChannelConfig, ConfigError, load_config
from .integrations import LinearClient, LinearTools

logger = get_logger()


def json_line_emitter(stream: TextIO) -> Callable[[str, NewMessage], None]:
    """Build an on_message callback that prints each message as JSON."""

    def _emit(chat_jid: str, message: NewMessage) -> None:
        stream.write(json.dumps(message.to_dict(), ensure_ascii=False) + "\n")
        stream.flush()

    return _emit


def _log_metadata(jid: str, timestamp: str, name: str, channel: str, is_group: bool) -> None:
    logger.debug(f"Chat metadata: {jid} {name!r} ({channel}) at {timestamp}")


def build_channel(
    config: ChannelConfig,
    on_message: Callable[[str, NewMessage], None],
    on_chat_metadata: Callable[[str, str, str, str, bool], None] = _log_metadata,
) -> tuple[LinearChannel, LinearTools]:
    """Wire a channel and its tool surface from configuration.

    The tools report every comment they post back to the channel, so the
    bot's own replies are never ingested as new messages.
    """
    client = LinearClient(api_key=config.api_key)
    channel = LinearChannel(
        client=client,
        user_id=config.user_id,
        poll_interval_ms=config.poll_interval_ms,
        on_message=on_message,
        on_chat_metadata=on_chat_metadata,
        state_store=SqliteStateStore(config.state_db_path),
        allowed_users=config.allowed_users,
        assistant_name=config.assistant_name,
    )
    tools = LinearTools(client, on_comment_posted=channel.record_bot_comment)
    return channel, tools


def main(argv: list[str] | None = None, stop_event: threading.Event | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="linear-bridge", description="Relay Linear assignments and comments."
    )
    parser.add_argument("--once", action="store_true", help="Run one pass and exit")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)

    try:
        config = load_config(log_level=args.log_level)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_level)
    channel, _tools = build_channel(config, json_line_emitter(sys.stdout))

    try:
        channel.connect()
    except Exception as e:
        logger.error(f"Failed to connect to Linear: {e}")
        return 1

    if args.once:
        channel.disconnect()
        return 0

    stop_event = stop_event or threading.Event()
    try:
        stop_event.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
    finally:
        channel.disconnect()
    return 0


if __name__ == "__main__":
    sys.exit(main())
