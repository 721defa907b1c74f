#!/usr/bin/env python3
"""
Entry point script to send a prompt and stream the answer to the terminal.

This script should be run from the project root directory:
    python run.py "What is the capital of France?"

Environment variables:
    CHAT_API_BASE_URL: Inference service URL (default: http://127.0.0.1:3000)
    CHAT_API_TOKEN: Bearer token for the service
    CHAT_CLIENT_LOG_FILE: Also write logs to this file
    CHAT_CLIENT_LOG_LEVEL: Log level (default: INFO)
"""
import argparse
import asyncio
import logging
import sys

from chat_client.config import config
from chat_client.models.request_models import ChatRequest
from chat_client.repositories.message_repository import HttpMessageRepository
from chat_client.services.chat_transport import ChatTransport
from chat_client.services.streaming import StreamController, StreamObserver

log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging() -> None:
    handlers = [logging.StreamHandler(sys.stderr)]
    if config.CHAT_CLIENT_LOG_FILE:
        handlers.append(logging.FileHandler(config.CHAT_CLIENT_LOG_FILE, mode="a"))
    logging.basicConfig(
        level=config.CHAT_CLIENT_LOG_LEVEL,
        format=log_format,
        handlers=handlers,
    )


class TerminalObserver(StreamObserver):
    """Prints newly streamed content as it arrives."""

    def __init__(self) -> None:
        self._printed = 0

    def on_update(self, conversation_id, draft, state) -> None:
        if len(draft.content) > self._printed:
            sys.stdout.write(draft.content[self._printed:])
            sys.stdout.flush()
            self._printed = len(draft.content)

    def on_usage_limit(self, notification) -> None:
        print(f"\nUsage limit reached: {notification['message']}", file=sys.stderr)


async def main(args: argparse.Namespace) -> int:
    controller = StreamController(
        transport=ChatTransport(),
        store=HttpMessageRepository(),
        observer=TerminalObserver(),
    )
    request = ChatRequest(
        conversation_id=args.conversation,
        message=args.message,
        reasoning_effort_override=args.effort,
    )
    try:
        outcome = await controller.send(request)
    finally:
        await controller.close()

    print()
    if outcome is None:
        return 1
    timing = outcome.draft.metadata.get("thoughtDurationLabel")
    if timing:
        print(f"[{timing}]", file=sys.stderr)
    print(f"[{outcome.status.value}, message {outcome.message_id}]", file=sys.stderr)
    return 0 if outcome.error is None else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Stream a chat answer")
    parser.add_argument("message", help="Prompt text")
    parser.add_argument("--conversation", default=None, help="Existing conversation id")
    parser.add_argument(
        "--effort",
        default=None,
        choices=["none", "minimal", "low", "medium", "high"],
        help="Reasoning effort override",
    )
    configure_logging()
    sys.exit(asyncio.run(main(parser.parse_args())))
