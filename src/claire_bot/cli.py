"""Command line entry-point for the Claire enquiry bot."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import Optional
from uuid import uuid4

from .config import AppSettings
from .server import main as run_server_cli
from .sessions import ConversationService

EXIT_TOKENS = {"exit", "quit"}


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    storage = argparse.ArgumentParser(add_help=False)
    storage.add_argument(
        "--redis-url",
        default=argparse.SUPPRESS,
        help="Redis URL for conversation state. Overrides CLAIRE_REDIS_URL.",
    )
    parser = argparse.ArgumentParser(
        prog="claire-bot",
        description="Chat with the enquiry bot or manage stored conversations.",
        parents=[storage],
    )
    subparsers = parser.add_subparsers(dest="command")

    chat_parser = subparsers.add_parser(
        "chat",
        parents=[storage],
        help="Talk to the bot in the terminal",
    )
    chat_parser.add_argument(
        "--conversation",
        help="Conversation id to resume (default: a new random id)",
    )

    # Arguments after "serve" are handed to the server's own parser.
    subparsers.add_parser(
        "serve",
        add_help=False,
        help="Serve the bot over HTTP (see `claire-bot serve --help`)",
    )

    reset_parser = subparsers.add_parser(
        "reset",
        parents=[storage],
        help="Delete all stored state for a conversation",
    )
    reset_parser.add_argument("conversation", help="Conversation id")

    subparsers.add_parser(
        "routes",
        parents=[storage],
        help="Print the routing table as JSON",
    )
    return parser.parse_args(argv)


def run_chat(service: ConversationService, conversation_id: str) -> None:
    """Relay terminal input to the bot until the user leaves."""

    print(f"Conversation: {conversation_id} (type 'exit' to leave)")  # noqa: T201
    while True:
        try:
            text = input("You: ")  # noqa: PLW1514 - intentional CLI input
        except EOFError:
            break
        if text.strip().lower() in EXIT_TOKENS:
            break
        for reply in service.handle_message(conversation_id, text):
            print(f"Claire: {reply}")  # noqa: T201


def run_cli(argv: Optional[list[str]] = None) -> None:
    """Entry-point invoked from ``python -m claire_bot``."""

    arg_list = list(argv) if argv is not None else sys.argv[1:]
    if arg_list and arg_list[0] == "serve":
        run_server_cli(arg_list[1:])
        return

    args = _parse_args(arg_list)
    logging.basicConfig(level=logging.INFO)
    settings = AppSettings.load()
    redis_url = getattr(args, "redis_url", None)
    if redis_url:
        settings = replace(settings, redis_url=redis_url)
    service = ConversationService.create(settings)

    if args.command == "reset":
        service.reset(args.conversation)
        print(f"Conversation {args.conversation} reset.")  # noqa: T201
        return
    if args.command == "routes":
        print(service.routing.to_json())  # noqa: T201
        return

    conversation_id = getattr(args, "conversation", None) or uuid4().hex[:12]
    run_chat(service, conversation_id)


if __name__ == "__main__":  # pragma: no cover - manual execution hook
    run_cli()
