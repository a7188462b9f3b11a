"""Command line entry point: debatelib (or python -m debatelib)."""

import argparse
import json
import logging
import sys

from .config import load_settings
from .core import JSON_INDENT
from .mcp import MCPError, ToolServerClient
from .storage import StorageError, create_repository
from .topics import transcript

logger = logging.getLogger('debatelib')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="debatelib",
        description="Debate topics from the local tool server and the topic store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  debatelib tools                     # List the tool server's tools
  debatelib topic --save              # Generate a topic and store it
  debatelib topics                    # List stored topics
  debatelib show 1                    # Print a stored debate as a transcript
"""
    )
    parser.add_argument("--url", help="Tool server address (default: DEBATE_MCP_URL or http://localhost:8000)")
    parser.add_argument("--verbose", "-v", action="count", default=0, help="More logging (-vv for protocol traffic)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("tools", help="List the tools the tool server offers")
    topic = sub.add_parser("topic", help="Generate a new debate topic")
    topic.add_argument("--save", action="store_true", help="Insert the topic into the topic store")
    sub.add_parser("topics", help="List stored topics")
    show = sub.add_parser("show", help="Print a stored topic's script")
    show.add_argument("id", type=int, help="Topic id")
    return parser


def _configure_logging(settings, verbose: int) -> None:
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = getattr(logging, settings.log_level.upper(), logging.WARNING)
    logger.setLevel(level)


def _client(settings) -> ToolServerClient:
    return ToolServerClient(
        settings.mcp_url,
        client_name=settings.client_name,
        client_version=settings.client_version,
        call_timeout=settings.call_timeout,
        session_timeout=settings.session_timeout,
    )


def run(args, settings) -> int:
    if args.command == "tools":
        for tool in _client(settings).list_tools():
            print(f"{tool.name}: {tool.description}" if tool.description else tool.name)
        return 0

    if args.command == "topic":
        draft = _client(settings).fetch_topic()
        if args.save:
            with create_repository(settings) as repo:
                stored = repo.insert(draft)
            if stored is not None:
                logger.info(f"Stored topic {stored.id}: {stored.title}")
                print(json.dumps(stored.to_wire(), indent=JSON_INDENT))
                return 0
        print(json.dumps(draft.to_wire(), indent=JSON_INDENT))
        return 0

    if args.command == "topics":
        with create_repository(settings) as repo:
            topics = repo.list()
        for topic in topics:
            print(f"{topic.id:>4}  {topic.title}")
        return 0

    with create_repository(settings) as repo:
        topic = repo.get(args.id)
    if topic is not None:
        print(transcript(topic), end="")
        return 0
    print(f"No topic with id {args.id}", file=sys.stderr)
    return 1


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(mcp_url=args.url)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2
    _configure_logging(settings, args.verbose)

    try:
        return run(args, settings)
    except (MCPError, StorageError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
