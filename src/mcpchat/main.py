"""
mcpchat entry point.

This file handles startup concerns (arg-parsing, logging, tool server lifetime) and launches the
interactive console loop.
"""

import argparse
import asyncio
import logging
import sys

from mcpchat.agent.agent_loop import TurnOrchestrator
from mcpchat.agent.planner_interface import (
    UpstreamError,
    load_planner,
)
from mcpchat.agent.tool_executor import (
    ServerConnectionError,
    connect_to_server,
)
from mcpchat.client.cli import run_cli
from mcpchat.common import print_error
from mcpchat.config import settings
from mcpchat.tools import describe_tool

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stderr,
    )
    # Keep the HTTP client quiet unless something goes wrong
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcpchat", description="Chat with an LLM that can call tools on an MCP server"
    )
    parser.add_argument("server_script", help="Path to the tool server script (.py or .js)")
    parser.add_argument(
        "--model",
        default=None,
        help="Model name (default from env: OPENAI_MODEL=%s)" % settings.OPENAI_MODEL,
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    return parser


async def _run(server_script: str, model: str | None = None) -> None:
    async with connect_to_server(server_script) as server:
        tools = server.list_tools()
        print("\nConnected to server with tools:", [tool.name for tool in tools])
        for tool in tools:
            print(f"  - {describe_tool(tool)}")

        planner = load_planner(model=model)
        await run_cli(TurnOrchestrator(server, planner))


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the mcpchat application.

    Parses the command line, initializes logging, connects to the tool server and runs the chat
    loop.  Exits with status 1 if the server cannot be reached or the model client cannot be set
    up; argparse exits with status 2 when the script path is missing.  Ctrl+C ends the session
    normally.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = _build_parser().parse_args(argv)

    # Override log level setting with command-line argument
    settings.LOG_LEVEL = args.log_level
    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting mcpchat with server script %s", args.server_script)
    logger.debug("Settings: %s", settings.model_dump(exclude={"OPENAI_API_KEY"}))

    try:
        asyncio.run(_run(args.server_script, model=args.model))
    except (ServerConnectionError, UpstreamError) as exc:
        logger.debug("Fatal error", exc_info=True)
        print_error(f"Error: {exc}")
        sys.exit(1)
    except KeyboardInterrupt:
        # Ctrl+C ends the session like the quit command; the server is already closed
        logger.info("Interrupted, exiting")
        print()


if __name__ == "__main__":
    main()
