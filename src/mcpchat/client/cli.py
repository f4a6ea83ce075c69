"""Console loop for mcpchat."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import (
    Callable,
    Tuple,
)

from mcpchat.agent.agent_loop import TurnOrchestrator
from mcpchat.common import (
    AnsiColors,
    colored_print,
    print_error,
)
from mcpchat.config import settings

logger = logging.getLogger(__name__)

PROMPT = "> "


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message(prompt: str = PROMPT) -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False at end of input (EOF).  Ctrl+C is delivered to the main
        thread, where it ends the session.
    """
    try:
        user_input = input(prompt)
        return user_input, True
    except EOFError:
        return "", False


async def read_in_background(read_message: Callable[[], Tuple[str, bool]]) -> Tuple[str, bool]:
    """
    Run the blocking *read_message* on a daemon thread and await its result.

    A daemon thread left waiting in ``input()`` after Ctrl+C does not keep the process alive.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def _deliver(setter: Callable, value: object) -> None:
        if not future.done():  # cancelled by Ctrl+C
            setter(value)

    def _post(setter: Callable, value: object) -> None:
        try:
            loop.call_soon_threadsafe(_deliver, setter, value)
        except RuntimeError:  # event loop already closed
            logger.debug("Input arrived after the chat loop ended")

    def _worker() -> None:
        try:
            result = read_message()
        except BaseException as exc:  # pylint: disable=broad-except
            _post(future.set_exception, exc)
        else:
            _post(future.set_result, result)

    threading.Thread(target=_worker, name="mcpchat-input", daemon=True).start()
    return await future


async def run_cli(
    orchestrator: TurnOrchestrator,
    read_message: Callable[[], Tuple[str, bool]] = get_user_message,
    quit_command: str | None = None,
) -> None:
    """
    Read queries until the quit command, answering each with *orchestrator*.

    A failing query is reported on stderr and the loop carries on.  The tool server is not closed
    here; whoever opened it releases it.
    """
    if quit_command is None:
        quit_command = settings.QUIT_COMMAND

    colored_print("\nMCP Client Started!", AnsiColors.GREEN)
    print(f"Type your queries or '{quit_command}' to exit.")

    while True:
        # input() blocks, keep it off the event loop so the server transport stays serviced
        query, ok = await read_in_background(read_message)
        if not ok:
            break  # end of input
        if query.lower() == quit_command.lower():
            break
        if not query.strip():
            continue

        try:
            response = await orchestrator.process_query(query)
        except Exception as exc:  # pylint: disable=broad-except
            logger.debug("Query failed", exc_info=True)
            print_error(f"Error processing query: {exc}")
            continue

        print(response)
