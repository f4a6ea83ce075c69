"""Owns the MCP tool server subprocess: spawn, handshake, tool discovery and tool calls."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import (
    AsyncExitStack,
    asynccontextmanager,
)
from pathlib import Path
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
)

from mcp import (
    ClientSession,
    StdioServerParameters,
)
from mcp.client.stdio import stdio_client
from mcp.shared.exceptions import McpError
from mcp.types import (
    CallToolResult,
    Tool,
)

from mcpchat.config import settings
from mcpchat.core.schema import ToolDescriptor

logger = logging.getLogger(__name__)


class ServerConnectionError(ConnectionError):
    """Raised when the tool server cannot be started or does not complete its handshake."""


class ToolExecutionError(RuntimeError):
    """Raised when a requested tool cannot run or fails."""


class ToolNotFoundError(ToolExecutionError):
    """Raised when the requested tool is not part of the server's catalog."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def resolve_command(script_path: str) -> str:
    """
    Pick the interpreter that launches *script_path* from its extension.

    Raises
    ------
    ServerConnectionError
        If the extension is neither ``.py`` nor ``.js``.
    """
    interpreters = {".py": settings.PYTHON_COMMAND, ".js": settings.NODE_COMMAND}
    command = interpreters.get(Path(script_path).suffix)
    if command is None:
        raise ServerConnectionError("Server script must be a .py or .js file")
    return command


def serialize_result(result: CallToolResult) -> str:
    """Render the content blocks of a tool result as a JSON array."""
    return json.dumps(
        [block.model_dump(mode="json", exclude_none=True) for block in result.content],
        ensure_ascii=False,
    )


def _error_text(result: CallToolResult) -> str:
    texts = [block.text for block in result.content if getattr(block, "type", None) == "text"]
    return "\n".join(texts) if texts else serialize_result(result)


# ---------------------------------------------------------------------------
# Tool server
# ---------------------------------------------------------------------------
class ToolServer:
    """
    A live connection to one tool server subprocess.

    Instances are created by :meth:`connect` (or the :func:`connect_to_server` context manager)
    and own the child process until :meth:`close` is awaited.
    """

    def __init__(
        self,
        session: ClientSession,
        exit_stack: AsyncExitStack,
        tools: List[ToolDescriptor],
        script_path: str = "",
    ):
        self._session = session
        self._exit_stack = exit_stack
        self._tools = list(tools)
        self._tools_by_name: Dict[str, ToolDescriptor] = {tool.name: tool for tool in tools}
        self.script_path = script_path
        self._closed = False

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    @classmethod
    async def connect(cls, script_path: str, timeout: float | None = None) -> "ToolServer":
        """
        Spawn the server script and complete the MCP handshake.

        Parameters
        ----------
        script_path:
            Path to a ``.py`` or ``.js`` server script, passed as the sole argument of the
            interpreter.
        timeout:
            Seconds allowed for the handshake and tool discovery together (default from
            settings).

        Raises
        ------
        ServerConnectionError
            If the path is rejected, the process cannot be spawned or the handshake fails.
        """
        if timeout is None:
            timeout = settings.SERVER_TIMEOUT

        command = resolve_command(script_path)
        if not Path(script_path).is_file():
            raise ServerConnectionError(f"Server script not found: {script_path}")

        params = StdioServerParameters(command=command, args=[script_path])
        exit_stack = AsyncExitStack()
        try:
            logger.info("Starting tool server: %s %s", command, script_path)
            read_stream, write_stream = await exit_stack.enter_async_context(stdio_client(params))
            session = await exit_stack.enter_async_context(ClientSession(read_stream, write_stream))
            # one budget for the handshake and the whole catalog
            async with asyncio.timeout(timeout):
                await session.initialize()
                listed = await cls._list_all_tools(session)
        except TimeoutError as exc:
            await cls._release(exit_stack)
            raise ServerConnectionError(
                f"Tool server did not complete its handshake within {timeout:g}s"
            ) from exc
        except Exception as exc:  # pylint: disable=broad-except
            await cls._release(exit_stack)
            raise ServerConnectionError(f"Failed to connect to tool server: {exc}") from exc

        tools = [
            ToolDescriptor(
                name=tool.name,
                description=tool.description or "",
                input_schema=dict(tool.inputSchema or {}),
            )
            for tool in listed
        ]
        logger.info("Tool server offers %d tools", len(tools))
        return cls(session, exit_stack, tools, script_path=script_path)

    @staticmethod
    async def _list_all_tools(session: ClientSession) -> List[Tool]:
        """Follow ``nextCursor`` until the server has returned every page."""
        page = await session.list_tools()
        tools = list(page.tools)
        while page.nextCursor:
            logger.debug("Fetching next tool page (cursor=%s)", page.nextCursor)
            page = await session.list_tools(cursor=page.nextCursor)
            tools.extend(page.tools)
        return tools

    @staticmethod
    async def _release(exit_stack: AsyncExitStack) -> None:
        try:
            await exit_stack.aclose()
        except Exception:  # pylint: disable=broad-except
            logger.debug("Error while releasing a failed tool server connection", exc_info=True)

    async def close(self) -> None:
        """Terminate the subprocess.  Further calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        logger.info("Closing tool server %s", self.script_path)
        await self._exit_stack.aclose()

    @property
    def closed(self) -> bool:
        """True once :meth:`close` has been awaited."""
        return self._closed

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def list_tools(self) -> List[ToolDescriptor]:
        """Return the tool catalog discovered at connect time."""
        return list(self._tools)

    async def invoke(self, name: str, arguments: Dict[str, Any] | None = None) -> CallToolResult:
        """
        Call tool *name* on the server with *arguments*.

        Raises
        ------
        ToolNotFoundError
            If *name* is not in the catalog.
        ToolExecutionError
            If the server reports a failure or the call cannot be delivered.
        """
        if arguments is None:
            arguments = {}

        if name not in self._tools_by_name:
            raise ToolNotFoundError(f"Tool '{name}' is not registered.")
        if self._closed:
            raise ToolExecutionError("Tool server connection is closed.")

        try:
            logger.debug("Executing tool '%s' with args=%s", name, arguments)
            result = await self._session.call_tool(name, arguments)
        except McpError as exc:
            logger.warning("Tool server rejected call to '%s': %s", name, exc)
            raise ToolExecutionError(f"Tool '{name}' raised an error: {exc}") from exc
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled error calling tool '%s'", name)
            raise ToolExecutionError(f"Tool '{name}' raised an error: {exc}") from exc

        if result.isError:
            raise ToolExecutionError(f"Tool '{name}' reported an error: {_error_text(result)}")
        return result


@asynccontextmanager
async def connect_to_server(
    script_path: str, timeout: float | None = None
) -> AsyncIterator[ToolServer]:
    """Connect to *script_path* and guarantee the server is closed when the block exits."""
    server = await ToolServer.connect(script_path, timeout=timeout)
    try:
        yield server
    finally:
        await server.close()
