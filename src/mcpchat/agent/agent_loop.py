"""Turn orchestration for mcpchat: one user query, at most one round of tool calls."""

from __future__ import annotations

import json
import logging
from typing import List

from mcpchat.agent.planner_interface import BasePlanner
from mcpchat.agent.tool_executor import (
    ToolExecutionError,
    ToolServer,
    serialize_result,
)
from mcpchat.core.schema import (
    ConversationMessage,
    ToolCall,
)
from mcpchat.tools import build_tool_catalog

logger = logging.getLogger(__name__)


def format_tool_call(call: ToolCall) -> str:
    """Human readable annotation shown before the model's follow-up text."""
    args = json.dumps(call.args, ensure_ascii=False, separators=(",", ":"))
    return f"[Calling tool {call.name} with args {args}]"


# ---------------------------------------------------------------------------
# Turn Orchestrator
# ---------------------------------------------------------------------------
class TurnOrchestrator:
    """
    Drives a single query through the model and the tool server.

    The transcript lives only for the duration of :meth:`process_query`; nothing is remembered
    between queries.  Tool calls requested by the first model response are executed in order, each
    followed by one more model call whose text becomes part of the reply.  Tool calls requested by
    those follow-up responses are not executed.
    """

    def __init__(self, server: ToolServer, planner: BasePlanner):
        self.server = server
        self.planner = planner

    async def _run_tool(self, call: ToolCall) -> str:
        try:
            result = await self.server.invoke(call.name, call.args)
        except ToolExecutionError as exc:
            # Surface the failure to the model instead of aborting the turn
            logger.warning("Tool failure: %s", exc)
            return str(exc)
        content = serialize_result(result)
        logger.info("Tool '%s' returned: %s", call.name, content)
        return content

    async def process_query(self, query: str) -> str:
        """
        Answer *query*, calling tools when the model asks for them.

        Returns
        -------
        str
            The model's text when no tool was requested; otherwise one calling annotation and one
            follow-up text per tool call, joined by newlines.

        Raises
        ------
        UpstreamError
            If the model endpoint fails.
        """
        messages: List[ConversationMessage] = [ConversationMessage(role="user", content=query)]
        tool_catalog = build_tool_catalog(self.server.list_tools())

        plan = await self.planner.complete(messages, tool_catalog)
        if plan.is_final:
            return plan.content or ""

        logger.info(
            "Model requested %d tool calls: %s",
            len(plan.tool_calls),
            [call.name for call in plan.tool_calls],
        )

        final_text: List[str] = []
        for call in plan.tool_calls:
            logger.info("Calling tool %s with args %s", call.name, call.args)
            result_text = await self._run_tool(call)
            final_text.append(format_tool_call(call))

            messages.append(
                ConversationMessage(role="assistant", content=plan.content or "", tool_calls=[call])
            )
            messages.append(
                ConversationMessage(role="tool", content=result_text, tool_call_id=call.id)
            )

            follow_up = await self.planner.complete(messages, tool_catalog)
            if follow_up.tool_calls:
                logger.warning(
                    "Ignoring %d tool calls requested after tool '%s' (single tool round)",
                    len(follow_up.tool_calls),
                    call.name,
                )
            final_text.append(follow_up.content or "")

        return "\n".join(final_text)
