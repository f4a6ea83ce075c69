"""
Planner interface for mcpchat.

This module is the only place that *directly* calls an LLM.  Everything else (turn orchestration,
tool server, console) stays model-agnostic.

One back-end is supported out of the box: any **OpenAI-compatible** chat-completions endpoint,
selected with ``OPENAI_BASE_URL`` / ``OPENAI_API_KEY`` / ``OPENAI_MODEL``.

Additional providers can be added by subclassing :class:`BasePlanner` and registering via
:func:`register_planner`.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Sequence,
    Type,
)

import openai

from mcpchat.config import settings
from mcpchat.core.schema import (
    ConversationMessage,
    PlannerResponse,
    ToolCall,
)
from mcpchat.tools import ToolSchema
from mcpchat.tools.tool_call_parser import (
    ToolCallParseError,
    parse_tool_arguments,
)

logger = logging.getLogger(__name__)


class UpstreamError(RuntimeError):
    """Raised when the model endpoint fails or answers with something unusable."""


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PLANNER_REGISTRY: dict[str, Type["BasePlanner"]] = {}


def register_planner(name: str) -> Callable:
    """Decorator to register a planner class under *name*."""

    def wrapper(cls: Type["BasePlanner"]) -> Type["BasePlanner"]:
        _PLANNER_REGISTRY[name] = cls
        return cls

    return wrapper


def load_planner(name: str | None = None, **kwargs: Any) -> "BasePlanner":
    """
    Factory that returns an instantiated planner.

    Fallback order:
    1. *name* arg
    2. ``settings.PLANNER`` env/.env option
    3. default: ``"openai"``

    Extra keyword arguments are passed to the planner constructor.
    """

    target = name or getattr(settings, "PLANNER", "openai")
    cls = _PLANNER_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Planner '{target}' is not registered.")
    return cls(**kwargs)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BasePlanner(ABC):
    """Abstract planner that turns a transcript + tool catalog into an answer or tool calls."""

    @abstractmethod
    async def complete(
        self, messages: Sequence[ConversationMessage], tool_catalog: Sequence[ToolSchema]
    ) -> PlannerResponse:
        """Return the model's final text or the tool calls it requests."""


# ---------------------------------------------------------------------------
# Concrete planners
# ---------------------------------------------------------------------------
def build_messages(messages: Sequence[ConversationMessage]) -> List[Dict[str, Any]]:
    """Convert transcript messages to the chat-completions wire format."""
    openai_messages: List[Dict[str, Any]] = []
    for msg in messages:
        openai_msg: Dict[str, Any] = {"role": msg.role, "content": msg.content}

        # Assistant messages announce the calls that the following tool messages answer
        if msg.tool_calls:
            openai_msg["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.args)},
                }
                for call in msg.tool_calls
            ]

        if msg.tool_call_id is not None:
            openai_msg["tool_call_id"] = msg.tool_call_id

        openai_messages.append(openai_msg)
    return openai_messages


@register_planner("openai")
class OpenAIPlanner(BasePlanner):
    """Planner backed by an OpenAI-compatible chat-completions endpoint."""

    def __init__(self, client: Any = None, model: str | None = None):
        if client is None:
            try:
                client = openai.AsyncOpenAI(
                    api_key=settings.OPENAI_API_KEY,
                    base_url=settings.OPENAI_BASE_URL,
                    timeout=settings.OPENAI_TIMEOUT,
                    max_retries=0,
                )
            except openai.OpenAIError as exc:
                raise UpstreamError(f"Cannot configure OpenAI client: {exc}") from exc
        self._client = client
        self.model = model or settings.OPENAI_MODEL

    async def complete(
        self, messages: Sequence[ConversationMessage], tool_catalog: Sequence[ToolSchema]
    ) -> PlannerResponse:
        """Call the chat-completions endpoint and return final text or tool calls."""
        params: Dict[str, Any] = {
            "model": self.model,
            "messages": build_messages(messages),
            "extra_body": {"enable_thinking": settings.ENABLE_THINKING},
        }
        if tool_catalog:
            params["tools"] = list(tool_catalog)

        try:
            resp = await self._client.chat.completions.create(**params)
        except openai.APIConnectionError as exc:
            logger.error("OpenAI connection error: %s", exc)
            raise UpstreamError(f"Could not reach the model endpoint: {exc}") from exc
        except openai.AuthenticationError as exc:
            logger.error("OpenAI authentication error: %s", exc)
            raise UpstreamError(f"Authentication with the model endpoint failed: {exc}") from exc
        except openai.OpenAIError as exc:
            logger.error("OpenAI planner error: %s", exc)
            raise UpstreamError(f"Error calling the model endpoint: {exc}") from exc

        if not getattr(resp, "choices", None):
            logger.error("OpenAI planner returned no choices: %s", resp)
            raise UpstreamError("Model endpoint returned no choices")

        message = resp.choices[0].message
        logger.debug("OpenAI planner response: %s", message)

        calls: List[ToolCall] = []
        for tool_call in message.tool_calls or []:
            function = getattr(tool_call, "function", None)
            if function is None:
                raise UpstreamError(f"Unsupported tool call type: {tool_call.type}")
            try:
                args = parse_tool_arguments(function.arguments)
            except ToolCallParseError as exc:
                raise UpstreamError(
                    f"Malformed arguments for tool '{function.name}': {exc}"
                ) from exc
            calls.append(ToolCall(id=tool_call.id, name=function.name, args=args))

        return PlannerResponse(content=message.content, tool_calls=calls)
