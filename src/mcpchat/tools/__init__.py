"""
Tool catalog helpers for mcpchat.

This module maps the tools published by the tool server onto the function-calling schema that the
chat-completions endpoint expects.  The mapping is pure: a ``ToolDescriptor`` goes in, a plain
dict ready for JSON serialisation comes out.
"""

from typing import (
    Any,
    Dict,
    List,
    Literal,
    Mapping,
    NotRequired,
    Sequence,
    TypedDict,
)

from mcpchat.core.schema import ToolDescriptor


class FunctionParameters(TypedDict):
    """
    JSON schema object for the arguments of a function.
    """

    type: Literal["object"]
    properties: Mapping[str, Any]
    required: NotRequired[List[str]]


class FunctionSchema(TypedDict):
    """
    Function signature offered to the model.
    """

    name: str
    description: str
    parameters: FunctionParameters


class ToolSchema(TypedDict):
    """
    One entry of the ``tools`` list of a chat-completions request.
    """

    type: Literal["function"]
    function: FunctionSchema


def to_function_schema(tool: ToolDescriptor) -> ToolSchema:
    """
    Map a tool descriptor onto the endpoint's function-calling schema.

    Parameters
    ----------
    tool:
        The descriptor published by the tool server.

    Returns
    -------
    ToolSchema
        ``{"type": "function", "function": {name, description, parameters}}``.  The
        ``required`` list only names declared properties and is omitted when empty, so tools
        without mandatory arguments stay valid for strict endpoints.
    """
    properties: Dict[str, Any] = dict(tool.input_schema.get("properties") or {})
    required = [name for name in tool.input_schema.get("required") or [] if name in properties]

    parameters: FunctionParameters = {"type": "object", "properties": properties}
    if required:
        parameters["required"] = required

    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": parameters,
        },
    }


def build_tool_catalog(tools: Sequence[ToolDescriptor]) -> List[ToolSchema]:
    """Map every descriptor, keeping the server's order."""
    return [to_function_schema(tool) for tool in tools]


def describe_tool(tool: ToolDescriptor) -> str:
    """One-line human readable signature, e.g. ``get_forecast(city: string): Weather forecast``."""
    param_desc = ", ".join(
        f"{name}: {info.type}" + ("" if info.required else "?")
        for name, info in tool.parameters.items()
    )
    line = f"{tool.name}({param_desc})"
    if tool.description:
        line += f": {tool.description}"
    return line
