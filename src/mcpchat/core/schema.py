"""
Schema definitions for model <-> orchestrator <-> tool server messages.

These data models serve as the contract between the model gateway, the turn orchestrator, and the
tool server.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.
"""

from typing import (
    Any,
    Dict,
    List,
    Literal,
    Optional,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class ParameterInfo(BaseModel):
    """Type and optionality of a single tool parameter."""

    type: str = "any"
    required: bool = False


class ToolDescriptor(BaseModel):
    """A tool published by the tool server, fixed for the lifetime of a session."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Tool name, unique within a session")
    description: str = ""
    input_schema: Dict[str, Any] = Field(
        default_factory=dict, description="JSON schema object describing the tool arguments"
    )

    @property
    def parameters(self) -> Dict[str, ParameterInfo]:
        """Parameter name -> type / required flag, in declaration order."""
        properties = self.input_schema.get("properties") or {}
        required = set(self.input_schema.get("required") or [])
        params: Dict[str, ParameterInfo] = {}
        for param_name, prop in properties.items():
            param_type = prop.get("type", "any") if isinstance(prop, dict) else "any"
            if isinstance(param_type, list):  # e.g. ["string", "null"]
                param_type = "|".join(str(t) for t in param_type)
            params[param_name] = ParameterInfo(
                type=str(param_type), required=param_name in required
            )
        return params


class ToolCall(BaseModel):
    """A call that the model wants the orchestrator to execute."""

    id: str = Field(..., description="Invocation id, echoed back by the tool result message")
    name: str = Field(..., description="Tool name")
    args: Dict[str, Any] = Field(default_factory=dict, description="Arguments for the tool")


class ConversationMessage(BaseModel):
    """One role-tagged entry of a turn transcript."""

    role: Literal["user", "assistant", "tool"]
    content: str = ""
    tool_call_id: Optional[str] = None  # tool messages only
    tool_calls: Optional[List[ToolCall]] = None  # assistant messages only


class PlannerResponse(BaseModel):
    """What the model answered: final text, or tool calls (optionally with text)."""

    content: Optional[str] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)

    @property
    def is_final(self) -> bool:
        """True when the model asked for no tools."""
        return not self.tool_calls
