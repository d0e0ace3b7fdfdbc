"""
Pydantic v2 data models for mcp_orchestrator.

Field names are snake_case in Python and camelCase on the wire
(`model_dump(by_alias=True)`), matching what HTTP clients send and receive.
"""

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ToolCategory = Literal[
    "calendar", "email", "productivity", "web", "search", "files", "drive",
    "documents", "social", "custom", "system", "external",
]
ParameterType = Literal["string", "number", "boolean", "object", "array"]
TimeContext = Literal["current", "future", "past", "any", "recent", "realtime"]
DataAccess = Literal["read", "write", "both"]
ResponseStyle = Literal["brief", "detailed", "conversational"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# --------------------------------------------------------------------------- #
# Tool metadata                                                               #
# --------------------------------------------------------------------------- #

class ToolParameter(_WireModel):
    name: str
    type: ParameterType
    description: str
    required: bool = False
    examples: list[str] = Field(default_factory=list)


class ToolExample(_WireModel):
    query: str
    expected_params: dict[str, Any] = Field(default_factory=dict)
    description: str = ""


class ToolMetadata(_WireModel):
    """Describes a callable tool for reasoning purposes."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    category: ToolCategory
    parameters: list[ToolParameter] = Field(default_factory=list)
    examples: list[ToolExample] = Field(default_factory=list)
    time_context: Optional[TimeContext] = None
    data_access: DataAccess = "read"

    def parameter(self, name: str) -> ToolParameter | None:
        for p in self.parameters:
            if p.name == name:
                return p
        return None


# --------------------------------------------------------------------------- #
# Reasoning output                                                            #
# --------------------------------------------------------------------------- #

class ToolSelection(_WireModel):
    """The selector's decision: a tool plus parameters, or a direct answer."""

    tool: Optional[str] = None
    confidence: int = 0
    parameters: dict[str, Any] = Field(default_factory=dict)
    reasoning: str = ""
    direct_answer: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("directAnswer", "geminiOutput", "direct_answer"),
    )
    category: Optional[str] = None
    can_answer_directly: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("canAnswerDirectly", "canUseGemini", "can_answer_directly"),
    )

    @field_validator("tool", mode="before")
    @classmethod
    def blank_tool_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() in ("", "null", "none"):
            return None
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> int:
        try:
            value = int(float(v))
        except (TypeError, ValueError):
            return 0
        return max(0, min(100, value))

    @field_validator("parameters", mode="before")
    @classmethod
    def null_parameters(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("reasoning", mode="before")
    @classmethod
    def null_reasoning(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def is_direct_answer(self) -> bool:
        return self.tool is None and bool(self.direct_answer)

    @property
    def is_actionable(self) -> bool:
        """False when there is neither a tool to run nor an answer to give."""
        return self.tool is not None or bool(self.direct_answer)


# --------------------------------------------------------------------------- #
# Request envelope                                                            #
# --------------------------------------------------------------------------- #

class ResponsePreferences(_WireModel):
    response_style: ResponseStyle = "conversational"
    include_actions: bool = True
    is_voice_mode: bool = False
    clean_for_speech: bool = False
    is_voice_query: bool = False

    @field_validator("response_style", mode="before")
    @classmethod
    def unknown_style_is_conversational(cls, v: Any) -> Any:
        if v not in ("brief", "detailed", "conversational"):
            return "conversational"
        return v


class CurrentContext(_WireModel):
    time_of_day: Literal["morning", "afternoon", "evening"]
    day_of_week: str
    timestamp: str


class Personalization(_WireModel):
    user_preferences: dict[str, Any] = Field(default_factory=dict)
    onboarding_completed: bool = False
    current_context: Optional[CurrentContext] = None


class UserContext(_WireModel):
    """Per-request envelope threaded through the pipeline. Never persisted here."""

    query: str
    timestamp: str = Field(default_factory=utc_now_iso)
    timezone: str = "UTC"
    session_id: Optional[str] = None
    preferences: ResponsePreferences = Field(default_factory=ResponsePreferences)
    personalization: Optional[Personalization] = None

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("query must not be empty")
        return v

    @property
    def is_voice(self) -> bool:
        return self.preferences.is_voice_mode or self.preferences.is_voice_query


# --------------------------------------------------------------------------- #
# Execution results                                                           #
# --------------------------------------------------------------------------- #

class ToolResult(_WireModel):
    """Uniform success/error envelope returned by every tool execution."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    timestamp: str = Field(default_factory=utc_now_iso)
    cached: bool = False

    @classmethod
    def ok(cls, data: Any) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)


class AIResponse(_WireModel):
    """Terminal output of the orchestration pipeline."""

    success: bool
    natural_response: str
    tool_used: Optional[str] = None
    raw_data: Any = None
    reasoning: Optional[str] = None
    suggested_actions: list[str] = Field(default_factory=list)
    chained_tools: Optional[list[str]] = None
    error: Optional[str] = None


# --------------------------------------------------------------------------- #
# Conversation context                                                        #
# --------------------------------------------------------------------------- #

class ConversationMessage(_WireModel):
    role: Literal["user", "assistant", "system"]
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None


class ToolCallRecord(_WireModel):
    tool_name: str
    success: bool = True
    created_at: Optional[str] = None


class ConversationContext(_WireModel):
    """Recent turns of a session, oldest first."""

    messages: list[ConversationMessage] = Field(default_factory=list)
    tool_calls: list[ToolCallRecord] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.messages and not self.tool_calls


class SessionRecord(_WireModel):
    id: str
    user_id: str
    title: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
