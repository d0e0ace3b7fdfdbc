"""Custom exception hierarchy for mcp_orchestrator."""


class OrchestratorError(Exception):
    """Base exception for the orchestration engine."""
    pass


class ServiceUnavailableError(OrchestratorError):
    """Raised when the reasoning model is unreachable after retries."""
    pass


class StorageError(OrchestratorError):
    """Raised when the session or preference store cannot be read or written."""
    pass


class ToolTimeoutError(OrchestratorError):
    """Raised when a tool implementation exceeds its time budget."""

    def __init__(self, tool_name: str, timeout: float):
        self.tool_name = tool_name
        self.timeout = timeout
        super().__init__(f"Tool '{tool_name}' timed out after {timeout:.0f}s")


class SpeechError(OrchestratorError):
    """Raised when the speech provider fails to transcribe or synthesise."""
    pass
