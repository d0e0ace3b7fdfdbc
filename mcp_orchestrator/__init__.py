"""
mcp_orchestrator: query orchestration engine for a personal assistant.

Turns a free-text query into a direct answer, a single tool invocation, or a
short chain of tool invocations, and renders the result as natural language.
"""

__version__ = "1.0.0"
