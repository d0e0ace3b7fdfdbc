"""
Query orchestration pipeline.

    RECEIVED -> ENRICHING -> SELECTING -> DIRECT_ANSWER
                                       -> EXECUTING -> CHAIN_CHECK -> [CHAINING]
                                                    -> GENERATING_RESPONSE -> DONE

Any step may fail into ERROR, which resolves to a fixed user-safe answer.
process_query() never raises.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import TYPE_CHECKING

from ..config import settings
from ..constants import ERROR_MESSAGES, RESPONSES
from ..models import AIResponse, ConversationContext, ToolResult, UserContext
from .chaining import ChainExecutor, should_chain
from .responder import suggested_actions

if TYPE_CHECKING:
    from ..memory.preferences import PreferenceEnricher
    from ..memory.sessions import ConversationContextLoader
    from ..tools.executor import ToolExecutor
    from .responder import ResponseGenerator
    from .selector import ToolSelector

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    RECEIVED = "received"
    ENRICHING = "enriching"
    SELECTING = "selecting"
    DIRECT_ANSWER = "direct_answer"
    EXECUTING = "executing"
    CHAIN_CHECK = "chain_check"
    CHAINING = "chaining"
    GENERATING_RESPONSE = "generating_response"
    DONE = "done"
    ERROR = "error"


class QueryOrchestrator:
    """Composes enrichment, selection, execution, chaining and response generation."""

    def __init__(
        self,
        selector: ToolSelector,
        executor: ToolExecutor,
        responder: ResponseGenerator,
        enricher: PreferenceEnricher | None = None,
        context_loader: ConversationContextLoader | None = None,
        chainer: ChainExecutor | None = None,
        history_limit: int | None = None,
    ) -> None:
        self._selector = selector
        self._executor = executor
        self._responder = responder
        self._enricher = enricher
        self._context_loader = context_loader
        self._chainer = chainer or ChainExecutor(executor)
        self._history_limit = history_limit if history_limit is not None else settings.selection_history_limit

    @property
    def executor(self) -> ToolExecutor:
        return self._executor

    async def process_query(self, context: UserContext, user_id: str) -> AIResponse:
        started = time.monotonic()
        state = PipelineState.RECEIVED
        logger.info("Processing query for user %s: %r", user_id, context.query[:200])
        try:
            state = PipelineState.ENRICHING
            if self._enricher is not None:
                context = await self._enricher.enrich(context, user_id)
            conversation = await self._load_conversation(context, user_id)

            state = PipelineState.SELECTING
            selection = await self._selector.select(context, user_id, conversation)
            if selection is None or not selection.is_actionable:
                logger.info("No actionable selection for user %s", user_id)
                return AIResponse(
                    success=False,
                    natural_response=RESPONSES["no_tool"],
                    reasoning=selection.reasoning if selection else None,
                    error=ERROR_MESSAGES["no_tool"],
                )

            if selection.is_direct_answer:
                state = PipelineState.DIRECT_ANSWER
                logger.info("Answered directly without a tool for user %s", user_id)
                return AIResponse(
                    success=True,
                    natural_response=selection.direct_answer or "",
                    reasoning=selection.reasoning,
                )

            state = PipelineState.EXECUTING
            params = self._with_request_timezone(selection.tool, selection.parameters, context)
            result = await self._executor.execute(selection.tool, user_id, params)
            if not result.success:
                logger.info("Tool %s failed for user %s: %s", selection.tool, user_id, result.error)
                return AIResponse(
                    success=False,
                    natural_response=await self._responder.generate(
                        context, selection, result, user_id, conversation
                    ),
                    tool_used=selection.tool,
                    reasoning=selection.reasoning,
                    error=result.error,
                )

            state = PipelineState.CHAIN_CHECK
            final: ToolResult = result
            chained_tools: list[str] | None = None
            if should_chain(selection, result, context):
                state = PipelineState.CHAINING
                logger.info("Chaining after %s for user %s", selection.tool, user_id)
                chained = await self._chainer.perform_chain(selection, result, user_id, context)
                if chained is not None and chained.success:
                    final = chained
                    chained_tools = list(chained.data.get("chained_tools") or []) or None
                else:
                    logger.info("Chain after %s produced nothing; keeping primary result", selection.tool)

            state = PipelineState.GENERATING_RESPONSE
            text = await self._responder.generate(context, selection, final, user_id, conversation)

            state = PipelineState.DONE
            logger.info(
                "Query done for user %s tool=%s chained=%s cached=%s in %.2fs",
                user_id, selection.tool, chained_tools, result.cached, time.monotonic() - started,
            )
            return AIResponse(
                success=True,
                natural_response=text,
                tool_used=selection.tool,
                raw_data=final.data,
                reasoning=selection.reasoning,
                suggested_actions=suggested_actions(context),
                chained_tools=chained_tools,
            )
        except Exception as e:
            logger.error("Pipeline failed in state %s for user %s: %s", state.value, user_id, e, exc_info=True)
            return AIResponse(
                success=False,
                natural_response=RESPONSES["pipeline_error"],
                error=str(e) or type(e).__name__,
            )

    def _with_request_timezone(self, tool_name: str, params: dict, context: UserContext) -> dict:
        """Fill a tool's `timezone` parameter from the request when the model left it out."""
        metadata = self._executor.registry.get_metadata(tool_name)
        if metadata is None or params.get("timezone"):
            return params
        if not any(p.name == "timezone" for p in metadata.parameters):
            return params
        return {**params, "timezone": context.timezone}

    async def _load_conversation(self, context: UserContext, user_id: str) -> ConversationContext:
        if self._context_loader is None or not context.session_id:
            return ConversationContext()
        return await self._context_loader.load(context.session_id, user_id, self._history_limit)
