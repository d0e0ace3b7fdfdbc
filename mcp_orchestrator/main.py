"""
mcp_orchestrator entry point.
Initialises all components and serves the HTTP API.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal

from .ai.chaining import ChainExecutor
from .ai.claude_client import ClaudeClient
from .ai.orchestrator import QueryOrchestrator
from .ai.responder import ResponseGenerator
from .ai.selector import ToolSelector
from .api.server import AppServices, create_app, drain_background, run_server
from .config import settings
from .logging_config import setup_logging
from .memory.database import DatabaseManager
from .memory.preferences import PreferenceEnricher, PreferenceStore
from .memory.sessions import ConversationContextLoader, SessionStore
from .tools import ResponseCache, ToolBackends, ToolExecutor, build_default_registry
from .tools.backends import CalendarBackend, DriveBackend, MailBackend
from .tools.docs import LocalDocumentStore
from .voice.speech import SpeechService, Synthesizer

logger = logging.getLogger(__name__)


def build_services(
    db: DatabaseManager,
    claude: ClaudeClient,
    calendar: CalendarBackend | None = None,
    mail: MailBackend | None = None,
    drive: DriveBackend | None = None,
    synthesizer: Synthesizer | None = None,
) -> AppServices:
    """Wire registry, executor, stores and pipeline into one AppServices."""
    backends = ToolBackends(
        calendar=calendar,
        mail=mail,
        drive=drive,
        documents=LocalDocumentStore(settings.documents_dir),
        claude=claude,
        crawl_timeout=settings.crawl_timeout,
    )
    registry = build_default_registry(backends)
    executor = ToolExecutor(
        registry,
        ResponseCache(ttl_seconds=settings.cache_ttl_seconds, max_entries=settings.cache_max_entries),
    )
    sessions = SessionStore(db)
    preferences = PreferenceStore(db)

    orchestrator = QueryOrchestrator(
        selector=ToolSelector(claude, registry),
        executor=executor,
        responder=ResponseGenerator(claude),
        enricher=PreferenceEnricher(preferences),
        context_loader=ConversationContextLoader(sessions),
        chainer=ChainExecutor(executor),
    )
    logger.info(
        "Registered %d tools (calendar=%s, mail=%s, drive=%s)",
        len(registry), calendar is not None, mail is not None, drive is not None,
    )
    return AppServices(
        orchestrator=orchestrator,
        registry=registry,
        sessions=sessions,
        preferences=preferences,
        speech=SpeechService(synthesizer=synthesizer),
        claude=claude,
    )


async def _serve() -> None:
    db = DatabaseManager()
    await db.init()
    claude = ClaudeClient()
    services = build_services(db, claude)
    app = create_app(services)

    server = asyncio.create_task(run_server(app))
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, server.cancel)
        except NotImplementedError:
            pass  # Windows

    try:
        await server
    finally:
        await drain_background(services)
        await db.close()
        logger.info("mcp_orchestrator stopped")


def main() -> None:
    os.makedirs(settings.data_dir, exist_ok=True)
    os.makedirs(settings.logs_dir, exist_ok=True)
    os.makedirs(settings.documents_dir, exist_ok=True)

    setup_logging(settings.log_level, settings.logs_dir, settings.log_json)
    logger.info("Starting mcp_orchestrator (data_dir=%s)", settings.data_dir)
    asyncio.run(_serve())


if __name__ == "__main__":
    main()
